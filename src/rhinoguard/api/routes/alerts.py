"""Alerts API routes.

Exposes the alert store's read views and mutation operations to the
dashboard UI.
"""

from typing import Any, Literal

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from rhinoguard.api.dependencies import EngineDep
from rhinoguard.core.alerts.rules import format_alert_id, should_offer_alert
from rhinoguard.core.exceptions import (
    DuplicateAlertError,
    ExternalServiceError,
    FeatureDisabledError,
    InvalidStatusTransitionError,
    ValidationError,
)
from rhinoguard.models.alert import Alert, AlertOverrides, AlertStatus, RangerPosition
from rhinoguard.models.detection import Detection
from rhinoguard.services.alerts.engine import AlertEngine

router = APIRouter(tags=["alerts"])


class CreateAlertRequest(BaseModel):
    """Request to raise an alert from a detection."""

    detection: Detection
    overrides: AlertOverrides = Field(default_factory=AlertOverrides)


class UpdateAlertRequest(BaseModel):
    """Local optimistic patch of an alert."""

    model_config = ConfigDict(populate_by_name=True)

    status: AlertStatus | None = None
    notes: str | None = None
    ranger_assigned: str | None = Field(default=None, alias="rangerAssigned")


class SelectionState(BaseModel):
    """Detail panel state."""

    selected_alert_id: str | None
    display_id: str | None = None
    is_detail_panel_open: bool
    alert: Alert | None = None


class OfferResponse(BaseModel):
    """Whether a detection should offer the alert action."""

    detection_id: str
    offer_alert: bool
    has_active_alert: bool


@router.get("/alerts", response_model=list[Alert])
async def list_alerts(engine: EngineDep) -> list[Alert]:
    """All alerts, most recent first."""
    return engine.store.alerts


@router.get("/alerts/active", response_model=list[Alert])
async def list_active_alerts(
    engine: EngineDep,
    order: Literal["recent", "severity"] = "recent",
) -> list[Alert]:
    """Alerts that are still ongoing.

    ``order=severity`` puts critical alerts first, most recent first within
    a severity.
    """
    alerts = engine.store.active_alerts
    if order == "severity":
        # Stable sort keeps the recency order within each severity
        alerts.sort(key=lambda alert: alert.severity.rank, reverse=True)
    return alerts


@router.get("/alerts/recently-resolved", response_model=list[Alert])
async def list_recently_resolved_alerts(engine: EngineDep) -> list[Alert]:
    """Resolved, failed or expired alerts from the recent window."""
    return engine.store.recently_resolved_alerts


@router.post("/alerts/refresh")
async def refresh_alerts(engine: EngineDep) -> dict[str, Any]:
    """Fetch and merge alerts now instead of waiting for the next poll."""
    await engine.store.refresh_alerts()
    return {"count": len(engine.store.alerts), "error": engine.store.error}


@router.post("/alerts", response_model=Alert, status_code=201)
async def create_alert(request: CreateAlertRequest, engine: EngineDep) -> Alert:
    """Raise a ranger alert from a detection."""
    try:
        return await engine.store.create_alert_from_detection(
            request.detection, request.overrides
        )
    except FeatureDisabledError as e:
        raise HTTPException(status_code=403, detail=str(e)) from e
    except DuplicateAlertError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except ExternalServiceError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e


@router.get("/alerts/{alert_id}", response_model=Alert)
async def get_alert(alert_id: str, engine: EngineDep) -> Alert:
    """Get a single alert from the store."""
    alert = engine.store.get_alert_by_id(alert_id)
    if alert is None:
        raise HTTPException(status_code=404, detail=f"Alert {alert_id} not found")
    return alert


@router.patch("/alerts/{alert_id}", response_model=Alert)
async def update_alert(
    alert_id: str,
    request: UpdateAlertRequest,
    engine: EngineDep,
) -> Alert:
    """Apply an optimistic local status edit."""
    try:
        alert = engine.store.update_alert_status(
            alert_id, **request.model_dump(exclude_none=True)
        )
    except InvalidStatusTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    if alert is None:
        raise HTTPException(status_code=404, detail=f"Alert {alert_id} not found")
    return alert


@router.post("/alerts/{alert_id}/select", response_model=SelectionState)
async def select_alert(alert_id: str, engine: EngineDep) -> SelectionState:
    """Focus an alert in the detail panel."""
    if engine.store.get_alert_by_id(alert_id) is None:
        raise HTTPException(status_code=404, detail=f"Alert {alert_id} not found")
    engine.selection.select_alert(alert_id)
    return _selection_state(engine)


@router.get("/selection", response_model=SelectionState)
async def get_selection(engine: EngineDep) -> SelectionState:
    """Current detail panel state."""
    return _selection_state(engine)


@router.post("/selection/close", response_model=SelectionState)
async def close_detail_panel(engine: EngineDep) -> SelectionState:
    """Close the detail panel."""
    engine.selection.close_detail_panel()
    return _selection_state(engine)


@router.get("/detections/{detection_id}/alerts", response_model=list[Alert])
async def list_detection_alerts(detection_id: str, engine: EngineDep) -> list[Alert]:
    """Alerts raised for a detection."""
    return engine.store.get_alerts_for_detection(detection_id)


@router.post("/detections/offer", response_model=OfferResponse)
async def offer_alert(detection: Detection, engine: EngineDep) -> OfferResponse:
    """Tell the UI whether to show the alert action for a detection."""
    return OfferResponse(
        detection_id=detection.id,
        offer_alert=should_offer_alert(detection),
        has_active_alert=engine.store.has_active_alert(detection.id),
    )


@router.get("/rangers/positions", response_model=list[RangerPosition])
async def list_ranger_positions(engine: EngineDep) -> list[RangerPosition]:
    """Latest polled ranger positions."""
    return engine.store.ranger_positions


def _selection_state(engine: AlertEngine) -> SelectionState:
    selected_id = engine.selection.selected_alert_id
    return SelectionState(
        selected_alert_id=selected_id,
        display_id=format_alert_id(selected_id) if selected_id else None,
        is_detail_panel_open=engine.selection.is_detail_panel_open,
        alert=engine.selected_alert,
    )
