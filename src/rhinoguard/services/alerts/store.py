"""Alert store: canonical in-memory alert state.

The store is the single owner of the alert list and the ranger position
list. UI layers read the derived views and call the mutation methods;
they never touch the lists directly.

Derived views are memoized per store version and recomputed only when the
canonical list is replaced. The "recently resolved" cutoff depends on the
wall clock, so it is applied at read time on top of the memoized terminal
list.

Refreshes may overlap (a poll tick and a manual refresh, or a slow
response). Each refresh takes a ticket and responses older than the last
applied ticket are discarded.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import timedelta
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from rhinoguard.config.settings import Settings
from rhinoguard.core.exceptions import (
    BackendUnreachableError,
    DuplicateAlertError,
    FeatureDisabledError,
    InvalidStatusTransitionError,
    ValidationError,
)
from rhinoguard.models.alert import (
    ACTIVE_STATUSES,
    Alert,
    AlertFilters,
    AlertOverrides,
    AlertStatus,
    RangerPosition,
    TERMINAL_STATUSES,
    is_valid_transition,
)
from rhinoguard.models.detection import Detection
from rhinoguard.services.alerts.gateway import Clock, coerce_detection, utc_now

if TYPE_CHECKING:
    from rhinoguard.services.alerts.gateway import AlertGateway

logger = structlog.get_logger(__name__)


class AlertStore:
    """Canonical alert collection with derived views.

    Attributes:
        gateway: Backend boundary used for creation and refreshes.
        settings: Feature flags and lifecycle windows.
        error: Last user-visible error, cleared by the next success.
    """

    def __init__(
        self,
        gateway: AlertGateway,
        settings: Settings | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize an empty store.

        Args:
            gateway: Alert gateway for backend calls.
            settings: Configuration (defaults to the gateway's settings).
            clock: Returns the current time; injectable for tests.
        """
        self.gateway = gateway
        self.settings = settings or gateway.settings
        self.clock = clock or utc_now

        self.error: str | None = None

        self._alerts: list[Alert] = []
        self._ranger_positions: list[RangerPosition] = []
        self._version = 0

        # Memoized views, valid while _views_version == _version
        self._views_version = -1
        self._active: tuple[Alert, ...] = ()
        self._terminal: tuple[Alert, ...] = ()
        self._by_detection: Mapping[str, tuple[Alert, ...]] = MappingProxyType({})

        self._alert_ticket = 0
        self._applied_alert_ticket = 0
        self._ranger_ticket = 0
        self._applied_ranger_ticket = 0
        self._pending_detection_ids: set[str] = set()

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    @property
    def version(self) -> int:
        """Counter bumped every time the alert list changes."""
        return self._version

    @property
    def is_loading(self) -> bool:
        """True while any alert creation request is in flight."""
        return bool(self._pending_detection_ids)

    @property
    def alerts(self) -> list[Alert]:
        """All alerts, most recent first."""
        return list(self._alerts)

    @property
    def ranger_positions(self) -> list[RangerPosition]:
        """Latest polled ranger positions."""
        return list(self._ranger_positions)

    @property
    def active_alerts(self) -> list[Alert]:
        """Alerts in created, sent, acknowledged or in_progress."""
        self._refresh_views()
        return list(self._active)

    @property
    def recently_resolved_alerts(self) -> list[Alert]:
        """Terminal alerts updated within the recent window (default 2h)."""
        self._refresh_views()
        cutoff = self.clock() - timedelta(hours=self.settings.recent_window_hours)
        return [alert for alert in self._terminal if alert.updated_at >= cutoff]

    @property
    def alerts_by_detection_id(self) -> Mapping[str, tuple[Alert, ...]]:
        """Read-only index of alerts keyed by detection id."""
        self._refresh_views()
        return self._by_detection

    def has_active_alert(self, detection_id: str) -> bool:
        """Check if a detection already has an ongoing alert."""
        return any(
            alert.status in ACTIVE_STATUSES
            for alert in self.alerts_by_detection_id.get(detection_id, ())
        )

    def get_alerts_for_detection(self, detection_id: str) -> list[Alert]:
        """All alerts raised for a detection, most recent first."""
        return list(self.alerts_by_detection_id.get(detection_id, ()))

    def get_alert_by_id(self, alert_id: str) -> Alert | None:
        """Look up an alert by id."""
        index = self._index_of(alert_id)
        return self._alerts[index] if index is not None else None

    def _refresh_views(self) -> None:
        if self._views_version == self._version:
            return

        by_detection: dict[str, list[Alert]] = {}
        for alert in self._alerts:
            if alert.detection_id:
                by_detection.setdefault(alert.detection_id, []).append(alert)

        self._active = tuple(a for a in self._alerts if a.status in ACTIVE_STATUSES)
        self._terminal = tuple(a for a in self._alerts if a.status in TERMINAL_STATUSES)
        self._by_detection = MappingProxyType(
            {key: tuple(values) for key, values in by_detection.items()}
        )
        self._views_version = self._version

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_alert_from_detection(
        self,
        detection: Detection | Mapping[str, Any],
        overrides: AlertOverrides | Mapping[str, Any] | None = None,
    ) -> Alert:
        """Create a new alert from a detection.

        Repeat requests for a detection with an active alert are rejected
        while that alert is younger than the dedup window (30s by default).
        Once the window has passed a new alert is created alongside the
        existing one.

        Args:
            detection: Detection record that prompted the alert.
            overrides: Operator choices for type/severity/notes/etc.

        Returns:
            The created alert (synthetic when the backend is unreachable).

        Raises:
            FeatureDisabledError: If alert creation is switched off.
            DuplicateAlertError: If inside the dedup window.
            ValidationError: If the detection is invalid or rejected.
            ServerError: If the backend keeps failing with 5xx.
        """
        if not self.settings.alerts_enabled:
            logger.warning("alert_creation_disabled")
            raise FeatureDisabledError("Alert feature is currently disabled")

        record = coerce_detection(detection)
        log = logger.bind(detection_id=record.id)

        if record.id in self._pending_detection_ids:
            log.warning("alert_creation_already_in_flight")
            raise DuplicateAlertError(record.id, "pending", 0.0)

        existing = self._latest_active_alert(record.id)
        if existing is not None:
            elapsed = (self.clock() - existing.created_at).total_seconds()
            if elapsed < self.settings.dedup_window_seconds:
                log.warning(
                    "alert_duplicate_rejected",
                    existing_alert_id=existing.id,
                    elapsed_seconds=round(elapsed, 1),
                )
                raise DuplicateAlertError(record.id, existing.id, elapsed)
            log.info(
                "alert_dedup_window_passed",
                existing_alert_id=existing.id,
                elapsed_seconds=round(elapsed, 1),
            )

        self._pending_detection_ids.add(record.id)
        self.error = None
        try:
            alert = await self.gateway.trigger_alert(record, overrides)
        except Exception as e:
            self.error = str(e)
            log.error("alert_creation_failed", error=str(e))
            raise
        finally:
            self._pending_detection_ids.discard(record.id)

        alert = self._with_unique_id(alert)
        self._upsert(alert)
        log.info(
            "alert_created",
            alert_id=alert.id,
            severity=alert.severity.value,
            synthetic=alert.is_synthetic,
        )
        return alert

    async def refresh_alerts(self) -> None:
        """Fetch alerts from the backend and merge them into the store.

        Fetched alerts replace local ones with the same id; local-only
        alerts (e.g. synthetic ones) are kept. An unreachable backend
        leaves the store untouched; any other failure is surfaced through
        :attr:`error` rather than raised.
        """
        self._alert_ticket += 1
        ticket = self._alert_ticket

        try:
            fetched = await self.gateway.fetch_alerts(
                AlertFilters(limit=self.settings.alert_fetch_limit)
            )
        except BackendUnreachableError as e:
            logger.info("alert_refresh_backend_unreachable", error=str(e))
            return
        except Exception as e:
            if self._is_stale(ticket, self._applied_alert_ticket, "alert_refresh"):
                return
            self._applied_alert_ticket = ticket
            self.error = f"Failed to update alerts: {e}"
            logger.error("alert_refresh_failed", error=str(e))
            return

        if self._is_stale(ticket, self._applied_alert_ticket, "alert_refresh"):
            return
        self._applied_alert_ticket = ticket

        if fetched:
            self._set_alerts(self._merge(fetched))
        self.error = None
        logger.debug("alerts_refreshed", fetched=len(fetched), total=len(self._alerts))

    async def refresh_ranger_positions(self) -> None:
        """Replace ranger positions with the latest fetch.

        Best effort: disabled by the feature flag, failures keep the
        previous list.
        """
        if not self.settings.ranger_positions_enabled:
            return

        self._ranger_ticket += 1
        ticket = self._ranger_ticket

        try:
            positions = await self.gateway.fetch_ranger_positions()
        except Exception as e:
            logger.warning("ranger_positions_refresh_failed", error=str(e))
            return
        if positions is None:
            logger.debug("ranger_positions_kept", count=len(self._ranger_positions))
            return

        if self._is_stale(ticket, self._applied_ranger_ticket, "ranger_refresh"):
            return
        self._applied_ranger_ticket = ticket
        self._ranger_positions = list(positions)

    def update_alert_status(self, alert_id: str, **fields: Any) -> Alert | None:
        """Optimistically patch an alert locally.

        Stamps ``updated_at`` and, on acknowledged/resolved, the matching
        timestamp. The edit is not sent to the backend and is overwritten
        by the next refresh if the backend disagrees.

        Args:
            alert_id: Alert to patch.
            **fields: Alert fields to change (e.g. ``status="acknowledged"``).

        Returns:
            The updated alert, or None if the id is unknown.

        Raises:
            InvalidStatusTransitionError: If the status change is not a lifecycle edge.
            ValidationError: If a field value is invalid.
        """
        index = self._index_of(alert_id)
        if index is None:
            logger.warning("alert_update_unknown_id", alert_id=alert_id)
            return None

        current = self._alerts[index]
        now = self.clock()
        changes = {key: value for key, value in fields.items() if key != "id"}

        if "status" in changes:
            try:
                requested = AlertStatus(changes["status"])
            except ValueError as e:
                raise ValidationError(f"Unknown alert status: {changes['status']}") from e
            if not is_valid_transition(current.status, requested):
                logger.warning(
                    "alert_invalid_transition",
                    alert_id=alert_id,
                    current=current.status.value,
                    requested=requested.value,
                )
                raise InvalidStatusTransitionError(
                    alert_id, current.status.value, requested.value
                )
            changes["status"] = requested
            if requested == AlertStatus.ACKNOWLEDGED and current.acknowledged_at is None:
                changes.setdefault("acknowledged_at", now)
            if requested == AlertStatus.RESOLVED and current.resolved_at is None:
                changes.setdefault("resolved_at", now)

        if changes.get("notes"):
            changes["notes"] = str(changes["notes"])[: self.settings.notes_max_length]

        changes["updated_at"] = max(now, current.updated_at)

        try:
            updated = Alert.model_validate({**current.model_dump(), **changes})
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid update for alert {alert_id}: {e}") from e

        alerts = list(self._alerts)
        alerts[index] = updated
        self._set_alerts(alerts)
        logger.info(
            "alert_updated_locally",
            alert_id=alert_id,
            fields=sorted(k for k in changes if k != "updated_at"),
        )
        return updated

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _set_alerts(self, alerts: list[Alert]) -> None:
        self._alerts = alerts
        self._version += 1

    def _index_of(self, alert_id: str) -> int | None:
        for index, alert in enumerate(self._alerts):
            if alert.id == alert_id:
                return index
        return None

    def _latest_active_alert(self, detection_id: str) -> Alert | None:
        active = [
            alert
            for alert in self.alerts_by_detection_id.get(detection_id, ())
            if alert.status in ACTIVE_STATUSES
        ]
        return max(active, key=lambda alert: alert.created_at, default=None)

    def _is_stale(self, ticket: int, applied: int, kind: str) -> bool:
        if ticket < applied:
            logger.debug(f"stale_{kind}_discarded", ticket=ticket, applied=applied)
            return True
        return False

    def _with_unique_id(self, alert: Alert) -> Alert:
        """Re-key a synthetic alert whose clock-based id is already taken."""
        if not alert.is_synthetic or self._index_of(alert.id) is None:
            return alert

        suffix = 2
        while self._index_of(f"{alert.id}-{suffix}") is not None:
            suffix += 1
        return alert.model_copy(update={"id": f"{alert.id}-{suffix}"})

    def _upsert(self, alert: Alert) -> None:
        """Replace an alert in place, or insert it at the head."""
        index = self._index_of(alert.id)
        alerts = list(self._alerts)
        if index is None:
            alerts.insert(0, alert)
        else:
            alerts[index] = self._reconcile(alerts[index], alert)
        self._set_alerts(alerts)

    def _merge(self, fetched: list[Alert]) -> list[Alert]:
        """Merge fetched alerts over local ones, newest first."""
        local_by_id = {alert.id: alert for alert in self._alerts}
        merged: list[Alert] = []
        seen: set[str] = set()

        for incoming in fetched:
            if incoming.id in seen:
                continue
            seen.add(incoming.id)
            local = local_by_id.get(incoming.id)
            merged.append(self._reconcile(local, incoming) if local else incoming)

        merged.extend(alert for alert in self._alerts if alert.id not in seen)
        return sorted(merged, key=lambda alert: alert.created_at, reverse=True)

    def _reconcile(self, local: Alert, incoming: Alert) -> Alert:
        """Apply an authoritative copy over a local one.

        Terminal alerts never leave their status; a backend report that
        says otherwise is logged as an anomaly and ignored.
        """
        if local.status.is_terminal and incoming.status != local.status:
            logger.warning(
                "alert_terminal_regression_rejected",
                alert_id=local.id,
                local_status=local.status.value,
                reported_status=incoming.status.value,
            )
            return local

        if incoming.updated_at < local.updated_at:
            return incoming.model_copy(update={"updated_at": local.updated_at})
        return incoming
