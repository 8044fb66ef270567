"""Alert gateway: HTTP boundary to the detection backend.

Backend contract:
    - POST /alerts/trigger - Trigger new alert
    - GET /alerts - Fetch alerts (limit, status)
    - GET /alerts/{id} - Fetch single alert
    - GET /rangers/positions - Fetch ranger positions (optional)

Responses are normalized into :class:`~rhinoguard.models.alert.Alert`
regardless of snake_case/camelCase naming or missing fields. When the
backend is unreachable (404 or no response), alert creation falls back to
a locally synthesized alert so the operator can carry on.
"""

from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any, TypeVar

import structlog
from pydantic import ValidationError as PydanticValidationError

from rhinoguard.config.settings import Settings, get_settings
from rhinoguard.constants.alerts import SYNTHETIC_DELIVERY_CHANNELS
from rhinoguard.core.alerts.rules import (
    derive_alert_severity,
    derive_alert_source,
    derive_alert_type,
    generate_alert_id,
)
from rhinoguard.core.exceptions import BackendUnreachableError, ValidationError
from rhinoguard.models.alert import (
    Alert,
    AlertFilters,
    AlertOverrides,
    AlertSeverity,
    AlertSource,
    AlertStatus,
    AlertType,
    Location,
    RangerPosition,
)
from rhinoguard.models.detection import Detection
from rhinoguard.services.base import BaseAPIClient

log = structlog.get_logger(__name__)

Clock = Callable[[], datetime]
E = TypeVar("E", bound=Enum)


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(UTC)


def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    """First value among ``keys`` that is neither None nor empty."""
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "" and value != []:
            return value
    return None


def _coalesce(*values: Any) -> Any:
    return next((value for value in values if value is not None), None)


def _enum_or_default(enum_cls: type[E], value: Any, default: E) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        log.warning(
            "alert_unknown_enum_value",
            field=enum_cls.__name__,
            value=value,
            default=default.value,
        )
        return default


def normalize_alert(raw: Any, now: datetime | None = None) -> Alert:
    """Normalize a backend alert representation into an Alert.

    Tolerates both snake_case and camelCase keys, ``alert_id`` for the id,
    and a flat ``gps_lat``/``gps_lng``/``zone_label`` location.

    Defaults: status ``sent``, source ``camera_trap``, type
    ``unknown_threat``, severity ``medium``, created_by ``Unknown``,
    timestamps ``now``, no delivery channels.

    Raises:
        ValidationError: If ``raw`` is not a mapping or still fails model
            validation after defaults are applied.
    """
    if not isinstance(raw, Mapping):
        raise ValidationError(f"Expected an alert object, got {type(raw).__name__}")

    moment = now or utc_now()
    location = raw.get("location") if isinstance(raw.get("location"), Mapping) else {}

    created_at = _pick(raw, "created_at", "createdAt") or moment
    fields = {
        "id": _pick(raw, "id", "alert_id") or generate_alert_id(moment),
        "detection_id": _pick(raw, "detection_id", "detectionId"),
        "source": _enum_or_default(
            AlertSource, raw.get("source") or AlertSource.CAMERA_TRAP, AlertSource.CAMERA_TRAP
        ),
        "type": _enum_or_default(
            AlertType, raw.get("type") or AlertType.UNKNOWN_THREAT, AlertType.UNKNOWN_THREAT
        ),
        "severity": _enum_or_default(
            AlertSeverity, raw.get("severity") or AlertSeverity.MEDIUM, AlertSeverity.MEDIUM
        ),
        "status": _enum_or_default(
            AlertStatus, raw.get("status") or AlertStatus.SENT, AlertStatus.SENT
        ),
        "location": Location(
            latitude=_coalesce(_pick(location, "lat", "latitude"), raw.get("gps_lat")),
            longitude=_coalesce(_pick(location, "lng", "longitude"), raw.get("gps_lng")),
            zone_label=_pick(location, "zoneLabel", "zone_label") or raw.get("zone_label"),
        ),
        "created_at": created_at,
        "updated_at": _pick(raw, "updated_at", "updatedAt") or created_at,
        "acknowledged_at": _pick(raw, "acknowledged_at", "acknowledgedAt"),
        "resolved_at": _pick(raw, "resolved_at", "resolvedAt"),
        "created_by": _pick(raw, "created_by", "createdBy") or "Unknown",
        "notes": raw.get("notes") or "",
        "delivery_channel_status": _pick(
            raw, "delivery_channel_status", "deliveryChannelStatus"
        )
        or [],
        "ranger_assigned": _pick(raw, "ranger_assigned", "rangerAssigned"),
    }

    try:
        return Alert.model_validate(fields)
    except PydanticValidationError as e:
        raise ValidationError(f"Malformed alert {fields['id']}: {e}") from e


def _coerce_overrides(overrides: AlertOverrides | Mapping[str, Any] | None) -> AlertOverrides:
    if overrides is None:
        return AlertOverrides()
    if isinstance(overrides, AlertOverrides):
        return overrides
    try:
        return AlertOverrides.model_validate(dict(overrides))
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid alert overrides: {e}") from e


def coerce_detection(detection: Detection | Mapping[str, Any] | None) -> Detection:
    """Validate a detection record.

    Raises:
        ValidationError: If the record is missing or has no id.
    """
    if isinstance(detection, Detection):
        return detection
    if not detection or not detection.get("id"):
        raise ValidationError("Invalid detection object: an id is required")
    try:
        return Detection.model_validate(dict(detection))
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid detection object: {e}") from e


class AlertGateway(BaseAPIClient):
    """Client for the detection backend's alert endpoints.

    Stateless apart from the underlying HTTP client; safe to share.

    Example:
        gateway = AlertGateway()
        try:
            alert = await gateway.trigger_alert(detection)
        finally:
            await gateway.close()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            settings: Configuration (defaults to the cached settings).
            clock: Returns the current time; injectable for tests.
        """
        self.settings = settings or get_settings()
        self.clock = clock or utc_now
        super().__init__(
            base_url=self.settings.api_url,
            timeout=self.settings.request_timeout_seconds,
            max_retries=self.settings.max_retries,
            circuit_breaker_threshold=self.settings.circuit_breaker_threshold,
            circuit_breaker_cooldown=self.settings.circuit_breaker_cooldown,
        )
        log.info("alert_gateway_initialized", base_url=self.base_url)

    def build_payload(
        self,
        detection: Detection,
        overrides: AlertOverrides,
    ) -> dict[str, Any]:
        """Build the POST /alerts/trigger body.

        Each overridable field falls back to its classification rule.
        """
        notes = (overrides.notes or "").strip()[: self.settings.notes_max_length]
        return {
            "detection_id": detection.id,
            "type": (overrides.type or derive_alert_type(detection.class_name)).value,
            "severity": (overrides.severity or derive_alert_severity(detection)).value,
            "source": (overrides.source or derive_alert_source(detection)).value,
            "notes": notes,
            "location": {
                "lat": detection.gps_lat,
                "lng": detection.gps_lng,
                "zoneLabel": overrides.zone_label,
            },
            "createdBy": overrides.created_by or self.settings.default_operator,
        }

    async def trigger_alert(
        self,
        detection: Detection | Mapping[str, Any],
        overrides: AlertOverrides | Mapping[str, Any] | None = None,
    ) -> Alert:
        """Trigger a new ranger alert from a detection.

        Args:
            detection: Detection record that prompted the alert.
            overrides: Operator choices for type/severity/source/notes/zone/createdBy.

        Returns:
            The backend's alert, or a synthetic local alert when the
            backend is unreachable.

        Raises:
            ValidationError: If the detection is invalid or the backend rejects it.
            ServerError: If the backend answers with 5xx.
        """
        record = coerce_detection(detection)
        chosen = _coerce_overrides(overrides)
        payload = self.build_payload(record, chosen)

        log.info(
            "alert_trigger_requested",
            detection_id=record.id,
            type=payload["type"],
            severity=payload["severity"],
        )

        try:
            # Not idempotent: a retried trigger could raise a second alert
            response = await self.post("/alerts/trigger", json=payload, max_retries=1)
        except BackendUnreachableError as e:
            log.warning(
                "alert_backend_unreachable_fallback",
                detection_id=record.id,
                error=str(e),
            )
            return self.create_synthetic_alert(record, payload)

        alert = normalize_alert(self.parse_json(response), now=self.clock())
        log.info("alert_triggered", alert_id=alert.id, detection_id=alert.detection_id)
        return alert

    def create_synthetic_alert(
        self,
        detection: Detection,
        payload: dict[str, Any],
    ) -> Alert:
        """Fabricate a local alert for when the backend cannot be reached."""
        now = self.clock()
        location = payload["location"]
        return Alert(
            id=generate_alert_id(now),
            detection_id=detection.id,
            source=AlertSource(payload["source"]),
            type=AlertType(payload["type"]),
            severity=AlertSeverity(payload["severity"]),
            status=AlertStatus.SENT,
            location=Location(
                latitude=location["lat"],
                longitude=location["lng"],
                zone_label=location["zoneLabel"],
            ),
            created_at=now,
            updated_at=now,
            created_by=payload["createdBy"],
            notes=payload["notes"],
            delivery_channel_status=list(SYNTHETIC_DELIVERY_CHANNELS),
            is_synthetic=True,
        )

    async def fetch_alerts(self, filters: AlertFilters | None = None) -> list[Alert]:
        """Fetch alerts, newest first as the backend orders them.

        Returns:
            Normalized alerts; an empty list when the backend is unreachable.
            Items without an id are skipped.

        Raises:
            ValidationError: On rejected requests or malformed responses.
            ServerError: If the backend keeps failing with 5xx.
        """
        params = (filters or AlertFilters(limit=self.settings.alert_fetch_limit)).to_params()
        log.debug("fetching_alerts", **params)

        try:
            response = await self.get("/alerts", params=params)
        except BackendUnreachableError as e:
            log.warning("alerts_backend_unreachable", error=str(e))
            return []

        data = self.parse_json(response)
        items = data.get("alerts") if isinstance(data, Mapping) else data
        if items is None:
            items = []
        if not isinstance(items, list):
            raise ValidationError(
                f"Expected a list of alerts, got {type(items).__name__}",
                status_code=response.status_code,
            )

        now = self.clock()
        alerts = []
        for item in items:
            if isinstance(item, Mapping) and _pick(item, "id", "alert_id") is None:
                log.warning(
                    "alert_without_id_skipped",
                    detection_id=_pick(item, "detection_id", "detectionId"),
                )
                continue
            alerts.append(normalize_alert(item, now=now))
        log.debug("alerts_fetched", count=len(alerts))
        return alerts

    async def fetch_alert_by_id(self, alert_id: str) -> Alert:
        """Fetch a single alert.

        Raises:
            BackendUnreachableError: If the alert or endpoint does not exist.
            ValidationError: On rejected requests or malformed responses.
            ServerError: If the backend keeps failing with 5xx.
        """
        response = await self.get(f"/alerts/{alert_id}")
        alert = normalize_alert(self.parse_json(response), now=self.clock())
        log.debug("alert_fetched", alert_id=alert.id)
        return alert

    async def fetch_ranger_positions(self) -> list[RangerPosition] | None:
        """Fetch ranger positions.

        Best effort, never raising.

        Returns:
            The positions; an empty list when the feature is disabled;
            None when the fetch failed, so callers can keep what they have.
        """
        if not self.settings.ranger_positions_enabled:
            log.debug("ranger_positions_disabled")
            return []

        try:
            response = await self.get("/rangers/positions")
            data = self.parse_json(response)
            items = data.get("rangers") if isinstance(data, Mapping) else data
            positions = [RangerPosition.model_validate(item) for item in items or []]
        except Exception as e:
            log.warning("ranger_positions_fetch_failed", error=str(e))
            return None

        log.debug("ranger_positions_fetched", count=len(positions))
        return positions
