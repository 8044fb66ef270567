"""Ranger alert Pydantic models and the alert status state machine."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class AlertStatus(str, Enum):
    """Alert lifecycle status.

    Lifecycle: created -> sent -> acknowledged -> in_progress -> resolved,
    with sent -> failed / expired as the failure exits.
    """

    CREATED = "created"  # Operator requested alert, not yet confirmed as sent
    SENT = "sent"  # Backend accepted & dispatched to ranger channel
    ACKNOWLEDGED = "acknowledged"  # Ranger confirmed receipt
    IN_PROGRESS = "in_progress"  # Ranger en route / acting
    RESOLVED = "resolved"  # Threat handled / false alarm confirmed
    FAILED = "failed"  # Backend or delivery failure
    EXPIRED = "expired"  # No acknowledgment within SLA

    @property
    def is_terminal(self) -> bool:
        """Whether no further transitions are applied to this status."""
        return self in TERMINAL_STATUSES


class AlertSeverity(str, Enum):
    """Alert severity levels, ordered low to critical."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Ordinal position, 0 for LOW."""
        return list(AlertSeverity).index(self)


class AlertSource(str, Enum):
    """Provenance of the underlying detection."""

    CAMERA_TRAP = "camera_trap"
    DRONE = "drone"
    MANUAL = "manual"


class AlertType(str, Enum):
    """Threat classification."""

    POACHER_SUSPECTED = "poacher_suspected"
    HUMAN_DETECTED = "human_detected"
    VEHICLE_SUSPECTED = "vehicle_suspected"
    RHINO_IN_DISTRESS = "rhino_in_distress"
    UNKNOWN_THREAT = "unknown_threat"


ACTIVE_STATUSES = frozenset(
    {
        AlertStatus.CREATED,
        AlertStatus.SENT,
        AlertStatus.ACKNOWLEDGED,
        AlertStatus.IN_PROGRESS,
    }
)

TERMINAL_STATUSES = frozenset(
    {
        AlertStatus.RESOLVED,
        AlertStatus.FAILED,
        AlertStatus.EXPIRED,
    }
)

# Direct edges of the lifecycle. created -> failed covers a dispatch that
# fails before the backend confirms the send.
STATUS_TRANSITIONS: dict[AlertStatus, frozenset[AlertStatus]] = {
    AlertStatus.CREATED: frozenset({AlertStatus.SENT, AlertStatus.FAILED}),
    AlertStatus.SENT: frozenset(
        {AlertStatus.ACKNOWLEDGED, AlertStatus.FAILED, AlertStatus.EXPIRED}
    ),
    AlertStatus.ACKNOWLEDGED: frozenset({AlertStatus.IN_PROGRESS}),
    AlertStatus.IN_PROGRESS: frozenset({AlertStatus.RESOLVED}),
    AlertStatus.RESOLVED: frozenset(),
    AlertStatus.FAILED: frozenset(),
    AlertStatus.EXPIRED: frozenset(),
}


def is_valid_transition(current: AlertStatus, requested: AlertStatus) -> bool:
    """Check whether ``current -> requested`` is a lifecycle edge.

    Staying in the same status is always allowed.
    """
    if current == requested:
        return True
    return requested in STATUS_TRANSITIONS[current]


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class Location(BaseModel):
    """Where the triggering detection was made.

    Accepts the wire keys ``lat``/``lng``/``zoneLabel`` as well as the
    attribute names.
    """

    latitude: float | None = Field(
        default=None, validation_alias=AliasChoices("latitude", "lat")
    )
    longitude: float | None = Field(
        default=None, validation_alias=AliasChoices("longitude", "lng")
    )
    zone_label: str | None = Field(
        default=None, validation_alias=AliasChoices("zone_label", "zoneLabel")
    )


class Alert(BaseModel):
    """Ranger alert raised from a detection."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    detection_id: str | None = Field(default=None, alias="detectionId")
    source: AlertSource = AlertSource.CAMERA_TRAP
    type: AlertType = AlertType.UNKNOWN_THREAT
    severity: AlertSeverity = AlertSeverity.MEDIUM
    status: AlertStatus = AlertStatus.SENT
    location: Location = Field(default_factory=Location)
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")
    acknowledged_at: datetime | None = Field(default=None, alias="acknowledgedAt")
    resolved_at: datetime | None = Field(default=None, alias="resolvedAt")
    created_by: str = Field(default="Unknown", alias="createdBy")
    notes: str = ""
    delivery_channel_status: list[str] = Field(
        default_factory=list, alias="deliveryChannelStatus"
    )
    ranger_assigned: str | None = Field(default=None, alias="rangerAssigned")
    is_synthetic: bool = Field(default=False, alias="isSynthetic")

    @field_validator("id", "detection_id", "ranger_assigned", mode="before")
    @classmethod
    def coerce_identifier(cls, v: Any) -> Any:
        """Backends may send numeric ids."""
        if isinstance(v, int | float) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("created_at", "updated_at", "acknowledged_at", "resolved_at")
    @classmethod
    def ensure_timezone(cls, v: datetime | None) -> datetime | None:
        """Treat naive timestamps as UTC."""
        return _as_utc(v)

    @property
    def is_active(self) -> bool:
        """Whether the alert is still ongoing."""
        return self.status in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        """Whether the alert reached resolved, failed or expired."""
        return self.status.is_terminal


class RangerPosition(BaseModel):
    """Last reported ranger position. Read-only, sourced from polling."""

    id: str
    name: str = "Unknown"
    latitude: float = Field(validation_alias=AliasChoices("latitude", "lat"))
    longitude: float = Field(validation_alias=AliasChoices("longitude", "lng"))
    last_update: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("last_update", "lastUpdate", "updated_at"),
    )

    @field_validator("id", mode="before")
    @classmethod
    def coerce_identifier(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("last_update")
    @classmethod
    def ensure_timezone(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)


class AlertOverrides(BaseModel):
    """Operator-chosen values that replace the derived ones on creation."""

    model_config = ConfigDict(populate_by_name=True)

    type: AlertType | None = None
    severity: AlertSeverity | None = None
    source: AlertSource | None = None
    notes: str | None = None
    zone_label: str | None = Field(default=None, alias="zoneLabel")
    created_by: str | None = Field(default=None, alias="createdBy")


class AlertFilters(BaseModel):
    """Query parameters for fetching alerts from the backend."""

    limit: int = Field(default=50, ge=1, le=200)
    status: AlertStatus | None = None

    def to_params(self) -> dict[str, Any]:
        """Render as query params, dropping unset values."""
        params: dict[str, Any] = {"limit": self.limit}
        if self.status is not None:
            params["status"] = self.status.value
        return params
