"""Domain models for the alert engine."""

from rhinoguard.models.alert import (
    ACTIVE_STATUSES,
    STATUS_TRANSITIONS,
    TERMINAL_STATUSES,
    Alert,
    AlertFilters,
    AlertOverrides,
    AlertSeverity,
    AlertSource,
    AlertStatus,
    AlertType,
    Location,
    RangerPosition,
    is_valid_transition,
)
from rhinoguard.models.detection import Detection

__all__ = [
    "ACTIVE_STATUSES",
    "STATUS_TRANSITIONS",
    "TERMINAL_STATUSES",
    "Alert",
    "AlertFilters",
    "AlertOverrides",
    "AlertSeverity",
    "AlertSource",
    "AlertStatus",
    "AlertType",
    "Detection",
    "Location",
    "RangerPosition",
    "is_valid_transition",
]
