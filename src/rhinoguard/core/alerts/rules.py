"""Alert classification rules.

Pure functions that derive an alert's type, severity and source from a
detection record, and decide whether a detection should offer the
"alert rangers" action at all. Detections may be passed as a
:class:`~rhinoguard.models.detection.Detection` or as a raw mapping with
the same keys.
"""

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from rhinoguard.constants.alerts import (
    ALERT_ID_DIGITS,
    ALERT_ID_PREFIX,
    CAMERA_SOURCE_KEYWORDS,
    CRITICAL_CONFIDENCE,
    DRONE_SOURCE_KEYWORDS,
    HIGH_CONFIDENCE,
    HUMAN_KEYWORDS,
    POACHER_KEYWORDS,
    RHINO_SUPPRESS_BELOW_CONFIDENCE,
    THREAT_CLASS_KEYWORDS,
    VEHICLE_KEYWORDS,
)
from rhinoguard.models.alert import AlertSeverity, AlertSource, AlertType
from rhinoguard.models.detection import Detection

DetectionLike = Detection | Mapping[str, Any]


def _read(detection: DetectionLike, *names: str) -> Any:
    """Return the first non-None attribute/key among ``names``."""
    for name in names:
        if isinstance(detection, Mapping):
            value = detection.get(name)
        else:
            value = getattr(detection, name, None)
        if value is not None:
            return value
    return None


def _label(detection: DetectionLike) -> str:
    return str(_read(detection, "class_name") or "").lower()


def _confidence(detection: DetectionLike) -> float:
    return float(_read(detection, "confidence") or 0.0)


def _contains_any(text: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword in text for keyword in keywords)


def derive_alert_type(class_label: str | None) -> AlertType:
    """Classify a detection label into a threat type.

    Checks run in priority order and the first match wins, since labels
    such as "poacher_human" contain several keywords.
    """
    label = (class_label or "").lower()

    if _contains_any(label, POACHER_KEYWORDS):
        return AlertType.POACHER_SUSPECTED
    if _contains_any(label, HUMAN_KEYWORDS):
        return AlertType.HUMAN_DETECTED
    if _contains_any(label, VEHICLE_KEYWORDS):
        return AlertType.VEHICLE_SUSPECTED
    if "rhino" in label and "distress" in label:
        return AlertType.RHINO_IN_DISTRESS

    return AlertType.UNKNOWN_THREAT


def derive_alert_severity(detection: DetectionLike | None) -> AlertSeverity:
    """Derive severity from label and confidence.

    - critical: confidence >= 0.85 on a human, vehicle or poacher
    - high: confidence >= 0.70 on a human or vehicle
    - medium: any other human or vehicle
    - low: everything else
    """
    if detection is None:
        return AlertSeverity.LOW

    label = _label(detection)
    confidence = _confidence(detection)
    is_threat_class = _contains_any(label, THREAT_CLASS_KEYWORDS)

    if confidence >= CRITICAL_CONFIDENCE and (
        is_threat_class or _contains_any(label, POACHER_KEYWORDS)
    ):
        return AlertSeverity.CRITICAL
    if confidence >= HIGH_CONFIDENCE and is_threat_class:
        return AlertSeverity.HIGH
    if is_threat_class:
        return AlertSeverity.MEDIUM

    return AlertSeverity.LOW


def derive_alert_source(detection: DetectionLike | None) -> AlertSource:
    """Map the detection's free-text source to an alert source.

    Unknown or missing sources are assumed to be camera traps.
    """
    source = str(_read(detection, "source") or "").lower() if detection is not None else ""

    if _contains_any(source, DRONE_SOURCE_KEYWORDS):
        return AlertSource.DRONE
    if _contains_any(source, CAMERA_SOURCE_KEYWORDS):
        return AlertSource.CAMERA_TRAP

    return AlertSource.CAMERA_TRAP


def should_offer_alert(detection: DetectionLike | None) -> bool:
    """Decide whether a detection qualifies for a ranger alert.

    Humans, vehicles and poachers always qualify, and that check runs
    before the low-confidence rhino suppression. Otherwise the upstream
    ``is_threat_likely`` flag decides.
    """
    if detection is None:
        return False

    label = _label(detection)

    if _contains_any(label, THREAT_CLASS_KEYWORDS) or _contains_any(label, POACHER_KEYWORDS):
        return True

    if "rhino" in label and _confidence(detection) < RHINO_SUPPRESS_BELOW_CONFIDENCE:
        return False

    return bool(_read(detection, "is_threat_likely", "isThreatLikely"))


def generate_alert_id(now: datetime | None = None) -> str:
    """Build a local, human-readable alert id from the clock.

    The backend replaces these; they only need to be readable and
    distinct enough for a single operator session.
    """
    moment = now or datetime.now(UTC)
    millis = str(int(moment.timestamp() * 1000))
    return f"{ALERT_ID_PREFIX}{millis[-ALERT_ID_DIGITS:]}"


def format_alert_id(alert_id: str | None) -> str:
    """Render an alert id with the ``RG-`` prefix."""
    if not alert_id:
        return "Unknown"
    if alert_id.startswith(ALERT_ID_PREFIX):
        return alert_id
    return f"{ALERT_ID_PREFIX}{alert_id}"
