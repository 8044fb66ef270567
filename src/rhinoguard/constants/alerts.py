"""Classification thresholds and alert lifecycle constants."""

from typing import Final

# Severity confidence thresholds
CRITICAL_CONFIDENCE: Final[float] = 0.85
HIGH_CONFIDENCE: Final[float] = 0.70

# Rhino detections below this confidence never offer an alert
RHINO_SUPPRESS_BELOW_CONFIDENCE: Final[float] = 0.6

# Class label keywords (matched as lower-case substrings)
POACHER_KEYWORDS: Final[tuple[str, ...]] = ("poacher",)
HUMAN_KEYWORDS: Final[tuple[str, ...]] = ("human", "person")
VEHICLE_KEYWORDS: Final[tuple[str, ...]] = ("vehicle", "car", "truck")
DRONE_SOURCE_KEYWORDS: Final[tuple[str, ...]] = ("drone", "aerial")
CAMERA_SOURCE_KEYWORDS: Final[tuple[str, ...]] = ("camera", "trap")

# Severity and eligibility use the bare class names, not the synonyms above
THREAT_CLASS_KEYWORDS: Final[tuple[str, ...]] = ("human", "vehicle")

# Locally generated alert ids
ALERT_ID_PREFIX: Final[str] = "RG-"
ALERT_ID_DIGITS: Final[int] = 6

# Delivery marker attached to alerts created without the backend
SYNTHETIC_DELIVERY_CHANNELS: Final[tuple[str, ...]] = ("sms_pending",)
