"""Detection record model.

Detections are produced by the camera-trap/drone ingestion pipeline and
arrive here as plain records; only the fields the alert engine reads are
modelled, anything else is ignored.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Detection(BaseModel):
    """A sensed event with a class label, confidence and location."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    class_name: str | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    gps_lat: float | None = None
    gps_lng: float | None = None
    timestamp: datetime | None = None
    source: str | None = None
    is_threat_likely: bool = Field(default=False, alias="isThreatLikely")
    zone: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_identifier(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("confidence", mode="before")
    @classmethod
    def default_missing_confidence(cls, v: Any) -> Any:
        return 0.0 if v is None else v
