from pydantic import BaseModel, Field
from typing import Any
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventCreate(BaseModel):
    """Schema for recording an exposure or conversion event via POST /events."""
    experiment_id: str = Field(..., min_length=1)
    variant_id: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)
    event_type: str = Field(..., min_length=1, description="Type of event (e.g., 'exposure', 'signup', 'button_click').")
    timestamp: datetime = Field(default_factory=_utcnow)
    properties: dict[str, Any] | None = Field(default_factory=dict, description="Flexible JSON for extra context.")

class EventRecord(BaseModel):
    """A stored event as read back for aggregation. Timestamps are timezone-aware."""
    variant_id: str
    session_id: str
    event_type: str
    timestamp: datetime

    class Config:
        frozen = True
