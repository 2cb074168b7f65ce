from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Literal

ExperimentStatus = Literal["draft", "running", "paused", "completed", "archived"]

# --- Pydantic Models for Requests/Responses ---

class VariantCreate(BaseModel):
    """Defines a variant and its traffic weight."""
    name: str = Field(..., min_length=1, description="The variant name (e.g., 'Control', 'Variant A').")
    description: str | None = None
    is_control: bool = False
    traffic_weight: float = Field(..., ge=0, le=100, description="Share of allocated traffic in percent (e.g., 50.0).")
    config: dict[str, Any] = Field(default_factory=dict, description="Opaque payload applied client-side.")

class ExperimentCreate(BaseModel):
    """Schema for creating a new experiment via POST /experiments."""
    name: str = Field(..., min_length=1)
    description: str | None = None
    hypothesis: str | None = None
    primary_goal: str = Field(..., min_length=1, description="Conversion event type (e.g., 'signup').")
    traffic_allocation: int = Field(default=100, ge=1, le=100)
    minimum_sample_size: int | None = Field(default=None, ge=0)
    confidence_level: float = Field(default=95.0, gt=0, lt=100)
    variants: list[VariantCreate]

class ExperimentStatusUpdate(BaseModel):
    status: ExperimentStatus

class VariantResponse(BaseModel):
    id: str
    experiment_id: str
    name: str
    description: str | None = None
    is_control: bool
    traffic_weight: float
    config: dict[str, Any] = Field(default_factory=dict)

    class Config:
        from_attributes = True

class ExperimentResponse(BaseModel):
    """Schema for an experiment together with its variants."""
    id: str
    name: str
    description: str | None = None
    hypothesis: str | None = None
    status: ExperimentStatus
    traffic_allocation: int
    primary_goal: str
    minimum_sample_size: int | None = None
    confidence_level: float
    created_at: datetime
    variants: list[VariantResponse] = Field(default_factory=list)

    class Config:
        from_attributes = True

class ExperimentAssignmentResponse(BaseModel):
    """Schema returned by GET /experiments/{id}/assignment/{session_id}."""
    experiment_id: str
    session_id: str
    included: bool
    variant_id: str | None = None
    variant_name: str | None = None
    config: dict[str, Any] = Field(default_factory=dict)
    assigned_at: datetime
