from pydantic import BaseModel, Field
import datetime
from models.experiments import ExperimentResponse

class VariantResult(BaseModel):
    """Visitor and conversion counts for a single variant."""
    variant_id: str | None = None
    variant_name: str
    visitors: int     # distinct exposed sessions
    conversions: int  # distinct sessions that hit the primary goal
    conversion_rate: float  # conversions / visitors, 0 when there are no visitors

class StatisticalSignificance(BaseModel):
    """Outcome of a two-proportion z-test between control and one treatment."""
    control: str
    treatment: str
    z_score: float
    p_value: float
    is_significant: bool
    winner: str | None = None
    confidence: str
    lift: float | None = None  # relative change of the treatment rate over control
    insufficient_data: bool = False
    summary: str

class TimeSeriesPoint(BaseModel):
    date: datetime.date
    control_rate: float
    treatment_rate: float

class ExperimentResults(BaseModel):
    """Schema returned by GET /experiments/{id}/results."""
    experiment: ExperimentResponse
    results: list[VariantResult]
    statistical_significance: StatisticalSignificance = Field(..., alias="statisticalSignificance")
    comparisons: list[StatisticalSignificance] = Field(default_factory=list)
    time_series: list[TimeSeriesPoint] = Field(default_factory=list, alias="timeSeries")

    class Config:
        populate_by_name = True
