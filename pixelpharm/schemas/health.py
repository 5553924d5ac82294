"""
Health Analysis Schemas
"""
from pydantic import BaseModel, ConfigDict, Field


class HealthAnalysisRequest(BaseModel):
    """Generate health insights from stored biomarkers"""
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1)
    use_ai: bool = Field(True, alias="useAI")
    priority: str = Field("standard", pattern="^(standard|urgent)$")


class EnhancedReviewRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1)
