"""
Health Analysis API Routes
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pixelpharm.api.dependencies import get_claude_service, get_db
from pixelpharm.schemas.health import EnhancedReviewRequest, HealthAnalysisRequest
from pixelpharm.services.claude_service import ClaudeService
from pixelpharm.services.health_analysis_service import HealthAnalysisService


router = APIRouter(prefix="/health")


@router.post("/analyze")
def analyze_health(
    data: HealthAnalysisRequest,
    db: Session = Depends(get_db),
    claude: ClaudeService = Depends(get_claude_service),
):
    """
    Generate health insights from the user's stored biomarkers
    """
    analysis = HealthAnalysisService(db, claude=claude).analyze(
        data.user_id, use_ai=data.use_ai, priority=data.priority
    )
    return {
        "success": True,
        "data": analysis,
    }


@router.get("/insights")
def get_insights(
    user_id: str = Query(..., alias="userId"),
    history: bool = False,
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    claude: ClaudeService = Depends(get_claude_service),
):
    """
    Latest stored insight, or the recent history with ?history=true
    """
    service = HealthAnalysisService(db, claude=claude)
    if history:
        insights = service.insight_history(user_id, limit=limit)
        return {"success": True, "data": insights, "count": len(insights)}

    return {"success": True, "data": service.latest_insight(user_id)}


@router.post("/enhanced-review")
def enhanced_review(
    data: EnhancedReviewRequest,
    db: Session = Depends(get_db),
    claude: ClaudeService = Depends(get_claude_service),
):
    """
    Comprehensive rule-based medical review
    """
    review = HealthAnalysisService(db, claude=claude).enhanced_review(data.user_id)
    return {
        "success": True,
        "data": review,
        "message": "Medical review generated successfully",
    }
