"""
Biomarker and Body Composition API Routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pixelpharm.api.dependencies import get_db
from pixelpharm.services.biomarker_query import BiomarkerQueryService


router = APIRouter()


@router.get("/biomarkers")
def get_biomarkers(user_id: str = Query(..., alias="userId"), db: Session = Depends(get_db)):
    """
    Latest biomarker values for a user
    """
    values = BiomarkerQueryService(db).latest_values(user_id)
    return {
        "success": True,
        "data": values,
        "count": len(values),
    }


@router.get("/biomarkers/abnormal")
def get_abnormal_biomarkers(user_id: str = Query(..., alias="userId"), db: Session = Depends(get_db)):
    """
    Abnormal values split into critical and non-critical
    """
    return {
        "success": True,
        "userId": user_id,
        **BiomarkerQueryService(db).abnormal_values(user_id),
    }


@router.get("/biomarkers/{biomarker_name}/history")
def get_biomarker_history(
    biomarker_name: str,
    user_id: str = Query(..., alias="userId"),
    db: Session = Depends(get_db),
):
    return {
        "success": True,
        "biomarkerName": biomarker_name,
        "data": BiomarkerQueryService(db).history(user_id, biomarker_name),
    }


@router.get("/health/biomarkers")
def get_biomarker_trends(
    user_id: str = Query(..., alias="userId"),
    biomarker: Optional[str] = None,
    months: int = Query(12, ge=1, le=120),
    db: Session = Depends(get_db),
):
    """
    Biomarker trends grouped by name, with account totals
    """
    return {
        "success": True,
        "userId": user_id,
        "biomarkerName": biomarker or "all",
        "timeRange": f"{months} months",
        "data": BiomarkerQueryService(db).trends(user_id, biomarker, months),
    }


@router.get("/body-composition")
def get_body_composition(user_id: str = Query(..., alias="userId"), db: Session = Depends(get_db)):
    return {
        "success": True,
        "data": BiomarkerQueryService(db).body_composition(user_id),
    }
