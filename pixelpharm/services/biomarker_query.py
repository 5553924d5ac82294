"""
Read-side queries over stored biomarker values and body composition results
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, joinedload

from pixelpharm.models import BiomarkerValue, BloodTestResult, BodyCompositionResult, FileUpload
from pixelpharm.utils.biomarker_reference import get_category, get_recommendations, is_critical

LATEST_LIMIT = 50
HISTORY_LIMIT = 10


class BiomarkerQueryService:
    def __init__(self, db: Session):
        self.db = db

    def latest_values(self, user_id: str, limit: int = LATEST_LIMIT) -> List[Dict[str, Any]]:
        values = (
            self.db.query(BiomarkerValue)
            .filter(BiomarkerValue.user_id == user_id)
            .order_by(BiomarkerValue.test_date.desc())
            .limit(limit)
            .all()
        )
        return [v.to_dict() for v in values]

    def abnormal_values(self, user_id: str, limit: int = LATEST_LIMIT) -> Dict[str, Any]:
        """Abnormal values split into critical and non-critical, with a summary"""
        values = (
            self.db.query(BiomarkerValue)
            .filter(BiomarkerValue.user_id == user_id, BiomarkerValue.is_abnormal.is_(True))
            .order_by(BiomarkerValue.test_date.desc(), BiomarkerValue.biomarker_name.asc())
            .limit(limit)
            .all()
        )

        critical, abnormal = [], []
        for v in values:
            flagged = is_critical(v.biomarker_name, v.value)
            entry = {
                "name": v.biomarker_name,
                "value": v.value,
                "unit": v.unit or "",
                "referenceRange": v.reference_range or "N/A",
                "testDate": v.test_date.isoformat(),
                "isAbnormal": True,
                "isCritical": flagged,
                "severity": "CRITICAL" if flagged else "ABNORMAL",
                "category": get_category(v.biomarker_name),
                "recommendations": get_recommendations(v.biomarker_name, flagged),
            }
            (critical if flagged else abnormal).append(entry)

        return {
            "abnormalBiomarkers": abnormal,
            "criticalBiomarkers": critical,
            "summary": {
                "totalAbnormal": len(abnormal),
                "totalCritical": len(critical),
                "lastTestDate": values[0].test_date.isoformat() if values else None,
            },
        }

    def trends(self, user_id: str, biomarker_name: Optional[str] = None, months: int = 12) -> Dict[str, Any]:
        """Values within the last `months` grouped by biomarker name, oldest first"""
        since = datetime.utcnow() - timedelta(days=30 * months)
        query = (
            self.db.query(BiomarkerValue)
            .options(joinedload(BiomarkerValue.result))
            .filter(BiomarkerValue.user_id == user_id, BiomarkerValue.test_date >= since)
        )
        if biomarker_name:
            query = query.filter(BiomarkerValue.biomarker_name == biomarker_name)
        values = query.order_by(BiomarkerValue.test_date.asc()).all()

        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for v in values:
            grouped.setdefault(v.biomarker_name, []).append({
                "value": v.value,
                "unit": v.unit,
                "testDate": v.test_date.isoformat(),
                "referenceRange": v.reference_range,
                "isAbnormal": bool(v.is_abnormal),
                "labName": v.result.lab_name if v.result else None,
            })

        return {
            "trends": grouped,
            "totalDataPoints": len(values),
            "summary": self.summary_counts(user_id),
        }

    def summary_counts(self, user_id: str) -> Dict[str, int]:
        return {
            "totalUploads": self.db.query(FileUpload).filter(FileUpload.user_id == user_id).count(),
            "totalBloodTests": self.db.query(BloodTestResult).filter(BloodTestResult.user_id == user_id).count(),
            "totalBiomarkers": self.db.query(BiomarkerValue).filter(BiomarkerValue.user_id == user_id).count(),
        }

    def history(self, user_id: str, biomarker_name: str, limit: int = HISTORY_LIMIT) -> List[Dict[str, Any]]:
        """Most recent `limit` values of one biomarker, returned oldest first"""
        values = (
            self.db.query(BiomarkerValue)
            .filter(BiomarkerValue.user_id == user_id, BiomarkerValue.biomarker_name == biomarker_name)
            .order_by(BiomarkerValue.test_date.desc())
            .limit(limit)
            .all()
        )
        return [v.to_dict() for v in reversed(values)]

    def body_composition(self, user_id: str, limit: int = HISTORY_LIMIT) -> Dict[str, Any]:
        results = (
            self.db.query(BodyCompositionResult)
            .filter(BodyCompositionResult.user_id == user_id)
            .order_by(BodyCompositionResult.test_date.desc())
            .limit(limit)
            .all()
        )
        history = [r.to_dict() for r in results]
        return {
            "latest": history[0] if history else None,
            "history": history,
            "totalResults": len(history),
        }
