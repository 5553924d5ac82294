"""
Upload Service - upload records, history and plan-based upload limits
"""
import calendar
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from pixelpharm.config import settings
from pixelpharm.constants import PlanType, UploadStatus, UploadType
from pixelpharm.exceptions import NotFoundError, UploadLimitExceeded, ValidationError
from pixelpharm.models import FileUpload, User

logger = logging.getLogger(__name__)

COUNTED_UPLOAD_TYPES = [t.value for t in UploadType]


def normalize_upload_type(upload_type: Optional[str]) -> str:
    """'blood-tests' / 'blood_tests' / 'BLOOD_TESTS' -> 'BLOOD_TESTS'"""
    normalized = (upload_type or "").strip().upper().replace("-", "_")
    if normalized not in COUNTED_UPLOAD_TYPES:
        raise ValidationError(f"Unsupported upload type: {upload_type}")
    return normalized


def _month_bounds(now: datetime):
    start = datetime(now.year, now.month, 1)
    last_day = calendar.monthrange(now.year, now.month)[1]
    end = datetime(now.year, now.month, last_day, 23, 59, 59)
    return start, end


def _no_access() -> Dict[str, Any]:
    return {
        "currentMonth": 0,
        "totalUploads": 0,
        "remainingThisMonth": 0,
        "remainingTotal": 0,
        "canUpload": False,
        "limitType": "none",
        "resetDate": None,
        "plan": None,
    }


class UploadService:
    """Service for upload tracking and plan limits"""

    def __init__(self, db: Session):
        self.db = db

    def _count_uploads(self, user_id: str, since: datetime, until: Optional[datetime] = None) -> int:
        query = self.db.query(FileUpload).filter(
            FileUpload.user_id == user_id,
            FileUpload.upload_type.in_(COUNTED_UPLOAD_TYPES),
            FileUpload.created_at >= since,
        )
        if until is not None:
            query = query.filter(FileUpload.created_at <= until)
        return query.count()

    @staticmethod
    def has_access(user: User, now: Optional[datetime] = None) -> bool:
        now = now or datetime.utcnow()
        if user.plan_type not in (PlanType.BASIC.value, PlanType.PRO.value):
            return False
        if user.subscription_status != "active":
            return False
        if user.subscription_expires_at and user.subscription_expires_at < now:
            return False
        return True

    def get_upload_usage(self, user: Optional[User], now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Upload usage for the user's plan

        Basic plans are limited per calendar month; Pro plans get a fixed
        total within the access window ending at subscription expiry.
        """
        now = now or datetime.utcnow()
        if user is None or not self.has_access(user, now):
            return _no_access()

        month_start, month_end = _month_bounds(now)
        monthly_uploads = self._count_uploads(user.id, month_start, month_end)

        if user.plan_type == PlanType.BASIC.value:
            limit = settings.BASIC_UPLOADS_PER_MONTH
            return {
                "currentMonth": monthly_uploads,
                "totalUploads": monthly_uploads,
                "remainingThisMonth": max(0, limit - monthly_uploads),
                "remainingTotal": None,
                "canUpload": monthly_uploads < limit,
                "limitType": "monthly",
                "resetDate": month_end.isoformat(),
                "plan": user.plan_type,
            }

        # Pro: count from the start of the access window
        limit = settings.PRO_TOTAL_UPLOADS
        if user.subscription_expires_at:
            window_start = user.subscription_expires_at - timedelta(days=settings.PRO_ACCESS_DAYS)
        else:
            window_start = month_start
        total_uploads = self._count_uploads(user.id, window_start)

        return {
            "currentMonth": monthly_uploads,
            "totalUploads": total_uploads,
            "remainingThisMonth": 0,
            "remainingTotal": max(0, limit - total_uploads),
            "canUpload": total_uploads < limit,
            "limitType": "total",
            "resetDate": user.subscription_expires_at.isoformat() if user.subscription_expires_at else None,
            "plan": user.plan_type,
        }

    def get_usage_for_user_id(self, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        user = self.db.query(User).filter(User.id == user_id).first()
        return self.get_upload_usage(user, now)

    def can_upload(self, user_id: str, now: Optional[datetime] = None) -> bool:
        return self.get_usage_for_user_id(user_id, now)["canUpload"]

    def create_upload_record(
        self,
        user_id: str,
        file_key: str,
        original_filename: str,
        file_type: str,
        file_size: int,
        upload_type: str,
        now: Optional[datetime] = None,
    ) -> FileUpload:
        """Track an upload; blood test uploads are checked against the plan limit"""
        upload_type = normalize_upload_type(upload_type)

        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise NotFoundError(f"User {user_id} not found")

        if upload_type == UploadType.BLOOD_TESTS.value and not self.can_upload(user_id, now):
            logger.warning(f"Upload limit reached for user {user_id}")
            raise UploadLimitExceeded("Upload limit reached for your current plan")

        upload = FileUpload(
            user_id=user_id,
            file_key=file_key,
            original_filename=original_filename,
            file_type=file_type,
            file_size=file_size or 0,
            upload_type=upload_type,
            upload_status=UploadStatus.UPLOADED.value,
        )
        self.db.add(upload)
        self.db.commit()
        self.db.refresh(upload)

        logger.info(f"Tracked upload {upload.id} ({upload_type}) for user {user_id}")
        return upload

    def update_upload_status(self, upload_id: str, status: str, commit: bool = True) -> Optional[FileUpload]:
        upload = self.db.query(FileUpload).filter(FileUpload.id == upload_id).first()
        if upload is None:
            logger.warning(f"Cannot update status of missing upload {upload_id}")
            return None

        upload.upload_status = UploadStatus(status).value
        if commit:
            self.db.commit()
        return upload

    def get_user_uploads(self, user_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        """Upload history, newest first, with processing summaries"""
        uploads = (
            self.db.query(FileUpload)
            .filter(FileUpload.user_id == user_id)
            .order_by(FileUpload.created_at.desc())
            .limit(limit)
            .all()
        )

        history = []
        for upload in uploads:
            data = upload.to_dict()
            data["processing_results"] = [
                {
                    "id": result.id,
                    "processing_type": result.processing_type,
                    "processing_status": result.processing_status,
                    "confidence_score": result.confidence_score,
                }
                for result in upload.ai_processing_results
            ]
            history.append(data)
        return history
