"""
Result Storage Service - persists extracted biomarkers and body composition

Writes are best-effort: each biomarker row is inserted inside its own
SAVEPOINT so a bad row is logged and skipped without undoing the rest.
"""
import os
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pixelpharm.constants import PlanType, ProcessingStatus, ProcessingType, UploadStatus, UploadType
from pixelpharm.exceptions import NotFoundError, PixelPharmError
from pixelpharm.models import AiProcessingResult, BiomarkerValue, BloodTestResult, BodyCompositionResult, FileUpload, User
from pixelpharm.utils.parsing import confidence_to_score, is_abnormal, parse_numeric_value, parse_test_date

logger = logging.getLogger(__name__)

AUTO_CREATED_FILENAME = "blood-test-auto-created.pdf"
UNKNOWN_LAB = "Unknown Lab"


@dataclass
class StorageOutcome:
    blood_test_result_id: str
    stored: int
    total: int
    skipped: int = 0
    biomarker_ids: List[str] = field(default_factory=list)
    upload_created: bool = False
    errors: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bloodTestResultId": self.blood_test_result_id,
            "storedBiomarkers": self.stored,
            "totalBiomarkers": self.total,
            "skippedBiomarkers": self.skipped,
            "biomarkerIds": self.biomarker_ids,
            "uploadCreated": self.upload_created,
            "errors": self.errors,
        }


class BiomarkerStorageService:
    """Writes blood test results, biomarker values and the OCR audit row"""

    def __init__(self, db: Session):
        self.db = db

    def ensure_user(self, user_id: str, create_missing: bool = True, increment_uploads: bool = False) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()

        if user is None:
            if not create_missing:
                raise NotFoundError(f"User {user_id} not found")
            logger.info(f"Creating placeholder user {user_id}")
            user = User(
                id=user_id,
                email=f"user-{user_id}@temp.com",
                plan_type=PlanType.FREE.value,
                uploads_used=1 if increment_uploads else 0,
            )
            self.db.add(user)
        elif increment_uploads:
            user.uploads_used = (user.uploads_used or 0) + 1

        self.db.flush()
        return user

    def ensure_upload(self, upload_id: str, user_id: str, file_key: Optional[str] = None,
                      file_type: Optional[str] = None) -> Tuple[FileUpload, bool]:
        """Return the upload row, creating a fallback one when it's missing"""
        upload = self.db.query(FileUpload).filter(FileUpload.id == upload_id).first()
        if upload is not None:
            return upload, False

        if file_key:
            filename = os.path.basename(file_key) or AUTO_CREATED_FILENAME
        else:
            file_key = f"uploads/{user_id}/{UploadType.BLOOD_TESTS.value}/biomarker-storage-{int(datetime.utcnow().timestamp() * 1000)}.pdf"
            filename = AUTO_CREATED_FILENAME

        logger.warning(f"Upload {upload_id} not found, creating fallback record")
        upload = FileUpload(
            id=upload_id,
            user_id=user_id,
            file_key=file_key,
            original_filename=filename,
            file_type=file_type or "application/pdf",
            upload_type=UploadType.BLOOD_TESTS.value,
            file_size=0,
            upload_status=UploadStatus.PROCESSED.value,
        )
        self.db.add(upload)
        self.db.flush()
        return upload, True

    def store_results(
        self,
        user_id: str,
        upload_id: str,
        biomarkers: List[Dict[str, Any]],
        test_info: Optional[Dict[str, Any]] = None,
        file_key: Optional[str] = None,
        original_format: Optional[str] = None,
        confidence: Any = None,
        create_missing_user: bool = True,
        increment_uploads: bool = True,
        record_processing: bool = True,
    ) -> StorageOutcome:
        """
        Persist one extracted blood test.

        The user, upload and result rows must succeed; individual biomarker
        rows and the audit row are best-effort.
        """
        test_info = test_info or {}
        test_date = parse_test_date(test_info.get("testDate"))

        try:
            self.ensure_user(user_id, create_missing=create_missing_user, increment_uploads=increment_uploads)
            upload, upload_created = self.ensure_upload(upload_id, user_id, file_key, original_format)

            result = BloodTestResult(
                user_id=user_id,
                upload_id=upload.id,
                test_date=test_date,
                lab_name=test_info.get("labName") or UNKNOWN_LAB,
                biomarkers=biomarkers,
            )
            self.db.add(result)
            self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to create blood test result for upload {upload_id}: {e}", exc_info=True)
            raise PixelPharmError(f"Failed to create blood test result: {e}", error_code="DATABASE_ERROR")
        except NotFoundError:
            self.db.rollback()
            raise

        outcome = StorageOutcome(
            blood_test_result_id=result.id,
            stored=0,
            total=len(biomarkers),
            upload_created=upload_created,
        )

        for index, biomarker in enumerate(biomarkers, start=1):
            self._store_biomarker(index, biomarker, user_id, result.id, test_date, outcome)

        logger.info(f"Stored {outcome.stored}/{outcome.total} biomarkers for upload {upload_id}")

        if record_processing:
            self._record_processing(user_id, upload.id, biomarkers, test_info, confidence)

        self.db.commit()
        return outcome

    def _store_biomarker(self, index: int, biomarker: Dict[str, Any], user_id: str, result_id: str,
                         test_date: datetime, outcome: StorageOutcome) -> None:
        name = biomarker.get("name")
        raw_value = biomarker.get("value")

        if not name or raw_value is None or raw_value == "":
            logger.warning(f"Skipping biomarker {index}: missing name or value")
            outcome.skipped += 1
            return

        value = parse_numeric_value(raw_value)
        if value is None:
            logger.warning(f"Skipping biomarker {index}: invalid numeric value {raw_value!r}")
            outcome.skipped += 1
            return

        reference_range = biomarker.get("referenceRange") or biomarker.get("normalRange")

        try:
            with self.db.begin_nested():
                row = BiomarkerValue(
                    user_id=user_id,
                    result_id=result_id,
                    biomarker_name=str(name),
                    value=value,
                    unit=biomarker.get("unit") or "",
                    reference_range=reference_range,
                    is_abnormal=is_abnormal(biomarker.get("status"), value, reference_range),
                    test_date=test_date,
                )
                self.db.add(row)
                self.db.flush()
        except Exception as e:
            logger.error(f"Failed to store biomarker {index} ({name}): {e}")
            outcome.errors.append({"biomarker": str(name), "error": str(e)})
            return

        outcome.stored += 1
        outcome.biomarker_ids.append(row.id)

    def _record_processing(self, user_id: str, upload_id: str, biomarkers: List[Dict[str, Any]],
                           test_info: Dict[str, Any], confidence: Any) -> None:
        try:
            with self.db.begin_nested():
                self.db.add(AiProcessingResult(
                    upload_id=upload_id,
                    user_id=user_id,
                    processing_type=ProcessingType.OCR.value,
                    processing_status=ProcessingStatus.COMPLETED.value,
                    raw_results={
                        "biomarkers": biomarkers,
                        "testInfo": test_info,
                        "confidence": confidence,
                        "extractedText": test_info.get("extractedText", ""),
                    },
                    confidence_score=confidence_to_score(confidence),
                    processed_at=datetime.utcnow(),
                ))
                self.db.flush()
        except SQLAlchemyError as e:
            logger.error(f"Failed to record AI processing result for upload {upload_id}: {e}")


class BodyCompositionStorageService:
    def __init__(self, db: Session):
        self.db = db

    def store(self, user_id: str, upload_id: Optional[str], body_composition_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Store extracted body composition metrics plus an audit row.

        Each insert is independent; a failed insert yields None for its id.
        """
        composition = body_composition_data.get("bodyComposition") or {}

        def metric(key):
            return parse_numeric_value(composition.get(key)) if composition.get(key) else None

        composition_id = None
        try:
            with self.db.begin_nested():
                row = BodyCompositionResult(
                    user_id=user_id,
                    upload_id=upload_id,
                    test_date=parse_test_date(composition.get("testDate")),
                    total_weight=metric("totalWeight"),
                    body_fat_percentage=metric("bodyFatPercentage"),
                    skeletal_muscle_mass=metric("skeletalMuscleMass"),
                    visceral_fat_level=metric("visceralFatLevel"),
                    bmr=metric("bmr"),
                    raw_data=body_composition_data,
                )
                self.db.add(row)
                self.db.flush()
            composition_id = row.id
        except SQLAlchemyError as e:
            logger.error(f"Failed to store body composition result: {e}")

        ai_result_id = None
        try:
            with self.db.begin_nested():
                audit = AiProcessingResult(
                    upload_id=upload_id,
                    user_id=user_id,
                    processing_type=ProcessingType.BODY_COMPOSITION.value,
                    processing_status=ProcessingStatus.COMPLETED.value,
                    raw_results=body_composition_data,
                    confidence_score=body_composition_data.get("confidenceScore") or 0.5,
                    processed_at=datetime.utcnow(),
                )
                self.db.add(audit)
                self.db.flush()
            ai_result_id = audit.id
        except SQLAlchemyError as e:
            logger.error(f"Failed to store AI processing result: {e}")

        self.db.commit()
        logger.info(f"Body composition stored for user {user_id}: {sorted(composition)}")

        return {
            "bodyCompositionResultId": composition_id,
            "aiResultId": ai_result_id,
            "metricsStored": len(composition),
            "storedData": {
                "totalWeight": composition.get("totalWeight"),
                "bodyFatPercentage": composition.get("bodyFatPercentage"),
                "skeletalMuscleMass": composition.get("skeletalMuscleMass"),
                "bmr": composition.get("bmr"),
                "visceralFatLevel": composition.get("visceralFatLevel"),
            },
        }
