"""
Processing Service - the full upload pipeline (extract, store, audit)
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from pixelpharm.constants import ProcessingStatus, ProcessingType, UploadStatus, UploadType
from pixelpharm.exceptions import PixelPharmError, ValidationError
from pixelpharm.models import AiProcessingResult
from pixelpharm.services.biomarker_storage import BiomarkerStorageService, BodyCompositionStorageService
from pixelpharm.services.extraction_service import BiomarkerExtractionService
from pixelpharm.services.upload_service import UploadService, normalize_upload_type
from pixelpharm.utils.parsing import confidence_to_score

logger = logging.getLogger(__name__)

PROCESSING_TYPES = {
    UploadType.BLOOD_TESTS.value: ProcessingType.OCR.value,
    UploadType.BODY_COMPOSITION.value: ProcessingType.BODY_COMPOSITION.value,
}


class ProcessingService:
    def __init__(self, db: Session, extraction: Optional[BiomarkerExtractionService] = None):
        self.db = db
        self.extraction = extraction or BiomarkerExtractionService()
        self.uploads = UploadService(db)

    def process_upload(self, upload_id: str, user_id: str, file_key: str, upload_type: str) -> Dict[str, Any]:
        """
        Run extraction and storage for one uploaded file.

        Returns a dict with success, processingId and either result or error.
        Failures are recorded on the audit row and the upload rather than raised.
        """
        upload_type = normalize_upload_type(upload_type)

        record = AiProcessingResult(
            upload_id=upload_id,
            user_id=user_id,
            processing_type=PROCESSING_TYPES.get(upload_type, ProcessingType.OCR.value),
            processing_status=ProcessingStatus.PENDING.value,
            raw_results={},
        )
        self.db.add(record)
        self.uploads.update_upload_status(upload_id, UploadStatus.PROCESSING.value, commit=False)
        self.db.commit()
        processing_id = record.id
        logger.info(f"Processing {upload_type} upload {upload_id} (processing id {processing_id})")

        try:
            result, confidence = self._run(upload_id, user_id, file_key, upload_type)
        except PixelPharmError as e:
            return self._fail(processing_id, upload_id, e.message)
        except Exception as e:
            logger.error(f"Unexpected processing failure for upload {upload_id}: {e}", exc_info=True)
            return self._fail(processing_id, upload_id, str(e))

        record = self.db.get(AiProcessingResult, processing_id)
        record.raw_results = result
        record.confidence_score = confidence
        record.processing_status = ProcessingStatus.COMPLETED.value
        record.processed_at = datetime.utcnow()
        self.uploads.update_upload_status(upload_id, UploadStatus.PROCESSED.value, commit=False)
        self.db.commit()

        logger.info(f"Processing {processing_id} completed")
        return {
            "success": True,
            "processingId": processing_id,
            "result": result,
            "message": "AI processing completed successfully",
        }

    def _run(self, upload_id: str, user_id: str, file_key: str, upload_type: str):
        if upload_type == UploadType.BLOOD_TESTS.value:
            extraction = self.extraction.extract(file_key)
            result = extraction.to_dict()
            if extraction.biomarkers:
                outcome = BiomarkerStorageService(self.db).store_results(
                    user_id=user_id,
                    upload_id=upload_id,
                    biomarkers=extraction.biomarkers,
                    test_info=extraction.test_info,
                    file_key=file_key,
                    confidence=extraction.confidence,
                    increment_uploads=False,
                    record_processing=False,
                )
                result["storage"] = outcome.to_dict()
            return result, confidence_to_score(extraction.confidence)

        if upload_type == UploadType.BODY_COMPOSITION.value:
            data = self.extraction.extract_body_composition(file_key)
            data["storage"] = BodyCompositionStorageService(self.db).store(user_id, upload_id, data)
            return data, data.get("confidenceScore")

        raise ValidationError(f"Unsupported upload type: {upload_type}")

    def _fail(self, processing_id: str, upload_id: str, message: str) -> Dict[str, Any]:
        logger.error(f"AI processing {processing_id} failed: {message}")
        self.db.rollback()

        record = self.db.get(AiProcessingResult, processing_id)
        if record is not None:
            record.processing_status = ProcessingStatus.FAILED.value
            record.error_message = message
            record.processed_at = datetime.utcnow()
        self.uploads.update_upload_status(upload_id, UploadStatus.FAILED.value, commit=False)
        self.db.commit()

        return {
            "success": False,
            "processingId": processing_id,
            "error": message,
        }
