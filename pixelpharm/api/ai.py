"""
AI Processing API Routes - OCR, extraction and result storage
"""
import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from pixelpharm.api.dependencies import get_db, get_extraction_service
from pixelpharm.constants import OcrBackend
from pixelpharm.schemas.ai import (
    EnhancedOcrRequest,
    FileKeyRequest,
    ProcessUploadRequest,
    StoreBiomarkersRequest,
    StoreBodyCompositionRequest,
    StoreResultsRequest,
)
from pixelpharm.services.biomarker_storage import BiomarkerStorageService, BodyCompositionStorageService
from pixelpharm.services.extraction_service import BiomarkerExtractionService
from pixelpharm.services.processing_service import ProcessingService
from pixelpharm.services.storage_service import guess_media_type

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai")


@router.post("/process-upload")
def process_upload(
    data: ProcessUploadRequest,
    db: Session = Depends(get_db),
    extraction: BiomarkerExtractionService = Depends(get_extraction_service),
):
    """
    Full pipeline: fetch from S3, extract, store and record the outcome
    """
    result = ProcessingService(db, extraction=extraction).process_upload(
        upload_id=data.upload_id,
        user_id=data.user_id,
        file_key=data.file_key,
        upload_type=data.upload_type,
    )
    if not result["success"]:
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=result)
    return result


@router.post("/extract-text")
def extract_text(
    data: FileKeyRequest,
    extraction: BiomarkerExtractionService = Depends(get_extraction_service),
):
    """
    Textract OCR followed by pattern extraction (plain text skips OCR)
    """
    backend = data.backend
    if backend is None:
        if guess_media_type(data.file_key) == "text/plain":
            backend = OcrBackend.PATTERN.value
        else:
            backend = OcrBackend.TEXTRACT.value

    result = extraction.extract(data.file_key, backend=backend)
    return {"success": True, **result.to_dict()}


@router.post("/claude-ocr")
def claude_ocr(
    data: FileKeyRequest,
    extraction: BiomarkerExtractionService = Depends(get_extraction_service),
):
    result = extraction.extract(data.file_key, backend=OcrBackend.CLAUDE.value)
    return {"success": True, **result.to_dict()}


@router.post("/enhanced-ocr")
def enhanced_ocr(
    data: EnhancedOcrRequest,
    extraction: BiomarkerExtractionService = Depends(get_extraction_service),
):
    """
    Multi-page Textract extraction over page images
    """
    result = extraction.extract_pages(data.image_keys)
    return {
        "success": True,
        **result.to_dict(),
        "totalPages": len(data.image_keys),
    }


@router.post("/extract-body-composition")
def extract_body_composition(
    data: FileKeyRequest,
    extraction: BiomarkerExtractionService = Depends(get_extraction_service),
):
    return {"success": True, **extraction.extract_body_composition(data.file_key)}


@router.post("/store-results")
def store_results(data: StoreResultsRequest, db: Session = Depends(get_db)):
    """
    Store extracted biomarkers, creating the user and upload rows if missing
    """
    outcome = BiomarkerStorageService(db).store_results(
        user_id=data.user_id,
        upload_id=data.upload_id,
        biomarkers=data.biomarkers,
        test_info=data.test_info,
        file_key=data.file_key,
        original_format=data.original_format,
        confidence=data.confidence,
    )
    return {
        "success": True,
        **outcome.to_dict(),
        "message": f"Stored {outcome.stored} of {outcome.total} biomarkers",
    }


@router.post("/store-biomarkers")
def store_biomarkers(data: StoreBiomarkersRequest, db: Session = Depends(get_db)):
    """
    Store biomarkers for an existing user
    """
    outcome = BiomarkerStorageService(db).store_results(
        user_id=data.user_id,
        upload_id=data.upload_id,
        biomarkers=data.biomarkers,
        test_info={"testDate": data.test_date, "labName": data.lab_name},
        create_missing_user=False,
        increment_uploads=False,
        record_processing=False,
    )
    return {
        "success": True,
        **outcome.to_dict(),
        "message": f"Stored {outcome.stored} of {outcome.total} biomarkers",
    }


@router.post("/store-body-composition")
def store_body_composition(data: StoreBodyCompositionRequest, db: Session = Depends(get_db)):
    stored = BodyCompositionStorageService(db).store(data.user_id, data.upload_id, data.body_composition_data)
    return {
        "success": True,
        **stored,
        "message": "Body composition data stored successfully",
    }
