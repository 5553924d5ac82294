"""
Upload API Routes
"""
import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from pixelpharm.api.dependencies import get_db, get_storage_service
from pixelpharm.config import settings
from pixelpharm.constants import UploadType
from pixelpharm.exceptions import NotFoundError, UploadLimitExceeded, ValidationError
from pixelpharm.models import User
from pixelpharm.schemas.uploads import PresignedUrlRequest, TrackUploadRequest
from pixelpharm.services.storage_service import StorageService
from pixelpharm.services.upload_service import UploadService, normalize_upload_type

logger = logging.getLogger(__name__)

router = APIRouter()


def _check_file_type(file_type: str) -> None:
    if file_type not in settings.allowed_file_types_list:
        raise ValidationError(
            f"Invalid file type {file_type}. Allowed: {', '.join(settings.allowed_file_types_list)}"
        )


@router.post("/upload/presigned-url")
def create_presigned_url(
    data: PresignedUrlRequest,
    storage: StorageService = Depends(get_storage_service),
):
    """
    Presigned S3 PUT URL for a direct browser upload
    """
    _check_file_type(data.file_type)
    upload_type = normalize_upload_type(data.upload_type)

    file_key = storage.build_file_key(data.user_id, upload_type, data.file_name)
    upload_url = storage.generate_presigned_upload_url(file_key, data.file_type)

    return {
        "success": True,
        "uploadUrl": upload_url,
        "fileKey": file_key,
        "expiresIn": settings.PRESIGNED_URL_EXPIRES,
    }


@router.post("/upload", status_code=status.HTTP_201_CREATED)
def upload_file(
    file: UploadFile = File(...),
    user_id: str = Form(..., alias="userId"),
    upload_type: str = Form(..., alias="uploadType"),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
):
    """
    Upload a document through the API, store it in S3 and track it
    """
    upload_type = normalize_upload_type(upload_type)
    _check_file_type(file.content_type)

    contents = file.file.read()
    if not contents:
        raise ValidationError("Uploaded file is empty")
    if len(contents) > settings.max_upload_bytes:
        raise ValidationError(f"File exceeds the {settings.MAX_UPLOAD_SIZE_MB}MB upload limit")

    uploads = UploadService(db)
    if db.query(User).filter(User.id == user_id).first() is None:
        raise NotFoundError(f"User {user_id} not found")
    if upload_type == UploadType.BLOOD_TESTS.value and not uploads.can_upload(user_id):
        raise UploadLimitExceeded("Upload limit reached for your current plan")

    file_key = storage.build_file_key(user_id, upload_type, file.filename)
    location = storage.put_file_bytes(file_key, contents, file.content_type)

    upload = uploads.create_upload_record(
        user_id=user_id,
        file_key=file_key,
        original_filename=file.filename,
        file_type=file.content_type,
        file_size=len(contents),
        upload_type=upload_type,
    )

    logger.info(f"Uploaded {file.filename} ({len(contents)} bytes) to {location}")
    return {
        "success": True,
        "upload": upload.to_dict(),
        "fileKey": file_key,
        "location": location,
    }


@router.post("/uploads/track", status_code=status.HTTP_201_CREATED)
def track_upload(data: TrackUploadRequest, db: Session = Depends(get_db)):
    """
    Record an upload that went straight to S3
    """
    upload = UploadService(db).create_upload_record(
        user_id=data.user_id,
        file_key=data.file_key,
        original_filename=data.original_filename,
        file_type=data.file_type,
        file_size=data.file_size,
        upload_type=data.upload_type,
    )
    return {
        "success": True,
        "upload": upload.to_dict(),
        "message": "Upload tracked successfully",
    }


@router.get("/uploads")
def list_uploads(
    user_id: str = Query(..., alias="userId"),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """
    Upload history with processing results, newest first
    """
    return {
        "success": True,
        "data": UploadService(db).get_user_uploads(user_id, limit=limit),
    }


@router.get("/user/upload-usage")
def upload_usage(user_id: str = Query(..., alias="userId"), db: Session = Depends(get_db)):
    if not user_id.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="userId is required")

    return {
        "success": True,
        "usage": UploadService(db).get_usage_for_user_id(user_id),
    }
