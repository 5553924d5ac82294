"""
Upload Schemas
"""
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class PresignedUrlRequest(BaseModel):
    """Request a presigned S3 PUT URL"""
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1)
    file_name: str = Field(..., alias="fileName", min_length=1, max_length=255)
    file_type: str = Field(..., alias="fileType")
    upload_type: str = Field("BLOOD_TESTS", alias="uploadType")


class TrackUploadRequest(BaseModel):
    """Record an upload that was PUT directly to S3"""
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1)
    file_key: str = Field(..., alias="fileKey", min_length=1)
    original_filename: str = Field(..., alias="originalFilename")
    file_type: str = Field(..., alias="fileType")
    file_size: Optional[int] = Field(0, alias="fileSize", ge=0)
    upload_type: str = Field(..., alias="uploadType")
