"""
AI Processing Schemas
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class ProcessUploadRequest(BaseModel):
    """Run the full extraction pipeline for an upload"""
    model_config = ConfigDict(populate_by_name=True)

    upload_id: str = Field(..., alias="uploadId", min_length=1)
    user_id: str = Field(..., alias="userId", min_length=1)
    file_key: str = Field(..., alias="fileKey", min_length=1)
    upload_type: str = Field(..., alias="uploadType")


class FileKeyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_key: str = Field(..., alias="fileKey", min_length=1)
    user_id: Optional[str] = Field(None, alias="userId")
    backend: Optional[str] = None


class EnhancedOcrRequest(BaseModel):
    """Multi-page extraction over already-rasterized page images"""
    model_config = ConfigDict(populate_by_name=True)

    image_keys: List[str] = Field(..., alias="imageKeys")
    user_id: Optional[str] = Field(None, alias="userId")


class StoreResultsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1)
    upload_id: str = Field(..., alias="uploadId", min_length=1)
    biomarkers: List[Dict[str, Any]] = Field(default_factory=list)
    test_info: Optional[Dict[str, Any]] = Field(None, alias="testInfo")
    file_key: Optional[str] = Field(None, alias="fileKey")
    original_format: Optional[str] = Field(None, alias="originalFormat")
    confidence: Optional[Any] = None


class StoreBiomarkersRequest(BaseModel):
    """Store biomarkers for an existing user"""
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1)
    upload_id: str = Field(..., alias="uploadId", min_length=1)
    biomarkers: List[Dict[str, Any]]
    test_date: Optional[str] = Field(None, alias="testDate")
    lab_name: Optional[str] = Field(None, alias="labName")


class StoreBodyCompositionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1)
    upload_id: Optional[str] = Field(None, alias="uploadId")
    body_composition_data: Dict[str, Any] = Field(..., alias="bodyCompositionData")
