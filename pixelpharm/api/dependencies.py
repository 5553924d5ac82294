"""
Shared FastAPI dependencies
"""
from fastapi import Depends

from pixelpharm.database import get_db
from pixelpharm.services.claude_service import ClaudeService, claude_service
from pixelpharm.services.extraction_service import BiomarkerExtractionService
from pixelpharm.services.storage_service import StorageService, storage_service
from pixelpharm.services.textract_service import TextractService, textract_service

__all__ = [
    "get_db",
    "get_storage_service",
    "get_textract_service",
    "get_claude_service",
    "get_extraction_service",
]


def get_storage_service() -> StorageService:
    return storage_service


def get_textract_service() -> TextractService:
    return textract_service


def get_claude_service() -> ClaudeService:
    return claude_service


def get_extraction_service(
    storage: StorageService = Depends(get_storage_service),
    textract: TextractService = Depends(get_textract_service),
    claude: ClaudeService = Depends(get_claude_service),
) -> BiomarkerExtractionService:
    return BiomarkerExtractionService(storage=storage, textract=textract, claude=claude)
