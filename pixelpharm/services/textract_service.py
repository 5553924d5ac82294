"""
AWS Textract Service
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List

from botocore.exceptions import BotoCoreError, ClientError

from pixelpharm.exceptions import ExtractionError, StorageError
from pixelpharm.services.storage_service import aws_client

logger = logging.getLogger(__name__)

# A page with this many LINE blocks is treated as fully read
EXPECTED_LINES_PER_PAGE = 20


@dataclass
class TextractPage:
    text: str
    line_count: int
    block_count: int

    @property
    def page_confidence(self) -> float:
        return min(self.line_count / EXPECTED_LINES_PER_PAGE, 1.0)


def page_from_blocks(blocks: List[Dict[str, Any]]) -> TextractPage:
    lines = [block.get("Text", "") for block in blocks if block.get("BlockType") == "LINE"]
    return TextractPage(text="\n".join(lines), line_count=len(lines), block_count=len(blocks))


class TextractService:
    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = aws_client("textract")
        return self._client

    def _call(self, operation: str, **kwargs) -> TextractPage:
        try:
            response = getattr(self.client, operation)(**kwargs)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Textract {operation} failed: {e}")
            raise StorageError(f"Textract {operation} failed: {e}")

        blocks = response.get("Blocks") or []
        if not blocks:
            raise ExtractionError("No text detected in document")

        page = page_from_blocks(blocks)
        logger.info(f"Textract {operation}: {page.line_count} lines, {page.block_count} blocks")
        return page

    def detect_text(self, document_bytes: bytes) -> TextractPage:
        """Plain OCR (DetectDocumentText)"""
        return self._call("detect_document_text", Document={"Bytes": document_bytes})

    def analyze_document(self, document_bytes: bytes) -> TextractPage:
        """Table and form aware OCR (AnalyzeDocument), better for lab report layouts"""
        return self._call(
            "analyze_document",
            Document={"Bytes": document_bytes},
            FeatureTypes=["TABLES", "FORMS"],
        )


# Singleton instance
textract_service = TextractService()
