"""
Biomarker Extraction Service - runs the OCR backend chain over an uploaded document
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from pixelpharm.config import settings
from pixelpharm.constants import OcrBackend
from pixelpharm.exceptions import ExtractionError, PixelPharmError, StorageError, ValidationError
from pixelpharm.services.claude_service import ClaudeService, claude_service
from pixelpharm.services.storage_service import StorageService, guess_media_type, storage_service
from pixelpharm.services.textract_service import TextractService, textract_service
from pixelpharm.utils.biomarker_patterns import extract_biomarkers_from_text, extract_test_metadata
from pixelpharm.utils.body_composition_parser import (
    calculate_confidence,
    confidence_label,
    detect_device,
    extract_body_composition_data,
)
from pixelpharm.utils.parsing import confidence_to_score

logger = logging.getLogger(__name__)

EXTRACTED_TEXT_LIMIT = 2000


@dataclass
class ExtractionResult:
    biomarkers: List[Dict[str, Any]]
    test_info: Dict[str, Any]
    extracted_text: str
    confidence: Any
    backend: str
    pages_processed: int = 1
    failures: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "biomarkers": self.biomarkers,
            "testInfo": self.test_info,
            "extractedText": (self.extracted_text or "")[:EXTRACTED_TEXT_LIMIT],
            "confidence": self.confidence,
            "backend": self.backend,
            "pagesProcessed": self.pages_processed,
            "biomarkersFound": len(self.biomarkers),
            "backendFailures": self.failures,
        }


def _biomarker_confidence(item: Dict[str, Any]) -> float:
    if item.get("confidence") is None:
        return 0.0
    return confidence_to_score(item.get("confidence"))


def deduplicate_biomarkers(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Collapse entries sharing a (case-insensitive) name.

    The highest-confidence entry survives; on ties the first one seen is
    kept. Output follows the order in which names first appear.
    """
    best: Dict[str, Dict[str, Any]] = {}
    order: List[str] = []

    for item in items:
        name = str(item.get("name") or "").strip()
        if not name:
            continue
        key = name.lower()
        if key not in best:
            best[key] = item
            order.append(key)
        elif _biomarker_confidence(item) > _biomarker_confidence(best[key]):
            best[key] = item

    return [best[key] for key in order]


class BiomarkerExtractionService:
    """Orchestrates S3 retrieval and the configured OCR backends"""

    def __init__(
        self,
        storage: Optional[StorageService] = None,
        textract: Optional[TextractService] = None,
        claude: Optional[ClaudeService] = None,
    ):
        self.storage = storage or storage_service
        self.textract = textract or textract_service
        self.claude = claude or claude_service

        self._backends: Dict[str, Callable[[bytes, str], ExtractionResult]] = {
            OcrBackend.CLAUDE.value: self._extract_with_claude,
            OcrBackend.TEXTRACT.value: self._extract_with_textract,
            OcrBackend.PATTERN.value: self._extract_with_patterns,
        }

    def backend_chain(self, media_type: str, backend: Optional[str] = None) -> List[str]:
        if backend:
            name = backend.strip().lower()
            if name not in self._backends:
                raise ValidationError(f"Unknown OCR backend: {backend}")
            return [name]

        chain = [name for name in settings.ocr_backend_list if name in self._backends]
        if media_type == "text/plain" and OcrBackend.PATTERN.value not in chain:
            chain.append(OcrBackend.PATTERN.value)
        return chain

    def extract(self, file_key: str, backend: Optional[str] = None) -> ExtractionResult:
        """
        Extract biomarkers from an uploaded document.

        Backends are tried in order; the first success wins. Raises
        ExtractionError listing every failure when none succeeds.
        """
        media_type = guess_media_type(file_key)
        chain = self.backend_chain(media_type, backend)
        document_bytes = self.storage.get_file_bytes(file_key)

        logger.info(f"Extracting {file_key} ({media_type}, {len(document_bytes)} bytes) via {chain}")

        failures = []
        for name in chain:
            try:
                result = self._backends[name](document_bytes, media_type)
            except PixelPharmError as e:
                logger.warning(f"Backend {name} failed for {file_key}: {e.message}")
                failures.append(f"{name}: {e.message}")
                continue

            result.biomarkers = deduplicate_biomarkers(result.biomarkers)
            result.failures = failures
            logger.info(f"Backend {name} extracted {len(result.biomarkers)} biomarkers from {file_key}")
            return result

        raise ExtractionError("All OCR backends failed: " + "; ".join(failures or ["no backend configured"]))

    def _extract_with_claude(self, document_bytes: bytes, media_type: str) -> ExtractionResult:
        data = self.claude.extract_blood_test(document_bytes, media_type)
        return ExtractionResult(
            biomarkers=data["biomarkers"],
            test_info=data["testInfo"],
            extracted_text=data["extractedText"],
            confidence=data["confidence"],
            backend=OcrBackend.CLAUDE.value,
        )

    def _text_result(self, text: str, backend: str, confidence: Any) -> ExtractionResult:
        return ExtractionResult(
            biomarkers=extract_biomarkers_from_text(text),
            test_info=extract_test_metadata(text),
            extracted_text=text,
            confidence=confidence,
            backend=backend,
        )

    def _extract_with_textract(self, document_bytes: bytes, media_type: str) -> ExtractionResult:
        if media_type == "text/plain":
            raise ExtractionError("Textract does not accept plain text documents")
        page = self.textract.detect_text(document_bytes)
        return self._text_result(page.text, OcrBackend.TEXTRACT.value, page.page_confidence)

    def _extract_with_patterns(self, document_bytes: bytes, media_type: str) -> ExtractionResult:
        try:
            text = document_bytes.decode("utf-8")
        except UnicodeDecodeError:
            raise ExtractionError("Pattern backend needs a text document")
        return self._text_result(text, OcrBackend.PATTERN.value, 0.8)

    def extract_pages(self, image_keys: List[str]) -> ExtractionResult:
        """
        Multi-page extraction with Textract AnalyzeDocument.

        Pages that fail are skipped; confidence is averaged over all
        requested pages.
        """
        if not image_keys:
            raise ValidationError("Image keys array is required")

        biomarkers = []
        texts = []
        total_confidence = 0.0
        pages_processed = 0

        for number, key in enumerate(image_keys, start=1):
            try:
                page = self.textract.analyze_document(self.storage.get_file_bytes(key))
            except PixelPharmError as e:
                logger.warning(f"Page {number} ({key}) skipped: {e.message}")
                continue

            page_biomarkers = extract_biomarkers_from_text(page.text)
            biomarkers.extend(page_biomarkers)
            texts.append(page.text)
            total_confidence += page.page_confidence
            pages_processed += 1
            logger.info(f"Page {number}: {len(page_biomarkers)} biomarkers, confidence {page.page_confidence:.2f}")

        full_text = "\n\n".join(texts)
        return ExtractionResult(
            biomarkers=deduplicate_biomarkers(biomarkers),
            test_info=extract_test_metadata(full_text),
            extracted_text=full_text,
            confidence=round(total_confidence / len(image_keys), 2),
            backend=OcrBackend.TEXTRACT.value,
            pages_processed=pages_processed,
        )

    def extract_body_composition(self, file_key: str) -> Dict[str, Any]:
        """Textract OCR followed by the body composition parser"""
        try:
            document_bytes = self.storage.get_file_bytes(file_key)
            page = self.textract.detect_text(document_bytes)
        except ExtractionError as e:
            raise StorageError(e.message)

        data = extract_body_composition_data(page.text)
        score = calculate_confidence(data, page.text)
        device = detect_device(page.text)
        logger.info(f"Body composition for {file_key}: {sorted(data)} ({device}, {score:.2f})")

        return {
            "confidence": confidence_label(score),
            "confidenceScore": round(score, 2),
            "extractedText": page.text[:1000],
            "bodyComposition": data,
            "processingInfo": {
                "fileKey": file_key,
                "detectedDevice": device,
                "textLength": len(page.text),
                "metricsFound": len(data),
            },
        }
