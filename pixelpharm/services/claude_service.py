"""
Claude AI Service - vision OCR for lab reports and health analysis
"""
import re
import json
import base64
import logging
from typing import Dict, List, Any, Optional

import anthropic
from anthropic import Anthropic

from pixelpharm.config import settings, BLOOD_TEST_EXTRACTION_PROMPT, HEALTH_ANALYSIS_PROMPT
from pixelpharm.exceptions import AnalysisError, ExtractionError
from pixelpharm.utils.biomarker_patterns import categorize_biomarker
from pixelpharm.utils.parsing import extract_json_block

logger = logging.getLogger(__name__)

FALLBACK_UNITS = r"mg/dL|mmol/L|%|g/dL|IU/L|U/L|ng/mL|pg/mL|mIU/L|umol/L"

# "Glucose: 95 mg/dL" / "Glucose 95 mg/dL"
FALLBACK_BIOMARKER_RE = re.compile(
    rf"([A-Za-z][A-Za-z0-9\-() ]*?)\s*:?\s*(\d+(?:\.\d+)?)\s*({FALLBACK_UNITS})(?![A-Za-z])",
    re.IGNORECASE,
)

RISK_LEVELS = {"LOW", "MODERATE", "HIGH", "CRITICAL"}

VISION_MEDIA_TYPES = {"application/pdf", "image/png", "image/jpeg"}


def extract_biomarkers_from_response_text(text: str) -> List[Dict[str, Any]]:
    """Fallback when Claude answers in prose instead of JSON"""
    biomarkers = []
    for line in (text or "").splitlines():
        for match in FALLBACK_BIOMARKER_RE.finditer(line):
            name = match.group(1).strip(" -:")
            if not name:
                continue
            biomarkers.append({
                "name": name,
                "value": float(match.group(2)),
                "unit": match.group(3),
                "category": categorize_biomarker(name),
            })
    return biomarkers


class ClaudeService:
    """Service for interacting with Anthropic Claude API"""

    def __init__(self, client=None, model: Optional[str] = None):
        self._client = client
        self.model = model or settings.CLAUDE_MODEL
        logger.info("Claude service initialized")

    @property
    def client(self):
        if self._client is None:
            if not settings.ANTHROPIC_API_KEY:
                raise ExtractionError("ANTHROPIC_API_KEY is not configured")
            self._client = Anthropic(api_key=settings.ANTHROPIC_API_KEY)
        return self._client

    def _create(self, content: List[Dict[str, Any]], max_tokens: Optional[int] = None) -> str:
        response = self.client.messages.create(
            model=self.model,
            max_tokens=max_tokens or settings.CLAUDE_MAX_TOKENS,
            temperature=0,
            messages=[{"role": "user", "content": content}],
        )
        return response.content[0].text

    def extract_blood_test(self, document_bytes: bytes, media_type: str) -> Dict[str, Any]:
        """
        Extract biomarkers from a lab report image or PDF

        Args:
            document_bytes: Raw file contents
            media_type: MIME type of the file (application/pdf, image/png, ...)

        Returns:
            Dict with biomarkers, testInfo, extractedText and confidence
        """
        if media_type not in VISION_MEDIA_TYPES:
            raise ExtractionError(f"Claude OCR does not support {media_type} documents")

        block_type = "document" if media_type == "application/pdf" else "image"
        content = [
            {
                "type": block_type,
                "source": {
                    "type": "base64",
                    "media_type": media_type,
                    "data": base64.b64encode(document_bytes).decode("utf-8"),
                },
            },
            {"type": "text", "text": BLOOD_TEST_EXTRACTION_PROMPT},
        ]

        try:
            response_text = self._create(content)
        except anthropic.APIError as e:
            logger.error(f"Claude OCR request failed: {e}")
            raise ExtractionError(f"Claude OCR extraction failed: {e}")

        try:
            parsed = extract_json_block(response_text)
        except ValueError as e:
            logger.warning(f"Claude returned non-JSON output, using text fallback: {e}")
            parsed = {
                "biomarkers": extract_biomarkers_from_response_text(response_text),
                "testInfo": {},
                "extractedText": response_text,
                "confidence": "medium",
            }

        raw = parsed.get("biomarkers") or []
        if not isinstance(raw, list):
            raise ExtractionError(f"Claude returned biomarkers as {type(raw).__name__}, expected a list")

        biomarkers = [b for b in raw if isinstance(b, dict)]
        if len(biomarkers) < len(raw):
            logger.warning(f"Dropped {len(raw) - len(biomarkers)} malformed biomarker entries from Claude")
        if raw and not biomarkers:
            raise ExtractionError("Claude returned no usable biomarker entries")
        logger.info(f"Claude extracted {len(biomarkers)} biomarkers")

        test_info = parsed.get("testInfo")
        return {
            "biomarkers": biomarkers,
            "testInfo": test_info if isinstance(test_info, dict) else {},
            "extractedText": parsed.get("extractedText") or response_text,
            "confidence": parsed.get("confidence") or "high",
        }

    def analyze_health(
        self,
        biomarkers: List[Dict[str, Any]],
        body_composition: Optional[Dict[str, Any]] = None,
        profile: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Produce a structured health analysis from biomarker history

        Returns:
            Dict with healthScore, riskLevel, keyFindings, recommendations,
            abnormalValues, trends and summary
        """
        prompt = HEALTH_ANALYSIS_PROMPT.format(
            profile=self._format_profile(profile),
            biomarkers=json.dumps(biomarkers, default=str, indent=2),
            body_composition=json.dumps(body_composition, default=str, indent=2) if body_composition else "Not available",
        )

        try:
            response_text = self._create([{"type": "text", "text": prompt}])
            parsed = extract_json_block(response_text)
        except ExtractionError as e:
            raise AnalysisError(e.message)
        except anthropic.APIError as e:
            logger.error(f"Claude health analysis failed: {e}")
            raise AnalysisError(f"Health analysis request failed: {e}")
        except ValueError as e:
            logger.error(f"Claude health analysis returned unparseable output: {e}")
            raise AnalysisError("Health analysis response could not be parsed")

        risk_level = str(parsed.get("riskLevel", "MODERATE")).upper()
        return {
            "healthScore": parsed.get("healthScore", 0),
            "riskLevel": risk_level if risk_level in RISK_LEVELS else "MODERATE",
            "keyFindings": parsed.get("keyFindings") or [],
            "recommendations": parsed.get("recommendations") or [],
            "abnormalValues": parsed.get("abnormalValues") or [],
            "trends": parsed.get("trends") or [],
            "summary": parsed.get("summary") or "",
        }

    def _format_profile(self, profile: Optional[Dict[str, Any]]) -> str:
        """Format user profile for the analysis prompt"""
        if not profile:
            return "No profile information provided."

        parts = []
        if profile.get("age"):
            parts.append(f"Age: {profile['age']}")
        if profile.get("gender"):
            parts.append(f"Gender: {profile['gender']}")
        return "\n".join(parts) if parts else "Minimal profile information."


# Singleton instance
claude_service = ClaudeService()
