"""
Parsing helpers shared by the OCR backends and the storage writers
"""
import json
import math
import re
import logging
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

MAX_BIOMARKER_VALUE = 999999

ABNORMAL_STATUSES = {"high", "low", "critical", "h", "l", "abnormal"}

CONFIDENCE_SCORES = {
    "high": 0.95,
    "medium": 0.75,
}

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

_NUMBER = r"\d+(?:\.\d+)?"
_RANGE_RE = re.compile(rf"({_NUMBER})\s*(?:-|–|to)\s*({_NUMBER})", re.IGNORECASE)
_UPPER_BOUND_RE = re.compile(rf"(?:<|≤|up\s+to)\s*=?\s*({_NUMBER})", re.IGNORECASE)
_LOWER_BOUND_RE = re.compile(rf"(?:>|≥)\s*=?\s*({_NUMBER})")

_ISO_DATE_RE = re.compile(r"(\d{4})[/-](\d{1,2})[/-](\d{1,2})")
_DAY_FIRST_RE = re.compile(r"(\d{1,2})[/.-](\d{1,2})[/.-](\d{2,4})")
_MONTH_NAME_RE = re.compile(r"([A-Za-z]{3,9})\.?\s+(\d{1,2})(?:st|nd|rd|th)?,?\s+(\d{4})")
_DAY_MONTH_NAME_RE = re.compile(r"(\d{1,2})(?:st|nd|rd|th)?\s+([A-Za-z]{3,9})\.?,?\s+(\d{4})")

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def parse_numeric_value(value: Any) -> Optional[float]:
    """
    Coerce an extracted biomarker value to a float.

    Strings are stripped of everything except digits, '.' and '-'
    ("5.4 mmol/L" -> 5.4). Returns None for anything unparseable, NaN,
    negative or implausibly large.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        number = float(value)
    else:
        cleaned = re.sub(r"[^\d.\-]", "", str(value))
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None

    if math.isnan(number) or math.isinf(number):
        return None
    if number < 0 or number > MAX_BIOMARKER_VALUE:
        return None
    return number


def _expand_year(year: int) -> int:
    if year >= 100:
        return year
    return 2000 + year if year < 70 else 1900 + year


def _build_date(year: int, month: int, day: int) -> Optional[datetime]:
    try:
        return datetime(_expand_year(year), month, day)
    except ValueError:
        return None


def _month_number(name: str) -> Optional[int]:
    return MONTHS.get(name[:3].lower())


def parse_test_date(text: Optional[str], default: Optional[datetime] = None) -> datetime:
    """
    Parse a lab report date.

    Numeric dates are read day-first (DD/MM/YYYY) since the reports come
    from Australian labs; year-first dates and month names are also
    understood. Falls back to `default` (or now) when nothing parses.
    """
    fallback = default or datetime.utcnow()
    if not text or not str(text).strip():
        return fallback

    raw = str(text).strip()

    # Full ISO timestamps ("2024-07-25T09:30:00Z")
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        return parsed.replace(tzinfo=None)
    except ValueError:
        pass

    match = _ISO_DATE_RE.search(raw)
    if match:
        parsed = _build_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        if parsed:
            return parsed

    match = _DAY_FIRST_RE.search(raw)
    if match:
        parsed = _build_date(int(match.group(3)), int(match.group(2)), int(match.group(1)))
        if parsed:
            return parsed

    match = _MONTH_NAME_RE.search(raw)
    if match and _month_number(match.group(1)):
        parsed = _build_date(int(match.group(3)), _month_number(match.group(1)), int(match.group(2)))
        if parsed:
            return parsed

    match = _DAY_MONTH_NAME_RE.search(raw)
    if match and _month_number(match.group(2)):
        parsed = _build_date(int(match.group(3)), _month_number(match.group(2)), int(match.group(1)))
        if parsed:
            return parsed

    logger.warning(f"Could not parse test date {raw!r}, using fallback")
    return fallback


def parse_reference_range(text: Optional[str]) -> Tuple[Optional[float], Optional[float]]:
    """Parse "3.0-5.5", "< 200" or "> 40" into (low, high)."""
    if not text:
        return None, None

    raw = str(text)
    match = _RANGE_RE.search(raw)
    if match:
        return float(match.group(1)), float(match.group(2))

    match = _UPPER_BOUND_RE.search(raw)
    if match:
        return None, float(match.group(1))

    match = _LOWER_BOUND_RE.search(raw)
    if match:
        return float(match.group(1)), None

    return None, None


def is_abnormal(status: Optional[str], value: Any = None, reference_range: Optional[str] = None) -> bool:
    """
    Decide whether a biomarker value should be flagged.

    An explicit status wins; without one, the value is compared against
    its reference range.
    """
    if status and str(status).strip():
        return str(status).strip().lower() in ABNORMAL_STATUSES

    number = parse_numeric_value(value)
    if number is None:
        return False

    low, high = parse_reference_range(reference_range)
    if low is not None and number < low:
        return True
    if high is not None and number > high:
        return True
    return False


def confidence_to_score(confidence: Any) -> float:
    """Map a confidence label ("high"/"medium"/...) or number onto [0, 1]."""
    if isinstance(confidence, (int, float)) and not isinstance(confidence, bool):
        return max(0.0, min(float(confidence), 1.0))
    if isinstance(confidence, str):
        return CONFIDENCE_SCORES.get(confidence.strip().lower(), 0.5)
    return 0.5


def extract_json_block(text: str) -> Dict[str, Any]:
    """
    Parse a JSON object out of an LLM response.

    Handles ```json fences and prose around the outermost {...}.
    Raises ValueError when no JSON object can be found.
    """
    if not text:
        raise ValueError("Empty response")

    candidates = []
    fence = _JSON_FENCE_RE.search(text)
    if fence:
        candidates.append(fence.group(1).strip())

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data

    raise ValueError("No JSON object found in response")
