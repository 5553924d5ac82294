"""
Body composition scan parser (InBody, DEXA, Bod Pod, ...)
"""
import re
from typing import Any, Dict, List, Optional

_NUM = r"(\d+(?:\.\d+)?)"


def _compile(patterns: List[str]) -> List[re.Pattern]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


WEIGHT_PATTERNS = _compile([
    rf"(?:total\s*)?weight[:\s]*{_NUM}\s*(?:kg|lbs?)\b",
    rf"body\s*weight[:\s]*{_NUM}\s*(?:kg|lbs?)\b",
    rf"\bwt[:\s]*{_NUM}\s*(?:kg|lbs?)\b",
])

BODY_FAT_PATTERNS = _compile([
    rf"(?:percent\s*)?body\s*fat(?:\s*percentage)?[:\s%]*{_NUM}\s*%?",
    rf"\bpbf[:\s%]*{_NUM}\s*%?",
    rf"\bbf[:\s%]*{_NUM}\s*%?",
    rf"\bfat[:\s%]*{_NUM}\s*%",
])

MUSCLE_PATTERNS = _compile([
    rf"skeletal\s*muscle\s*mass[:\s]*{_NUM}\s*(?:kg|lbs?)\b",
    rf"muscle\s*mass[:\s]*{_NUM}\s*(?:kg|lbs?)\b",
    rf"lean\s*mass[:\s]*{_NUM}\s*(?:kg|lbs?)\b",
    rf"\bsmm[:\s]*{_NUM}\s*(?:kg|lbs?)\b",
])

VISCERAL_PATTERNS = _compile([
    rf"visceral\s*fat(?:\s*level)?[:\s]*{_NUM}",
    rf"\bvfl?[:\s]*{_NUM}",
])

BMR_PATTERNS = _compile([
    rf"\bbmr[:\s]*{_NUM}\s*(?:kcal|cal)?",
    rf"basal\s*metabolic\s*rate[:\s]*{_NUM}\s*(?:kcal|cal)?",
    rf"metabolic\s*rate[:\s]*{_NUM}\s*(?:kcal|cal)?",
])

DATE_PATTERNS = _compile([
    r"(?:test\s*date|date)[:\s]*(\d{1,2}[/-]\d{1,2}[/-]\d{2,4})",
    r"(\d{1,2}[/-]\d{1,2}[/-]\d{2,4})",
    r"(\d{4}[/-]\d{1,2}[/-]\d{1,2})",
])

TOTAL_BODY_WATER_RE = re.compile(rf"total\s*body\s*water[:\s]*{_NUM}\s*(?:l|liters?|litres?)\b", re.IGNORECASE)
PROTEIN_RE = re.compile(rf"protein[:\s]*{_NUM}\s*(?:kg|lbs?)\b", re.IGNORECASE)
MINERAL_RE = re.compile(rf"minerals?[:\s]*{_NUM}\s*(?:kg|lbs?)\b", re.IGNORECASE)

# (field, weight) pairs used for the confidence score
CONFIDENCE_WEIGHTS = [
    ("totalWeight", 20),
    ("bodyFatPercentage", 25),
    ("skeletalMuscleMass", 20),
    ("visceralFatLevel", 15),
    ("bmr", 10),
    ("testDate", 10),
]
DEVICE_BONUS = 10
UNKNOWN_DEVICE = "Unknown Device"


def _first_number(patterns: List[re.Pattern], text: str) -> Optional[float]:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return float(match.group(1))
    return None


def extract_body_composition_data(text: str) -> Dict[str, Any]:
    """
    Extract the core metrics from scan text.

    Only metrics that were found are present in the result. InBody scans
    additionally carry water/protein/mineral figures.
    """
    data: Dict[str, Any] = {}
    if not text:
        return data

    core = {
        "totalWeight": _first_number(WEIGHT_PATTERNS, text),
        "bodyFatPercentage": _first_number(BODY_FAT_PATTERNS, text),
        "skeletalMuscleMass": _first_number(MUSCLE_PATTERNS, text),
        "visceralFatLevel": _first_number(VISCERAL_PATTERNS, text),
        "bmr": _first_number(BMR_PATTERNS, text),
    }
    data.update({key: value for key, value in core.items() if value is not None})

    for pattern in DATE_PATTERNS:
        match = pattern.search(text)
        if match:
            data["testDate"] = match.group(1)
            break

    if "inbody" in text.lower():
        match = TOTAL_BODY_WATER_RE.search(text)
        if match:
            data["water"] = {"totalBodyWater": float(match.group(1))}

        metabolic = {}
        match = PROTEIN_RE.search(text)
        if match:
            metabolic["proteinMass"] = float(match.group(1))
        match = MINERAL_RE.search(text)
        if match:
            metabolic["mineralMass"] = float(match.group(1))
        if metabolic:
            data["metabolic"] = metabolic

    return data


def detect_device(text: str) -> str:
    lower = (text or "").lower()
    if "inbody" in lower:
        for model in ("570", "770", "970"):
            if model in lower:
                return f"InBody {model}"
        return "InBody Scanner"
    if "dexa" in lower or "dxa" in lower:
        return "DEXA Scanner"
    if "bod pod" in lower:
        return "Bod Pod"
    if "hydrostatic" in lower:
        return "Hydrostatic Weighing"
    return UNKNOWN_DEVICE


def calculate_confidence(data: Dict[str, Any], text: str) -> float:
    """Weighted share of core metrics found, with a bonus for a recognised device."""
    score = sum(weight for key, weight in CONFIDENCE_WEIGHTS if data.get(key) is not None)
    max_score = sum(weight for _, weight in CONFIDENCE_WEIGHTS)

    if detect_device(text) != UNKNOWN_DEVICE:
        score += DEVICE_BONUS
        max_score += DEVICE_BONUS

    return score / max_score if max_score else 0.0


def confidence_label(score: float) -> str:
    if score >= 0.7:
        return "high"
    if score >= 0.4:
        return "medium"
    return "low"
