"""
Local biomarker pattern table

Regex extraction used when neither Claude nor Textract is available, and
on top of Textract text. Specific names precede general ones (HDL/LDL
before Total Cholesterol, HbA1c before Hemoglobin) since the first
matching pattern on a line wins.
"""
import re
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pixelpharm.utils.parsing import parse_reference_range

logger = logging.getLogger(__name__)


# Digits that belong to a name ("25-Hydroxy", "25(OH)D") are not values
_VALUE = r"(?P<value>\d+(?:\.\d+)?)(?!\d|\.\d|[-(][A-Za-z])"
_UNIT = r"(?P<unit>%|x?\s?10\^\d+/[A-Za-z]+|[A-Za-zµμ][A-Za-zµμ0-9]*(?:/[A-Za-z0-9.]+)?)"
_VALUE_TAIL = rf"{_VALUE}(?:\s*{_UNIT})?"

_NEXT_LINE_RE = re.compile(rf"^[^\d\n]{{0,10}}?{_VALUE_TAIL}")
_RANGE_IN_LINE_RE = re.compile(r"(\d+(?:\.\d+)?\s*(?:-|–)\s*\d+(?:\.\d+)?|[<>≤≥]\s*=?\s*\d+(?:\.\d+)?)")
_FLAG_RE = re.compile(r"(?<![\w/])(H|L|(?i:high|low))(?![\w/])")

FLAG_WORDS = {"h", "l", "high", "low"}

_DATE_PATTERNS = [
    re.compile(r"(?:date|collected|drawn|reported)[^\n\d]{0,20}(\d{1,2}[-/]\d{1,2}[-/]\d{2,4})", re.IGNORECASE),
    re.compile(r"(?:date|collected|drawn|reported)[^\n\d]{0,20}(\d{4}[-/]\d{1,2}[-/]\d{1,2})", re.IGNORECASE),
    re.compile(r"(?:date|collected|drawn|reported)[:\s]*([A-Za-z]+\s+\d{1,2},?\s+\d{4})", re.IGNORECASE),
    re.compile(r"(\d{1,2}[-/]\d{1,2}[-/]\d{4})"),
    re.compile(r"(\d{4}[-/]\d{1,2}[-/]\d{1,2})"),
    re.compile(r"((?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?\s+\d{1,2},?\s+\d{4})", re.IGNORECASE),
]

_LAB_LABEL_RE = re.compile(
    r"^\s*(?:laboratory|lab name|performing lab|lab|medical center|clinic)\s*:\s*(.+?)\s*$",
    re.IGNORECASE | re.MULTILINE,
)
_LAB_BRAND_RE = re.compile(
    r"(quest diagnostics|labcorp|bioreference|arup|sonic healthcare|laverty pathology|"
    r"douglass hanly moir|australian clinical labs|melbourne pathology|dorevitch|"
    r"clinipath|sullivan nicolaides|mayo clinic)",
    re.IGNORECASE,
)


@dataclass
class BiomarkerPattern:
    """One row of the pattern table."""
    name: str
    aliases: List[str]
    unit: str
    normal_range: Tuple[float, float]
    category: str
    regex: Any = field(init=False, repr=False)
    alias_regex: Any = field(init=False, repr=False)

    def __post_init__(self):
        # Longest alias first so "hdl cholesterol" beats "hdl"
        aliases = sorted(self.aliases, key=len, reverse=True)
        alternation = "|".join(re.escape(a) for a in aliases)
        alias_part = rf"(?<![a-z0-9])(?:{alternation})(?![a-z0-9])"
        self.alias_regex = re.compile(alias_part, re.IGNORECASE)
        self.regex = re.compile(rf"{alias_part}[^\d\n]{{0,40}}?{_VALUE_TAIL}", re.IGNORECASE)

    def status_for(self, value: float) -> str:
        low, high = self.normal_range
        if value < low:
            return "low"
        if value > high:
            return "high"
        return "normal"


BIOMARKER_PATTERNS: List[BiomarkerPattern] = [
    # Lipid Panel
    BiomarkerPattern("Cholesterol/HDL Ratio", ["cholesterol/hdl ratio", "chol/hdl ratio", "total/hdl ratio", "chol/hdl"],
                     "ratio", (0.0, 5.0), "lipids"),
    BiomarkerPattern("HDL Cholesterol", ["hdl cholesterol", "hdl-c", "hdl", "high density lipoprotein"],
                     "mg/dL", (40, 100), "lipids"),
    BiomarkerPattern("LDL Cholesterol", ["ldl cholesterol", "ldl-c", "ldl", "low density lipoprotein"],
                     "mg/dL", (0, 100), "lipids"),
    BiomarkerPattern("Total Cholesterol", ["total cholesterol", "cholesterol total", "total chol", "tchol", "cholesterol"],
                     "mg/dL", (125, 200), "lipids"),
    BiomarkerPattern("Triglycerides", ["triglycerides", "triglyceride", "trigs", "trig"],
                     "mg/dL", (0, 150), "lipids"),

    # Glucose / diabetes
    BiomarkerPattern("HbA1c", ["hba1c", "hemoglobin a1c", "haemoglobin a1c", "glycated hemoglobin", "glycated haemoglobin", "a1c"],
                     "%", (4.0, 5.6), "diabetes"),
    BiomarkerPattern("Glucose", ["fasting glucose", "random glucose", "blood glucose", "glucose", "blood sugar"],
                     "mg/dL", (70, 100), "diabetes"),

    # Complete Blood Count
    BiomarkerPattern("White Blood Cell Count", ["white blood cell count", "white blood cells", "white cell count", "wbc", "leukocytes"],
                     "K/uL", (4.5, 11.0), "blood_count"),
    BiomarkerPattern("Red Blood Cell Count", ["red blood cell count", "red blood cells", "red cell count", "rbc", "erythrocytes"],
                     "M/uL", (4.2, 5.4), "blood_count"),
    BiomarkerPattern("Hemoglobin", ["hemoglobin", "haemoglobin", "hgb", "hb"],
                     "g/dL", (12.0, 15.5), "blood_count"),
    BiomarkerPattern("Hematocrit", ["hematocrit", "haematocrit", "hct"],
                     "%", (36.0, 46.0), "blood_count"),
    BiomarkerPattern("Platelet Count", ["platelet count", "platelets", "plt"],
                     "K/uL", (150, 450), "blood_count"),

    # Liver Function
    BiomarkerPattern("ALT", ["alanine aminotransferase", "sgpt", "alt"],
                     "U/L", (7, 56), "liver"),
    BiomarkerPattern("AST", ["aspartate aminotransferase", "sgot", "ast"],
                     "U/L", (10, 40), "liver"),
    BiomarkerPattern("Bilirubin", ["total bilirubin", "bilirubin"],
                     "mg/dL", (0.1, 1.2), "liver"),

    # Kidney Function
    BiomarkerPattern("Creatinine", ["creatinine", "creat"],
                     "mg/dL", (0.6, 1.2), "kidney"),
    BiomarkerPattern("BUN", ["blood urea nitrogen", "bun", "urea"],
                     "mg/dL", (7, 20), "kidney"),

    # Thyroid
    BiomarkerPattern("TSH", ["thyroid stimulating hormone", "tsh"],
                     "mIU/L", (0.4, 4.0), "thyroid"),
    BiomarkerPattern("Free T4", ["free t4", "thyroxine", "ft4", "t4"],
                     "ng/dL", (0.8, 1.8), "thyroid"),
    BiomarkerPattern("Free T3", ["free t3", "triiodothyronine", "ft3", "t3"],
                     "pg/mL", (2.3, 4.2), "thyroid"),

    # Vitamins & iron studies
    BiomarkerPattern("Vitamin D", ["25-hydroxy vitamin d", "25-hydroxy", "25(oh)d", "vitamin d"],
                     "ng/mL", (30, 100), "vitamins"),
    BiomarkerPattern("Vitamin B12", ["vitamin b12", "cobalamin", "b12"],
                     "pg/mL", (200, 900), "vitamins"),
    BiomarkerPattern("Ferritin", ["ferritin"],
                     "ng/mL", (30, 400), "vitamins"),
    BiomarkerPattern("Iron", ["serum iron", "iron"],
                     "ug/dL", (60, 170), "vitamins"),

    # Electrolytes & inflammation
    BiomarkerPattern("Sodium", ["sodium"], "mmol/L", (135, 145), "electrolytes"),
    BiomarkerPattern("Potassium", ["potassium"], "mmol/L", (3.5, 5.1), "electrolytes"),
    BiomarkerPattern("Calcium", ["calcium"], "mg/dL", (8.5, 10.5), "electrolytes"),
    BiomarkerPattern("C-Reactive Protein", ["c-reactive protein", "hs-crp", "hscrp", "crp"],
                     "mg/L", (0, 3.0), "inflammation"),
]


def _split_unit_and_flag(unit: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """The unit slot sometimes captures an H/L flag ("Glucose 120 H")."""
    if unit and unit.lower() in FLAG_WORDS:
        return None, unit
    return unit, None


def _status_from(pattern: BiomarkerPattern, value: float, unit: Optional[str], flag: Optional[str],
                 reference_range: Optional[str]) -> str:
    if flag:
        return "high" if flag.lower().startswith("h") else "low"

    low, high = parse_reference_range(reference_range)
    if low is not None or high is not None:
        if low is not None and value < low:
            return "low"
        if high is not None and value > high:
            return "high"
        return "normal"

    # Table ranges are in the table unit
    if unit and unit.lower() != pattern.unit.lower():
        return "normal"
    return pattern.status_for(value)


def _confidence(line: str, pattern: BiomarkerPattern) -> float:
    confidence = 0.8
    if ":" in line or "=" in line:
        confidence += 0.1
    if pattern.unit and pattern.unit.lower() in line.lower():
        confidence += 0.1
    return round(min(confidence, 1.0), 2)


def _build_biomarker(pattern: BiomarkerPattern, match, context: str, rest: str) -> Optional[Dict[str, Any]]:
    value = float(match.group("value"))
    if value <= 0:
        return None

    unit, flag = _split_unit_and_flag(match.group("unit"))

    range_match = _RANGE_IN_LINE_RE.search(rest)
    reference_range = range_match.group(1).strip() if range_match else None
    if not flag:
        flag_match = _FLAG_RE.search(rest)
        flag = flag_match.group(1) if flag_match else None

    return {
        "name": pattern.name,
        "value": value,
        "unit": unit or pattern.unit,
        "referenceRange": reference_range,
        "status": _status_from(pattern, value, unit, flag, reference_range),
        "category": pattern.category,
        "confidence": _confidence(context, pattern),
        "rawText": context[:100],
    }


def _match_line(lines: List[str], index: int) -> Optional[Dict[str, Any]]:
    line = lines[index]
    for pattern in BIOMARKER_PATTERNS:
        match = pattern.regex.search(line)
        if match:
            return _build_biomarker(pattern, match, line, line[match.end():])

        # Value printed on the following line
        if index + 1 < len(lines) and pattern.alias_regex.search(line):
            next_line = lines[index + 1]
            match = _NEXT_LINE_RE.match(next_line)
            if match:
                context = f"{line} {next_line}"
                return _build_biomarker(pattern, match, context, next_line[match.end():])
    return None


def extract_biomarkers_from_text(text: str) -> List[Dict[str, Any]]:
    """
    Scan OCR text line by line against the pattern table.

    Returns dicts with name, value, unit, referenceRange, status,
    category, confidence and rawText. Duplicates are left in place.
    """
    if not text:
        return []

    lines = [line.strip() for line in text.splitlines() if line.strip()]
    biomarkers = []

    for index in range(len(lines)):
        biomarker = _match_line(lines, index)
        if biomarker:
            biomarkers.append(biomarker)

    logger.info(f"Pattern extraction found {len(biomarkers)} biomarkers in {len(lines)} lines")
    return biomarkers


def extract_test_metadata(text: str) -> Dict[str, Optional[str]]:
    """Pull test date, lab name and report type out of report text."""
    metadata = {"testDate": None, "labName": None, "reportType": None}
    if not text:
        metadata["reportType"] = "General Blood Work"
        return metadata

    for date_pattern in _DATE_PATTERNS:
        match = date_pattern.search(text)
        if match:
            metadata["testDate"] = match.group(1).strip()
            break

    match = _LAB_LABEL_RE.search(text)
    if match:
        metadata["labName"] = match.group(1)
    else:
        match = _LAB_BRAND_RE.search(text)
        if match:
            metadata["labName"] = match.group(1)

    lowered = text.lower()
    if "comprehensive metabolic panel" in lowered or re.search(r"\bcmp\b", lowered):
        metadata["reportType"] = "Comprehensive Metabolic Panel"
    elif "lipid panel" in lowered or "cholesterol" in lowered:
        metadata["reportType"] = "Lipid Panel"
    elif "complete blood count" in lowered or re.search(r"\bcbc\b", lowered):
        metadata["reportType"] = "Complete Blood Count"
    else:
        metadata["reportType"] = "General Blood Work"

    return metadata


def categorize_biomarker(name: str) -> str:
    """Coarse category used for free-form biomarker names."""
    lower = (name or "").lower()
    words = set(re.findall(r"[a-z0-9]+", lower))

    if any(k in lower for k in ("cholesterol", "ldl", "hdl", "triglycer")):
        return "lipids"
    if any(k in lower for k in ("glucose", "hba1c", "a1c", "insulin")):
        return "diabetes"
    if words & {"alt", "ast", "ggt", "alp"} or "bilirubin" in lower:
        return "liver"
    if words & {"bun", "egfr", "gfr", "urea"} or "creatinine" in lower:
        return "kidney"
    if words & {"tsh", "t3", "t4", "ft3", "ft4"} or "thyro" in lower:
        return "thyroid"
    return "general"
