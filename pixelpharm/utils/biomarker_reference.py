"""
Biomarker reference data - critical thresholds, display categories, recommendations
"""
from typing import List


def is_critical(name: str, value: float) -> bool:
    """Values far enough out of range to need prompt medical attention"""
    lower = (name or "").lower()

    if "glucose" in lower and (value > 300 or value < 40):
        return True
    if "ldl" in lower and value > 250:
        return True
    if "cholesterol" in lower and value > 300:
        return True
    if "triglyceride" in lower and value > 500:
        return True
    if "creatinine" in lower and value > 3.0:
        return True
    if "hemoglobin" in lower and "a1c" not in lower and (value < 7.0 or value > 20.0):
        return True
    return False


def get_category(name: str) -> str:
    lower = (name or "").lower()

    if any(k in lower for k in ("cholesterol", "ldl", "hdl", "triglyceride")):
        return "Lipid Panel"
    if any(k in lower for k in ("glucose", "hba1c", "a1c", "insulin")):
        return "Metabolic"
    if any(k in lower for k in ("tsh", "t3", "t4")):
        return "Thyroid"
    if any(k in lower for k in ("vitamin", "b12", "folate")):
        return "Vitamins"
    if any(k in lower for k in ("hemoglobin", "hematocrit", "wbc", "rbc", "platelet", "blood cell")):
        return "Complete Blood Count"
    if any(k in lower for k in ("alt", "ast", "bilirubin")):
        return "Liver Function"
    if any(k in lower for k in ("creatinine", "bun", "egfr")):
        return "Kidney Function"
    if any(k in lower for k in ("crp", "c-reactive", "esr")):
        return "Inflammation"
    return "Other"


def get_recommendations(name: str, critical: bool) -> List[str]:
    lower = (name or "").lower()

    if "cholesterol" in lower or "ldl" in lower:
        return [
            f"{'Immediately' if critical else 'Soon'} consult with your doctor about cardiovascular risk",
            "Consider dietary changes - reduce saturated fats",
            "Discuss statin therapy if appropriate",
        ]
    if "glucose" in lower or "hba1c" in lower:
        return [
            f"{'Urgent' if critical else 'Prompt'} follow-up with physician for diabetes screening",
            "Monitor blood sugar levels more frequently",
            "Consider dietary consultation",
        ]
    if "tsh" in lower:
        return [
            f"{'Urgent' if critical else 'Timely'} endocrinology consultation recommended",
            "Monitor thyroid function closely",
            "Discuss thyroid hormone replacement if needed",
        ]

    urgency = "urgent" if critical else "routine"
    return [
        f"Follow up with your healthcare provider for {urgency} evaluation",
        "Discuss this result in context of your overall health",
        "Consider retesting to confirm results",
    ]
