"""
Health Analysis Service

Claude-backed health insights with a rule-based local analyzer used as
fallback and for the enhanced medical review.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pixelpharm.constants import ProcessingStatus, ProcessingType
from pixelpharm.exceptions import AnalysisError, NotFoundError
from pixelpharm.models import AiProcessingResult, BiomarkerValue, BodyCompositionResult, HealthInsight, MedicalReview, User
from pixelpharm.services.claude_service import ClaudeService, claude_service
from pixelpharm.utils.biomarker_reference import is_critical

logger = logging.getLogger(__name__)

ANALYSIS_BIOMARKER_LIMIT = 50
COMPREHENSIVE_PANEL_SIZE = 15
REVIEW_VERSION = "1.0"


@dataclass(frozen=True)
class BodySystem:
    key: str
    markers: Tuple[str, ...]
    weight: int
    # More abnormal markers than this marks the whole system ABNORMAL
    abnormal_above: Optional[int]
    finding: str
    normal_finding: str
    recommendations: Tuple[str, ...]
    normal_recommendations: Tuple[str, ...]


BODY_SYSTEMS = [
    BodySystem(
        "cardiovascular",
        ("total cholesterol", "ldl cholesterol", "hdl cholesterol", "triglycerides"),
        25, 2,
        "Elevated {name}: {value} {unit}",
        "Lipid profile within normal ranges",
        ("Heart-healthy diet (Mediterranean style)", "Regular aerobic exercise (150 min/week)",
         "Consider lipid medication if indicated"),
        ("Maintain current cardiovascular health practices", "Regular exercise continuation"),
    ),
    BodySystem(
        "metabolic",
        ("glucose", "hba1c", "hemoglobin a1c", "triglycerides"),
        30, 1,
        "{name} elevated: {value} {unit}",
        "Glucose metabolism appears normal",
        ("Weight management if indicated", "Reduce refined carbohydrates", "Regular blood sugar monitoring"),
        ("Maintain healthy weight", "Continue balanced diet"),
    ),
    BodySystem(
        "hepatic",
        ("alt", "ast", "bilirubin", "alkaline phosphatase"),
        35, None,
        "Elevated {name}: {value} {unit}",
        "Liver function markers within normal range",
        ("Limit alcohol consumption", "Review medications", "Consider hepatology consultation"),
        ("Continue liver-healthy practices", "Moderate alcohol intake"),
    ),
    BodySystem(
        "renal",
        ("creatinine", "bun", "egfr"),
        40, None,
        "{name} abnormal: {value} {unit}",
        "Kidney function appears normal",
        ("Increase water intake", "Monitor blood pressure", "Consider nephrology referral"),
        ("Maintain adequate hydration", "Regular blood pressure monitoring"),
    ),
    BodySystem(
        "hematologic",
        ("hemoglobin", "hematocrit", "white blood cells", "white blood cell count",
         "platelets", "platelet count", "vitamin b12"),
        25, None,
        "{name} abnormal: {value} {unit}",
        "Blood parameters within normal range",
        ("Iron-rich diet if anemic", "B12/folate supplementation if low", "Hematology consultation if severe"),
        ("Continue balanced nutrition", "Regular blood monitoring"),
    ),
    BodySystem(
        "endocrine",
        ("tsh", "t3", "t4", "free t3", "free t4", "vitamin d", "testosterone", "estradiol"),
        30, None,
        "{name} abnormal: {value} {unit}",
        "Endocrine function appears normal",
        ("Endocrinology consultation", "Hormone optimization", "Vitamin D supplementation if low"),
        ("Continue healthy lifestyle", "Regular hormone monitoring"),
    ),
]

CONCERNS = {
    "total cholesterol": "Increased cardiovascular disease risk",
    "ldl cholesterol": "Increased risk of atherosclerosis",
    "hdl cholesterol": "Reduced cardioprotective benefit",
    "triglycerides": "Associated with metabolic syndrome",
    "glucose": "Potential diabetes risk",
    "creatinine": "Possible kidney function impairment",
    "alt": "Liver function concern",
    "tsh": "Thyroid function imbalance",
}

# Days until the next recommended review, by risk level
REVIEW_INTERVALS = {"LOW": 180, "MODERATE": 90, "HIGH": 30, "CRITICAL": 7}


def health_grade(score: float) -> str:
    if score >= 90:
        return "A"
    if score >= 80:
        return "B"
    if score >= 70:
        return "C"
    if score >= 60:
        return "D"
    return "F"


class LocalHealthAnalyzer:
    """Rule-based analysis over stored biomarker values (BiomarkerValue.to_dict() shape)"""

    def analyze(self, biomarkers: List[Dict[str, Any]]) -> Dict[str, Any]:
        abnormal_values = self.identify_abnormal_values(biomarkers)
        system_reviews = self.review_systems(biomarkers)
        health_score = self.calculate_health_score(biomarkers, system_reviews)
        risk_level = self.assess_risk_level(health_score, abnormal_values)

        logger.info(f"Local analysis: {len(biomarkers)} biomarkers, score {health_score}, risk {risk_level}")

        return {
            "healthScore": health_score,
            "riskLevel": risk_level,
            "keyFindings": self.key_findings(abnormal_values, system_reviews),
            "recommendations": self.recommendations(abnormal_values, system_reviews),
            "abnormalValues": abnormal_values,
            "systemReviews": system_reviews,
            "trends": self.trends(biomarkers),
            "summary": self.summary(health_score, abnormal_values),
            "confidence": 0.9,
            "dataCompleteness": round(min(len(biomarkers) / COMPREHENSIVE_PANEL_SIZE, 1.0), 2),
        }

    def identify_abnormal_values(self, biomarkers: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        abnormal = []
        for b in biomarkers:
            if not b.get("is_abnormal"):
                continue
            name = b["name"]
            abnormal.append({
                "biomarker": name,
                "value": b["value"],
                "unit": b.get("unit") or "",
                "referenceRange": b.get("reference_range"),
                "concern": CONCERNS.get(name.lower(), "Outside normal reference range"),
                "urgency": "urgent" if is_critical(name, b["value"]) else "routine",
            })
        return abnormal

    def review_systems(self, biomarkers: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        reviews = {}
        for system in BODY_SYSTEMS:
            markers = [b for b in biomarkers if b["name"].lower() in system.markers]
            abnormal = [b for b in markers if b.get("is_abnormal")]

            if not abnormal:
                status = "NORMAL"
            elif system.abnormal_above is not None and len(abnormal) > system.abnormal_above:
                status = "ABNORMAL"
            else:
                status = "NEEDS_ATTENTION"

            reviews[system.key] = {
                "status": status,
                "findings": [
                    system.finding.format(name=b["name"], value=b["value"], unit=b.get("unit") or "").strip()
                    for b in abnormal
                ] or [system.normal_finding],
                "recommendations": list(system.recommendations if abnormal else system.normal_recommendations),
                "riskFactors": [b["name"].lower().replace(" ", "_") for b in abnormal],
                "score": max(100 - len(abnormal) * system.weight, 0),
            }
        return reviews

    def calculate_health_score(self, biomarkers: List[Dict[str, Any]], system_reviews: Dict[str, Dict[str, Any]]) -> int:
        abnormal_count = sum(1 for b in biomarkers if b.get("is_abnormal"))
        abnormal_penalty = (abnormal_count / len(biomarkers)) * 40 if biomarkers else 0
        system_scores = [review["score"] for review in system_reviews.values()]
        average = sum(system_scores) / len(system_scores)

        score = round(average * 0.6 + (100 - abnormal_penalty) * 0.4)
        return max(min(score, 100), 0)

    def assess_risk_level(self, health_score: int, abnormal_values: List[Dict[str, Any]]) -> str:
        if any(v["urgency"] == "urgent" for v in abnormal_values):
            return "CRITICAL"
        if health_score < 60:
            return "HIGH"
        if health_score < 80 or len(abnormal_values) > 3:
            return "MODERATE"
        return "LOW"

    def key_findings(self, abnormal_values, system_reviews) -> List[str]:
        findings = [f"{v['biomarker']}: {v['value']} {v['unit']} ({v['concern']})" for v in abnormal_values[:5]]
        for key, review in system_reviews.items():
            if review["status"] == "ABNORMAL":
                findings.append(f"{key.capitalize()} system needs attention")
        return findings or ["All major biomarkers within normal ranges"]

    def recommendations(self, abnormal_values, system_reviews) -> List[Dict[str, Any]]:
        recommendations = []
        for key, review in system_reviews.items():
            if review["status"] == "NORMAL":
                continue
            severe = review["status"] == "ABNORMAL"
            recommendations.append({
                "category": key.capitalize(),
                "priority": "high" if severe else "moderate",
                "recommendation": review["recommendations"][0],
                "reasoning": f"{key} system shows abnormalities requiring intervention",
                "timeline": "2-4 weeks" if severe else "1-3 months",
            })

        if abnormal_values:
            recommendations.append({
                "category": "Medical",
                "priority": "high",
                "recommendation": "Schedule comprehensive health assessment with healthcare provider",
                "reasoning": "Biomarkers outside normal range require professional evaluation",
                "timeline": "Within 2 weeks",
            })

        recommendations.append({
            "category": "Monitoring",
            "priority": "moderate",
            "recommendation": "Implement regular biomarker tracking every 3-6 months",
            "reasoning": "Consistent monitoring enables early detection and progress tracking",
            "timeline": "Ongoing",
        })
        return recommendations

    def trends(self, biomarkers: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Change between the earliest and latest value of each repeated biomarker"""
        history = defaultdict(list)
        for b in biomarkers:
            history[b["name"]].append(b)

        trends = []
        for name, values in history.items():
            if len(values) < 2:
                continue
            values = sorted(values, key=lambda b: b.get("test_date") or "")
            first, last = values[0], values[-1]
            if not first["value"]:
                continue
            change = (last["value"] - first["value"]) / first["value"] * 100
            if abs(change) < 5:
                direction = "stable"
            else:
                direction = "declining" if last.get("is_abnormal") else "improving"
            trends.append({
                "biomarker": name,
                "direction": direction,
                "changePercent": round(change, 1),
                "dataPoints": len(values),
            })
        return trends[:5]

    def summary(self, health_score: int, abnormal_values: List[Dict[str, Any]]) -> str:
        count = len(abnormal_values)
        grade = health_grade(health_score)
        if count == 0:
            return (f"Excellent health profile (Grade {grade}) with all major biomarkers within optimal ranges. "
                    f"Your health score of {health_score} indicates strong overall wellness.")
        if count <= 2:
            return (f"Good health profile (Grade {grade}) with {count} biomarker(s) requiring attention. "
                    f"Focus on targeted interventions for identified areas. Health score: {health_score}.")
        return (f"Health profile (Grade {grade}) shows {count} biomarkers outside normal ranges. "
                f"Recommend healthcare provider consultation. Health score: {health_score}.")


class HealthAnalysisService:
    def __init__(self, db: Session, claude: Optional[ClaudeService] = None,
                 local: Optional[LocalHealthAnalyzer] = None):
        self.db = db
        self.claude = claude or claude_service
        self.local = local or LocalHealthAnalyzer()

    def _latest_biomarkers(self, user_id: str, limit: int = ANALYSIS_BIOMARKER_LIMIT) -> List[BiomarkerValue]:
        return (
            self.db.query(BiomarkerValue)
            .filter(BiomarkerValue.user_id == user_id)
            .order_by(BiomarkerValue.test_date.desc())
            .limit(limit)
            .all()
        )

    def _latest_body_composition(self, user_id: str) -> Optional[BodyCompositionResult]:
        return (
            self.db.query(BodyCompositionResult)
            .filter(BodyCompositionResult.user_id == user_id)
            .order_by(BodyCompositionResult.test_date.desc())
            .first()
        )

    def _profile(self, user_id: str) -> Dict[str, Any]:
        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None:
            return {}
        return {"age": user.age, "gender": user.gender}

    def analyze(self, user_id: str, use_ai: bool = True, priority: str = "standard") -> Dict[str, Any]:
        """
        Generate and store health insights for a user

        Raises NotFoundError when the user has no biomarker values.
        """
        values = self._latest_biomarkers(user_id)
        if not values:
            raise NotFoundError("No biomarker data available for analysis")

        biomarkers = [v.to_dict() for v in values]
        body_composition = self._latest_body_composition(user_id)
        body_data = body_composition.to_dict() if body_composition else None

        abnormal_count = sum(1 for b in biomarkers if b["is_abnormal"])
        if priority == "standard" and abnormal_count > 3:
            priority = "urgent"

        analysis = None
        source = "local"
        if use_ai:
            try:
                analysis = self.claude.analyze_health(biomarkers, body_data, self._profile(user_id))
                source = "claude"
            except AnalysisError as e:
                logger.warning(f"AI health analysis unavailable, using local analyzer: {e.message}")
        if analysis is None:
            analysis = self.local.analyze(biomarkers)

        insight_id = self._store_insight(user_id, analysis, source)

        return {
            **analysis,
            "insightId": insight_id,
            "metadata": {
                "totalBiomarkers": len(biomarkers),
                "abnormalCount": abnormal_count,
                "hasBodyComposition": body_composition is not None,
                "analysisTimestamp": datetime.utcnow().isoformat(),
                "priority": priority,
                "source": source,
            },
        }

    def _store_insight(self, user_id: str, analysis: Dict[str, Any], source: str) -> Optional[str]:
        risk_level = analysis.get("riskLevel", "MODERATE")
        try:
            insight = HealthInsight(
                user_id=user_id,
                insight_type="TREND_ANALYSIS",
                title=f"Health analysis - {risk_level.lower()} risk",
                description=analysis.get("summary", ""),
                priority="HIGH" if risk_level in ("HIGH", "CRITICAL") else "MEDIUM",
                data_sources={k: v for k, v in analysis.items() if k != "summary"},
                ai_confidence=analysis.get("confidence", 0.85 if source == "claude" else 0.9),
            )
            self.db.add(insight)
            self.db.add(AiProcessingResult(
                user_id=user_id,
                processing_type=ProcessingType.HEALTH_ANALYSIS.value,
                processing_status=ProcessingStatus.COMPLETED.value,
                raw_results={"source": source, "healthScore": analysis.get("healthScore"), "riskLevel": risk_level},
                confidence_score=insight.ai_confidence,
                processed_at=datetime.utcnow(),
            ))
            self.db.commit()
            return insight.id
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to store health insight for user {user_id}: {e}")
            return None

    def latest_insight(self, user_id: str) -> Optional[Dict[str, Any]]:
        insight = (
            self.db.query(HealthInsight)
            .filter(HealthInsight.user_id == user_id)
            .order_by(HealthInsight.created_at.desc())
            .first()
        )
        return insight.to_dict() if insight else None

    def insight_history(self, user_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        insights = (
            self.db.query(HealthInsight)
            .filter(HealthInsight.user_id == user_id)
            .order_by(HealthInsight.created_at.desc())
            .limit(limit)
            .all()
        )
        return [i.to_dict() for i in insights]

    def enhanced_review(self, user_id: str) -> Dict[str, Any]:
        """Comprehensive rule-based review, stored as a MedicalReview"""
        values = self._latest_biomarkers(user_id, limit=100)
        if not values:
            raise NotFoundError("No biomarker data available for review")

        biomarkers = [v.to_dict() for v in values]
        analysis = self.local.analyze(biomarkers)
        body_composition = self._latest_body_composition(user_id)

        critical = [v for v in analysis["abnormalValues"] if v["urgency"] == "urgent"]
        abnormal = [v for v in analysis["abnormalValues"] if v["urgency"] != "urgent"]
        risk_level = analysis["riskLevel"]
        now = datetime.utcnow()

        review = {
            "overview": {
                "overallHealth": {"score": analysis["healthScore"], "grade": health_grade(analysis["healthScore"])},
                "riskProfile": {
                    "level": risk_level,
                    "primaryRisks": [
                        key for key, r in analysis["systemReviews"].items() if r["status"] != "NORMAL"
                    ],
                },
                "dataQuality": {
                    "completeness": analysis["dataCompleteness"],
                    "biomarkerCount": len(biomarkers),
                    "hasBodyComposition": body_composition is not None,
                },
            },
            "clinicalFindings": {"critical": critical, "abnormal": abnormal},
            "systemReviews": analysis["systemReviews"],
            "recommendations": analysis["recommendations"],
            "trends": analysis["trends"],
            "summary": analysis["summary"],
            "bodyComposition": body_composition.to_dict() if body_composition else None,
            "metadata": {
                "analysisVersion": REVIEW_VERSION,
                "generatedAt": now.isoformat(),
                "nextReviewDate": (now + timedelta(days=REVIEW_INTERVALS[risk_level])).isoformat(),
            },
        }

        try:
            row = MedicalReview(
                user_id=user_id,
                review_type="COMPREHENSIVE",
                health_score=analysis["healthScore"],
                risk_level=risk_level,
                review_data=review,
            )
            self.db.add(row)
            self.db.commit()
            review["reviewId"] = row.id
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to store medical review for user {user_id}: {e}")
            review["reviewId"] = None

        return review
