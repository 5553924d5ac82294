"""
Health analysis tests: the rule-based analyzer and the service that
chooses between Claude and the local analyzer.
"""
import json

import pytest

from pixelpharm.exceptions import NotFoundError
from pixelpharm.models import AiProcessingResult, HealthInsight, MedicalReview
from pixelpharm.services.biomarker_storage import BiomarkerStorageService, BodyCompositionStorageService
from pixelpharm.services.claude_service import ClaudeService
from pixelpharm.services.health_analysis_service import HealthAnalysisService, LocalHealthAnalyzer, health_grade


def _value(name, value, abnormal=False, test_date="2024-03-15T00:00:00", unit="mg/dL"):
    return {
        "name": name,
        "value": value,
        "unit": unit,
        "reference_range": None,
        "is_abnormal": abnormal,
        "test_date": test_date,
    }


@pytest.fixture
def analyzer():
    return LocalHealthAnalyzer()


class TestHealthGrade:
    @pytest.mark.parametrize("score,grade", [(95, "A"), (90, "A"), (85, "B"), (72, "C"), (60, "D"), (59, "F")])
    def test_grades(self, score, grade):
        assert health_grade(score) == grade


class TestLocalHealthAnalyzer:
    """Deterministic rule-based analysis."""

    def test_all_normal(self, analyzer):
        result = analyzer.analyze([
            _value("Glucose", 90),
            _value("Total Cholesterol", 180),
            _value("TSH", 2.0, unit="mIU/L"),
        ])

        assert result["healthScore"] == 100
        assert result["riskLevel"] == "LOW"
        assert result["abnormalValues"] == []
        assert result["keyFindings"] == ["All major biomarkers within normal ranges"]
        assert [r["category"] for r in result["recommendations"]] == ["Monitoring"]
        assert result["summary"].startswith("Excellent health profile (Grade A)")
        assert result["dataCompleteness"] == 0.2

    def test_system_reviews(self, analyzer):
        result = analyzer.analyze([
            _value("LDL Cholesterol", 160, abnormal=True),
            _value("Glucose", 110, abnormal=True),
            _value("Total Cholesterol", 180),
            _value("HDL Cholesterol", 50),
            _value("TSH", 2.0, unit="mIU/L"),
        ])
        reviews = result["systemReviews"]

        assert reviews["cardiovascular"]["status"] == "NEEDS_ATTENTION"
        assert reviews["cardiovascular"]["score"] == 75
        assert reviews["cardiovascular"]["riskFactors"] == ["ldl_cholesterol"]
        assert reviews["metabolic"]["status"] == "NEEDS_ATTENTION"
        assert reviews["metabolic"]["score"] == 70
        assert reviews["endocrine"]["status"] == "NORMAL"
        assert reviews["endocrine"]["findings"] == ["Endocrine function appears normal"]

        # 60% of the system average (545 / 6) plus 40% of (100 - 2/5 * 40)
        assert result["healthScore"] == 88
        assert result["riskLevel"] == "LOW"
        assert result["summary"].startswith("Good health profile (Grade B) with 2 biomarker(s)")

        categories = [r["category"] for r in result["recommendations"]]
        assert categories == ["Cardiovascular", "Metabolic", "Medical", "Monitoring"]

    def test_abnormal_values_carry_concern(self, analyzer):
        result = analyzer.analyze([_value("LDL Cholesterol", 160, abnormal=True)])
        abnormal = result["abnormalValues"][0]

        assert abnormal["biomarker"] == "LDL Cholesterol"
        assert abnormal["concern"] == "Increased risk of atherosclerosis"
        assert abnormal["urgency"] == "routine"

    def test_multiple_cardiovascular_markers_mark_system_abnormal(self, analyzer):
        result = analyzer.analyze([
            _value("Total Cholesterol", 260, abnormal=True),
            _value("LDL Cholesterol", 170, abnormal=True),
            _value("Triglycerides", 220, abnormal=True),
        ])

        assert result["systemReviews"]["cardiovascular"]["status"] == "ABNORMAL"
        assert "Cardiovascular system needs attention" in result["keyFindings"]
        assert result["recommendations"][0]["priority"] == "high"

    def test_critical_value(self, analyzer):
        result = analyzer.analyze([_value("Glucose", 350, abnormal=True)])

        assert result["abnormalValues"][0]["urgency"] == "urgent"
        assert result["riskLevel"] == "CRITICAL"

    def test_high_risk(self, analyzer):
        names = [
            "ALT", "AST", "Bilirubin",
            "Creatinine", "BUN", "eGFR",
            "Hemoglobin", "Hematocrit", "Platelets", "White Blood Cells",
        ]
        # Creatinine kept below its critical threshold
        result = analyzer.analyze([_value(name, 2.0 if name == "Creatinine" else 10, abnormal=True) for name in names])

        assert result["systemReviews"]["hepatic"]["score"] == 0
        assert result["systemReviews"]["renal"]["score"] == 0
        assert result["healthScore"] == 54
        assert result["riskLevel"] == "HIGH"
        assert len(result["keyFindings"]) == 5
        assert result["summary"].startswith("Health profile (Grade F) shows 10 biomarkers")

    def test_trends(self, analyzer):
        result = analyzer.analyze([
            _value("Glucose", 120, abnormal=True, test_date="2024-06-01T00:00:00"),
            _value("Glucose", 100, test_date="2024-01-01T00:00:00"),
            _value("LDL Cholesterol", 98, test_date="2024-06-01T00:00:00"),
            _value("LDL Cholesterol", 100, test_date="2024-01-01T00:00:00"),
            _value("HDL Cholesterol", 50, test_date="2024-06-01T00:00:00"),
            _value("HDL Cholesterol", 40, test_date="2024-01-01T00:00:00"),
            _value("TSH", 2.0),
        ])
        trends = {t["biomarker"]: t for t in result["trends"]}

        assert set(trends) == {"Glucose", "LDL Cholesterol", "HDL Cholesterol"}
        assert trends["Glucose"]["direction"] == "declining"
        assert trends["Glucose"]["changePercent"] == 20.0
        assert trends["LDL Cholesterol"]["direction"] == "stable"
        assert trends["HDL Cholesterol"]["direction"] == "improving"
        assert trends["HDL Cholesterol"]["dataPoints"] == 2

    def test_is_deterministic(self, analyzer):
        biomarkers = [_value("Glucose", 110, abnormal=True), _value("Creatinine", 1.5, abnormal=True)]
        assert analyzer.analyze(biomarkers) == analyzer.analyze(biomarkers)

    def test_no_biomarkers(self, analyzer):
        result = analyzer.analyze([])
        assert result["healthScore"] == 100
        assert result["dataCompleteness"] == 0.0


def _store(db, biomarkers, test_date="2024-03-15"):
    BiomarkerStorageService(db).store_results(
        "user-1", "upload-1", biomarkers, test_info={"testDate": test_date, "labName": "Dorevitch"},
    )


class TestHealthAnalysisService:
    """Claude first, local analyzer as fallback, results stored as insights."""

    def test_requires_biomarkers(self, db, make_user, claude):
        make_user()
        with pytest.raises(NotFoundError):
            HealthAnalysisService(db, claude=claude).analyze("user-1")

    def test_claude_analysis(self, db, make_user, claude, anthropic_client):
        make_user()
        _store(db, [{"name": "Glucose", "value": 95, "status": "normal"}])
        anthropic_client.messages.create.return_value.content[0].text = json.dumps({
            "healthScore": 58,
            "riskLevel": "HIGH",
            "keyFindings": ["Review lipids"],
            "summary": "Needs work.",
        })

        result = HealthAnalysisService(db, claude=claude).analyze("user-1")

        assert result["healthScore"] == 58
        assert result["metadata"]["source"] == "claude"
        assert result["metadata"]["totalBiomarkers"] == 1
        assert result["metadata"]["priority"] == "standard"

        insight = db.get(HealthInsight, result["insightId"])
        assert insight.insight_type == "TREND_ANALYSIS"
        assert insight.priority == "HIGH"
        assert insight.description == "Needs work."

        audit = db.query(AiProcessingResult).filter(AiProcessingResult.processing_type == "HEALTH_ANALYSIS").one()
        assert audit.raw_results["source"] == "claude"

    def test_falls_back_to_local_analyzer(self, db, make_user):
        make_user()
        _store(db, [{"name": "Glucose", "value": 95, "status": "normal"}])

        # No API key configured
        result = HealthAnalysisService(db, claude=ClaudeService()).analyze("user-1")

        assert result["metadata"]["source"] == "local"
        assert result["riskLevel"] == "LOW"
        assert "systemReviews" in result
        assert db.get(HealthInsight, result["insightId"]).priority == "MEDIUM"

    def test_use_ai_false_skips_claude(self, db, make_user, claude, anthropic_client):
        make_user()
        _store(db, [{"name": "Glucose", "value": 95, "status": "normal"}])

        result = HealthAnalysisService(db, claude=claude).analyze("user-1", use_ai=False)

        assert result["metadata"]["source"] == "local"
        anthropic_client.messages.create.assert_not_called()

    def test_priority_escalates_with_many_abnormal_values(self, db, make_user):
        make_user()
        _store(db, [
            {"name": name, "value": 300, "status": "high"}
            for name in ("Total Cholesterol", "LDL Cholesterol", "Triglycerides", "ALT")
        ])

        result = HealthAnalysisService(db, claude=ClaudeService()).analyze("user-1")

        assert result["metadata"]["abnormalCount"] == 4
        assert result["metadata"]["priority"] == "urgent"

    def test_includes_body_composition_flag(self, db, make_user, claude):
        make_user()
        _store(db, [{"name": "Glucose", "value": 95, "status": "normal"}])
        BodyCompositionStorageService(db).store("user-1", None, {"bodyComposition": {"totalWeight": 80}})

        result = HealthAnalysisService(db, claude=claude).analyze("user-1", use_ai=False)

        assert result["metadata"]["hasBodyComposition"] is True

    def test_insights(self, db, make_user, claude):
        make_user()
        _store(db, [{"name": "Glucose", "value": 95, "status": "normal"}])
        service = HealthAnalysisService(db, claude=claude)

        assert service.latest_insight("user-1") is None

        service.analyze("user-1", use_ai=False)
        service.analyze("user-1", use_ai=False)

        latest = service.latest_insight("user-1")
        assert latest["health_score"] == 100
        assert latest["risk_level"] == "LOW"
        assert len(service.insight_history("user-1")) == 2
        assert len(service.insight_history("user-1", limit=1)) == 1


class TestEnhancedReview:
    def test_review_is_stored(self, db, make_user, claude, anthropic_client):
        make_user()
        _store(db, [
            {"name": "Glucose", "value": 350, "status": "high"},
            {"name": "LDL Cholesterol", "value": 160, "status": "high"},
            {"name": "TSH", "value": 2.0, "status": "normal"},
        ])

        review = HealthAnalysisService(db, claude=claude).enhanced_review("user-1")

        assert review["overview"]["riskProfile"]["level"] == "CRITICAL"
        assert [v["biomarker"] for v in review["clinicalFindings"]["critical"]] == ["Glucose"]
        assert [v["biomarker"] for v in review["clinicalFindings"]["abnormal"]] == ["LDL Cholesterol"]
        assert review["overview"]["dataQuality"]["biomarkerCount"] == 3
        assert review["metadata"]["nextReviewDate"]

        stored = db.get(MedicalReview, review["reviewId"])
        assert stored.risk_level == "CRITICAL"
        assert stored.health_score == review["overview"]["overallHealth"]["score"]
        anthropic_client.messages.create.assert_not_called()

    def test_requires_biomarkers(self, db, make_user, claude):
        make_user()
        with pytest.raises(NotFoundError):
            HealthAnalysisService(db, claude=claude).enhanced_review("user-1")
