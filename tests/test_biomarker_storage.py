"""
Result storage tests against an in-memory database.
"""
from datetime import datetime
from unittest.mock import patch

import pytest

from pixelpharm.exceptions import NotFoundError
from pixelpharm.models import (
    AiProcessingResult,
    BiomarkerValue,
    BloodTestResult,
    BodyCompositionResult,
    FileUpload,
    User,
)
from pixelpharm.services.biomarker_storage import BiomarkerStorageService, BodyCompositionStorageService

BIOMARKERS = [
    {"name": "Glucose", "value": 95, "unit": "mg/dL", "referenceRange": "70-100", "status": "normal"},
    {"name": "LDL Cholesterol", "value": "160 mg/dL", "unit": "mg/dL", "status": "high"},
    {"name": "HDL Cholesterol", "value": 35, "unit": "mg/dL", "referenceRange": "> 40"},
]


class TestStoreResults:
    """Blood test storage with user and upload fallbacks."""

    def test_stores_result_and_values(self, db, make_user):
        make_user()
        service = BiomarkerStorageService(db)

        outcome = service.store_results(
            "user-1", "upload-1", BIOMARKERS,
            test_info={"testDate": "15/03/2024", "labName": "Laverty Pathology"},
            confidence="high",
        )

        assert outcome.stored == 3
        assert outcome.total == 3
        assert outcome.skipped == 0
        assert outcome.errors == []

        result = db.get(BloodTestResult, outcome.blood_test_result_id)
        assert result.lab_name == "Laverty Pathology"
        assert result.test_date == datetime(2024, 3, 15)

        values = {v.biomarker_name: v for v in db.query(BiomarkerValue).all()}
        assert values["Glucose"].is_abnormal is False
        assert values["LDL Cholesterol"].value == 160.0
        assert values["LDL Cholesterol"].is_abnormal is True
        assert values["HDL Cholesterol"].is_abnormal is True
        assert all(v.test_date == datetime(2024, 3, 15) for v in values.values())

    def test_creates_missing_upload(self, db, make_user):
        make_user()
        outcome = BiomarkerStorageService(db).store_results(
            "user-1", "upload-9", BIOMARKERS[:1], file_key="uploads/user-1/BLOOD_TESTS/123-report.pdf",
        )

        upload = db.get(FileUpload, "upload-9")
        assert outcome.upload_created is True
        assert upload.original_filename == "123-report.pdf"
        assert upload.upload_status == "PROCESSED"

    def test_creates_placeholder_user(self, db):
        BiomarkerStorageService(db).store_results("new-user", "upload-1", BIOMARKERS[:1])

        user = db.get(User, "new-user")
        assert user.email == "user-new-user@temp.com"
        assert user.plan_type == "free"
        assert user.uploads_used == 1

    def test_increments_upload_count(self, db, make_user):
        make_user(uploads_used=2)
        BiomarkerStorageService(db).store_results("user-1", "upload-1", BIOMARKERS[:1])
        assert db.get(User, "user-1").uploads_used == 3

    def test_missing_user_when_creation_disabled(self, db):
        with pytest.raises(NotFoundError):
            BiomarkerStorageService(db).store_results(
                "ghost", "upload-1", BIOMARKERS, create_missing_user=False,
            )
        assert db.query(BloodTestResult).count() == 0

    def test_defaults(self, db, make_user):
        make_user()
        outcome = BiomarkerStorageService(db).store_results("user-1", "upload-1", BIOMARKERS[:1])
        result = db.get(BloodTestResult, outcome.blood_test_result_id)
        assert result.lab_name == "Unknown Lab"

    def test_invalid_entries_are_skipped(self, db, make_user):
        make_user()
        biomarkers = [
            {"name": "Glucose", "value": 95},
            {"name": "", "value": 10},
            {"name": "TSH", "value": None},
            {"name": "Ferritin", "value": "pending"},
            {"name": "Iron", "value": -4},
        ]

        outcome = BiomarkerStorageService(db).store_results("user-1", "upload-1", biomarkers)

        assert outcome.stored == 1
        assert outcome.skipped == 4
        assert db.query(BiomarkerValue).count() == 1

    def test_row_failure_does_not_undo_the_rest(self, db, make_user):
        make_user()
        original_add = db.add

        def flaky_add(instance):
            if isinstance(instance, BiomarkerValue) and instance.biomarker_name == "LDL Cholesterol":
                raise RuntimeError("disk full")
            return original_add(instance)

        with patch.object(db, "add", side_effect=flaky_add):
            outcome = BiomarkerStorageService(db).store_results("user-1", "upload-1", BIOMARKERS)

        assert outcome.stored == 2
        assert outcome.errors == [{"biomarker": "LDL Cholesterol", "error": "disk full"}]
        assert {v.biomarker_name for v in db.query(BiomarkerValue).all()} == {"Glucose", "HDL Cholesterol"}

    def test_records_ocr_audit_row(self, db, make_user):
        make_user()
        BiomarkerStorageService(db).store_results(
            "user-1", "upload-1", BIOMARKERS, confidence="high",
        )

        audit = db.query(AiProcessingResult).one()
        assert audit.processing_type == "OCR"
        assert audit.processing_status == "COMPLETED"
        assert audit.confidence_score == 0.95
        assert len(audit.raw_results["biomarkers"]) == 3

    def test_audit_row_can_be_skipped(self, db, make_user):
        make_user()
        BiomarkerStorageService(db).store_results(
            "user-1", "upload-1", BIOMARKERS, record_processing=False,
        )
        assert db.query(AiProcessingResult).count() == 0

    def test_to_dict(self, db, make_user):
        make_user()
        data = BiomarkerStorageService(db).store_results("user-1", "upload-1", BIOMARKERS).to_dict()
        assert data["storedBiomarkers"] == 3
        assert data["totalBiomarkers"] == 3
        assert len(data["biomarkerIds"]) == 3


class TestBodyCompositionStorage:
    def test_store(self, db, make_user):
        make_user()
        payload = {
            "confidenceScore": 0.82,
            "bodyComposition": {
                "totalWeight": 78.4,
                "bodyFatPercentage": 22.1,
                "bmr": 1650,
                "testDate": "12/05/2024",
            },
        }

        stored = BodyCompositionStorageService(db).store("user-1", None, payload)

        row = db.get(BodyCompositionResult, stored["bodyCompositionResultId"])
        assert row.total_weight == 78.4
        assert row.skeletal_muscle_mass is None
        assert row.test_date == datetime(2024, 5, 12)

        audit = db.get(AiProcessingResult, stored["aiResultId"])
        assert audit.processing_type == "BODY_COMPOSITION"
        assert audit.confidence_score == 0.82

        assert stored["metricsStored"] == 4
        assert stored["storedData"]["bmr"] == 1650

    def test_store_without_metrics(self, db, make_user):
        make_user()
        stored = BodyCompositionStorageService(db).store("user-1", None, {})
        assert stored["bodyCompositionResultId"] is not None
        assert stored["metricsStored"] == 0
        assert db.get(AiProcessingResult, stored["aiResultId"]).confidence_score == 0.5
