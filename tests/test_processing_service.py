"""
Upload processing pipeline tests.
"""
import anthropic
import httpx
import pytest
from botocore.exceptions import ClientError

from pixelpharm.exceptions import ValidationError
from pixelpharm.models import AiProcessingResult, BiomarkerValue, BodyCompositionResult, FileUpload
from pixelpharm.services.extraction_service import BiomarkerExtractionService
from pixelpharm.services.processing_service import ProcessingService

TEXT_KEY = "uploads/user-1/BLOOD_TESTS/1700000000000-report.txt"
PDF_KEY = "uploads/user-1/BLOOD_TESTS/1700000000000-report.pdf"
SCAN_KEY = "uploads/user-1/BODY_COMPOSITION/1700000000000-scan.png"


@pytest.fixture
def service(db, storage, textract, claude):
    extraction = BiomarkerExtractionService(storage=storage, textract=textract, claude=claude)
    return ProcessingService(db, extraction=extraction)


@pytest.fixture
def upload(db, make_user):
    def _upload(file_key=TEXT_KEY, upload_type="BLOOD_TESTS"):
        make_user()
        row = FileUpload(
            id="upload-1",
            user_id="user-1",
            file_key=file_key,
            original_filename=file_key.rsplit("/", 1)[-1],
            upload_type=upload_type,
        )
        db.add(row)
        db.commit()
        return row
    return _upload


class TestBloodTestProcessing:
    def test_success(self, db, service, upload):
        upload()

        result = service.process_upload("upload-1", "user-1", TEXT_KEY, "blood-tests")

        assert result["success"] is True
        assert result["result"]["backend"] == "pattern"
        assert result["result"]["storage"]["storedBiomarkers"] == 2

        audit = db.get(AiProcessingResult, result["processingId"])
        assert audit.processing_type == "OCR"
        assert audit.processing_status == "COMPLETED"
        assert audit.confidence_score == 0.8
        assert audit.processed_at is not None

        assert db.get(FileUpload, "upload-1").upload_status == "PROCESSED"
        assert db.query(BiomarkerValue).count() == 2
        # The storage step does not add a second audit row
        assert db.query(AiProcessingResult).count() == 1

    def test_nothing_found_stores_nothing(self, db, service, upload, s3_client):
        upload()
        s3_client.get_object.return_value["Body"].read.return_value = b"Patient: Jane Doe\nNo results"

        result = service.process_upload("upload-1", "user-1", TEXT_KEY, "BLOOD_TESTS")

        assert result["success"] is True
        assert "storage" not in result["result"]
        assert db.query(BiomarkerValue).count() == 0

    def test_failure_is_recorded(self, db, service, upload, anthropic_client, textract_client):
        upload(file_key=PDF_KEY)
        anthropic_client.messages.create.side_effect = anthropic.APIConnectionError(
            request=httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        )
        textract_client.detect_document_text.side_effect = ClientError(
            {"Error": {"Code": "ThrottlingException", "Message": "slow down"}}, "DetectDocumentText"
        )

        result = service.process_upload("upload-1", "user-1", PDF_KEY, "BLOOD_TESTS")

        assert result["success"] is False
        assert "All OCR backends failed" in result["error"]

        audit = db.get(AiProcessingResult, result["processingId"])
        assert audit.processing_status == "FAILED"
        assert audit.error_message == result["error"]
        assert db.get(FileUpload, "upload-1").upload_status == "FAILED"

    def test_unknown_upload_type(self, db, service, upload):
        upload()
        with pytest.raises(ValidationError):
            service.process_upload("upload-1", "user-1", TEXT_KEY, "x-ray")
        assert db.query(AiProcessingResult).count() == 0

    def test_unsupported_upload_type_fails_the_upload(self, db, service, upload):
        upload(upload_type="FITNESS_ACTIVITIES")
        result = service.process_upload("upload-1", "user-1", TEXT_KEY, "FITNESS_ACTIVITIES")
        assert result["success"] is False
        assert db.get(FileUpload, "upload-1").upload_status == "FAILED"


class TestBodyCompositionProcessing:
    def test_success(self, db, service, upload, textract_client):
        upload(file_key=SCAN_KEY, upload_type="BODY_COMPOSITION")
        lines = ["InBody 570", "Weight: 78.4 kg", "Percent Body Fat: 22.1 %", "BMR: 1650 kcal"]
        textract_client.detect_document_text.return_value = {
            "Blocks": [{"BlockType": "LINE", "Text": line} for line in lines]
        }

        result = service.process_upload("upload-1", "user-1", SCAN_KEY, "body-composition")

        assert result["success"] is True
        assert result["result"]["bodyComposition"]["totalWeight"] == 78.4
        assert result["result"]["storage"]["bodyCompositionResultId"] is not None

        audit = db.get(AiProcessingResult, result["processingId"])
        assert audit.processing_type == "BODY_COMPOSITION"
        assert audit.confidence_score == 0.59
        assert db.query(BodyCompositionResult).one().bmr == 1650.0
        assert db.get(FileUpload, "upload-1").upload_status == "PROCESSED"

    def test_textract_outage(self, db, service, upload, textract_client):
        upload(file_key=SCAN_KEY, upload_type="BODY_COMPOSITION")
        textract_client.detect_document_text.side_effect = ClientError(
            {"Error": {"Code": "ServiceUnavailable", "Message": "down"}}, "DetectDocumentText"
        )

        result = service.process_upload("upload-1", "user-1", SCAN_KEY, "BODY_COMPOSITION")

        assert result["success"] is False
        assert db.get(FileUpload, "upload-1").upload_status == "FAILED"
