"""
Error types raised by services and converted to JSON responses in main.py
"""


class PixelPharmError(Exception):
    """Base error carrying the HTTP status it maps to."""

    error_code = "INTERNAL_ERROR"
    http_code = 500

    def __init__(self, message: str, error_code: str = None, http_code: int = None):
        self.message = message
        if error_code:
            self.error_code = error_code
        if http_code:
            self.http_code = http_code
        super().__init__(f"{self.error_code}: {message}")


class ValidationError(PixelPharmError):
    error_code = "VALIDATION_ERROR"
    http_code = 400


class NotFoundError(PixelPharmError):
    error_code = "NOT_FOUND"
    http_code = 404


class UploadLimitExceeded(PixelPharmError):
    error_code = "UPLOAD_LIMIT_EXCEEDED"
    http_code = 403


class ExtractionError(PixelPharmError):
    error_code = "EXTRACTION_FAILED"
    http_code = 500


class StorageError(PixelPharmError):
    """S3 or Textract unavailable."""

    error_code = "AWS_PROCESSING_FAILED"
    http_code = 503


class AnalysisError(PixelPharmError):
    error_code = "ANALYSIS_FAILED"
    http_code = 500
