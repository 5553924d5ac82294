"""
Enumerations shared by models, services and routes
"""
from enum import Enum


class UploadType(str, Enum):
    BLOOD_TESTS = "BLOOD_TESTS"
    BODY_COMPOSITION = "BODY_COMPOSITION"
    FITNESS_ACTIVITIES = "FITNESS_ACTIVITIES"


class UploadStatus(str, Enum):
    UPLOADED = "UPLOADED"
    PROCESSING = "PROCESSING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"


class ProcessingType(str, Enum):
    OCR = "OCR"
    BODY_COMPOSITION = "BODY_COMPOSITION"
    HEALTH_ANALYSIS = "HEALTH_ANALYSIS"


class ProcessingStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class PlanType(str, Enum):
    FREE = "free"
    BASIC = "basic"
    PRO = "pro"


class OcrBackend(str, Enum):
    CLAUDE = "claude"
    TEXTRACT = "textract"
    PATTERN = "pattern"
