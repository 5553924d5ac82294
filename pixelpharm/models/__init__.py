"""
Database Models Package
"""
from pixelpharm.models.user import User
from pixelpharm.models.file_upload import FileUpload
from pixelpharm.models.blood_test import BloodTestResult, BiomarkerValue
from pixelpharm.models.body_composition import BodyCompositionResult
from pixelpharm.models.ai_processing import AiProcessingResult
from pixelpharm.models.health_insight import HealthInsight, MedicalReview

__all__ = [
    "User",
    "FileUpload",
    "BloodTestResult",
    "BiomarkerValue",
    "BodyCompositionResult",
    "AiProcessingResult",
    "HealthInsight",
    "MedicalReview",
]
