"""
AI Processing Result Model - audit trail of every OCR/LLM invocation
"""
from sqlalchemy import Column, String, Float, Text, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime

from pixelpharm.database import Base
from pixelpharm.models.user import generate_id


class AiProcessingResult(Base):
    __tablename__ = "ai_processing_results"

    id = Column(String(36), primary_key=True, default=generate_id)
    upload_id = Column(String(36), ForeignKey("file_uploads.id"), nullable=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    processing_type = Column(String(30), nullable=False)  # OCR, BODY_COMPOSITION, HEALTH_ANALYSIS
    processing_status = Column(String(20), default="PENDING")  # PENDING, PROCESSING, COMPLETED, FAILED
    raw_results = Column(JSON, default=dict)
    confidence_score = Column(Float)
    error_message = Column(Text)

    processed_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    upload = relationship("FileUpload", back_populates="ai_processing_results")

    def to_dict(self):
        return {
            "id": self.id,
            "upload_id": self.upload_id,
            "user_id": self.user_id,
            "processing_type": self.processing_type,
            "processing_status": self.processing_status,
            "confidence_score": self.confidence_score,
            "error_message": self.error_message,
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
        }
