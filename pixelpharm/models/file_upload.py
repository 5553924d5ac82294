"""
File Upload Model
"""
from sqlalchemy import Column, String, BigInteger, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime

from pixelpharm.database import Base
from pixelpharm.models.user import generate_id


class FileUpload(Base):
    """Uploaded document metadata, referenced by downstream processing rows"""
    __tablename__ = "file_uploads"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    # S3 object
    file_key = Column(String(512), nullable=False)
    original_filename = Column(String(255), nullable=False)
    file_type = Column(String(100), default="application/octet-stream")
    file_size = Column(BigInteger, default=0)

    upload_type = Column(String(30), nullable=False)  # BLOOD_TESTS, BODY_COMPOSITION, FITNESS_ACTIVITIES
    upload_status = Column(String(20), default="UPLOADED")  # UPLOADED, PROCESSING, PROCESSED, FAILED

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="file_uploads")
    ai_processing_results = relationship("AiProcessingResult", back_populates="upload")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "file_key": self.file_key,
            "original_filename": self.original_filename,
            "file_type": self.file_type,
            "file_size": self.file_size,
            "upload_type": self.upload_type,
            "upload_status": self.upload_status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
