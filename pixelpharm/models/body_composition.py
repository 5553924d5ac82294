"""
Body Composition Model
"""
from sqlalchemy import Column, String, Float, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime

from pixelpharm.database import Base
from pixelpharm.models.user import generate_id


class BodyCompositionResult(Base):
    """Scan-derived metrics (InBody, DEXA, ...)"""
    __tablename__ = "body_composition_results"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    upload_id = Column(String(36), ForeignKey("file_uploads.id"), nullable=True)

    test_date = Column(DateTime, nullable=False)
    total_weight = Column(Float)  # kg
    body_fat_percentage = Column(Float)
    skeletal_muscle_mass = Column(Float)  # kg
    visceral_fat_level = Column(Float)
    bmr = Column(Float)  # kcal

    raw_data = Column(JSON, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="body_composition_results")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "upload_id": self.upload_id,
            "test_date": self.test_date.isoformat() if self.test_date else None,
            "total_weight": self.total_weight,
            "body_fat_percentage": self.body_fat_percentage,
            "skeletal_muscle_mass": self.skeletal_muscle_mass,
            "visceral_fat_level": self.visceral_fat_level,
            "bmr": self.bmr,
            "raw_data": self.raw_data or {},
        }
