"""
User Model
"""
from sqlalchemy import Column, String, Integer, DateTime, Date
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from pixelpharm.database import Base


def generate_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    # Primary key
    id = Column(String(36), primary_key=True, default=generate_id)

    # Identity
    email = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(100))
    last_name = Column(String(100))
    date_of_birth = Column(Date)
    gender = Column(String(20))

    # Subscription
    plan_type = Column(String(20), default="free")  # free, basic, pro
    subscription_status = Column(String(20), default="active")  # active, cancelled, expired
    subscription_expires_at = Column(DateTime)

    # Upload quota counter
    uploads_used = Column(Integer, default=0, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    file_uploads = relationship("FileUpload", back_populates="user", cascade="all, delete-orphan")
    blood_test_results = relationship("BloodTestResult", back_populates="user", cascade="all, delete-orphan")
    biomarker_values = relationship("BiomarkerValue", back_populates="user", cascade="all, delete-orphan")
    body_composition_results = relationship("BodyCompositionResult", back_populates="user", cascade="all, delete-orphan")

    @property
    def age(self):
        if not self.date_of_birth:
            return None
        return datetime.utcnow().year - self.date_of_birth.year

    def to_dict(self):
        """Convert to dictionary"""
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "date_of_birth": self.date_of_birth.isoformat() if self.date_of_birth else None,
            "gender": self.gender,
            "plan_type": self.plan_type,
            "subscription_status": self.subscription_status,
            "subscription_expires_at": self.subscription_expires_at.isoformat() if self.subscription_expires_at else None,
            "uploads_used": self.uploads_used,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
