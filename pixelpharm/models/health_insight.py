"""
Health Insight and Medical Review Models
AI-generated narrative summaries with loosely typed JSON payloads
"""
from sqlalchemy import Column, String, Float, Integer, Text, Boolean, DateTime, ForeignKey, JSON
from datetime import datetime

from pixelpharm.database import Base
from pixelpharm.models.user import generate_id


class HealthInsight(Base):
    __tablename__ = "health_insights"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    insight_type = Column(String(50), default="TREND_ANALYSIS")
    title = Column(String(255))
    description = Column(Text)
    priority = Column(String(20), default="MEDIUM")  # LOW, MEDIUM, HIGH

    # healthScore, riskLevel, keyFindings, recommendations, abnormalValues, trends
    data_sources = Column(JSON, default=dict)
    ai_confidence = Column(Float)
    is_read = Column(Boolean, default=False)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    def to_dict(self):
        data = self.data_sources or {}
        return {
            "id": self.id,
            "health_score": data.get("healthScore", 0),
            "risk_level": data.get("riskLevel", "MODERATE"),
            "key_findings": data.get("keyFindings", []),
            "recommendations": data.get("recommendations", []),
            "abnormal_values": data.get("abnormalValues", []),
            "trends": data.get("trends", []),
            "summary": self.description,
            "priority": self.priority,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class MedicalReview(Base):
    __tablename__ = "medical_reviews"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    review_type = Column(String(50), default="COMPREHENSIVE")
    health_score = Column(Integer)
    risk_level = Column(String(20))
    review_data = Column(JSON, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "review_type": self.review_type,
            "health_score": self.health_score,
            "risk_level": self.risk_level,
            "review": self.review_data or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
