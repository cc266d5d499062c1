from datetime import datetime
from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String

from vx_academy.database import Base


class ActivityType(str, Enum):
    LOGIN = "login"
    COURSE_ENROLLED = "course_enrolled"
    BLOCK_COMPLETED = "block_completed"
    COURSE_COMPLETED = "course_completed"
    ASSESSMENT_SUBMITTED = "assessment_submitted"
    CERTIFICATE_ISSUED = "certificate_issued"
    BADGE_EARNED = "badge_earned"


class UserActivityLog(Base):
    """Append-only activity trail feeding the admin analytics"""
    __tablename__ = "user_activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    activity = Column(String(50), nullable=False, index=True)
    data = Column("metadata", JSON)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<UserActivityLog(user_id={self.user_id}, activity='{self.activity}')>"
