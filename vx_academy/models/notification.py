from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import relationship

from vx_academy.database import Base


class NotificationType(str, Enum):
    COURSE_ASSIGNED = "course_assigned"
    BADGE_EARNED = "badge_earned"
    ACHIEVEMENT = "achievement"
    LEADERBOARD_UPDATE = "leaderboard_update"
    COURSE_REMINDER = "course_reminder"
    ASSESSMENT_PASSED = "assessment-passed"
    ASSESSMENT_FAILED = "assessment-failed"
    CERTIFICATE_EARNED = "certificate-earned"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, default=False, nullable=False)
    # "metadata" is reserved on declarative classes
    data = Column("metadata", JSON)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="notifications")

    def __repr__(self):
        return f"<Notification(id={self.id}, user_id={self.user_id}, type='{self.type}', read={self.read})>"
