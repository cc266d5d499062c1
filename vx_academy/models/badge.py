from datetime import datetime
from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from vx_academy.database import Base


class BadgeType(str, Enum):
    ASSESSMENT = "assessment"
    ASSESSMENT_PERFECT = "assessment_perfect"
    ASSESSMENT_MASTER = "assessment_master"
    COURSE_COMPLETION = "course_completion"
    AREA_COMPLETION = "area_completion"
    EXPLORER = "explorer"
    BLOCKS = "blocks"
    CERTIFICATES = "certificates"


class Badge(Base):
    __tablename__ = "badges"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    image_url = Column(String(500))
    xp_points = Column(Integer, default=100, nullable=False)
    type = Column(String(50), index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    awards = relationship("UserBadge", back_populates="badge", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Badge(id={self.id}, name='{self.name}', type='{self.type}')>"


class UserBadge(Base):
    __tablename__ = "user_badges"
    __table_args__ = (
        UniqueConstraint("user_id", "badge_id", name="uq_user_badge"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    badge_id = Column(Integer, ForeignKey("badges.id", ondelete="CASCADE"), nullable=False)
    earned_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="badges")
    badge = relationship("Badge", back_populates="awards")
