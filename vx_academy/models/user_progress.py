from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship

from vx_academy.database import Base


class UserProgress(Base):
    """Stored snapshot of a learner's derived course progress.

    The row doubles as the enrollment record: it is created at 0% when a
    learner enrolls and rewritten after every completion.
    """
    __tablename__ = "user_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_user_progress_course"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    completed = Column(Boolean, default=False, nullable=False)
    percent_complete = Column(Integer, default=0, nullable=False)
    last_accessed = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="progress")
    course = relationship("Course")

    def __repr__(self):
        return f"<UserProgress(user_id={self.user_id}, course_id={self.course_id}, percent={self.percent_complete})>"


class BlockCompletion(Base):
    """Course-independent record that a learner finished a block"""
    __tablename__ = "block_completions"
    __table_args__ = (
        UniqueConstraint("user_id", "block_id", name="uq_block_completion"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    block_id = Column(Integer, ForeignKey("learning_blocks.id", ondelete="CASCADE"), nullable=False)
    completed = Column(Boolean, default=True, nullable=False)
    completed_at = Column(DateTime, default=datetime.utcnow)

    block = relationship("LearningBlock")


class UserUnitProgress(Base):
    __tablename__ = "user_unit_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", "unit_id", name="uq_user_unit_progress"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    unit_id = Column(Integer, ForeignKey("units.id", ondelete="CASCADE"), nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def mark_completed(self):
        if not self.is_completed:
            self.is_completed = True
            self.completed_at = datetime.utcnow()


class UserBlockProgress(Base):
    """Per (course, unit, block) completion flag for a learner"""
    __tablename__ = "user_block_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", "unit_id", "block_id", name="uq_user_block_progress"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    unit_id = Column(Integer, ForeignKey("units.id", ondelete="CASCADE"), nullable=False)
    block_id = Column(Integer, ForeignKey("learning_blocks.id", ondelete="CASCADE"), nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def mark_completed(self):
        if not self.is_completed:
            self.is_completed = True
            self.completed_at = datetime.utcnow()


class UserAssessmentProgress(Base):
    """Per (course, unit, assessment) completion flag for a learner.

    ``unit_id`` is null for course-level assessments.
    """
    __tablename__ = "user_assessment_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", "unit_id", "assessment_id", name="uq_user_assessment_progress"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    unit_id = Column(Integer, ForeignKey("units.id", ondelete="CASCADE"), nullable=True)
    assessment_id = Column(Integer, ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def mark_completed(self):
        if not self.is_completed:
            self.is_completed = True
            self.completed_at = datetime.utcnow()
