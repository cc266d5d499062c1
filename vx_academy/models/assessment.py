from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import relationship

from vx_academy.database import Base


class AssessmentPlacement(str, Enum):
    BEGINNING = "beginning"
    END = "end"


class QuestionType(str, Enum):
    MCQ = "mcq"
    TRUE_FALSE = "true_false"
    OPEN_ENDED = "open_ended"


class Assessment(Base):
    __tablename__ = "assessments"

    id = Column(Integer, primary_key=True, index=True)
    training_area_id = Column(Integer, ForeignKey("training_areas.id"), nullable=True)
    module_id = Column(Integer, ForeignKey("modules.id"), nullable=True)
    # A course-level assessment has no unit, a unit assessment may have no course
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=True)
    unit_id = Column(Integer, ForeignKey("units.id", ondelete="CASCADE"), nullable=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    placement = Column(String(20), default=AssessmentPlacement.END.value, nullable=False)
    is_graded = Column(Boolean, default=True, nullable=False)
    show_correct_answers = Column(Boolean, default=False, nullable=False)
    passing_score = Column(Integer)
    has_time_limit = Column(Boolean, default=False, nullable=False)
    time_limit = Column(Integer)  # Minutes
    max_retakes = Column(Integer, default=3, nullable=False)
    has_certificate = Column(Boolean, default=False, nullable=False)
    certificate_template = Column(String(500))
    xp_points = Column(Integer, default=50, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    course = relationship("Course", back_populates="assessments")
    unit = relationship("Unit", back_populates="assessments")
    questions = relationship(
        "Question",
        back_populates="assessment",
        cascade="all, delete-orphan",
        order_by="Question.order",
    )
    attempts = relationship("AssessmentAttempt", back_populates="assessment", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Assessment(id={self.id}, title='{self.title}', placement='{self.placement}')>"

    @property
    def is_final(self) -> bool:
        """Course-final assessments sit at the end of a course without a unit"""
        return self.placement == AssessmentPlacement.END.value and self.unit_id is None

    @property
    def time_limit_seconds(self):
        if not self.has_time_limit or not self.time_limit:
            return None
        return self.time_limit * 60


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    assessment_id = Column(Integer, ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False)
    question_text = Column(Text, nullable=False)
    question_type = Column(String(20), default=QuestionType.MCQ.value, nullable=False)
    options = Column(JSON)
    correct_answer = Column(Text)
    order = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    assessment = relationship("Assessment", back_populates="questions")

    def __repr__(self):
        return f"<Question(id={self.id}, assessment_id={self.assessment_id}, type='{self.question_type}')>"

    def is_correct(self, answer) -> bool:
        """Grade a single answer, true/false answers ignore case"""
        if answer is None or self.correct_answer is None:
            return False
        if self.question_type == QuestionType.TRUE_FALSE.value:
            return str(answer).lower() == str(self.correct_answer).lower()
        return str(answer) == str(self.correct_answer)


class AssessmentAttempt(Base):
    __tablename__ = "assessment_attempts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    assessment_id = Column(Integer, ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False)
    score = Column(Integer, nullable=False)
    passed = Column(Boolean, nullable=False)
    answers = Column(JSON)
    time_expired = Column(Boolean, default=False, nullable=False)
    started_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime)

    user = relationship("User", back_populates="attempts")
    assessment = relationship("Assessment", back_populates="attempts")

    def __repr__(self):
        return f"<AssessmentAttempt(id={self.id}, user_id={self.user_id}, score={self.score}, passed={self.passed})>"
