from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from vx_academy.database import Base


class CourseLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class CourseType(str, Enum):
    SEQUENTIAL = "sequential"
    FREE = "free"


class BlockType(str, Enum):
    VIDEO = "video"
    TEXT = "text"
    INTERACTIVE = "interactive"
    IMAGE = "image"
    SCORM = "scorm"


class TrainingArea(Base):
    __tablename__ = "training_areas"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    image_url = Column(String(500))
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    modules = relationship("Module", back_populates="training_area", cascade="all, delete-orphan")
    courses = relationship("Course", back_populates="training_area")

    def __repr__(self):
        return f"<TrainingArea(id={self.id}, name='{self.name}')>"


class Module(Base):
    __tablename__ = "modules"

    id = Column(Integer, primary_key=True, index=True)
    training_area_id = Column(Integer, ForeignKey("training_areas.id"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    image_url = Column(String(500))
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    training_area = relationship("TrainingArea", back_populates="modules")
    courses = relationship("Course", back_populates="module")

    def __repr__(self):
        return f"<Module(id={self.id}, name='{self.name}')>"


class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)
    training_area_id = Column(Integer, ForeignKey("training_areas.id"), nullable=False)
    module_id = Column(Integer, ForeignKey("modules.id"), nullable=False)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text)
    image_url = Column(String(500))
    internal_note = Column(Text)  # Admin only
    course_type = Column(String(20), default=CourseType.SEQUENTIAL.value, nullable=False)
    duration = Column(Integer, nullable=False)  # Minutes
    show_duration = Column(Boolean, default=True, nullable=False)
    level = Column(String(20), default=CourseLevel.BEGINNER.value, nullable=False)
    show_level = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    training_area = relationship("TrainingArea", back_populates="courses")
    module = relationship("Module", back_populates="courses")
    unit_links = relationship(
        "CourseUnit",
        back_populates="course",
        cascade="all, delete-orphan",
        order_by="CourseUnit.order",
    )
    assessments = relationship("Assessment", back_populates="course")

    def __repr__(self):
        return f"<Course(id={self.id}, name='{self.name}')>"

    @property
    def units(self):
        """Units in course order"""
        return [link.unit for link in self.unit_links]


class Unit(Base):
    """Reusable unit of content, shared by courses through ``CourseUnit``"""
    __tablename__ = "units"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    internal_note = Column(Text)
    order = Column(Integer, default=1, nullable=False)
    duration = Column(Integer, default=30, nullable=False)  # Minutes
    show_duration = Column(Boolean, default=True, nullable=False)
    xp_points = Column(Integer, default=100, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    course_links = relationship("CourseUnit", back_populates="unit", cascade="all, delete-orphan")
    blocks = relationship(
        "LearningBlock",
        back_populates="unit",
        cascade="all, delete-orphan",
        order_by="LearningBlock.order",
    )
    assessments = relationship("Assessment", back_populates="unit")

    def __repr__(self):
        return f"<Unit(id={self.id}, name='{self.name}')>"

    @property
    def course_ids(self):
        return [link.course_id for link in self.course_links]


class CourseUnit(Base):
    __tablename__ = "course_units"
    __table_args__ = (
        UniqueConstraint("course_id", "unit_id", name="uq_course_unit"),
    )

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    unit_id = Column(Integer, ForeignKey("units.id", ondelete="CASCADE"), nullable=False)
    order = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    course = relationship("Course", back_populates="unit_links")
    unit = relationship("Unit", back_populates="course_links")


class LearningBlock(Base):
    __tablename__ = "learning_blocks"

    id = Column(Integer, primary_key=True, index=True)
    unit_id = Column(Integer, ForeignKey("units.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(20), nullable=False)
    title = Column(String(255), nullable=False)
    content = Column(Text)
    video_url = Column(String(500))
    image_url = Column(String(500))
    interactive_data = Column(JSON)
    order = Column(Integer, nullable=False)
    xp_points = Column(Integer, default=10, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    unit = relationship("Unit", back_populates="blocks")

    def __repr__(self):
        return f"<LearningBlock(id={self.id}, unit_id={self.unit_id}, type='{self.type}')>"
