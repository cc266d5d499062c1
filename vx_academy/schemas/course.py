from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, validator

from vx_academy.models.course import BlockType, CourseLevel, CourseType


class TrainingAreaBase(BaseModel):
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None


class TrainingAreaCreate(TrainingAreaBase):
    pass


class TrainingAreaUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None


class TrainingAreaResponse(TrainingAreaBase):
    id: int
    created_at: datetime

    class Config:
        from_attributes = True


class ModuleBase(BaseModel):
    training_area_id: int
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None


class ModuleCreate(ModuleBase):
    pass


class ModuleUpdate(BaseModel):
    training_area_id: Optional[int] = None
    name: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None


class ModuleResponse(ModuleBase):
    id: int
    created_at: datetime

    class Config:
        from_attributes = True


class CourseBase(BaseModel):
    training_area_id: int
    module_id: int
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    course_type: CourseType = CourseType.SEQUENTIAL
    duration: int
    show_duration: bool = True
    level: CourseLevel = CourseLevel.BEGINNER
    show_level: bool = True

    @validator('duration')
    def validate_duration(cls, v):
        if v < 0:
            raise ValueError('Duration cannot be negative')
        return v


class CourseCreate(CourseBase):
    internal_note: Optional[str] = None

    class Config:
        use_enum_values = True


class CourseUpdate(BaseModel):
    training_area_id: Optional[int] = None
    module_id: Optional[int] = None
    name: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    internal_note: Optional[str] = None
    course_type: Optional[CourseType] = None
    duration: Optional[int] = None
    show_duration: Optional[bool] = None
    level: Optional[CourseLevel] = None
    show_level: Optional[bool] = None

    class Config:
        use_enum_values = True


class CourseResponse(CourseBase):
    id: int
    created_at: datetime

    class Config:
        from_attributes = True


class CourseAdminResponse(CourseResponse):
    internal_note: Optional[str] = None


class UnitBase(BaseModel):
    name: str
    description: Optional[str] = None
    order: int = 1
    duration: int = 30
    show_duration: bool = True
    xp_points: int = 100


class UnitCreate(UnitBase):
    internal_note: Optional[str] = None
    # Courses this unit is attached to, appended at the end of each
    course_ids: List[int] = []


class UnitUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    internal_note: Optional[str] = None
    order: Optional[int] = None
    duration: Optional[int] = None
    show_duration: Optional[bool] = None
    xp_points: Optional[int] = None
    course_ids: Optional[List[int]] = None


class UnitResponse(UnitBase):
    id: int
    created_at: datetime
    course_ids: List[int] = []

    class Config:
        from_attributes = True


class CourseUnitResponse(BaseModel):
    id: int
    course_id: int
    unit_id: int
    order: int

    class Config:
        from_attributes = True


class LearningBlockBase(BaseModel):
    unit_id: int
    type: BlockType
    title: str
    content: Optional[str] = None
    video_url: Optional[str] = None
    image_url: Optional[str] = None
    interactive_data: Optional[Any] = None
    order: int
    xp_points: int = 10


class LearningBlockCreate(LearningBlockBase):
    class Config:
        use_enum_values = True


class LearningBlockUpdate(BaseModel):
    unit_id: Optional[int] = None
    type: Optional[BlockType] = None
    title: Optional[str] = None
    content: Optional[str] = None
    video_url: Optional[str] = None
    image_url: Optional[str] = None
    interactive_data: Optional[Any] = None
    order: Optional[int] = None
    xp_points: Optional[int] = None

    class Config:
        use_enum_values = True


class LearningBlockResponse(LearningBlockBase):
    id: int
    created_at: datetime

    class Config:
        from_attributes = True
