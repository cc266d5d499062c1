from datetime import datetime
from typing import Optional

from pydantic import BaseModel, validator


class UserProgressUpdate(BaseModel):
    course_id: Optional[int] = None
    percent_complete: Optional[int] = None
    completed: Optional[bool] = None

    @validator('percent_complete')
    def validate_percent(cls, v):
        if v is not None and not 0 <= v <= 100:
            raise ValueError('Percent complete must be between 0 and 100')
        return v


class UserProgressResponse(BaseModel):
    id: int
    user_id: int
    course_id: int
    completed: bool
    percent_complete: int
    last_accessed: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CourseProgressResponse(BaseModel):
    course_id: int
    percent_complete: int
    completed: bool
    total_items: int
    completed_items: int
    total_blocks: int
    completed_blocks: int
    total_assessments: int
    completed_assessments: int


class BlockCompletionResponse(BaseModel):
    id: int
    user_id: int
    block_id: int
    completed: bool
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BlockCompleteResult(BaseModel):
    success: bool = True
    block_id: int
    already_completed: bool
    xp_awarded: int
    course_progress: list = []


class BlockProgressCreate(BaseModel):
    course_id: int
    unit_id: int
    block_id: int


class BlockProgressResponse(BaseModel):
    id: int
    user_id: int
    course_id: int
    unit_id: int
    block_id: int
    is_completed: bool
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AssessmentProgressCreate(BaseModel):
    course_id: int
    unit_id: Optional[int] = None
    assessment_id: int


class AssessmentProgressResponse(BaseModel):
    id: int
    user_id: int
    course_id: int
    unit_id: Optional[int] = None
    assessment_id: int
    is_completed: bool
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UnitCompletionCreate(BaseModel):
    course_id: int
    unit_id: int


class UnitProgressResponse(BaseModel):
    id: int
    user_id: int
    course_id: int
    unit_id: int
    is_completed: bool
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
