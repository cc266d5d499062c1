from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, validator

from vx_academy.models.assessment import AssessmentPlacement, QuestionType


class AssessmentBase(BaseModel):
    title: str
    description: Optional[str] = None
    training_area_id: Optional[int] = None
    module_id: Optional[int] = None
    course_id: Optional[int] = None
    unit_id: Optional[int] = None
    placement: AssessmentPlacement = AssessmentPlacement.END
    is_graded: bool = True
    show_correct_answers: bool = False
    passing_score: Optional[int] = None
    has_time_limit: bool = False
    time_limit: Optional[int] = None
    max_retakes: int = 3
    has_certificate: bool = False
    certificate_template: Optional[str] = None
    xp_points: int = 50

    @validator('passing_score')
    def validate_passing_score(cls, v):
        if v is not None and not 0 <= v <= 100:
            raise ValueError('Passing score must be between 0 and 100')
        return v

    @validator('max_retakes')
    def validate_max_retakes(cls, v):
        if v < 0:
            raise ValueError('Max retakes cannot be negative')
        return v

    @validator('time_limit')
    def validate_time_limit(cls, v):
        if v is not None and v <= 0:
            raise ValueError('Time limit must be a positive number of minutes')
        return v


class AssessmentCreate(AssessmentBase):
    class Config:
        use_enum_values = True


class AssessmentUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    course_id: Optional[int] = None
    unit_id: Optional[int] = None
    placement: Optional[AssessmentPlacement] = None
    is_graded: Optional[bool] = None
    show_correct_answers: Optional[bool] = None
    passing_score: Optional[int] = None
    has_time_limit: Optional[bool] = None
    time_limit: Optional[int] = None
    max_retakes: Optional[int] = None
    has_certificate: Optional[bool] = None
    certificate_template: Optional[str] = None
    xp_points: Optional[int] = None

    class Config:
        use_enum_values = True


class AssessmentResponse(AssessmentBase):
    id: int
    created_at: datetime

    class Config:
        from_attributes = True


class QuestionBase(BaseModel):
    question_text: str
    question_type: QuestionType = QuestionType.MCQ
    options: Optional[List[Any]] = None
    order: int


class QuestionCreate(QuestionBase):
    assessment_id: int
    correct_answer: Optional[str] = None

    @validator('options')
    def validate_options(cls, v, values):
        if values.get('question_type') == QuestionType.MCQ and v is not None and len(v) < 2:
            raise ValueError('Multiple choice questions need at least two options')
        return v

    class Config:
        use_enum_values = True


class QuestionUpdate(BaseModel):
    question_text: Optional[str] = None
    question_type: Optional[QuestionType] = None
    options: Optional[List[Any]] = None
    correct_answer: Optional[str] = None
    order: Optional[int] = None

    class Config:
        use_enum_values = True


class QuestionResponse(QuestionBase):
    """Question as shown to a learner taking the assessment"""
    id: int
    assessment_id: int

    class Config:
        from_attributes = True


class QuestionAdminResponse(QuestionResponse):
    correct_answer: Optional[str] = None


class AssessmentSubmission(BaseModel):
    # JSON object keys arrive as strings, question ids are matched on str(id)
    answers: Dict[str, Any] = {}
    time_expired: bool = False


class SubmissionResult(BaseModel):
    success: bool = True
    attempt_id: int
    score: int
    passed: bool
    correct_answers: int
    total_questions: int
    certificate_generated: bool = False
    attempts_remaining: int
    time_expired: bool = False


class AssessmentAttemptResponse(BaseModel):
    id: int
    user_id: int
    assessment_id: int
    score: int
    passed: bool
    answers: Optional[Dict[str, Any]] = None
    time_expired: bool = False
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AttemptStatus(BaseModel):
    assessment_id: int
    max_retakes: int
    attempts_used: int
    attempts_remaining: int
    can_start: bool
    best_score: Optional[int] = None
    passed: bool = False
    time_limit_seconds: Optional[int] = None
