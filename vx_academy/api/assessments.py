from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from vx_academy.database import get_db
from vx_academy.dependencies import can_manage_assessments, get_current_active_user
from vx_academy.models.assessment import Assessment, Question
from vx_academy.models.course import Course, Unit
from vx_academy.models.user import User
from vx_academy.schemas.assessment import (
    AssessmentAttemptResponse,
    AssessmentCreate,
    AssessmentResponse,
    AssessmentSubmission,
    AssessmentUpdate,
    AttemptStatus,
    QuestionAdminResponse,
    QuestionCreate,
    QuestionResponse,
    QuestionUpdate,
    SubmissionResult,
)
from vx_academy.schemas.common import MessageResponse
from vx_academy.services.assessments import AssessmentService


router = APIRouter()


def _get_question(db: Session, question_id: int) -> Question:
    question = db.query(Question).filter(Question.id == question_id).first()
    if not question:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Question not found"
        )
    return question


def _check_parents(db: Session, course_id: Optional[int], unit_id: Optional[int]) -> None:
    if course_id is not None and not db.query(Course).filter(Course.id == course_id).first():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found")
    if unit_id is not None and not db.query(Unit).filter(Unit.id == unit_id).first():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unit not found")


# Assessments

@router.get("/assessments", response_model=List[AssessmentResponse])
async def get_assessments(
    course_id: Optional[int] = None,
    unit_id: Optional[int] = None,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    query = db.query(Assessment)
    if course_id is not None:
        query = query.filter(Assessment.course_id == course_id)
    if unit_id is not None:
        query = query.filter(Assessment.unit_id == unit_id)
    return query.order_by(Assessment.id).all()


@router.post("/assessments", response_model=AssessmentResponse, status_code=status.HTTP_201_CREATED)
async def create_assessment(
    assessment_data: AssessmentCreate,
    current_user: User = Depends(can_manage_assessments),
    db: Session = Depends(get_db)
) -> Any:
    if assessment_data.course_id is None and assessment_data.unit_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="An assessment needs a course or a unit"
        )
    _check_parents(db, assessment_data.course_id, assessment_data.unit_id)
    assessment = Assessment(**assessment_data.model_dump())
    db.add(assessment)
    db.commit()
    db.refresh(assessment)
    return assessment


@router.get("/assessments/{assessment_id}", response_model=AssessmentResponse)
async def get_assessment(
    assessment_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    return AssessmentService(db).get_assessment(assessment_id)


@router.patch("/assessments/{assessment_id}", response_model=AssessmentResponse)
async def update_assessment(
    assessment_id: int,
    assessment_data: AssessmentUpdate,
    current_user: User = Depends(can_manage_assessments),
    db: Session = Depends(get_db)
) -> Any:
    assessment = AssessmentService(db).get_assessment(assessment_id)
    update_data = assessment_data.model_dump(exclude_unset=True)
    _check_parents(db, update_data.get("course_id"), update_data.get("unit_id"))
    for field, value in update_data.items():
        setattr(assessment, field, value)
    db.commit()
    db.refresh(assessment)
    return assessment


@router.delete("/assessments/{assessment_id}", response_model=MessageResponse)
async def delete_assessment(
    assessment_id: int,
    current_user: User = Depends(can_manage_assessments),
    db: Session = Depends(get_db)
) -> Any:
    assessment = AssessmentService(db).get_assessment(assessment_id)
    db.delete(assessment)
    db.commit()
    return MessageResponse(message="Assessment deleted successfully")


@router.get("/assessments/{assessment_id}/questions")
async def get_assessment_questions(
    assessment_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    """
    Questions in order; correct answers are only included for staff
    """
    assessment = AssessmentService(db).get_assessment(assessment_id)
    schema = QuestionAdminResponse if current_user.has_permission("can_manage_assessments") else QuestionResponse
    return [schema.model_validate(q) for q in assessment.questions]


@router.get("/assessments/{assessment_id}/status", response_model=AttemptStatus)
async def get_attempt_status(
    assessment_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    return AssessmentService(db).attempt_status(current_user.id, assessment_id)


@router.get("/assessments/{assessment_id}/attempts/{user_id}", response_model=List[AssessmentAttemptResponse])
async def get_user_attempts(
    assessment_id: int,
    user_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    if user_id != current_user.id and not current_user.is_admin():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to view these attempts"
        )
    service = AssessmentService(db)
    service.get_assessment(assessment_id)
    return service.get_attempts(user_id, assessment_id)


@router.post("/assessments/{assessment_id}/submit", response_model=SubmissionResult)
async def submit_assessment(
    assessment_id: int,
    submission: AssessmentSubmission,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    """
    Grade an attempt on the server and apply XP, progress, certificate and badges
    """
    result = AssessmentService(db).submit(
        current_user,
        assessment_id,
        submission.answers,
        time_expired=submission.time_expired,
    )
    db.commit()
    return result


# Questions

@router.post("/questions", response_model=QuestionAdminResponse, status_code=status.HTTP_201_CREATED)
async def create_question(
    question_data: QuestionCreate,
    current_user: User = Depends(can_manage_assessments),
    db: Session = Depends(get_db)
) -> Any:
    AssessmentService(db).get_assessment(question_data.assessment_id)
    question = Question(**question_data.model_dump())
    db.add(question)
    db.commit()
    db.refresh(question)
    return question


@router.get("/questions/{question_id}", response_model=QuestionAdminResponse)
async def get_question(
    question_id: int,
    current_user: User = Depends(can_manage_assessments),
    db: Session = Depends(get_db)
) -> Any:
    return _get_question(db, question_id)


@router.patch("/questions/{question_id}", response_model=QuestionAdminResponse)
async def update_question(
    question_id: int,
    question_data: QuestionUpdate,
    current_user: User = Depends(can_manage_assessments),
    db: Session = Depends(get_db)
) -> Any:
    question = _get_question(db, question_id)
    for field, value in question_data.model_dump(exclude_unset=True).items():
        setattr(question, field, value)
    db.commit()
    db.refresh(question)
    return question


@router.delete("/questions/{question_id}", response_model=MessageResponse)
async def delete_question(
    question_id: int,
    current_user: User = Depends(can_manage_assessments),
    db: Session = Depends(get_db)
) -> Any:
    question = _get_question(db, question_id)
    db.delete(question)
    db.commit()
    return MessageResponse(message="Question deleted successfully")
