import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import and_
from sqlalchemy.orm import Session

from vx_academy.database import get_db
from vx_academy.dependencies import get_current_active_user
from vx_academy.models.course import Course
from vx_academy.models.user import User
from vx_academy.models.user_progress import (
    BlockCompletion,
    UserAssessmentProgress,
    UserBlockProgress,
    UserUnitProgress,
)
from vx_academy.schemas.progress import (
    AssessmentProgressCreate,
    AssessmentProgressResponse,
    BlockCompleteResult,
    BlockCompletionResponse,
    BlockProgressCreate,
    BlockProgressResponse,
    CourseProgressResponse,
    UnitCompletionCreate,
    UnitProgressResponse,
    UserProgressResponse,
    UserProgressUpdate,
)
from vx_academy.services.badges import BadgeService
from vx_academy.services.progress import ProgressService

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_course(db: Session, course_id: int) -> Course:
    course = db.query(Course).filter(Course.id == course_id).first()
    if not course:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Course not found"
        )
    return course


def _run_badge_checks(db: Session, user: User, completed_courses: List[Course]) -> None:
    """Badge failures are logged and never undo the learner's progress"""
    badges = BadgeService(db)
    try:
        with db.begin_nested():
            for course in completed_courses:
                badges.check_course_completion_badges(user, course)
            badges.check_activity_badges(user)
    except Exception as e:
        logger.error(f"Error checking badges for user {user.id}: {str(e)}")


@router.get("/progress", response_model=List[UserProgressResponse])
async def get_my_progress(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    return ProgressService(db).list_user_progress(current_user.id)


@router.post("/progress", response_model=UserProgressResponse)
async def update_my_progress(
    progress_data: UserProgressUpdate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    """
    Upsert the stored progress snapshot for a course
    """
    if progress_data.course_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="course_id is required"
        )
    _require_course(db, progress_data.course_id)
    progress = ProgressService(db).save_progress_snapshot(
        current_user.id,
        progress_data.course_id,
        percent_complete=progress_data.percent_complete,
        completed=progress_data.completed,
    )
    db.commit()
    db.refresh(progress)
    return progress


@router.get("/progress/courses/{course_id}", response_model=CourseProgressResponse)
async def get_course_progress(
    course_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    """
    Progress recomputed from the completion records, not the stored snapshot
    """
    _require_course(db, course_id)
    data = ProgressService(db).get_course_progress(current_user.id, course_id)
    return CourseProgressResponse(course_id=course_id, **data.to_dict())


@router.post("/refresh-course-progress/{course_id}", response_model=UserProgressResponse)
async def refresh_course_progress(
    course_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    course = _require_course(db, course_id)
    progress, just_completed = ProgressService(db).refresh_course_progress(current_user.id, course_id)
    if just_completed:
        _run_badge_checks(db, current_user, [course])
    db.commit()
    db.refresh(progress)
    return progress


@router.post("/blocks/{block_id}/complete", response_model=BlockCompleteResult)
async def complete_block(
    block_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    """
    Mark a learning block as done; repeating the call awards no further XP
    """
    result = ProgressService(db).complete_block(current_user, block_id)
    if not result["already_completed"] or result["completed_courses"]:
        _run_badge_checks(db, current_user, result["completed_courses"])
    db.commit()
    return BlockCompleteResult(
        block_id=block_id,
        already_completed=result["already_completed"],
        xp_awarded=result["xp_awarded"],
        course_progress=result["course_progress"],
    )


@router.get("/block-completions", response_model=List[BlockCompletionResponse])
async def get_block_completions(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    return (
        db.query(BlockCompletion)
        .filter(BlockCompletion.user_id == current_user.id)
        .order_by(BlockCompletion.completed_at)
        .all()
    )


# Course-scoped progress records

@router.get("/progress/block/{course_id}", response_model=List[BlockProgressResponse])
async def get_block_progress(
    course_id: int,
    unit_id: Optional[int] = None,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    query = db.query(UserBlockProgress).filter(
        and_(UserBlockProgress.user_id == current_user.id, UserBlockProgress.course_id == course_id)
    )
    if unit_id is not None:
        query = query.filter(UserBlockProgress.unit_id == unit_id)
    return query.order_by(UserBlockProgress.id).all()


@router.post("/progress/block", response_model=BlockProgressResponse)
async def mark_block_progress(
    progress_data: BlockProgressCreate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    course = _require_course(db, progress_data.course_id)
    service = ProgressService(db)
    if progress_data.unit_id not in service.get_unit_ids(course.id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unit does not belong to this course"
        )
    record = service.mark_block_progress(
        current_user.id, course.id, progress_data.unit_id, progress_data.block_id
    )
    _, just_completed = service.refresh_course_progress(current_user.id, course.id)
    if just_completed:
        _run_badge_checks(db, current_user, [course])
    db.commit()
    db.refresh(record)
    return record


@router.get("/progress/assessment/{course_id}", response_model=List[AssessmentProgressResponse])
async def get_assessment_progress(
    course_id: int,
    unit_id: Optional[int] = None,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    query = db.query(UserAssessmentProgress).filter(
        and_(UserAssessmentProgress.user_id == current_user.id, UserAssessmentProgress.course_id == course_id)
    )
    if unit_id is not None:
        query = query.filter(UserAssessmentProgress.unit_id == unit_id)
    return query.order_by(UserAssessmentProgress.id).all()


@router.post("/progress/assessment", response_model=AssessmentProgressResponse)
async def mark_assessment_progress(
    progress_data: AssessmentProgressCreate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    course = _require_course(db, progress_data.course_id)
    service = ProgressService(db)
    record = service.mark_assessment_progress(
        current_user.id, course.id, progress_data.unit_id, progress_data.assessment_id
    )
    _, just_completed = service.refresh_course_progress(current_user.id, course.id)
    if just_completed:
        _run_badge_checks(db, current_user, [course])
    db.commit()
    db.refresh(record)
    return record


@router.get("/progress/units/{course_id}", response_model=List[UnitProgressResponse])
async def get_unit_progress(
    course_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    return (
        db.query(UserUnitProgress)
        .filter(and_(UserUnitProgress.user_id == current_user.id, UserUnitProgress.course_id == course_id))
        .order_by(UserUnitProgress.id)
        .all()
    )


@router.post("/progress/complete", response_model=UnitProgressResponse)
async def complete_unit(
    completion: UnitCompletionCreate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    course = _require_course(db, completion.course_id)
    service = ProgressService(db)
    if completion.unit_id not in service.get_unit_ids(course.id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unit does not belong to this course"
        )
    record = service.complete_unit(current_user.id, course.id, completion.unit_id)
    db.commit()
    db.refresh(record)
    return record
