from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from vx_academy.database import get_db
from vx_academy.dependencies import can_manage_units, get_current_active_user
from vx_academy.models.assessment import Assessment
from vx_academy.models.course import Course, CourseUnit, LearningBlock, Unit
from vx_academy.models.user import User
from vx_academy.schemas.assessment import AssessmentResponse
from vx_academy.schemas.common import MessageResponse
from vx_academy.schemas.course import CourseResponse, LearningBlockResponse, UnitCreate, UnitResponse, UnitUpdate

router = APIRouter()


def _get_unit(db: Session, unit_id: int) -> Unit:
    unit = db.query(Unit).filter(Unit.id == unit_id).first()
    if not unit:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Unit not found"
        )
    return unit


def _sync_course_links(db: Session, unit: Unit, course_ids: List[int]) -> None:
    """Attach the unit to exactly these courses; new links go to the end of each course"""
    wanted = set(course_ids)
    found = {c.id for c in db.query(Course.id).filter(Course.id.in_(wanted)).all()} if wanted else set()
    missing = wanted - found
    if missing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Courses not found: {sorted(missing)}"
        )

    for link in list(unit.course_links):
        if link.course_id not in wanted:
            unit.course_links.remove(link)

    current = {link.course_id for link in unit.course_links}
    for course_id in course_ids:
        if course_id in current:
            continue
        last_order = db.query(func.max(CourseUnit.order)).filter(CourseUnit.course_id == course_id).scalar() or 0
        unit.course_links.append(CourseUnit(course_id=course_id, order=last_order + 1))
        current.add(course_id)


@router.get("", response_model=List[UnitResponse])
async def get_units(
    course_id: Optional[int] = None,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    query = db.query(Unit)
    if course_id is not None:
        query = query.join(CourseUnit, CourseUnit.unit_id == Unit.id).filter(
            CourseUnit.course_id == course_id
        ).order_by(CourseUnit.order)
    else:
        query = query.order_by(Unit.order, Unit.id)
    return query.all()


@router.post("", response_model=UnitResponse, status_code=status.HTTP_201_CREATED)
async def create_unit(
    unit_data: UnitCreate,
    current_user: User = Depends(can_manage_units),
    db: Session = Depends(get_db)
) -> Any:
    data = unit_data.model_dump(exclude={"course_ids"})
    unit = Unit(**data)
    db.add(unit)
    db.flush()
    _sync_course_links(db, unit, unit_data.course_ids)
    db.commit()
    db.refresh(unit)
    return unit


@router.get("/{unit_id}", response_model=UnitResponse)
async def get_unit(
    unit_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    return _get_unit(db, unit_id)


@router.patch("/{unit_id}", response_model=UnitResponse)
async def update_unit(
    unit_id: int,
    unit_data: UnitUpdate,
    current_user: User = Depends(can_manage_units),
    db: Session = Depends(get_db)
) -> Any:
    unit = _get_unit(db, unit_id)
    update_data = unit_data.model_dump(exclude_unset=True)
    course_ids = update_data.pop("course_ids", None)
    for field, value in update_data.items():
        setattr(unit, field, value)
    if course_ids is not None:
        _sync_course_links(db, unit, course_ids)
    db.commit()
    db.refresh(unit)
    return unit


@router.delete("/{unit_id}", response_model=MessageResponse)
async def delete_unit(
    unit_id: int,
    current_user: User = Depends(can_manage_units),
    db: Session = Depends(get_db)
) -> Any:
    unit = _get_unit(db, unit_id)
    db.delete(unit)
    db.commit()
    return MessageResponse(message="Unit deleted successfully")


@router.get("/{unit_id}/courses", response_model=List[CourseResponse])
async def get_unit_courses(
    unit_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    _get_unit(db, unit_id)
    return (
        db.query(Course)
        .join(CourseUnit, CourseUnit.course_id == Course.id)
        .filter(CourseUnit.unit_id == unit_id)
        .order_by(Course.id)
        .all()
    )


@router.get("/{unit_id}/blocks", response_model=List[LearningBlockResponse])
async def get_unit_blocks(
    unit_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    _get_unit(db, unit_id)
    return (
        db.query(LearningBlock)
        .filter(LearningBlock.unit_id == unit_id)
        .order_by(LearningBlock.order, LearningBlock.id)
        .all()
    )


@router.get("/{unit_id}/assessments", response_model=List[AssessmentResponse])
async def get_unit_assessments(
    unit_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    _get_unit(db, unit_id)
    return db.query(Assessment).filter(Assessment.unit_id == unit_id).order_by(Assessment.id).all()
