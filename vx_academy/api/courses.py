from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import and_
from sqlalchemy.orm import Session

from vx_academy.database import get_db
from vx_academy.dependencies import (
    can_manage_courses,
    can_manage_modules,
    can_manage_training_areas,
    get_current_active_user,
)
from vx_academy.models.assessment import AssessmentPlacement
from vx_academy.models.course import Course, CourseUnit, LearningBlock, Module, TrainingArea, Unit
from vx_academy.models.user import User
from vx_academy.schemas.assessment import AssessmentResponse
from vx_academy.schemas.common import MessageResponse, OrderValidationRequest, OrderValidationResponse
from vx_academy.schemas.course import (
    CourseAdminResponse,
    CourseCreate,
    CourseResponse,
    CourseUnitResponse,
    CourseUpdate,
    LearningBlockResponse,
    ModuleCreate,
    ModuleResponse,
    ModuleUpdate,
    TrainingAreaCreate,
    TrainingAreaResponse,
    TrainingAreaUpdate,
    UnitResponse,
)
from vx_academy.schemas.progress import UserProgressResponse
from vx_academy.services.notifications import NotificationService
from vx_academy.services.progress import ProgressService

router = APIRouter()


def _serialize_course(course: Course, user: User):
    """Internal notes are only shown to staff"""
    if user.is_staff():
        return CourseAdminResponse.model_validate(course)
    return CourseResponse.model_validate(course)


def _get_or_404(db: Session, model, object_id: int, label: str):
    obj = db.query(model).filter(model.id == object_id).first()
    if not obj:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{label} not found"
        )
    return obj


# Training areas

@router.get("/training-areas", response_model=List[TrainingAreaResponse])
async def get_training_areas(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    return db.query(TrainingArea).order_by(TrainingArea.id).all()


@router.get("/training-areas/{area_id}", response_model=TrainingAreaResponse)
async def get_training_area(
    area_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    return _get_or_404(db, TrainingArea, area_id, "Training area")


@router.post("/training-areas", response_model=TrainingAreaResponse, status_code=status.HTTP_201_CREATED)
async def create_training_area(
    area_data: TrainingAreaCreate,
    current_user: User = Depends(can_manage_training_areas),
    db: Session = Depends(get_db)
) -> Any:
    area = TrainingArea(**area_data.model_dump())
    db.add(area)
    db.commit()
    db.refresh(area)
    return area


@router.patch("/training-areas/{area_id}", response_model=TrainingAreaResponse)
async def update_training_area(
    area_id: int,
    area_data: TrainingAreaUpdate,
    current_user: User = Depends(can_manage_training_areas),
    db: Session = Depends(get_db)
) -> Any:
    area = _get_or_404(db, TrainingArea, area_id, "Training area")
    for field, value in area_data.model_dump(exclude_unset=True).items():
        setattr(area, field, value)
    db.commit()
    db.refresh(area)
    return area


@router.delete("/training-areas/{area_id}", response_model=MessageResponse)
async def delete_training_area(
    area_id: int,
    current_user: User = Depends(can_manage_training_areas),
    db: Session = Depends(get_db)
) -> Any:
    area = _get_or_404(db, TrainingArea, area_id, "Training area")
    if db.query(Course).filter(Course.training_area_id == area_id).count():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Training area still has courses"
        )
    db.delete(area)
    db.commit()
    return MessageResponse(message="Training area deleted successfully")


# Modules

@router.get("/modules", response_model=List[ModuleResponse])
async def get_modules(
    training_area_id: Optional[int] = None,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    query = db.query(Module)
    if training_area_id is not None:
        query = query.filter(Module.training_area_id == training_area_id)
    return query.order_by(Module.id).all()


@router.get("/modules/{module_id}", response_model=ModuleResponse)
async def get_module(
    module_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    return _get_or_404(db, Module, module_id, "Module")


@router.post("/modules", response_model=ModuleResponse, status_code=status.HTTP_201_CREATED)
async def create_module(
    module_data: ModuleCreate,
    current_user: User = Depends(can_manage_modules),
    db: Session = Depends(get_db)
) -> Any:
    _get_or_404(db, TrainingArea, module_data.training_area_id, "Training area")
    module = Module(**module_data.model_dump())
    db.add(module)
    db.commit()
    db.refresh(module)
    return module


@router.patch("/modules/{module_id}", response_model=ModuleResponse)
async def update_module(
    module_id: int,
    module_data: ModuleUpdate,
    current_user: User = Depends(can_manage_modules),
    db: Session = Depends(get_db)
) -> Any:
    module = _get_or_404(db, Module, module_id, "Module")
    for field, value in module_data.model_dump(exclude_unset=True).items():
        setattr(module, field, value)
    db.commit()
    db.refresh(module)
    return module


@router.delete("/modules/{module_id}", response_model=MessageResponse)
async def delete_module(
    module_id: int,
    current_user: User = Depends(can_manage_modules),
    db: Session = Depends(get_db)
) -> Any:
    module = _get_or_404(db, Module, module_id, "Module")
    if db.query(Course).filter(Course.module_id == module_id).count():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Module still has courses"
        )
    db.delete(module)
    db.commit()
    return MessageResponse(message="Module deleted successfully")


# Courses

@router.get("/courses")
async def get_courses(
    training_area_id: Optional[int] = None,
    module_id: Optional[int] = None,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    query = db.query(Course)
    if training_area_id is not None:
        query = query.filter(Course.training_area_id == training_area_id)
    if module_id is not None:
        query = query.filter(Course.module_id == module_id)
    return [_serialize_course(c, current_user) for c in query.order_by(Course.id).all()]


@router.post("/courses", response_model=CourseAdminResponse, status_code=status.HTTP_201_CREATED)
async def create_course(
    course_data: CourseCreate,
    current_user: User = Depends(can_manage_courses),
    db: Session = Depends(get_db)
) -> Any:
    _get_or_404(db, TrainingArea, course_data.training_area_id, "Training area")
    _get_or_404(db, Module, course_data.module_id, "Module")
    course = Course(**course_data.model_dump())
    db.add(course)
    db.commit()
    db.refresh(course)
    return course


@router.get("/courses/{course_id}")
async def get_course(
    course_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    return _serialize_course(_get_or_404(db, Course, course_id, "Course"), current_user)


@router.patch("/courses/{course_id}", response_model=CourseAdminResponse)
async def update_course(
    course_id: int,
    course_data: CourseUpdate,
    current_user: User = Depends(can_manage_courses),
    db: Session = Depends(get_db)
) -> Any:
    course = _get_or_404(db, Course, course_id, "Course")
    for field, value in course_data.model_dump(exclude_unset=True).items():
        setattr(course, field, value)
    db.commit()
    db.refresh(course)
    return course


@router.delete("/courses/{course_id}", response_model=MessageResponse)
async def delete_course(
    course_id: int,
    current_user: User = Depends(can_manage_courses),
    db: Session = Depends(get_db)
) -> Any:
    course = _get_or_404(db, Course, course_id, "Course")
    db.delete(course)
    db.commit()
    return MessageResponse(message="Course deleted successfully")


@router.get("/courses/{course_id}/units", response_model=List[UnitResponse])
async def get_course_units(
    course_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    """
    Units of a course in the order set on the course, not the unit's own order
    """
    course = _get_or_404(db, Course, course_id, "Course")
    return [UnitResponse.model_validate(unit) for unit in course.units]


@router.get("/courses/{course_id}/blocks", response_model=List[LearningBlockResponse])
async def get_course_blocks(
    course_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    _get_or_404(db, Course, course_id, "Course")
    return ProgressService(db).get_course_blocks(course_id)


@router.get("/courses/{course_id}/assessments", response_model=List[AssessmentResponse])
async def get_course_assessments(
    course_id: int,
    placement: Optional[AssessmentPlacement] = None,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    """
    Course-level and unit-level assessments of a course
    """
    _get_or_404(db, Course, course_id, "Course")
    assessments = ProgressService(db).get_course_assessments(course_id)
    if placement is not None:
        assessments = [a for a in assessments if a.placement == placement.value]
    return assessments


@router.post("/courses/{course_id}/enroll", response_model=UserProgressResponse)
async def enroll_in_course(
    course_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    """
    Start a course; enrolling twice returns the existing progress record
    """
    progress, created = ProgressService(db).enroll(current_user, course_id)
    if created:
        NotificationService(db).on_course_assigned(current_user.id, progress.course)
    db.commit()
    db.refresh(progress)
    return progress


@router.get("/course-units", response_model=List[CourseUnitResponse])
async def get_course_unit_links(
    course_id: Optional[int] = None,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    query = db.query(CourseUnit)
    if course_id is not None:
        query = query.filter(CourseUnit.course_id == course_id)
    return query.order_by(CourseUnit.course_id, CourseUnit.order).all()


# Order validation

@router.post("/validate/unit-order", response_model=OrderValidationResponse)
async def validate_unit_order(
    request: OrderValidationRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    """
    Check whether a unit order is free, within a course when one is given
    """
    if request.course_id is not None:
        query = db.query(CourseUnit).filter(
            and_(CourseUnit.course_id == request.course_id, CourseUnit.order == request.order)
        )
        if request.exclude_id is not None:
            query = query.filter(CourseUnit.unit_id != request.exclude_id)
    else:
        query = db.query(Unit).filter(Unit.order == request.order)
        if request.exclude_id is not None:
            query = query.filter(Unit.id != request.exclude_id)

    if query.first():
        return OrderValidationResponse(is_available=False, message=f"Order {request.order} is already taken")
    return OrderValidationResponse(is_available=True)


@router.post("/validate/learning-block-order", response_model=OrderValidationResponse)
async def validate_learning_block_order(
    request: OrderValidationRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    if request.unit_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="unit_id is required"
        )
    query = db.query(LearningBlock).filter(
        and_(LearningBlock.unit_id == request.unit_id, LearningBlock.order == request.order)
    )
    if request.exclude_id is not None:
        query = query.filter(LearningBlock.id != request.exclude_id)

    if query.first():
        return OrderValidationResponse(
            is_available=False,
            message=f"Order {request.order} is already taken in this unit"
        )
    return OrderValidationResponse(is_available=True)
