from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy import or_
from sqlalchemy.orm import Session

from vx_academy.database import get_db
from vx_academy.dependencies import (
    can_manage_roles,
    can_view_analytics,
    get_current_active_user,
    require_admin,
    require_admin_or_sub_admin,
)
from vx_academy.models.badge import UserBadge
from vx_academy.models.role import Role, RoleMandatoryCourse
from vx_academy.models.user import User, UserRole
from vx_academy.schemas.common import MessageResponse, PaginatedResponse, paginate
from vx_academy.schemas.user import (
    MandatoryCourseResponse,
    RoleCreate,
    RoleMandatoryCourseCreate,
    RoleMandatoryCourseResponse,
    RoleResponse,
    RoleUnitsAssign,
    RoleUpdate,
    UserAdminResponse,
    UserCreate,
    UserResponse,
    UserUpdate,
)
from vx_academy.services.analytics import AnalyticsService
from vx_academy.services.auth import auth_service
from vx_academy.services.roles import RoleService

router = APIRouter()

STAFF_ROLES = (UserRole.ADMIN, UserRole.SUB_ADMIN)


def _get_managed_user(db: Session, user_id: int, current_user: User) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    if not current_user.can_manage_user(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only manage users you created"
        )
    return user


def _check_role_grant(current_user: User, role: Optional[UserRole]) -> None:
    """Sub-admins may only create and edit learners"""
    if role in STAFF_ROLES and not current_user.has_permission("can_create_sub_admins"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to grant admin or sub-admin roles"
        )


def _admin_user_row(user: User, roles: RoleService, db: Session) -> UserAdminResponse:
    row = UserAdminResponse.model_validate(user)
    row.badges_collected = db.query(UserBadge).filter(UserBadge.user_id == user.id).count()
    row.mandatory_progress = roles.mandatory_progress(user)
    return row


# Users

@router.get("/admin/users", response_model=PaginatedResponse[UserAdminResponse])
async def get_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    search: Optional[str] = None,
    role: Optional[UserRole] = None,
    current_user: User = Depends(require_admin_or_sub_admin),
    db: Session = Depends(get_db)
) -> Any:
    """
    Users with badge counts and mandatory course progress. Sub-admins only see
    the users they created.
    """
    query = db.query(User)
    if not current_user.has_permission("can_view_all_users"):
        query = query.filter(User.created_by == current_user.id)
    if search:
        query = query.filter(
            or_(
                User.username.ilike(f"%{search}%"),
                User.name.ilike(f"%{search}%"),
                User.email.ilike(f"%{search}%"),
            )
        )
    if role is not None:
        query = query.filter(User.role == role)

    total = query.count()
    users = query.order_by(User.id).offset(skip).limit(limit).all()
    roles = RoleService(db)
    return paginate([_admin_user_row(u, roles, db) for u in users], total, skip, limit)


@router.post("/admin/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    current_user: User = Depends(require_admin_or_sub_admin),
    db: Session = Depends(get_db)
) -> Any:
    _check_role_grant(current_user, user_data.role)

    existing_user = db.query(User).filter(
        or_(User.username == user_data.username, User.email == user_data.email)
    ).first()
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username or email already registered"
        )

    user = User(
        username=user_data.username,
        email=user_data.email,
        name=user_data.name,
        role=user_data.role,
        avatar=user_data.avatar,
        language=user_data.language,
        hashed_password=auth_service.get_password_hash(user_data.password),
        created_by=current_user.id,
        is_active=True,
    )
    db.add(user)
    db.flush()
    RoleService(db).assign_role(user, user_data.role_id)
    db.commit()
    db.refresh(user)
    return user


@router.get("/admin/users/{user_id}", response_model=UserAdminResponse)
async def get_user(
    user_id: int,
    current_user: User = Depends(require_admin_or_sub_admin),
    db: Session = Depends(get_db)
) -> Any:
    user = _get_managed_user(db, user_id, current_user)
    return _admin_user_row(user, RoleService(db), db)


@router.put("/admin/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    user_data: UserUpdate,
    current_user: User = Depends(require_admin_or_sub_admin),
    db: Session = Depends(get_db)
) -> Any:
    user = _get_managed_user(db, user_id, current_user)
    update_data = user_data.model_dump(exclude_unset=True)

    if "role" in update_data:
        _check_role_grant(current_user, update_data["role"])
    if user.id == current_user.id and update_data.get("is_active") is False:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot deactivate your own account"
        )

    for unique_field in ("username", "email"):
        value = update_data.get(unique_field)
        if value and db.query(User).filter(getattr(User, unique_field) == value, User.id != user.id).first():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{unique_field.capitalize()} already registered"
            )

    password = update_data.pop("password", None)
    if password:
        user.hashed_password = auth_service.get_password_hash(password)

    role_changed = "role_id" in update_data and update_data["role_id"] != user.role_id
    role_id = update_data.pop("role_id", user.role_id)
    for field, value in update_data.items():
        setattr(user, field, value)
    if role_changed:
        RoleService(db).assign_role(user, role_id)

    db.commit()
    db.refresh(user)
    return user


@router.delete("/admin/users/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    current_user: User = Depends(require_admin_or_sub_admin),
    db: Session = Depends(get_db)
) -> Any:
    user = _get_managed_user(db, user_id, current_user)
    if user.id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot delete your own account"
        )
    db.delete(user)
    db.commit()
    return MessageResponse(message="User deleted successfully")


# Roles

@router.get("/roles", response_model=List[RoleResponse])
async def get_roles(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    return db.query(Role).order_by(Role.name).all()


@router.get("/roles/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    return RoleService(db).get_role(role_id)


@router.post("/admin/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    role_data: RoleCreate,
    current_user: User = Depends(can_manage_roles),
    db: Session = Depends(get_db)
) -> Any:
    if db.query(Role).filter(Role.name == role_data.name).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A role with this name already exists"
        )
    role = Role(**role_data.model_dump())
    db.add(role)
    db.commit()
    db.refresh(role)
    return role


@router.patch("/admin/roles/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: int,
    role_data: RoleUpdate,
    current_user: User = Depends(can_manage_roles),
    db: Session = Depends(get_db)
) -> Any:
    role = RoleService(db).get_role(role_id)
    for field, value in role_data.model_dump(exclude_unset=True).items():
        setattr(role, field, value)
    db.commit()
    db.refresh(role)
    return role


@router.delete("/admin/roles/{role_id}", response_model=MessageResponse)
async def delete_role(
    role_id: int,
    current_user: User = Depends(can_manage_roles),
    db: Session = Depends(get_db)
) -> Any:
    role = RoleService(db).get_role(role_id)
    for user in role.users:
        user.role_id = None
    db.delete(role)
    db.commit()
    return MessageResponse(message="Role deleted successfully")


@router.get("/admin/roles/{role_id}/mandatory-courses", response_model=List[RoleMandatoryCourseResponse])
async def get_role_mandatory_courses(
    role_id: int,
    current_user: User = Depends(can_manage_roles),
    db: Session = Depends(get_db)
) -> Any:
    RoleService(db).get_role(role_id)
    return (
        db.query(RoleMandatoryCourse)
        .filter(RoleMandatoryCourse.role_id == role_id)
        .order_by(RoleMandatoryCourse.course_id)
        .all()
    )


@router.post(
    "/admin/roles/{role_id}/mandatory-courses",
    response_model=RoleMandatoryCourseResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_role_mandatory_course(
    role_id: int,
    assignment: RoleMandatoryCourseCreate,
    current_user: User = Depends(can_manage_roles),
    db: Session = Depends(get_db)
) -> Any:
    """
    Make a course mandatory for a role; users holding the role are enrolled
    """
    link, _ = RoleService(db).add_mandatory_course(role_id, assignment.course_id)
    db.commit()
    db.refresh(link)
    return link


@router.delete("/admin/roles/{role_id}/mandatory-courses/{course_id}", response_model=MessageResponse)
async def remove_role_mandatory_course(
    role_id: int,
    course_id: int,
    current_user: User = Depends(can_manage_roles),
    db: Session = Depends(get_db)
) -> Any:
    RoleService(db).remove_mandatory_course(role_id, course_id)
    db.commit()
    return MessageResponse(message="Mandatory course removed from role")


@router.post("/admin/roles/{role_id}/units", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def assign_units_to_role(
    role_id: int,
    assignment: RoleUnitsAssign,
    current_user: User = Depends(can_manage_roles),
    db: Session = Depends(get_db)
) -> Any:
    """
    Every course containing one of the units becomes mandatory for the role
    """
    created = RoleService(db).assign_units(role_id, assignment.unit_ids)
    db.commit()
    return MessageResponse(message="Units assigned successfully", data={"assignments": created})


@router.get("/my-mandatory-courses", response_model=List[MandatoryCourseResponse])
async def get_my_mandatory_courses(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    return RoleService(db).courses_with_progress(current_user)


# Dashboard

@router.get("/admin/stats")
async def get_admin_stats(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> Any:
    return AnalyticsService(db).admin_stats()


@router.get("/admin/analytics")
async def get_analytics(
    time_range: str = Query("month", alias="timeRange"),
    current_user: User = Depends(can_view_analytics),
    db: Session = Depends(get_db)
) -> Any:
    return AnalyticsService(db).overview(time_range)


@router.get("/admin/analytics/timeseries")
async def get_analytics_timeseries(
    time_range: str = Query("month", alias="timeRange"),
    current_user: User = Depends(can_view_analytics),
    db: Session = Depends(get_db)
) -> Any:
    return AnalyticsService(db).time_series(time_range)


@router.get("/admin/analytics/export")
async def export_analytics(
    time_range: str = Query("month", alias="timeRange"),
    current_user: User = Depends(can_view_analytics),
    db: Session = Depends(get_db)
) -> StreamingResponse:
    """
    Export the analytics report to Excel
    """
    excel_buffer = AnalyticsService(db).export_workbook(time_range)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filename = f"analytics_{time_range}_{timestamp}.xlsx"

    return StreamingResponse(
        excel_buffer,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )
