from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from vx_academy.database import get_db
from vx_academy.dependencies import get_current_active_user
from vx_academy.models.badge import UserBadge
from vx_academy.models.user import User
from vx_academy.schemas.badge import UserBadgeResponse
from vx_academy.schemas.common import MessageResponse
from vx_academy.schemas.user import PasswordChange, ProfileUpdate, UserResponse
from vx_academy.services.auth import auth_service

router = APIRouter()


@router.get("/permissions")
async def get_my_permissions(current_user: User = Depends(get_current_active_user)) -> Any:
    """
    Permission flags of the caller's role, used by the client to show or hide features
    """
    return {
        "role": current_user.role.value,
        "permissions": current_user.get_permissions(),
    }


@router.patch("/profile", response_model=UserResponse)
async def update_profile(
    profile: ProfileUpdate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    for field, value in profile.model_dump(exclude_unset=True).items():
        setattr(current_user, field, value)
    db.commit()
    db.refresh(current_user)
    return current_user


@router.patch("/password", response_model=MessageResponse)
async def change_password(
    password_data: PasswordChange,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    if not auth_service.verify_password(password_data.current_password, current_user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect"
        )
    current_user.hashed_password = auth_service.get_password_hash(password_data.new_password)
    db.commit()
    return MessageResponse(message="Password updated successfully")


@router.get("/badges", response_model=List[UserBadgeResponse])
async def get_my_badges(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    return (
        db.query(UserBadge)
        .filter(UserBadge.user_id == current_user.id)
        .order_by(UserBadge.earned_at.desc())
        .all()
    )
