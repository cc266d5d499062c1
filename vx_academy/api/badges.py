from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from vx_academy.database import get_db
from vx_academy.dependencies import can_manage_badges, get_current_active_user, require_admin
from vx_academy.models.badge import Badge
from vx_academy.models.user import User, UserRole
from vx_academy.schemas.badge import BadgeCreate, BadgeResponse, BadgeUpdate, UserBadgeResponse
from vx_academy.schemas.common import MessageResponse
from vx_academy.schemas.user import LeaderboardEntry
from vx_academy.services.badges import BadgeService

router = APIRouter()


def _get_badge(db: Session, badge_id: int) -> Badge:
    badge = db.query(Badge).filter(Badge.id == badge_id).first()
    if not badge:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Badge not found"
        )
    return badge


@router.get("/badges", response_model=List[BadgeResponse])
async def get_badges(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    return db.query(Badge).order_by(Badge.id).all()


@router.post("/admin/badges", response_model=BadgeResponse, status_code=status.HTTP_201_CREATED)
async def create_badge(
    badge_data: BadgeCreate,
    current_user: User = Depends(can_manage_badges),
    db: Session = Depends(get_db)
) -> Any:
    badge = Badge(**badge_data.model_dump())
    db.add(badge)
    db.commit()
    db.refresh(badge)
    return badge


@router.patch("/admin/badges/{badge_id}", response_model=BadgeResponse)
async def update_badge(
    badge_id: int,
    badge_data: BadgeUpdate,
    current_user: User = Depends(can_manage_badges),
    db: Session = Depends(get_db)
) -> Any:
    badge = _get_badge(db, badge_id)
    for field, value in badge_data.model_dump(exclude_unset=True).items():
        setattr(badge, field, value)
    db.commit()
    db.refresh(badge)
    return badge


@router.delete("/admin/badges/{badge_id}", response_model=MessageResponse)
async def delete_badge(
    badge_id: int,
    current_user: User = Depends(can_manage_badges),
    db: Session = Depends(get_db)
) -> Any:
    badge = _get_badge(db, badge_id)
    db.delete(badge)
    db.commit()
    return MessageResponse(message="Badge deleted successfully")


@router.post("/admin/badges/check/{user_id}", response_model=List[UserBadgeResponse])
async def recheck_user_badges(
    user_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> Any:
    """
    Re-evaluate every badge milestone for a user and return the newly awarded badges
    """
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    awarded = BadgeService(db).check_all_badges(user)
    db.commit()
    return awarded


@router.get("/leaderboard", response_model=List[LeaderboardEntry])
async def get_leaderboard(
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    """
    Learners ranked by XP; staff accounts are left out
    """
    users = (
        db.query(User)
        .filter(User.role == UserRole.USER, User.is_active.is_(True))
        .order_by(User.xp_points.desc(), User.id)
        .limit(limit)
        .all()
    )
    return [
        LeaderboardEntry(
            id=u.id,
            username=u.username,
            name=u.name,
            avatar=u.avatar,
            xp_points=u.xp_points or 0,
            rank=rank,
        )
        for rank, u in enumerate(users, 1)
    ]
