from typing import Any, List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from vx_academy.database import get_db
from vx_academy.dependencies import get_current_active_user
from vx_academy.models.user import User
from vx_academy.schemas.common import MessageResponse
from vx_academy.schemas.notification import NotificationCount, NotificationResponse
from vx_academy.services.notifications import NotificationService

router = APIRouter()


@router.get("", response_model=List[NotificationResponse])
async def get_notifications(
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    """
    Newest notifications of the current user
    """
    return NotificationService(db).list_for_user(current_user.id, limit=limit)


@router.get("/count", response_model=NotificationCount)
async def get_unread_count(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    return NotificationCount(count=NotificationService(db).unread_count(current_user.id))


@router.patch("/mark-all-read", response_model=MessageResponse)
async def mark_all_read(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    updated = NotificationService(db).mark_all_read(current_user.id)
    db.commit()
    return MessageResponse(message="All notifications marked as read", data={"updated": updated})


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    notification = NotificationService(db).mark_read(notification_id, current_user.id)
    db.commit()
    db.refresh(notification)
    return notification


@router.delete("/{notification_id}", response_model=MessageResponse)
async def delete_notification(
    notification_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    NotificationService(db).delete(notification_id, current_user.id)
    db.commit()
    return MessageResponse(message="Notification deleted successfully")
