from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from vx_academy.models.badge import BadgeType


class BadgeBase(BaseModel):
    name: str
    description: str
    image_url: Optional[str] = None
    xp_points: int = 100
    type: Optional[BadgeType] = None


class BadgeCreate(BadgeBase):
    class Config:
        use_enum_values = True


class BadgeUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    xp_points: Optional[int] = None
    type: Optional[BadgeType] = None

    class Config:
        use_enum_values = True


class BadgeResponse(BadgeBase):
    id: int
    created_at: datetime

    class Config:
        from_attributes = True


class UserBadgeResponse(BaseModel):
    id: int
    user_id: int
    badge_id: int
    earned_at: Optional[datetime] = None
    badge: BadgeResponse

    class Config:
        from_attributes = True
