from datetime import datetime
from typing import List, Optional
import re

from pydantic import BaseModel, EmailStr, validator

from vx_academy.models.user import UserRole
from vx_academy.schemas.course import CourseResponse


def _check_password(v: str) -> str:
    if len(v) < 8:
        raise ValueError('Password must be at least 8 characters long')
    if not re.search(r'[a-zA-Z]', v):
        raise ValueError('Password must contain at least one letter')
    if not re.search(r'\d', v):
        raise ValueError('Password must contain at least one number')
    return v


class UserBase(BaseModel):
    username: str
    email: EmailStr
    name: str
    role: UserRole = UserRole.USER
    role_id: Optional[int] = None
    avatar: Optional[str] = None
    language: Optional[str] = "en"


class UserCreate(UserBase):
    password: str

    @validator('password')
    def validate_password(cls, v):
        return _check_password(v)

    @validator('username')
    def validate_username(cls, v):
        if not re.match(r'^[A-Za-z0-9_.-]{3,100}$', v):
            raise ValueError('Username may only contain letters, numbers, dots, dashes and underscores')
        return v


class UserRegister(BaseModel):
    username: str
    email: EmailStr
    name: str
    password: str
    language: Optional[str] = "en"

    @validator('password')
    def validate_password(cls, v):
        return _check_password(v)


class UserUpdate(BaseModel):
    username: Optional[str] = None
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    role: Optional[UserRole] = None
    role_id: Optional[int] = None
    avatar: Optional[str] = None
    language: Optional[str] = None
    is_active: Optional[bool] = None
    password: Optional[str] = None

    @validator('password')
    def validate_password(cls, v):
        if v is None:
            return v
        return _check_password(v)


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    avatar: Optional[str] = None
    language: Optional[str] = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str

    @validator('new_password')
    def validate_password(cls, v):
        return _check_password(v)


class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    name: str
    role: UserRole
    role_id: Optional[int] = None
    xp_points: int
    avatar: Optional[str] = None
    language: Optional[str] = None
    is_active: bool
    created_by: Optional[int] = None
    created_at: datetime
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True


class LeaderboardEntry(BaseModel):
    """Public view of a learner, without email or credentials"""
    id: int
    username: str
    name: str
    avatar: Optional[str] = None
    xp_points: int
    rank: int = 0

    class Config:
        from_attributes = True


class UserLogin(BaseModel):
    username: str
    password: str


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class TokenRefresh(BaseModel):
    refresh_token: str


class TokenData(BaseModel):
    user_id: Optional[int] = None
    username: Optional[str] = None
    role: Optional[UserRole] = None


class RoleBase(BaseModel):
    name: str
    description: Optional[str] = None
    permissions: Optional[dict] = None


class RoleCreate(RoleBase):
    pass


class RoleUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    permissions: Optional[dict] = None


class RoleResponse(RoleBase):
    id: int
    created_at: datetime

    class Config:
        from_attributes = True


class RoleMandatoryCourseCreate(BaseModel):
    course_id: int


class RoleMandatoryCourseResponse(BaseModel):
    id: int
    role_id: int
    course_id: int
    created_at: datetime

    class Config:
        from_attributes = True


class RoleUnitsAssign(BaseModel):
    unit_ids: List[int]


class UserAdminResponse(UserResponse):
    """User row in the admin console"""
    badges_collected: int = 0
    mandatory_progress: int = 0


class MandatoryCourseResponse(BaseModel):
    course: CourseResponse
    is_completed: bool = False
    percent_complete: int = 0
    last_accessed: Optional[datetime] = None

    class Config:
        from_attributes = True
