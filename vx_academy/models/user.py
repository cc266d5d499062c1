from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Enum as SQLEnum, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from vx_academy.database import Base


class UserRole(str, Enum):
    ADMIN = "admin"
    SUB_ADMIN = "sub-admin"
    USER = "user"


# Permission matrix per role, mirrored to the client through /api/user/permissions
ROLE_PERMISSIONS = {
    UserRole.ADMIN: {
        "can_create_users": True,
        "can_create_sub_admins": True,
        "can_view_all_users": True,
        "can_edit_all_users": True,
        "can_delete_all_users": True,
        "can_manage_roles": True,
        "can_manage_courses": True,
        "can_manage_training_areas": True,
        "can_manage_modules": True,
        "can_manage_units": True,
        "can_manage_assessments": True,
        "can_manage_learning_blocks": True,
        "can_manage_badges": True,
        "can_view_analytics": True,
        "can_view_dashboard": True,
    },
    # Sub-admins only see and edit the users they created
    UserRole.SUB_ADMIN: {
        "can_create_users": True,
        "can_create_sub_admins": False,
        "can_view_all_users": False,
        "can_edit_all_users": False,
        "can_delete_all_users": False,
        "can_manage_roles": True,
        "can_manage_courses": True,
        "can_manage_training_areas": False,
        "can_manage_modules": False,
        "can_manage_units": False,
        "can_manage_assessments": False,
        "can_manage_learning_blocks": False,
        "can_manage_badges": False,
        "can_view_analytics": True,
        "can_view_dashboard": True,
    },
    UserRole.USER: {
        "can_create_users": False,
        "can_create_sub_admins": False,
        "can_view_all_users": False,
        "can_edit_all_users": False,
        "can_delete_all_users": False,
        "can_manage_roles": False,
        "can_manage_courses": False,
        "can_manage_training_areas": False,
        "can_manage_modules": False,
        "can_manage_units": False,
        "can_manage_assessments": False,
        "can_manage_learning_blocks": False,
        "can_manage_badges": False,
        "can_view_analytics": False,
        "can_view_dashboard": False,
    },
}


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(200), nullable=False)
    role = Column(SQLEnum(UserRole), default=UserRole.USER, nullable=False)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="SET NULL"), nullable=True)
    xp_points = Column(Integer, default=0, nullable=False)
    avatar = Column(String(255))
    language = Column(String(10), default="en")
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = Column(DateTime)

    # Relationships
    assigned_role = relationship("Role", back_populates="users")
    progress = relationship("UserProgress", back_populates="user", cascade="all, delete-orphan")
    certificates = relationship("Certificate", back_populates="user", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")
    badges = relationship("UserBadge", back_populates="user", cascade="all, delete-orphan")
    attempts = relationship("AssessmentAttempt", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', role='{self.role}')>"

    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def is_sub_admin(self) -> bool:
        return self.role == UserRole.SUB_ADMIN

    def is_staff(self) -> bool:
        return self.role in [UserRole.ADMIN, UserRole.SUB_ADMIN]

    def get_permissions(self) -> dict:
        return dict(ROLE_PERMISSIONS.get(self.role, ROLE_PERMISSIONS[UserRole.USER]))

    def has_permission(self, permission: str) -> bool:
        return bool(self.get_permissions().get(permission, False))

    def can_manage_user(self, target: "User") -> bool:
        """Admins manage anyone; sub-admins only manage the users they created"""
        if self.is_admin():
            return True
        if self.is_sub_admin():
            return target.created_by == self.id
        return False

    def add_xp(self, points: int) -> None:
        self.xp_points = (self.xp_points or 0) + (points or 0)
