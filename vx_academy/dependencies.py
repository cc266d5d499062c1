from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from vx_academy.database import get_db
from vx_academy.models.user import User
from vx_academy.services.auth import auth_service


security = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Get current authenticated user"""
    token = credentials.credentials
    return auth_service.get_current_user(db, token)


def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    """Get current active user"""
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Inactive user"
        )
    return current_user


def require_admin(current_user: User = Depends(get_current_active_user)) -> User:
    """Require admin role"""
    if not current_user.is_admin():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user


def require_admin_or_sub_admin(current_user: User = Depends(get_current_active_user)) -> User:
    """Require admin or sub-admin role"""
    if not current_user.is_staff():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin or sub-admin access required"
        )
    return current_user


class PermissionChecker:
    """Dependency that checks a named permission from the role matrix"""

    def __init__(self, permission: str):
        self.permission = permission

    def __call__(self, current_user: User = Depends(get_current_active_user)) -> User:
        if not current_user.has_permission(self.permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {self.permission}"
            )
        return current_user


# Common permission dependencies
can_manage_courses = PermissionChecker("can_manage_courses")
can_manage_training_areas = PermissionChecker("can_manage_training_areas")
can_manage_modules = PermissionChecker("can_manage_modules")
can_manage_units = PermissionChecker("can_manage_units")
can_manage_learning_blocks = PermissionChecker("can_manage_learning_blocks")
can_manage_assessments = PermissionChecker("can_manage_assessments")
can_manage_badges = PermissionChecker("can_manage_badges")
can_manage_roles = PermissionChecker("can_manage_roles")
can_view_analytics = PermissionChecker("can_view_analytics")
