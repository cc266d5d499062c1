from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from vx_academy.database import get_db
from vx_academy.dependencies import get_current_active_user
from vx_academy.models.user import User, UserRole
from vx_academy.schemas.user import Token, TokenRefresh, UserLogin, UserRegister, UserResponse
from vx_academy.services.auth import auth_service

router = APIRouter()


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    db: Session = Depends(get_db)
) -> Any:
    """
    Self-registration; new accounts always get the learner role
    """
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
        language=user_data.language,
        hashed_password=auth_service.get_password_hash(user_data.password),
        role=UserRole.USER,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@router.post("/login")
async def login(
    user_credentials: UserLogin,
    db: Session = Depends(get_db)
) -> Any:
    """
    User login with username and password, get an access token for future requests
    """
    user = auth_service.authenticate_user(db, user_credentials.username, user_credentials.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    tokens = auth_service.create_user_tokens(user)
    return {
        **tokens,
        "user": {
            "id": user.id,
            "username": user.username,
            "email": user.email,
            "name": user.name,
            "role": user.role.value,
            "role_id": user.role_id,
            "xp_points": user.xp_points,
            "is_active": user.is_active,
        },
    }


@router.post("/refresh", response_model=Token)
async def refresh_token(token_data: TokenRefresh) -> Any:
    """
    Exchange a refresh token for a new access token
    """
    access_token = auth_service.refresh_access_token(token_data.refresh_token)
    return {
        "access_token": access_token,
        "refresh_token": token_data.refresh_token,
        "token_type": "bearer",
        "expires_in": auth_service.access_token_expire_minutes * 60,
    }


@router.get("/me", response_model=UserResponse)
async def read_current_user(current_user: User = Depends(get_current_active_user)) -> Any:
    return current_user
