from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException, status
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import or_
from sqlalchemy.orm import Session

from vx_academy.config import settings
from vx_academy.models.activity_log import ActivityType
from vx_academy.models.user import User
from vx_academy.schemas.user import TokenData
from vx_academy.services.activity import log_activity


class AuthService:
    def __init__(self):
        self.pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
        self.secret_key = settings.secret_key
        self.algorithm = settings.algorithm
        self.access_token_expire_minutes = settings.access_token_expire_minutes
        self.refresh_token_expire_days = settings.refresh_token_expire_days

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a password against its hash"""
        return self.pwd_context.verify(plain_password, hashed_password)

    def get_password_hash(self, password: str) -> str:
        """Hash a password"""
        return self.pwd_context.hash(password)

    def authenticate_user(self, db: Session, username: str, password: str) -> Optional[User]:
        """Authenticate a user by username (or email) and password"""
        user = db.query(User).filter(or_(User.username == username, User.email == username)).first()

        if not user or not self.verify_password(password, user.hashed_password):
            return None

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Inactive user"
            )

        user.last_login = datetime.utcnow()
        log_activity(db, user.id, ActivityType.LOGIN)
        db.commit()

        return user

    def create_access_token(self, data: dict, expires_delta: Optional[timedelta] = None) -> str:
        """Create a JWT access token"""
        to_encode = data.copy()

        if expires_delta:
            expire = datetime.utcnow() + expires_delta
        else:
            expire = datetime.utcnow() + timedelta(minutes=self.access_token_expire_minutes)

        to_encode.update({"exp": expire, "type": "access"})
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def create_refresh_token(self, data: dict) -> str:
        """Create a JWT refresh token"""
        to_encode = data.copy()
        expire = datetime.utcnow() + timedelta(days=self.refresh_token_expire_days)
        to_encode.update({"exp": expire, "type": "refresh"})
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str, token_type: str = "access") -> TokenData:
        """Verify and decode a JWT token"""
        credentials_exception = HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
            user_id_str: str = payload.get("sub")
            username: str = payload.get("username")
            role: str = payload.get("role")
            token_type_payload: str = payload.get("type")

            if user_id_str is None or token_type_payload != token_type:
                raise credentials_exception

            try:
                user_id = int(user_id_str)
            except (ValueError, TypeError):
                raise credentials_exception

            return TokenData(user_id=user_id, username=username, role=role)
        except JWTError:
            raise credentials_exception

    def get_current_user(self, db: Session, token: str) -> User:
        """Get current user from JWT token"""
        token_data = self.verify_token(token)
        user = db.query(User).filter(User.id == token_data.user_id).first()

        if user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User not found"
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Inactive user"
            )

        return user

    def refresh_access_token(self, refresh_token: str) -> str:
        """Create new access token from refresh token"""
        token_data = self.verify_token(refresh_token, "refresh")

        new_token_data = {
            "sub": str(token_data.user_id),  # JWT standard requires sub to be a string
            "username": token_data.username,
            "role": token_data.role.value if token_data.role else None,
        }

        return self.create_access_token(new_token_data)

    def create_user_tokens(self, user: User) -> dict:
        """Create both access and refresh tokens for a user"""
        token_data = {
            "sub": str(user.id),
            "username": user.username,
            "role": user.role.value
        }

        return {
            "access_token": self.create_access_token(token_data),
            "refresh_token": self.create_refresh_token(token_data),
            "token_type": "bearer",
            "expires_in": self.access_token_expire_minutes * 60
        }


# Global instance
auth_service = AuthService()
