from datetime import datetime
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar('T')


class PaginatedResponse(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    size: int
    pages: int
    has_next: bool
    has_prev: bool


class MessageResponse(BaseModel):
    message: str
    success: bool = True
    data: Optional[Any] = None


class ErrorResponse(BaseModel):
    message: str
    error_code: Optional[int] = None
    detail: Optional[Any] = None
    success: bool = False


class HealthCheck(BaseModel):
    status: str = "healthy"
    timestamp: datetime
    version: str
    database: str = "connected"
    services: dict = {}


class OrderValidationRequest(BaseModel):
    order: int
    unit_id: Optional[int] = None
    course_id: Optional[int] = None
    exclude_id: Optional[int] = None


class OrderValidationResponse(BaseModel):
    is_available: bool
    message: Optional[str] = None


def paginate(items: list, total: int, skip: int, limit: int) -> dict:
    """Build the PaginatedResponse fields for an offset/limit page"""
    page = (skip // limit) + 1 if limit > 0 else 1
    pages = (total + limit - 1) // limit if limit > 0 else 1
    return {
        "items": items,
        "total": total,
        "page": page,
        "size": limit,
        "pages": pages,
        "has_next": skip + limit < total,
        "has_prev": skip > 0,
    }
