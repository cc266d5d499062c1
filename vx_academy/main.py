import os
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any
import logging

from fastapi import FastAPI, Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vx_academy.api import api_router
from vx_academy.config import settings
from vx_academy.database import create_tables
from vx_academy.exceptions import AcademyError
from vx_academy.schemas.common import HealthCheck
from vx_academy.scheduler import get_scheduler_status, start_scheduler, stop_scheduler

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    create_tables()
    os.makedirs(settings.certificate_output_dir, exist_ok=True)

    if settings.scheduler_enabled:
        try:
            start_scheduler()
        except Exception as e:
            logger.error(f"Could not start scheduler: {str(e)}")

    yield

    # Shutdown
    if settings.scheduler_enabled:
        try:
            stop_scheduler()
        except Exception as e:
            logger.error(f"Could not stop scheduler: {str(e)}")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    VX Academy learning platform

    This API provides endpoints for:
    - Users, organisational roles and mandatory courses
    - Training areas, modules, courses, units and learning blocks
    - Timed assessments with limited attempts
    - Progress tracking, XP, badges and the leaderboard
    - Certificates and notifications
    - Admin dashboard and analytics

    ## Authentication

    The API uses JWT bearer tokens:

    1. Obtain a token from `/api/auth/login`
    2. Send it in the header: `Authorization: Bearer <token>`

    ## User roles

    - **Admin**: full access
    - **Sub-admin**: manages the users they created, courses and roles
    - **User**: takes courses and assessments
    """,
    openapi_tags=[
        {"name": "authentication", "description": "Login, registration and tokens"},
        {"name": "users", "description": "Current user profile and permissions"},
        {"name": "courses", "description": "Training areas, modules and courses"},
        {"name": "units", "description": "Course units"},
        {"name": "learning-blocks", "description": "Unit content blocks"},
        {"name": "assessments", "description": "Assessments, questions and attempts"},
        {"name": "progress", "description": "Course progress and completions"},
        {"name": "badges", "description": "Badges and leaderboard"},
        {"name": "notifications", "description": "In-app notifications"},
        {"name": "certificates", "description": "Course certificates"},
        {"name": "admin", "description": "User, role and analytics administration"},
    ],
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["*"],
)

# Include API router
app.include_router(api_router, prefix="/api")


def _error_content(message: Any, status_code: int, detail: Any = None) -> dict:
    return {
        "success": False,
        "message": message,
        "detail": detail if detail is not None else message,
        "error_code": status_code,
        "timestamp": time.time()
    }


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Validation errors reported by their first failing field"""
    errors = exc.errors()
    first_error = errors[0] if errors else {}
    error_msg = first_error.get('msg', 'Validation error')
    field = first_error.get('loc', ['unknown'])[-1] if first_error.get('loc') else 'unknown'
    error_type = first_error.get('type', 'validation_error')

    if error_type == 'missing':
        user_message = f"Required field '{field}' was not provided"
    elif error_type == 'int_parsing':
        user_message = f"Field '{field}' must be a valid integer"
    else:
        user_message = f"Validation error in field '{field}': {error_msg}"

    return JSONResponse(
        status_code=422,
        content=_error_content(user_message, 422, [
            {"loc": list(e.get("loc", [])), "msg": e.get("msg"), "type": e.get("type")}
            for e in errors
        ])
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Custom HTTP exception handler"""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_content(exc.detail, exc.status_code),
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(AcademyError)
async def academy_exception_handler(request: Request, exc: AcademyError):
    """Business rule violations raised by the service layer"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_content(exc.message, exc.status_code)
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """General exception handler"""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content=_error_content("Internal server error", 500)
    )


@app.get("/", include_in_schema=False)
async def root():
    """Root endpoint"""
    return {
        "message": "VX Academy API",
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/health", response_model=HealthCheck, tags=["health"])
async def health_check() -> Any:
    """Health check endpoint"""
    scheduler_state = "running" if get_scheduler_status()["running"] else "stopped"
    return HealthCheck(
        status="healthy",
        timestamp=datetime.utcnow(),
        version=settings.app_version,
        database="connected",
        services={
            "certificates": "available",
            "scheduler": scheduler_state
        }
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "vx_academy.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
