from fastapi import APIRouter

from .auth import router as auth_router
from .users import router as users_router
from .courses import router as courses_router
from .units import router as units_router
from .learning_blocks import router as learning_blocks_router
from .assessments import router as assessments_router
from .progress import router as progress_router
from .badges import router as badges_router
from .notifications import router as notifications_router
from .certificates import router as certificates_router
from .admin import router as admin_router


api_router = APIRouter()

# Include available routers
api_router.include_router(auth_router, prefix="/auth", tags=["authentication"])
api_router.include_router(users_router, prefix="/user", tags=["users"])
api_router.include_router(courses_router, tags=["courses"])
api_router.include_router(units_router, prefix="/units", tags=["units"])
api_router.include_router(learning_blocks_router, prefix="/learning-blocks", tags=["learning-blocks"])
api_router.include_router(assessments_router, tags=["assessments"])
api_router.include_router(progress_router, tags=["progress"])
api_router.include_router(badges_router, tags=["badges"])
api_router.include_router(notifications_router, prefix="/notifications", tags=["notifications"])
api_router.include_router(certificates_router, prefix="/certificates", tags=["certificates"])
api_router.include_router(admin_router, tags=["admin"])
