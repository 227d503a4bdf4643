from fastapi import APIRouter

from app.api.members.routes import router as members_router
from app.api.metadata.routes import router as metadata_router
from app.api.notifications.routes import router as notifications_router

router = APIRouter()
router.include_router(metadata_router)
router.include_router(notifications_router)
router.include_router(members_router)
