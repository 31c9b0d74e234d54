from fastapi import APIRouter

from app.api.favicon.routes import router as favicon_router

router = APIRouter()
router.include_router(favicon_router)
