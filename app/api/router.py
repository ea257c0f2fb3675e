"""Aggregate all API routers."""

from fastapi import APIRouter
from app.api.health import router as health_router
from app.api.auth import router as auth_router
from app.api.downloads import router as downloads_router
from app.api.ai import router as ai_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, prefix="/auth", tags=["auth"])
api_router.include_router(downloads_router, tags=["downloads"])
api_router.include_router(ai_router, prefix="/api/ai", tags=["ai"])
