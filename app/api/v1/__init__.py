from fastapi import APIRouter

from app.api.v1.routers import (
    health,
    media,
    universities,
)

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(universities.router)
api_router.include_router(media.router)

__all__ = ["api_router"]
