import logging

from fastapi import FastAPI

from app.core.settings import settings
from app.db.session import engine

logger = logging.getLogger(__name__)


def register_event_handlers(app: FastAPI) -> None:
    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info(
            "University registry starting (environment=%s, storage=%s)",
            settings.environment,
            settings.storage_provider,
        )
        if not settings.admin_api_key:
            logger.warning("ADMIN_API_KEY is empty; admin endpoints are unauthenticated")

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        logger.info("University registry shutting down")
        await engine.dispose()
