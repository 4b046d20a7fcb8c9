from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection
from starlette.concurrency import run_in_threadpool

from app.core.settings import settings
from app.db.session import engine
from app.services.storage.key_generator import UNIVERSITY_PREFIX
from app.services.storage.service import get_storage_adapter
from app.utils.redis_client import get_redis_client

APP_VERSION = "0.1.0"


async def _check_db() -> dict[str, str]:
    try:
        async with engine.begin() as conn:  # type: AsyncConnection
            await conn.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as exc:  # pragma: no cover - exercised in runtime
        return {"status": "error", "error": str(exc)}


async def _check_redis() -> dict[str, str]:
    try:
        redis = get_redis_client()
        await redis.ping()
        return {"status": "ok"}
    except Exception as exc:
        return {"status": "error", "error": str(exc)}


async def _check_api() -> dict[str, str]:
    return {"status": "ok", "version": APP_VERSION}


async def _check_storage() -> dict[str, str]:
    try:
        adapter = get_storage_adapter()
        # A lookup under the university prefix proves credentials and reachability
        await run_in_threadpool(adapter.object_exists, f"{UNIVERSITY_PREFIX}.readiness-probe")
        return {"status": "ok", "provider": adapter.provider}
    except Exception as exc:
        return {"status": "error", "error": str(exc)}


def _overall_status(checks: dict[str, dict[str, Any]]) -> tuple[str, bool]:
    ready = all(check.get("status") == "ok" for check in checks.values())
    return ("ok" if ready else "degraded", ready)


async def live_payload() -> dict[str, str]:
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def _run_checks() -> dict[str, dict[str, Any]]:
    return {
        "api": await _check_api(),
        "database": await _check_db(),
        "redis": await _check_redis(),
        "storage": await _check_storage(),
    }


async def ready_payload() -> dict[str, Any]:
    checks = await _run_checks()
    overall, ready = _overall_status(checks)
    return {
        "status": overall,
        "ready": ready,
        "environment": settings.environment,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }


async def status_summary_payload() -> dict[str, Any]:
    payload = await ready_payload()
    payload["version"] = APP_VERSION
    return payload
