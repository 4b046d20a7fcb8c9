import hmac
from dataclasses import dataclass
from functools import lru_cache

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.settings import settings
from app.db.session import get_db
from app.services.storage.service import AssetStore, get_storage_adapter
from app.services.university_lifecycle import UniversityLifecycle
from app.services.university_repository import SqlUniversityRepository


@dataclass(slots=True)
class AdminContext:
    authenticated: bool


async def get_db_session(db: AsyncSession = Depends(get_db)) -> AsyncSession:
    return db


@lru_cache(maxsize=1)
def _default_asset_store() -> AssetStore:
    return AssetStore(get_storage_adapter(settings))


async def get_asset_store() -> AssetStore:
    return _default_asset_store()


async def get_university_lifecycle(
    db: AsyncSession = Depends(get_db_session),
    asset_store: AssetStore = Depends(get_asset_store),
) -> UniversityLifecycle:
    return UniversityLifecycle(SqlUniversityRepository(db), asset_store)


async def require_admin(
    admin_key: str | None = Header(default=None, alias="X-Admin-Key"),
) -> AdminContext:
    expected = settings.admin_api_key
    if not expected:
        return AdminContext(authenticated=False)
    if not admin_key or not hmac.compare_digest(admin_key.encode(), expected.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid admin key",
        )
    return AdminContext(authenticated=True)
