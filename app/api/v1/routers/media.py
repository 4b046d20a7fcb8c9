from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse

from app.api import deps
from app.core.limiter import limiter
from app.services.storage.adapter import LocalFileSystemAdapter
from app.services.storage.key_generator import UNIVERSITY_PREFIX
from app.services.storage.service import AssetStore

router = APIRouter(prefix="/media", tags=["media"])


@router.get("/{object_key:path}", summary="Serve a locally stored asset")
@limiter.exempt
async def get_local_media(
    object_key: str,
    asset_store: AssetStore = Depends(deps.get_asset_store),
):
    adapter = asset_store.adapter
    if not isinstance(adapter, LocalFileSystemAdapter):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not supported")
    if not object_key.startswith(UNIVERSITY_PREFIX):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Asset not found")
    try:
        path = adapter.resolve_path(object_key)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not path.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Asset not found")
    # Assets are embedded by the admin UI, which may live on another origin
    return FileResponse(path, headers={"cross-origin-resource-policy": "cross-origin"})
