from __future__ import annotations

from enum import Enum
from uuid import uuid4

from starlette.concurrency import run_in_threadpool

from app.core.settings import Settings, settings as default_settings
from app.services.storage.adapter import (
    GCSStorageAdapter,
    LocalFileSystemAdapter,
    StorageAdapter,
    StoredObject,
)
from app.services.storage.key_generator import KeyGenerator
from app.services.university_records import AssetKind, AssetRef


class AssetUploadError(Exception):
    """Raised when the store rejects or fails an upload. Wraps the transport error."""

    def __init__(self, filename: str, cause: BaseException):
        super().__init__(f"Upload of {filename!r} failed: {cause}")
        self.filename = filename
        self.cause = cause


class AssetDiscardError(Exception):
    def __init__(self, asset_id: str, cause: BaseException):
        super().__init__(f"Discard of {asset_id!r} failed: {cause}")
        self.asset_id = asset_id
        self.cause = cause


class DiscardOutcome(str, Enum):
    DELETED = "deleted"
    NOT_FOUND = "not_found"


def get_storage_adapter(config: Settings | None = None) -> StorageAdapter:
    config = config or default_settings
    if config.storage_provider == "gcs":
        if not config.gcs_bucket:
            raise ValueError("GCS bucket is not configured")
        return GCSStorageAdapter(
            bucket=config.gcs_bucket,
            public_base_url=config.gcs_public_base_url,
        )

    return LocalFileSystemAdapter(
        base_path=config.local_upload_dir,
        base_url=config.public_base_url,
    )


class AssetStore:
    """Async client over a storage adapter.

    Holds no cache and keeps no local copy of uploaded bytes. Does not retry;
    retry policy belongs to the caller.
    """

    def __init__(self, adapter: StorageAdapter):
        self.adapter = adapter

    @property
    def provider(self) -> str:
        return self.adapter.provider

    async def store(
        self,
        content: bytes,
        filename: str,
        kind: AssetKind,
        content_type: str | None = None,
    ) -> AssetRef:
        object_key = KeyGenerator.generate_object_key(kind, uuid4(), filename)
        try:
            url = self.adapter.public_url(object_key)
            await run_in_threadpool(self.adapter.put_object, object_key, content, content_type)
        except Exception as exc:
            raise AssetUploadError(filename, exc) from exc
        return AssetRef(url=url, asset_id=object_key, kind=AssetKind(kind))

    async def discard(self, asset_id: str) -> DiscardOutcome:
        try:
            deleted = await run_in_threadpool(self.adapter.delete_object, asset_id)
        except Exception as exc:
            raise AssetDiscardError(asset_id, exc) from exc
        return DiscardOutcome.DELETED if deleted else DiscardOutcome.NOT_FOUND

    async def list_objects(self, prefix: str) -> list[StoredObject]:
        return await run_in_threadpool(self.adapter.list_objects, prefix)
