from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from urllib.parse import quote


@dataclass(frozen=True, slots=True)
class StoredObject:
    object_key: str
    updated_at: datetime


class StorageAdapter(ABC):
    provider: str = "local"
    bucket: str | None = None

    @abstractmethod
    def put_object(self, object_key: str, content: bytes, content_type: str | None = None) -> None:
        pass

    @abstractmethod
    def public_url(self, object_key: str) -> str:
        pass

    @abstractmethod
    def delete_object(self, object_key: str) -> bool:
        """Delete an object. Returns False when it was already gone."""
        pass

    @abstractmethod
    def object_exists(self, object_key: str) -> bool:
        pass

    @abstractmethod
    def list_objects(self, prefix: str) -> list[StoredObject]:
        pass


class LocalFileSystemAdapter(StorageAdapter):
    def __init__(self, base_path: str, base_url: str):
        self.base_path = Path(base_path)
        self.base_url = base_url.rstrip("/")
        self.provider = "local"
        self.bucket = "local"
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _resolve_safe_path(self, object_key: str) -> Path:
        if "\\" in object_key:
            raise ValueError("Invalid object key")
        key_path = PurePosixPath(object_key)
        if key_path.is_absolute() or ".." in key_path.parts:
            raise ValueError("Invalid object key")
        base = self.base_path.resolve()
        resolved = (base / Path(object_key)).resolve()
        if resolved != base and base not in resolved.parents:
            raise ValueError("Invalid object key")
        return resolved

    def resolve_path(self, object_key: str) -> Path:
        return self._resolve_safe_path(object_key)

    def put_object(self, object_key: str, content: bytes, content_type: str | None = None) -> None:
        path = self._resolve_safe_path(object_key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)

    def public_url(self, object_key: str) -> str:
        return f"{self.base_url}/api/v1/media/{quote(object_key)}"

    def delete_object(self, object_key: str) -> bool:
        path = self._resolve_safe_path(object_key)
        if not path.exists():
            return False
        path.unlink()
        return True

    def object_exists(self, object_key: str) -> bool:
        try:
            path = self._resolve_safe_path(object_key)
        except ValueError:
            return False
        return path.is_file()

    def list_objects(self, prefix: str) -> list[StoredObject]:
        base = self.base_path.resolve()
        objects = []
        for path in sorted(base.rglob("*")):
            if not path.is_file():
                continue
            key = path.relative_to(base).as_posix()
            if not key.startswith(prefix):
                continue
            modified = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
            objects.append(StoredObject(object_key=key, updated_at=modified))
        return objects


class GCSStorageAdapter(StorageAdapter):
    def __init__(self, bucket: str, *, public_base_url: str | None = None):
        # Lazy import to avoid requiring dependency unless used
        from google.cloud import storage

        self.provider = "gcs"
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None
        self.client = storage.Client()
        self._bucket_ref = self.client.bucket(bucket)

    def put_object(self, object_key: str, content: bytes, content_type: str | None = None) -> None:
        blob = self._bucket_ref.blob(object_key)
        blob.upload_from_string(content, content_type=content_type or "application/octet-stream")

    def public_url(self, object_key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{quote(object_key)}"
        return self._bucket_ref.blob(object_key).public_url

    def delete_object(self, object_key: str) -> bool:
        from google.api_core.exceptions import NotFound

        blob = self._bucket_ref.blob(object_key)
        try:
            blob.delete()
        except NotFound:
            return False
        return True

    def object_exists(self, object_key: str) -> bool:
        blob = self._bucket_ref.blob(object_key)
        return blob.exists()

    def list_objects(self, prefix: str) -> list[StoredObject]:
        return [
            StoredObject(object_key=blob.name, updated_at=blob.updated or blob.time_created)
            for blob in self.client.list_blobs(self.bucket, prefix=prefix)
        ]
