"""Global test fixtures and shared test infrastructure.

Provides:
- Environment variable defaults (must be set before any app import)
- InMemoryStorageAdapter: StorageAdapter backed by a dict, with failure injection
- InMemoryRepository: RecordRepository backed by a dict, with failure injection
- A shared ``events`` log both fakes append to, for ordering assertions
- Shared pytest fixtures wiring them into a UniversityLifecycle and the API
"""

from __future__ import annotations

import os
import tempfile

# Environment defaults: must be set before importing the app, which triggers
# pydantic Settings validation on import.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "memory://")
os.environ.setdefault("LOCAL_UPLOAD_DIR", tempfile.mkdtemp(prefix="unireg-test-"))
os.environ.setdefault("ADMIN_API_KEY", "")

from datetime import datetime, timezone
from typing import Sequence
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from app.api import deps
from app.core.limiter import limiter
from app.main import app
from app.services.storage.adapter import StorageAdapter, StoredObject
from app.services.storage.service import AssetStore
from app.services.university_lifecycle import UniversityLifecycle
from app.services.university_records import (
    AssetRef,
    UniversityFields,
    UniversityRecord,
    UploadedFile,
)
from app.services.university_repository import PersistenceError, RecordRepository

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 32


def valid_payload(**overrides) -> dict:
    payload = {
        "name": "Acme U",
        "country": "US",
        "city": "X",
        "address": "1 Rd",
        "description": "d",
        "coordinates": "0,0",
    }
    payload.update(overrides)
    return payload


def png(name: str = "logo.png") -> UploadedFile:
    return UploadedFile(filename=name, content=PNG_BYTES, content_type="image/png")


# ---------------------------------------------------------------------------
# InMemoryStorageAdapter
# ---------------------------------------------------------------------------


class InMemoryStorageAdapter(StorageAdapter):
    """Dict-backed store. ``fail_put_on`` is the 1-based put number to fail."""

    def __init__(self, events: list[tuple[str, str]]) -> None:
        self.provider = "memory"
        self.bucket = "memory"
        self.events = events
        self.objects: dict[str, bytes] = {}
        self.updated: dict[str, datetime] = {}
        self.put_count = 0
        self.fail_put_on: int | None = None
        self.fail_delete_keys: set[str] = set()

    def put_object(self, object_key: str, content: bytes, content_type: str | None = None) -> None:
        self.put_count += 1
        if self.fail_put_on is not None and self.put_count == self.fail_put_on:
            self.events.append(("put_failed", object_key))
            raise ConnectionError("storage unavailable")
        self.objects[object_key] = content
        self.updated[object_key] = datetime.now(timezone.utc)
        self.events.append(("put", object_key))

    def public_url(self, object_key: str) -> str:
        return f"https://cdn.example.test/{object_key}"

    def delete_object(self, object_key: str) -> bool:
        self.events.append(("delete", object_key))
        if object_key in self.fail_delete_keys:
            raise ConnectionError("storage unavailable")
        self.updated.pop(object_key, None)
        return self.objects.pop(object_key, None) is not None

    def object_exists(self, object_key: str) -> bool:
        return object_key in self.objects

    def list_objects(self, prefix: str) -> list[StoredObject]:
        return [
            StoredObject(object_key=key, updated_at=self.updated[key])
            for key in sorted(self.objects)
            if key.startswith(prefix)
        ]


# ---------------------------------------------------------------------------
# InMemoryRepository
# ---------------------------------------------------------------------------


class InMemoryRepository(RecordRepository):
    def __init__(self, events: list[tuple[str, str]]) -> None:
        self.events = events
        self.records: dict[str, UniversityRecord] = {}
        self.fail_create = False
        self.fail_find = False
        self.fail_replace = False
        self.fail_delete = False
        self.calls = 0

    def _build(
        self,
        record_id: str,
        fields: UniversityFields,
        logo: AssetRef | None,
        images: Sequence[AssetRef],
        created_at: datetime | None = None,
    ) -> UniversityRecord:
        now = datetime.now(timezone.utc)
        return UniversityRecord(
            id=record_id,
            name=fields.name,
            country=fields.country,
            city=fields.city,
            address=fields.address,
            description=fields.description,
            coordinates=fields.coordinates,
            website=fields.website,
            contact_email=fields.contact_email,
            contact_phone=fields.contact_phone,
            logo=logo,
            images=list(images),
            created_at=created_at or now,
            updated_at=now,
        )

    async def create(self, fields, logo, images) -> UniversityRecord:
        self.calls += 1
        if self.fail_create:
            self.events.append(("create_failed", ""))
            raise PersistenceError("create", RuntimeError("db down"))
        record = self._build(str(uuid4()), fields, logo, images)
        self.records[record.id] = record
        self.events.append(("create", record.id))
        return record

    async def find_by_id(self, record_id: str) -> UniversityRecord | None:
        self.calls += 1
        if self.fail_find:
            raise PersistenceError("find_by_id", RuntimeError("db down"))
        return self.records.get(record_id)

    async def find_many(self, *, country=None, page=1, page_size=10):
        self.calls += 1
        if page < 1 or page_size < 1:
            raise ValueError("invalid page")
        matching = [r for r in self.records.values() if country is None or r.country == country]
        offset = (page - 1) * page_size
        return matching[offset : offset + page_size], len(matching)

    async def replace(self, record_id, fields, logo, images) -> UniversityRecord | None:
        self.calls += 1
        if self.fail_replace:
            self.events.append(("replace_failed", record_id))
            raise PersistenceError("replace", RuntimeError("db down"))
        existing = self.records.get(record_id)
        if existing is None:
            return None
        record = self._build(record_id, fields, logo, images, created_at=existing.created_at)
        self.records[record_id] = record
        self.events.append(("replace", record_id))
        return record

    async def delete(self, record_id: str) -> bool:
        self.calls += 1
        if self.fail_delete:
            self.events.append(("delete_record_failed", record_id))
            raise PersistenceError("delete", RuntimeError("db down"))
        removed = self.records.pop(record_id, None) is not None
        if removed:
            self.events.append(("delete_record", record_id))
        return removed

    async def iter_asset_ids(self) -> set[str]:
        return {a.asset_id for r in self.records.values() for a in r.owned_assets()}


def assert_no_dangling_refs(repository: InMemoryRepository, adapter: InMemoryStorageAdapter) -> None:
    for record in repository.records.values():
        for asset in record.owned_assets():
            assert asset.asset_id in adapter.objects, f"{record.id} points at missing {asset.asset_id}"


# ---------------------------------------------------------------------------
# Shared pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def events() -> list[tuple[str, str]]:
    return []


@pytest.fixture
def storage(events) -> InMemoryStorageAdapter:
    return InMemoryStorageAdapter(events)


@pytest.fixture
def asset_store(storage) -> AssetStore:
    return AssetStore(storage)


@pytest.fixture
def repository(events) -> InMemoryRepository:
    return InMemoryRepository(events)


@pytest.fixture
def lifecycle(repository, asset_store) -> UniversityLifecycle:
    return UniversityLifecycle(repository, asset_store)


@pytest.fixture
def override_deps(lifecycle, asset_store):
    async def _get_lifecycle():
        return lifecycle

    async def _get_asset_store():
        return asset_store

    app.dependency_overrides[deps.get_university_lifecycle] = _get_lifecycle
    app.dependency_overrides[deps.get_asset_store] = _get_asset_store

    yield

    app.dependency_overrides.clear()


@pytest.fixture
def client(override_deps) -> TestClient:
    return TestClient(app)


@pytest.fixture(autouse=True)
def _no_rate_limit(monkeypatch):
    monkeypatch.setattr(limiter, "enabled", False)
    yield
