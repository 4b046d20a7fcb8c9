from datetime import datetime
from uuid import uuid4

import pytest

from app.core.settings import Settings
from app.services.storage.adapter import LocalFileSystemAdapter
from app.services.storage.key_generator import UNIVERSITY_PREFIX, KeyGenerator
from app.services.storage.service import (
    AssetDiscardError,
    AssetStore,
    AssetUploadError,
    DiscardOutcome,
    get_storage_adapter,
)
from app.services.university_records import AssetKind
from conftest import PNG_BYTES


def test_key_generator():
    asset_uuid = uuid4()

    key = KeyGenerator.generate_object_key(AssetKind.LOGO, asset_uuid, "Crest.PNG")
    assert key == f"{UNIVERSITY_PREFIX}logos/{asset_uuid}.png"

    key = KeyGenerator.generate_object_key("gallery_image", asset_uuid, "campus photo.jpeg")
    assert key == f"{UNIVERSITY_PREFIX}gallery/{asset_uuid}.jpeg"

    # No extension
    key = KeyGenerator.generate_object_key(AssetKind.GALLERY_IMAGE, asset_uuid, "")
    assert key == f"{UNIVERSITY_PREFIX}gallery/{asset_uuid}"


def test_key_generator_rejects_unknown_kind():
    with pytest.raises(ValueError):
        KeyGenerator.generate_object_key("org_template", uuid4(), "file.png")


@pytest.fixture
def local_adapter(tmp_path):
    return LocalFileSystemAdapter(base_path=str(tmp_path), base_url="http://testserver/")


def test_local_adapter_round_trip(local_adapter, tmp_path):
    key = "universities/logos/a.png"
    local_adapter.put_object(key, PNG_BYTES, "image/png")

    assert local_adapter.object_exists(key)
    assert (tmp_path / key).read_bytes() == PNG_BYTES
    assert local_adapter.public_url(key) == "http://testserver/api/v1/media/universities/logos/a.png"

    assert local_adapter.delete_object(key) is True
    assert local_adapter.delete_object(key) is False
    assert not local_adapter.object_exists(key)


@pytest.mark.parametrize("key", ["../escape.png", "/etc/passwd", "universities\\logos\\a.png"])
def test_local_adapter_rejects_unsafe_keys(local_adapter, key):
    with pytest.raises(ValueError):
        local_adapter.put_object(key, b"x")
    assert local_adapter.object_exists(key) is False


def test_local_adapter_lists_by_prefix(local_adapter):
    local_adapter.put_object("universities/logos/a.png", b"a")
    local_adapter.put_object("universities/gallery/b.png", b"b")
    local_adapter.put_object("other/c.png", b"c")

    listed = local_adapter.list_objects(UNIVERSITY_PREFIX)

    assert [o.object_key for o in listed] == ["universities/gallery/b.png", "universities/logos/a.png"]
    assert all(isinstance(o.updated_at, datetime) and o.updated_at.tzinfo for o in listed)


def test_get_storage_adapter_local(tmp_path):
    config = Settings(LOCAL_UPLOAD_DIR=str(tmp_path), STORAGE_PROVIDER="local")
    adapter = get_storage_adapter(config)
    assert isinstance(adapter, LocalFileSystemAdapter)


def test_get_storage_adapter_gcs_requires_bucket():
    config = Settings(STORAGE_PROVIDER="gcs", GCS_BUCKET=None)
    with pytest.raises(ValueError):
        get_storage_adapter(config)


@pytest.mark.asyncio
async def test_asset_store_returns_usable_ref(local_adapter):
    store = AssetStore(local_adapter)

    ref = await store.store(PNG_BYTES, "logo.png", AssetKind.LOGO, "image/png")

    assert ref.kind is AssetKind.LOGO
    assert ref.asset_id.startswith("universities/logos/")
    assert ref.url.endswith(ref.asset_id)
    assert local_adapter.object_exists(ref.asset_id)


@pytest.mark.asyncio
async def test_asset_store_discard_outcomes(local_adapter):
    store = AssetStore(local_adapter)
    ref = await store.store(PNG_BYTES, "logo.png", AssetKind.LOGO)

    assert await store.discard(ref.asset_id) is DiscardOutcome.DELETED
    # Already gone is not an error
    assert await store.discard(ref.asset_id) is DiscardOutcome.NOT_FOUND


@pytest.mark.asyncio
async def test_asset_store_wraps_upload_errors(storage):
    storage.fail_put_on = 1
    store = AssetStore(storage)

    with pytest.raises(AssetUploadError) as excinfo:
        await store.store(PNG_BYTES, "logo.png", AssetKind.LOGO)

    assert excinfo.value.filename == "logo.png"
    assert isinstance(excinfo.value.cause, ConnectionError)
    assert storage.objects == {}


@pytest.mark.asyncio
async def test_asset_store_wraps_discard_errors(storage):
    storage.fail_delete_keys.add("universities/logos/x.png")
    store = AssetStore(storage)

    with pytest.raises(AssetDiscardError) as excinfo:
        await store.discard("universities/logos/x.png")

    assert excinfo.value.asset_id == "universities/logos/x.png"
