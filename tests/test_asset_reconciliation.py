from datetime import datetime, timedelta, timezone

import pytest

from app.services.asset_reconciliation import reconcile_orphans
from conftest import png, valid_payload

GRACE = timedelta(minutes=60)


def age(storage, key: str, minutes: int) -> None:
    storage.updated[key] = datetime.now(timezone.utc) - timedelta(minutes=minutes)


@pytest.mark.asyncio
async def test_sweep_discards_only_old_unreferenced_objects(lifecycle, storage, repository, asset_store):
    record = (await lifecycle.create_record(valid_payload(), logo=png())).value
    storage.put_object("universities/gallery/stale.jpg", b"x")
    storage.put_object("universities/gallery/fresh.jpg", b"y")
    storage.put_object("exports/outside-prefix.csv", b"z")
    age(storage, "universities/gallery/stale.jpg", 120)
    age(storage, "exports/outside-prefix.csv", 120)
    age(storage, record.logo.asset_id, 120)

    report = await reconcile_orphans(repository, asset_store, grace_period=GRACE)

    assert report.scanned == 3
    assert report.referenced == 1
    assert report.too_recent == 1
    assert report.orphaned == ["universities/gallery/stale.jpg"]
    assert report.discarded == ["universities/gallery/stale.jpg"]
    assert storage.object_exists(record.logo.asset_id)
    assert storage.object_exists("universities/gallery/fresh.jpg")
    assert storage.object_exists("exports/outside-prefix.csv")


@pytest.mark.asyncio
async def test_sweep_dry_run_discards_nothing(storage, repository, asset_store):
    storage.put_object("universities/logos/old.png", b"x")
    age(storage, "universities/logos/old.png", 120)

    report = await reconcile_orphans(repository, asset_store, grace_period=GRACE, dry_run=True)

    assert report.orphaned == ["universities/logos/old.png"]
    assert report.discarded == []
    assert storage.object_exists("universities/logos/old.png")


@pytest.mark.asyncio
async def test_sweep_records_discard_failures(storage, repository, asset_store):
    for key in ("universities/logos/a.png", "universities/logos/b.png"):
        storage.put_object(key, b"x")
        age(storage, key, 120)
    storage.fail_delete_keys.add("universities/logos/a.png")

    report = await reconcile_orphans(repository, asset_store, grace_period=GRACE)

    assert report.failed == ["universities/logos/a.png"]
    assert report.discarded == ["universities/logos/b.png"]
    assert report.as_dict() == {
        "scanned": 2,
        "referenced": 0,
        "too_recent": 0,
        "orphaned": 2,
        "discarded": 1,
        "failed": 1,
    }


@pytest.mark.asyncio
async def test_sweep_accepts_naive_now(storage, repository, asset_store):
    storage.put_object("universities/logos/a.png", b"x")
    future = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(hours=3)

    report = await reconcile_orphans(repository, asset_store, grace_period=GRACE, now=future)

    assert report.discarded == ["universities/logos/a.png"]
