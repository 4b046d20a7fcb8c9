"""Orphan sweep: discard stored assets that no university record references.

Best-effort cleanup in the lifecycle operations can leave an asset behind
when a discard call fails. This sweep lists the store under the university
prefix and removes anything unreferenced. Objects younger than the grace
period are skipped so uploads that have not been committed yet survive.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from app.services.storage.key_generator import UNIVERSITY_PREFIX
from app.services.storage.service import AssetDiscardError, AssetStore, DiscardOutcome
from app.services.university_repository import RecordRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SweepReport:
    scanned: int = 0
    referenced: int = 0
    too_recent: int = 0
    orphaned: list[str] = field(default_factory=list)
    discarded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "scanned": self.scanned,
            "referenced": self.referenced,
            "too_recent": self.too_recent,
            "orphaned": len(self.orphaned),
            "discarded": len(self.discarded),
            "failed": len(self.failed),
        }


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


async def reconcile_orphans(
    repository: RecordRepository,
    asset_store: AssetStore,
    *,
    grace_period: timedelta,
    dry_run: bool = False,
    now: datetime | None = None,
) -> SweepReport:
    now = _as_utc(now or datetime.now(timezone.utc))
    cutoff = now - grace_period
    report = SweepReport()

    # Snapshot the store before the references: an asset committed in between
    # then shows up as referenced rather than orphaned.
    objects = await asset_store.list_objects(UNIVERSITY_PREFIX)
    referenced = await repository.iter_asset_ids()

    for obj in objects:
        report.scanned += 1
        if obj.object_key in referenced:
            report.referenced += 1
            continue
        if _as_utc(obj.updated_at) > cutoff:
            report.too_recent += 1
            continue
        report.orphaned.append(obj.object_key)

    if dry_run:
        logger.info("Orphan sweep dry run: %s", report.as_dict())
        return report

    for object_key in report.orphaned:
        try:
            outcome = await asset_store.discard(object_key)
        except AssetDiscardError as exc:
            logger.warning("Orphan %s could not be discarded: %s", object_key, exc.cause)
            report.failed.append(object_key)
            continue
        if outcome is DiscardOutcome.DELETED:
            report.discarded.append(object_key)

    logger.info("Orphan sweep finished: %s", report.as_dict())
    return report
