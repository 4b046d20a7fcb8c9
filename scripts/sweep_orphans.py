#!/usr/bin/env python3
"""
Discard university assets that no persisted record references.

Objects younger than the grace period are left alone: they may belong to an
upload whose record has not been committed yet.

Usage:
    python scripts/sweep_orphans.py [--dry-run] [--grace-minutes N]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import timedelta
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.core.logging import configure_logging  # noqa: E402
from app.core.settings import settings  # noqa: E402
from app.db.session import AsyncSessionLocal, engine  # noqa: E402
from app.services.asset_reconciliation import reconcile_orphans  # noqa: E402
from app.services.storage.service import AssetStore, get_storage_adapter  # noqa: E402
from app.services.university_repository import SqlUniversityRepository  # noqa: E402


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Discard unreferenced university assets")
    parser.add_argument("--dry-run", action="store_true", help="Report orphans without deleting them")
    parser.add_argument(
        "--grace-minutes",
        type=int,
        default=settings.orphan_grace_minutes,
        help="Skip objects modified within this many minutes",
    )
    return parser.parse_args(argv)


async def run(dry_run: bool, grace_minutes: int) -> dict:
    asset_store = AssetStore(get_storage_adapter(settings))
    try:
        async with AsyncSessionLocal() as session:
            report = await reconcile_orphans(
                SqlUniversityRepository(session),
                asset_store,
                grace_period=timedelta(minutes=grace_minutes),
                dry_run=dry_run,
            )
    finally:
        await engine.dispose()
    return report.as_dict()


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging()
    summary = asyncio.run(run(args.dry_run, args.grace_minutes))
    print(json.dumps(summary, indent=2))
    return 1 if summary["failed"] else 0


if __name__ == "__main__":
    raise SystemExit(main())
