from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.university import University
from app.services.university_records import (
    AssetRef,
    UniversityFields,
    UniversityRecord,
)

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Raised when the record store fails. Wraps the driver error."""

    def __init__(self, operation: str, cause: BaseException):
        super().__init__(f"{operation} failed: {cause}")
        self.operation = operation
        self.cause = cause


def _check_page(page: int, page_size: int) -> None:
    if page < 1:
        raise ValueError("page must be >= 1")
    if page_size < 1:
        raise ValueError("page_size must be > 0")


class RecordRepository(ABC):
    """University record collection keyed by an opaque id.

    Every mutating call stands alone; callers must not assume that two calls
    commit atomically.
    """

    @abstractmethod
    async def create(
        self, fields: UniversityFields, logo: AssetRef | None, images: Sequence[AssetRef]
    ) -> UniversityRecord:
        pass

    @abstractmethod
    async def find_by_id(self, record_id: str) -> UniversityRecord | None:
        pass

    @abstractmethod
    async def find_many(
        self, *, country: str | None = None, page: int = 1, page_size: int = 10
    ) -> tuple[list[UniversityRecord], int]:
        pass

    @abstractmethod
    async def replace(
        self,
        record_id: str,
        fields: UniversityFields,
        logo: AssetRef | None,
        images: Sequence[AssetRef],
    ) -> UniversityRecord | None:
        """Overwrite a record. Returns None when it no longer exists."""
        pass

    @abstractmethod
    async def delete(self, record_id: str) -> bool:
        pass

    @abstractmethod
    async def iter_asset_ids(self) -> set[str]:
        """Every asset id referenced by any persisted record."""
        pass


def _parse_id(record_id: str) -> UUID | None:
    try:
        return UUID(str(record_id))
    except (TypeError, ValueError):
        return None


def _to_record(row: University) -> UniversityRecord:
    return UniversityRecord(
        id=str(row.id),
        name=row.name,
        country=row.country,
        city=row.city,
        address=row.address,
        description=row.description,
        coordinates=row.coordinates,
        website=row.website,
        contact_email=row.contact_email,
        contact_phone=row.contact_phone,
        logo=AssetRef.from_dict(row.logo) if row.logo else None,
        images=[AssetRef.from_dict(item) for item in (row.images or [])],
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _apply(row: University, fields: UniversityFields, logo: AssetRef | None, images: Sequence[AssetRef]) -> None:
    row.name = fields.name
    row.country = fields.country
    row.city = fields.city
    row.address = fields.address
    row.description = fields.description
    row.coordinates = fields.coordinates
    row.website = fields.website
    row.contact_email = fields.contact_email
    row.contact_phone = fields.contact_phone
    row.logo = logo.to_dict() if logo else None
    row.images = [image.to_dict() for image in images]


class SqlUniversityRepository(RecordRepository):
    """SQL-backed records. Expects a session built with ``expire_on_commit=False``
    so rows stay readable after commit without another round trip.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_row(self, record_id: str) -> University | None:
        parsed = _parse_id(record_id)
        if parsed is None:
            return None
        return await self.db.get(University, parsed)

    async def _rollback(self) -> None:
        try:
            await self.db.rollback()
        except SQLAlchemyError as exc:
            logger.warning("Session rollback failed: %s", exc)

    async def create(
        self, fields: UniversityFields, logo: AssetRef | None, images: Sequence[AssetRef]
    ) -> UniversityRecord:
        # Set client-side; nothing is read back after the commit.
        now = datetime.now(timezone.utc)
        row = University(created_at=now, updated_at=now)
        _apply(row, fields, logo, images)
        self.db.add(row)
        try:
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self._rollback()
            raise PersistenceError("create", exc) from exc
        return _to_record(row)

    async def find_by_id(self, record_id: str) -> UniversityRecord | None:
        try:
            row = await self._get_row(record_id)
        except SQLAlchemyError as exc:
            await self._rollback()
            raise PersistenceError("find_by_id", exc) from exc
        return _to_record(row) if row else None

    async def find_many(
        self, *, country: str | None = None, page: int = 1, page_size: int = 10
    ) -> tuple[list[UniversityRecord], int]:
        _check_page(page, page_size)
        filters = []
        if country:
            filters.append(University.country == country)

        offset = (page - 1) * page_size
        base_stmt = select(University).where(*filters)
        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        try:
            total = (await self.db.execute(count_stmt)).scalar_one()
            result = await self.db.execute(
                base_stmt.order_by(University.created_at.desc(), University.id)
                .offset(offset)
                .limit(page_size)
            )
        except SQLAlchemyError as exc:
            await self._rollback()
            raise PersistenceError("find_many", exc) from exc
        return [_to_record(row) for row in result.scalars().all()], int(total)

    async def replace(
        self,
        record_id: str,
        fields: UniversityFields,
        logo: AssetRef | None,
        images: Sequence[AssetRef],
    ) -> UniversityRecord | None:
        try:
            row = await self._get_row(record_id)
            if row is None:
                return None
            _apply(row, fields, logo, images)
            row.updated_at = datetime.now(timezone.utc)
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self._rollback()
            raise PersistenceError("replace", exc) from exc
        return _to_record(row)

    async def delete(self, record_id: str) -> bool:
        try:
            row = await self._get_row(record_id)
            if row is None:
                return False
            await self.db.delete(row)
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self._rollback()
            raise PersistenceError("delete", exc) from exc
        return True

    async def iter_asset_ids(self) -> set[str]:
        stmt = select(University.logo, University.images)
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as exc:
            await self._rollback()
            raise PersistenceError("iter_asset_ids", exc) from exc
        asset_ids: set[str] = set()
        for logo, images in result.all():
            if logo:
                asset_ids.add(logo["asset_id"])
            for image in images or []:
                asset_ids.add(image["asset_id"])
        return asset_ids
