"""Create, update and delete university records together with their media.

Every operation keeps two promises about the asset store:

* a persisted record never points at an asset that has been discarded, so
  releases happen strictly after the repository commit;
* uploads made by a failed call are discarded before the call returns, in
  reverse upload order, so a failure leaves nothing reachable behind.

Cleanup discards are best-effort. When one fails the asset id is logged on the
``app.asset_cleanup`` logger for the orphan sweep, and the caller still gets
the original failure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Generic, Iterable, Mapping, Sequence, TypeVar

from app.core.context import set_operation
from app.core.logging import get_cleanup_logger
from app.services.storage.service import AssetDiscardError, AssetStore, AssetUploadError
from app.services.university_records import (
    AssetKind,
    AssetRef,
    UniversityRecord,
    UploadedFile,
)
from app.services.university_repository import PersistenceError, RecordRepository
from app.services.university_validation import (
    InvalidFormat,
    MissingField,
    validate_university_payload,
)

logger = logging.getLogger(__name__)
cleanup_logger = get_cleanup_logger()

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True, slots=True)
class UploadFailure:
    filename: str
    cause: BaseException


@dataclass(frozen=True, slots=True)
class PersistFailure:
    cause: BaseException


@dataclass(frozen=True, slots=True)
class NotFound:
    record_id: str


RecordResult = Ok[UniversityRecord] | MissingField | InvalidFormat | UploadFailure | PersistFailure | NotFound
DeleteResult = Ok[None] | PersistFailure | NotFound


@dataclass(frozen=True, slots=True)
class PendingUpload:
    file: UploadedFile
    kind: AssetKind


@dataclass(slots=True)
class _Compensation:
    """Assets stored by the current call, in upload order."""

    stored: list[AssetRef] = field(default_factory=list)

    def record(self, asset: AssetRef) -> None:
        self.stored.append(asset)

    @property
    def logo(self) -> AssetRef | None:
        return next((a for a in self.stored if a.kind is AssetKind.LOGO), None)

    @property
    def images(self) -> list[AssetRef]:
        return [a for a in self.stored if a.kind is AssetKind.GALLERY_IMAGE]


def _pending_uploads(logo: UploadedFile | None, images: Sequence[UploadedFile]) -> list[PendingUpload]:
    pending = [PendingUpload(logo, AssetKind.LOGO)] if logo is not None else []
    pending.extend(PendingUpload(image, AssetKind.GALLERY_IMAGE) for image in images)
    return pending


class UniversityLifecycle:
    def __init__(self, repository: RecordRepository, asset_store: AssetStore):
        self.repository = repository
        self.asset_store = asset_store

    # --- reads -------------------------------------------------------------

    async def get_record(self, record_id: str) -> Ok[UniversityRecord] | NotFound | PersistFailure:
        try:
            record = await self.repository.find_by_id(record_id)
        except PersistenceError as exc:
            return PersistFailure(exc)
        if record is None:
            return NotFound(record_id)
        return Ok(record)

    async def list_records(
        self, *, country: str | None = None, page: int = 1, page_size: int = 10
    ) -> Ok[tuple[list[UniversityRecord], int]] | InvalidFormat | PersistFailure:
        if page < 1:
            return InvalidFormat("page")
        if page_size < 1:
            return InvalidFormat("page_size")
        try:
            return Ok(await self.repository.find_many(country=country, page=page, page_size=page_size))
        except PersistenceError as exc:
            return PersistFailure(exc)

    # --- mutations ---------------------------------------------------------

    async def create_record(
        self,
        payload: Mapping[str, Any],
        *,
        logo: UploadedFile | None = None,
        images: Sequence[UploadedFile] = (),
    ) -> RecordResult:
        set_operation("university.create")
        fields = validate_university_payload(payload)
        if isinstance(fields, (MissingField, InvalidFormat)):
            return fields

        compensation = _Compensation()
        failure = await self._upload_all(_pending_uploads(logo, images), compensation)
        if failure is not None:
            return failure

        try:
            record = await self.repository.create(fields, compensation.logo, compensation.images)
        except PersistenceError as exc:
            logger.warning("University create failed; rolling back %d uploads", len(compensation.stored))
            await self._rollback(compensation)
            return PersistFailure(exc)

        logger.info("University %s created with %d assets", record.id, len(compensation.stored))
        return Ok(record)

    async def update_record(
        self,
        record_id: str,
        payload: Mapping[str, Any],
        *,
        logo: UploadedFile | None = None,
        images: Sequence[UploadedFile] = (),
        keep_asset_ids: Iterable[str] = (),
    ) -> RecordResult:
        """Replace a record's fields and media.

        Existing assets survive only when listed in ``keep_asset_ids``; ids the
        record does not own are ignored. A new logo always replaces the old one.
        Kept gallery images stay in their current order, followed by new ones.
        """
        set_operation("university.update")
        # Validation is pure, so running it first keeps a bad payload free of side effects
        fields = validate_university_payload(payload)
        if isinstance(fields, (MissingField, InvalidFormat)):
            return fields

        try:
            existing = await self.repository.find_by_id(record_id)
        except PersistenceError as exc:
            return PersistFailure(exc)
        if existing is None:
            return NotFound(record_id)

        keep = set(keep_asset_ids)
        kept_logo = existing.logo if existing.logo and existing.logo.asset_id in keep and logo is None else None
        kept_images = [image for image in existing.images if image.asset_id in keep]
        retained = {a.asset_id for a in kept_images}
        if kept_logo:
            retained.add(kept_logo.asset_id)
        released = [a for a in existing.owned_assets() if a.asset_id not in retained]

        compensation = _Compensation()
        failure = await self._upload_all(_pending_uploads(logo, images), compensation)
        if failure is not None:
            return failure

        merged_logo = compensation.logo or kept_logo
        merged_images = kept_images + compensation.images
        try:
            record = await self.repository.replace(record_id, fields, merged_logo, merged_images)
        except PersistenceError as exc:
            logger.warning("University %s replace failed; rolling back new uploads", record_id)
            await self._rollback(compensation)
            return PersistFailure(exc)
        if record is None:
            # Deleted concurrently between lookup and replace
            await self._rollback(compensation)
            return NotFound(record_id)

        await self._release(released)
        logger.info(
            "University %s updated: %d uploaded, %d released",
            record.id,
            len(compensation.stored),
            len(released),
        )
        return Ok(record)

    async def delete_record(self, record_id: str) -> DeleteResult:
        set_operation("university.delete")
        try:
            existing = await self.repository.find_by_id(record_id)
            if existing is None:
                return NotFound(record_id)
            deleted = await self.repository.delete(record_id)
        except PersistenceError as exc:
            return PersistFailure(exc)
        if not deleted:
            return NotFound(record_id)

        await self._release(existing.owned_assets())
        logger.info("University %s deleted", record_id)
        return Ok(None)

    # --- asset steps -------------------------------------------------------

    async def _upload_all(
        self, pending: Sequence[PendingUpload], compensation: _Compensation
    ) -> UploadFailure | None:
        # Sequential on purpose: display order follows upload order and a failure
        # at upload k leaves exactly uploads 1..k-1 to discard.
        for item in pending:
            try:
                asset = await self.asset_store.store(
                    item.file.content, item.file.filename, item.kind, item.file.content_type
                )
            except AssetUploadError as exc:
                logger.warning(
                    "Upload of %s failed; rolling back %d uploads",
                    item.file.filename,
                    len(compensation.stored),
                )
                await self._rollback(compensation)
                return UploadFailure(filename=item.file.filename, cause=exc.cause)
            compensation.record(asset)
        return None

    async def _rollback(self, compensation: _Compensation) -> None:
        await self._discard_each(reversed(compensation.stored), reason="rollback")
        compensation.stored.clear()

    async def _release(self, assets: Iterable[AssetRef]) -> None:
        await self._discard_each(assets, reason="release")

    async def _discard_each(self, assets: Iterable[AssetRef], *, reason: str) -> None:
        for asset in assets:
            try:
                await self.asset_store.discard(asset.asset_id)
            except AssetDiscardError as exc:
                cleanup_logger.warning(
                    "Asset %s discard failed during %s: %s",
                    asset.asset_id,
                    reason,
                    exc.cause,
                    extra={"asset_id": asset.asset_id},
                )
