import logging
from typing import Any

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status

from app.api import deps
from app.core.errors import ApiError
from app.core.settings import settings
from app.schemas.common import FieldErrorDetail
from app.schemas.universities import UniversityListResponse, UniversityOut
from app.services.university_lifecycle import (
    NotFound,
    Ok,
    PersistFailure,
    UniversityLifecycle,
    UploadFailure,
)
from app.services.university_validation import InvalidFormat, MissingField
from app.services.uploads import ALLOWED_IMAGE_EXTENSIONS, buffer_images, buffer_upload

router = APIRouter(prefix="/universities", tags=["universities"])
logger = logging.getLogger(__name__)


def _unwrap(result: Any) -> Any:
    """Return the value of an Ok result or raise the matching API error."""
    if isinstance(result, Ok):
        return result.value
    if isinstance(result, MissingField):
        raise ApiError(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "missing_field",
            result.message,
            FieldErrorDetail(field=result.field, reason="missing").model_dump(),
        )
    if isinstance(result, InvalidFormat):
        raise ApiError(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "invalid_format",
            result.message,
            FieldErrorDetail(field=result.field, reason="invalid_format").model_dump(),
        )
    if isinstance(result, NotFound):
        raise ApiError(status.HTTP_404_NOT_FOUND, "not_found", "University not found")
    if isinstance(result, UploadFailure):
        logger.error("Asset upload failed for %s: %s", result.filename, result.cause)
        raise ApiError(
            status.HTTP_502_BAD_GATEWAY,
            "upload_failed",
            "Asset upload failed",
            {"filename": result.filename},
        )
    if isinstance(result, PersistFailure):
        logger.error("University persistence failed: %s", result.cause)
        raise ApiError(status.HTTP_503_SERVICE_UNAVAILABLE, "persist_failed", "University could not be saved")
    raise TypeError(f"Unexpected lifecycle result: {result!r}")


async def _buffer_files(logo: UploadFile | None, images: list[UploadFile] | None):
    max_bytes = settings.max_upload_size_mb * 1024 * 1024
    logo_file = None
    if logo is not None and logo.filename:
        logo_file = await buffer_upload(
            logo, allowed_extensions=ALLOWED_IMAGE_EXTENSIONS, max_size_bytes=max_bytes
        )
    image_files = await buffer_images(images, max_size_bytes=max_bytes, max_count=settings.max_gallery_images)
    return logo_file, image_files


@router.post(
    "",
    response_model=UniversityOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create university",
)
async def create_university(
    name: str | None = Form(None),
    country: str | None = Form(None),
    city: str | None = Form(None),
    address: str | None = Form(None),
    description: str | None = Form(None),
    coordinates: str | None = Form(None),
    cords: str | None = Form(None),
    website: str | None = Form(None),
    contact_email: str | None = Form(None),
    contact_phone: str | None = Form(None),
    contact_email_alias: str | None = Form(None, alias="contactEmail"),
    contact_phone_alias: str | None = Form(None, alias="contactPhone"),
    logo: UploadFile | None = File(None),
    images: list[UploadFile] | None = File(None),
    lifecycle: UniversityLifecycle = Depends(deps.get_university_lifecycle),
    _: deps.AdminContext = Depends(deps.require_admin),
):
    payload = dict(
        name=name,
        country=country,
        city=city,
        address=address,
        description=description,
        coordinates=coordinates,
        cords=cords,
        website=website,
        contact_email=contact_email,
        contact_phone=contact_phone,
        contactEmail=contact_email_alias,
        contactPhone=contact_phone_alias,
    )
    logo_file, image_files = await _buffer_files(logo, images)
    record = _unwrap(await lifecycle.create_record(payload, logo=logo_file, images=image_files))
    return UniversityOut.model_validate(record)


@router.get("", response_model=UniversityListResponse, summary="List universities")
async def list_universities(
    country: str | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    lifecycle: UniversityLifecycle = Depends(deps.get_university_lifecycle),
    _: deps.AdminContext = Depends(deps.require_admin),
) -> UniversityListResponse:
    records, total = _unwrap(
        await lifecycle.list_records(country=country, page=page, page_size=page_size)
    )
    return UniversityListResponse(
        items=[UniversityOut.model_validate(r) for r in records],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{university_id}", response_model=UniversityOut, summary="Get university")
async def get_university(
    university_id: str,
    lifecycle: UniversityLifecycle = Depends(deps.get_university_lifecycle),
    _: deps.AdminContext = Depends(deps.require_admin),
):
    return UniversityOut.model_validate(_unwrap(await lifecycle.get_record(university_id)))


@router.put("/{university_id}", response_model=UniversityOut, summary="Update university")
async def update_university(
    university_id: str,
    name: str | None = Form(None),
    country: str | None = Form(None),
    city: str | None = Form(None),
    address: str | None = Form(None),
    description: str | None = Form(None),
    coordinates: str | None = Form(None),
    cords: str | None = Form(None),
    website: str | None = Form(None),
    contact_email: str | None = Form(None),
    contact_phone: str | None = Form(None),
    contact_email_alias: str | None = Form(None, alias="contactEmail"),
    contact_phone_alias: str | None = Form(None, alias="contactPhone"),
    keep_asset_ids: list[str] | None = Form(None),
    logo: UploadFile | None = File(None),
    images: list[UploadFile] | None = File(None),
    lifecycle: UniversityLifecycle = Depends(deps.get_university_lifecycle),
    _: deps.AdminContext = Depends(deps.require_admin),
):
    payload = dict(
        name=name,
        country=country,
        city=city,
        address=address,
        description=description,
        coordinates=coordinates,
        cords=cords,
        website=website,
        contact_email=contact_email,
        contact_phone=contact_phone,
        contactEmail=contact_email_alias,
        contactPhone=contact_phone_alias,
    )
    logo_file, image_files = await _buffer_files(logo, images)
    result = await lifecycle.update_record(
        university_id,
        payload,
        logo=logo_file,
        images=image_files,
        keep_asset_ids=keep_asset_ids or [],
    )
    return UniversityOut.model_validate(_unwrap(result))


@router.delete(
    "/{university_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete university",
)
async def delete_university(
    university_id: str,
    lifecycle: UniversityLifecycle = Depends(deps.get_university_lifecycle),
    _: deps.AdminContext = Depends(deps.require_admin),
) -> Response:
    _unwrap(await lifecycle.delete_record(university_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
