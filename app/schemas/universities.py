from datetime import datetime

from pydantic import BaseModel, ConfigDict

from app.services.university_records import AssetKind


class AssetRefOut(BaseModel):
    url: str
    asset_id: str
    kind: AssetKind

    model_config = ConfigDict(from_attributes=True)


class UniversityOut(BaseModel):
    id: str
    name: str
    country: str
    city: str
    address: str
    description: str
    coordinates: str
    website: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    logo: AssetRefOut | None = None
    images: list[AssetRefOut] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class UniversityListResponse(BaseModel):
    items: list[UniversityOut]
    total: int
    page: int
    page_size: int
