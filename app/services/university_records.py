from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class AssetKind(str, Enum):
    LOGO = "logo"
    GALLERY_IMAGE = "gallery_image"


@dataclass(frozen=True, slots=True)
class AssetRef:
    """One stored file. ``asset_id`` is the store's deletion handle."""

    url: str
    asset_id: str
    kind: AssetKind

    def to_dict(self) -> dict[str, str]:
        return {"url": self.url, "asset_id": self.asset_id, "kind": self.kind.value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AssetRef":
        return cls(url=data["url"], asset_id=data["asset_id"], kind=AssetKind(data["kind"]))


@dataclass(frozen=True, slots=True)
class UploadedFile:
    """A fully buffered upload; the HTTP layer has already closed the stream."""

    filename: str
    content: bytes
    content_type: str | None = None


@dataclass(frozen=True, slots=True)
class UniversityFields:
    name: str
    country: str
    city: str
    address: str
    description: str
    coordinates: str
    website: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None


@dataclass(slots=True)
class UniversityRecord:
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
    logo: AssetRef | None = None
    images: list[AssetRef] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def owned_assets(self) -> list[AssetRef]:
        """Logo first, then gallery images in display order."""
        assets = [self.logo] if self.logo else []
        assets.extend(self.images)
        return assets
