from uuid import UUID
from pathlib import Path
import re

from app.services.university_records import AssetKind

UNIVERSITY_PREFIX = "universities/"


class KeyGenerator:
    @staticmethod
    def _safe_filename(filename: str) -> str:
        # Simple sanitization
        s = re.sub(r"[^a-zA-Z0-9_.-]", "_", filename)
        return s

    @staticmethod
    def generate_object_key(kind: AssetKind | str, asset_uuid: UUID, filename: str) -> str:
        kind = AssetKind(kind)
        ext = Path(KeyGenerator._safe_filename(filename or "")).suffix.lower()

        # Filename is ignored beyond its extension; keys must not collide across uploads
        folder = "logos" if kind is AssetKind.LOGO else "gallery"
        return f"{UNIVERSITY_PREFIX}{folder}/{asset_uuid}{ext}"
