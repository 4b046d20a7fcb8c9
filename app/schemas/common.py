from __future__ import annotations

from pydantic import BaseModel


class FieldErrorDetail(BaseModel):
    field: str
    reason: str
