"""Location schemas - blocks and lots."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class LocationRow(BaseModel):
    id: str
    block: str
    lot: str
    coordinates: Any = None
    is_locked: bool = False
    marker_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None


class LocationInsert(BaseModel):
    block: str
    lot: str
    coordinates: Any = None
    marker_url: str | None = None


class LocationUpdate(BaseModel):
    block: str | None = None
    lot: str | None = None
    coordinates: Any = None
    is_locked: bool | None = None
    marker_url: str | None = None
