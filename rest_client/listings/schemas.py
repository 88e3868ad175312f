"""Marketplace listing schemas."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class ListingType(StrEnum):
    SELLING = "selling"
    BUYING = "buying"


class ListingStatus(StrEnum):
    AVAILABLE = "available"
    PENDING = "pending"
    SOLD = "sold"
    EXPIRED = "expired"


class Currency(StrEnum):
    PHP = "PHP"
    USD = "USD"


class ContactMethod(StrEnum):
    PHONE = "phone"
    MESSAGE = "message"
    BOTH = "both"


class ListingRow(BaseModel):
    """Marketplace listing (selling or buying)."""

    id: str
    profile_id: str
    title: str
    description: str | None = None
    price: float | None = None
    currency: Currency = Currency.PHP
    listing_type: ListingType
    category: str | None = None
    location_description: str | None = None
    contact_method: ContactMethod | None = None
    photo_1_url: str | None = None
    photo_2_url: str | None = None
    photo_3_url: str | None = None
    photo_4_url: str | None = None
    photo_5_url: str | None = None
    is_active: bool = True
    is_featured: bool = False
    status: ListingStatus = ListingStatus.AVAILABLE
    created_at: datetime | None = None
    updated_at: datetime | None = None
    expires_at: datetime | None = None


class ListingInsert(BaseModel):
    profile_id: str
    title: str = Field(min_length=2, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    price: float | None = Field(default=None, ge=0)
    currency: Currency = Currency.PHP
    listing_type: ListingType
    category: str | None = None
    location_description: str | None = None
    contact_method: ContactMethod | None = None
    is_active: bool = True
    is_featured: bool = False
    status: ListingStatus = ListingStatus.AVAILABLE


class ListingUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=2, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    price: float | None = Field(default=None, ge=0)
    currency: Currency | None = None
    category: str | None = None
    location_description: str | None = None
    contact_method: ContactMethod | None = None
    is_active: bool | None = None
    is_featured: bool | None = None
    status: ListingStatus | None = None
