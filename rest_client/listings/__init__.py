"""Marketplace listings."""

from rest_client.listings.accessor import ListingAccessor
from rest_client.listings.schemas import (
    ContactMethod,
    Currency,
    ListingInsert,
    ListingRow,
    ListingStatus,
    ListingType,
    ListingUpdate,
)

__all__ = [
    "ListingAccessor",
    "ListingRow",
    "ListingInsert",
    "ListingUpdate",
    "ListingStatus",
    "ListingType",
    "Currency",
    "ContactMethod",
]
