"""Locations - blocks and lots."""

from rest_client.locations.accessor import LocationAccessor
from rest_client.locations.schemas import LocationInsert, LocationRow, LocationUpdate

__all__ = [
    "LocationAccessor",
    "LocationRow",
    "LocationInsert",
    "LocationUpdate",
]
