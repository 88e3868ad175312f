"""Locations table accessor."""

from rest_client.base import TableAccessor
from rest_client.locations.schemas import LocationRow


class LocationAccessor(TableAccessor):
    table = "locations"
    row_model = LocationRow
