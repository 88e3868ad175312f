"""Marketplace listings table accessor."""

from rest_client.base import TableAccessor
from rest_client.listings.schemas import ListingRow


class ListingAccessor(TableAccessor):
    table = "marketplace_listings"
    row_model = ListingRow
