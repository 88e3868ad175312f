"""REST client package - PostgREST table accessors."""

from rest_client.base import RestClient, TableAccessor
from rest_client.listings import ListingAccessor
from rest_client.locations import LocationAccessor
from rest_client.messages import MessageAccessor
from rest_client.profiles import ProfileAccessor
from rest_client.threads import ThreadAccessor

__all__ = [
    # Base
    "RestClient",
    "TableAccessor",
    # Accessors
    "ProfileAccessor",
    "LocationAccessor",
    "ListingAccessor",
    "MessageAccessor",
    "ThreadAccessor",
]
