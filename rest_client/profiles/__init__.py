"""Profiles - public user profiles."""

from rest_client.profiles.accessor import ProfileAccessor
from rest_client.profiles.schemas import ProfileInsert, ProfileRow, ProfileUpdate

__all__ = [
    "ProfileAccessor",
    "ProfileRow",
    "ProfileInsert",
    "ProfileUpdate",
]
