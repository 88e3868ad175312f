"""Profiles table accessor."""

from query_cache.accessor import ListResult
from query_cache.filters import Eq, ListQuery
from rest_client.base import TableAccessor
from rest_client.profiles.schemas import ProfileRow


class ProfileAccessor(TableAccessor):
    table = "profiles"
    row_model = ProfileRow

    async def by_username(self, username: str) -> ListResult:
        """Profiles matching ``username`` exactly; at most one."""
        return await self.list(ListQuery.of({"username": Eq(username)}, limit=1))
