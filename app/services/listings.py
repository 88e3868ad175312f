"""Marketplace listing service - status and featured flag mutations."""

from functools import partial

from loguru import logger

from app.keys import ListingKeys, listing_record_keys
from query_cache.accessor import ListResult, Record
from query_cache.crud import CrudOperations
from query_cache.executor import Mutation, MutationExecutor, MutationResult
from query_cache.filters import Eq, ListQuery
from query_cache.store import CacheStore, QueryState
from rest_client.listings.schemas import ListingStatus


class ListingService:
    """Listing queries and single-field mutations on top of the generic CRUD operations."""

    def __init__(self, crud: CrudOperations, executor: MutationExecutor):
        self.crud = crud
        self.keys: ListingKeys = crud.keys
        self._executor = executor
        self._store = executor.store
        self._accessor = crud.config.accessor

    # ========== Queries ==========

    async def featured(self, limit: int = 10) -> QueryState:
        query = ListQuery.of(
            {"is_featured": Eq(True), "is_active": Eq(True)}, order="created_at", descending=True, limit=limit
        )
        return await self._store.fetch(self.keys.featured(query), partial(self._accessor.list, query))

    async def by_profile(self, profile_id: str) -> QueryState:
        query = ListQuery.of({"profile_id": Eq(profile_id)}, order="created_at", descending=True)
        return await self._store.fetch(self.keys.by_profile(profile_id), partial(self._accessor.list, query))

    # ========== Mutations ==========

    async def update_status(self, listing_id: str, status: ListingStatus | str) -> MutationResult[Record]:
        status = ListingStatus(status)
        return await self._patch("update_status", listing_id, {"status": status.value})

    async def toggle_featured(self, listing_id: str, featured: bool) -> MutationResult[Record]:
        return await self._patch(
            "toggle_featured", listing_id, {"is_featured": featured}, invalidates=(self.keys.featured(),)
        )

    async def _patch(self, name: str, listing_id: str, changes: Record, invalidates=()) -> MutationResult[Record]:
        """Patch one listing everywhere it is cached; every list holding it is invalidated on settle."""
        holding = [key for key in self._store.keys(self.keys.all) if self._holds(key, listing_id)]

        def apply(store: CacheStore) -> None:
            for key in store.keys(self.keys.all):
                value = store.get(key)
                if isinstance(value, ListResult) and value.contains(listing_id):
                    store.set(key, lambda page: page.patch({listing_id: changes}))
                elif isinstance(value, dict) and value.get("id") == listing_id:
                    store.set(key, lambda old: {**old, **changes})

        def commit(store: CacheStore, record: Record) -> None:
            for key in store.keys(self.keys.all):
                value = store.get(key)
                if isinstance(value, ListResult) and value.contains(listing_id):
                    store.set(key, lambda page: page.replace_records({listing_id: record}))
            store.set(self.keys.detail(listing_id), lambda _: record)
            for key in listing_record_keys(record):
                store.invalidate(key)

        logger.debug("Listing {}: {} {}", listing_id, name, changes)
        return await self._executor.run(
            Mutation(
                name=f"marketplace-listings.{name}",
                operation="update",
                remote=partial(self._accessor.update, listing_id, changes),
                touches=(self.keys.all,),
                apply=apply,
                commit=commit,
                invalidates=tuple(dict.fromkeys((self.keys.lists(), *invalidates, *holding))),
            )
        )

    def _holds(self, key, listing_id: str) -> bool:
        value = self._store.get(key)
        return isinstance(value, ListResult) and value.contains(listing_id)
