"""Dependency container - one cache, one executor and the entity operations built on them."""

import asyncio

from app.keys import listing_keys, listing_record_keys, location_keys, message_keys, profile_keys, thread_keys
from app.services.listings import ListingService
from query_cache.crud import CrudOperations, EntityConfig, register_entity
from query_cache.executor import MutationExecutor
from query_cache.realtime import RealtimeBridge
from query_cache.store import CacheStore
from rest_client import (
    ListingAccessor,
    LocationAccessor,
    MessageAccessor,
    ProfileAccessor,
    RestClient,
    ThreadAccessor,
)
from rest_client.listings import ListingInsert, ListingUpdate
from rest_client.locations import LocationInsert, LocationUpdate
from rest_client.messages import MessageInsert, MessageUpdate
from rest_client.profiles import ProfileInsert, ProfileUpdate
from rest_client.threads import ThreadInsert, ThreadUpdate
from settings import GC_INTERVAL


class Container:
    """Application container. Build one per client session; nothing here is global."""

    def __init__(
        self,
        client: RestClient | None = None,
        store: CacheStore | None = None,
        executor: MutationExecutor | None = None,
        gc_interval: float = GC_INTERVAL,
    ):
        self.client = client if client is not None else RestClient()
        self.store = store if store is not None else CacheStore()
        self.executor = executor if executor is not None else MutationExecutor(self.store)
        self.realtime = RealtimeBridge(self.store)
        self._gc_interval = gc_interval
        self._gc_task: asyncio.Task | None = None

        # Entities
        self.profiles = self._register(
            EntityConfig("profiles", profile_keys, ProfileAccessor(self.client), ProfileInsert, ProfileUpdate)
        )
        self.locations = self._register(
            EntityConfig("locations", location_keys, LocationAccessor(self.client), LocationInsert, LocationUpdate)
        )
        self.listings = self._register(
            EntityConfig(
                "marketplace_listings",
                listing_keys,
                ListingAccessor(self.client),
                ListingInsert,
                ListingUpdate,
                related_keys=(listing_keys.featured(),),
                record_keys=listing_record_keys,
            )
        )
        self.messages = self._register(
            EntityConfig("private_messages", message_keys, MessageAccessor(self.client), MessageInsert, MessageUpdate)
        )
        self.threads = self._register(
            EntityConfig(
                "threads", thread_keys, ThreadAccessor(self.client), ThreadInsert, ThreadUpdate, timestamps=False
            )
        )

        # Services
        self.listing_service = ListingService(self.listings, self.executor)

    def _register(self, config: EntityConfig) -> CrudOperations:
        operations = register_entity(config, self.store, self.executor)
        self.realtime.register(config.entity_name, config.keys, config.related_keys, config.id_field)
        return operations

    async def __aenter__(self):
        await self.client.__aenter__()
        self._gc_task = asyncio.create_task(self.store.run_gc(self._gc_interval))
        return self

    async def __aexit__(self, *exc):
        try:
            await self.store.wait_idle()
        finally:
            if self._gc_task is not None:
                self._gc_task.cancel()
                await asyncio.gather(self._gc_task, return_exceptions=True)
                self._gc_task = None
            await self.client.__aexit__(*exc)
