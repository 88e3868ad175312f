"""Generic CRUD operations with uniform optimistic semantics.

``register_entity`` validates an entity's configuration up front and returns a
``CrudOperations`` bound to one store and one executor. Reads go straight to
the store; writes are expressed as ``Mutation`` objects for the executor.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import StrEnum
from functools import partial
from typing import Any, NamedTuple

from loguru import logger
from pydantic import BaseModel

from query_cache.accessor import ACCESSOR_METHODS, ListResult, Record, RemoteAccessor
from query_cache.errors import BulkUpdateError, ConfigurationError, RemoteError, is_not_found
from query_cache.executor import Mutation, MutationContext, MutationExecutor, MutationResult, restore_all
from query_cache.filters import ListQuery
from query_cache.ids import PendingId, RecordId, is_pending
from query_cache.keys import KeyFactory, QueryKey, check_key_factory, list_query_of
from query_cache.store import CacheStore, QueryState
from settings import BULK_POLICY


class BulkPolicy(StrEnum):
    """What a partially failed bulk update leaves in the cache."""

    ALL_OR_NOTHING = "all_or_nothing"
    KEEP_PARTIAL = "keep_partial"


class BulkItem(NamedTuple):
    id: RecordId
    changes: Mapping[str, Any]


@dataclass(frozen=True)
class EntityConfig:
    """How one entity is cached and written.

    ``related_keys`` are invalidated after every write. ``record_keys`` maps a
    record to further keys it appears under (an owner's listings, say); those are
    patched optimistically where cached and invalidated on settle.
    """

    entity_name: str
    keys: KeyFactory
    accessor: RemoteAccessor
    insert_model: type[BaseModel]
    update_model: type[BaseModel]
    id_field: str = "id"
    related_keys: tuple[QueryKey, ...] = ()
    record_keys: Callable[[Record], Iterable[QueryKey]] | None = None
    bulk_policy: BulkPolicy = BulkPolicy(BULK_POLICY)
    stale_time: float | None = None
    timestamps: bool = True


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def register_entity(config: EntityConfig, store: CacheStore, executor: MutationExecutor) -> "CrudOperations":
    """Validate ``config`` and build its operations. Raises ConfigurationError."""
    check_key_factory(config.keys, config.entity_name)

    missing = [name for name in ACCESSOR_METHODS if not callable(getattr(config.accessor, name, None))]
    if missing:
        raise ConfigurationError(f"Accessor for {config.entity_name!r} is missing: {', '.join(missing)}")

    for label, model in (("insert_model", config.insert_model), ("update_model", config.update_model)):
        if not (isinstance(model, type) and issubclass(model, BaseModel)):
            raise ConfigurationError(f"{label} for {config.entity_name!r} must be a pydantic model")

    if executor.store is not store:
        raise ConfigurationError("Executor must run against the same store as the entity")

    if config.record_keys is not None and not callable(config.record_keys):
        raise ConfigurationError(f"record_keys for {config.entity_name!r} must be callable")

    logger.debug("Registered entity {} under {}", config.entity_name, config.keys.all)
    return CrudOperations(config, store, executor)


class CrudOperations:
    """List / GetById / Create / Update / Delete / BulkUpdate for one entity."""

    def __init__(self, config: EntityConfig, store: CacheStore, executor: MutationExecutor):
        self.config = config
        self.keys = config.keys
        self._accessor = config.accessor
        self._store = store
        self._executor = executor
        self._id = config.id_field

    # ========== Queries ==========

    async def list(self, filters: Any = None, **options: Any) -> QueryState:
        """Fetch ``list(query)``; ``filters`` maps field names to tagged filters.

        Extra options (``order``, ``descending``, ``limit``, ``offset``) become part
        of the query and therefore of the key.
        """
        query = ListQuery.of(filters, **options)
        return await self._store.fetch(
            self.keys.list(query),
            partial(self._accessor.list, query),
            stale_time=self.config.stale_time,
        )

    async def get_by_id(self, record_id: RecordId | None) -> QueryState:
        """Fetch ``detail(id)``. Idle, with no network call, for a missing or pending id."""
        if _is_blank(record_id) or is_pending(record_id):
            return QueryState(key=self.keys.detail("" if record_id is None else record_id))
        return await self._store.fetch(
            self.keys.detail(record_id),
            partial(self._accessor.get_by_id, record_id),
            stale_time=self.config.stale_time,
        )

    # ========== Mutations ==========

    async def create(self, values: Any, *, related: Iterable[QueryKey] = ()) -> MutationResult[Record]:
        """Insert a record, showing it under a pending id until the server answers.

        The record is appended to every cached ``list(query)`` whose filters it
        matches; on success the server's record replaces it there and fills
        ``detail(id)``.
        """
        payload = self._validate(self.config.insert_model, values, partial_update=False)
        pending = PendingId()
        optimistic = {**payload, self._id: pending}
        if self.config.timestamps:
            optimistic.setdefault("created_at", _now())
        prefixes = self._list_prefixes(related, [payload])

        def apply(store: CacheStore) -> None:
            for key in self._cached_lists(store, prefixes):
                query = list_query_of(key)
                if query is not None and query.matches(optimistic):
                    store.set(key, lambda page: page.append(optimistic))

        def commit(store: CacheStore, record: Record) -> None:
            self._write_records(store, {pending: record}, prefixes)
            self._invalidate_record_keys(store, record, prefixes)

        return await self._executor.run(
            Mutation(
                name=f"{self.config.entity_name}.create",
                operation="create",
                remote=partial(self._accessor.create, payload),
                touches=prefixes,
                apply=apply,
                commit=commit,
                invalidates=prefixes,
            )
        )

    async def update(
        self, record_id: RecordId, values: Any, *, related: Iterable[QueryKey] = ()
    ) -> MutationResult[Record]:
        """Merge ``values`` into the cached record wherever it appears, then confirm."""
        self._require_real(record_id, "update")
        changes = self._validate(self.config.update_model, values)
        stamped = self._stamp(changes)
        prefixes = self._list_prefixes(related, self._known_versions({record_id: changes}))
        detail = self.keys.detail(record_id)

        def apply(store: CacheStore) -> None:
            self._patch_lists(store, {record_id: stamped}, prefixes)
            if isinstance(store.get(detail), dict):
                store.set(detail, lambda old: {**old, **stamped})

        def commit(store: CacheStore, record: Record) -> None:
            self._write_records(store, {record[self._id]: record}, prefixes)
            self._invalidate_record_keys(store, record, prefixes)

        return await self._executor.run(
            Mutation(
                name=f"{self.config.entity_name}.update",
                operation="update",
                remote=partial(self._accessor.update, record_id, changes),
                touches=(*prefixes, detail),
                apply=apply,
                commit=commit,
                invalidates=prefixes,
            )
        )

    async def delete(self, record_id: RecordId, *, related: Iterable[QueryKey] = ()) -> MutationResult[RecordId]:
        """Delete a record. Deleting one that is already gone succeeds as a no-op."""
        self._require_real(record_id, "delete")
        prefixes = self._list_prefixes(related, self._known_versions({record_id: {}}))
        detail = self.keys.detail(record_id)

        def apply(store: CacheStore) -> None:
            for key in self._cached_lists(store, prefixes):
                if store.get(key).contains(record_id, self._id):
                    store.set(key, lambda page: page.without(record_id, self._id))
            store.remove(detail)

        async def remote() -> RecordId:
            try:
                await self._accessor.delete(record_id)
            except RemoteError as exc:
                if not is_not_found(exc):
                    raise
                logger.info("{} {} already absent; delete is a no-op", self.config.entity_name, record_id)
            return record_id

        def commit(store: CacheStore, _deleted: RecordId) -> None:
            store.remove(detail)

        return await self._executor.run(
            Mutation(
                name=f"{self.config.entity_name}.delete",
                operation="delete",
                remote=remote,
                touches=(*prefixes, detail),
                apply=apply,
                commit=commit,
                invalidates=prefixes,
            )
        )

    async def bulk_update(
        self, items: Iterable[BulkItem | tuple[RecordId, Mapping[str, Any]]], *, related: Iterable[QueryKey] = ()
    ) -> MutationResult[list[Record]]:
        """Update several records under one snapshot and one rollback unit.

        A retry re-sends only the items that have not succeeded yet.
        """
        batch = [BulkItem(*item) for item in items]
        changes: dict[RecordId, Record] = {}
        for item in batch:
            self._require_real(item.id, "update")
            if item.id in changes:
                raise ValueError(f"Duplicate id in bulk update: {item.id!r}")
            changes[item.id] = self._validate(self.config.update_model, item.changes)
        stamped = {record_id: self._stamp(values) for record_id, values in changes.items()}
        prefixes = self._list_prefixes(related, self._known_versions(changes))
        details = tuple(self.keys.detail(record_id) for record_id in changes)
        succeeded: dict[RecordId, Record] = {}

        def apply(store: CacheStore) -> None:
            self._patch_lists(store, stamped, prefixes)
            for record_id, values in stamped.items():
                detail = self.keys.detail(record_id)
                if isinstance(store.get(detail), dict):
                    store.set(detail, lambda old, values=values: {**old, **values})

        async def remote() -> list[Record]:
            pending = [record_id for record_id in changes if record_id not in succeeded]
            results = await asyncio.gather(
                *(self._accessor.update(record_id, changes[record_id]) for record_id in pending),
                return_exceptions=True,
            )
            failures = {}
            for record_id, result in zip(pending, results):
                if isinstance(result, BaseException):
                    failures[record_id] = result
                else:
                    succeeded[record_id] = result
            if failures:
                raise BulkUpdateError(failures, dict(succeeded))
            return [succeeded[record_id] for record_id in changes]

        def commit(store: CacheStore, records: list[Record]) -> None:
            self._write_records(store, {record[self._id]: record for record in records}, prefixes)
            for record in records:
                self._invalidate_record_keys(store, record, prefixes)

        def rollback(store: CacheStore, context: MutationContext, error: Exception) -> None:
            restore_all(store, context, error)
            if self.config.bulk_policy is BulkPolicy.KEEP_PARTIAL and isinstance(error, BulkUpdateError):
                if error.succeeded:
                    logger.info(
                        "{} bulk update: keeping {} records the server accepted",
                        self.config.entity_name,
                        len(error.succeeded),
                    )
                    self._write_records(store, error.succeeded, prefixes)

        return await self._executor.run(
            Mutation(
                name=f"{self.config.entity_name}.bulk_update",
                operation="update",
                remote=remote,
                touches=(*prefixes, *details),
                apply=apply,
                commit=commit,
                rollback=rollback,
                invalidates=prefixes,
            )
        )

    # ========== Helpers ==========

    def _list_prefixes(self, related: Iterable[QueryKey], records: Iterable[Record] = ()) -> tuple[QueryKey, ...]:
        """Every list-like key a write may touch, without duplicates."""
        return tuple(
            dict.fromkeys((self.keys.lists(), *self.config.related_keys, *related, *self._record_keys(records)))
        )

    def _record_keys(self, records: Iterable[Record]) -> list[QueryKey]:
        if self.config.record_keys is None:
            return []
        return [key for record in records for key in self.config.record_keys(record)]

    def _invalidate_record_keys(self, store: CacheStore, record: Record, prefixes: tuple[QueryKey, ...]) -> None:
        # keys of the confirmed record that the optimistic write did not cover
        for key in self._record_keys([record]):
            if key not in prefixes:
                store.invalidate(key)

    def _known_versions(self, changes: Mapping[RecordId, Mapping[str, Any]]) -> list[Record]:
        """Cached copies of the records, before and after ``changes``."""
        if self.config.record_keys is None:
            return []
        versions = []
        for record_id, values in changes.items():
            cached = self._cached_record(record_id)
            if cached is not None:
                versions += [cached, {**cached, **values}]
        return versions

    def _cached_record(self, record_id: RecordId) -> Record | None:
        detail = self._store.get(self.keys.detail(record_id))
        if isinstance(detail, dict):
            return detail
        for key in self._store.keys(self.keys.all):
            page = self._store.get(key)
            if isinstance(page, ListResult):
                for record in page.data:
                    if record.get(self._id) == record_id:
                        return record
        return None

    @staticmethod
    def _cached_lists(store: CacheStore, prefixes: Iterable[QueryKey]) -> list[QueryKey]:
        found = []
        for prefix in prefixes:
            for key in store.keys(prefix):
                if key not in found and isinstance(store.get(key), ListResult):
                    found.append(key)
        return found

    def _patch_lists(
        self, store: CacheStore, changes: Mapping[RecordId, Record], prefixes: Iterable[QueryKey]
    ) -> None:
        for key in self._cached_lists(store, prefixes):
            page = store.get(key)
            if any(page.contains(record_id, self._id) for record_id in changes):
                store.set(key, lambda page: page.patch(changes, self._id))

    def _write_records(
        self, store: CacheStore, records: Mapping[RecordId, Record], prefixes: Iterable[QueryKey]
    ) -> None:
        """Replace records in every cached list and detail entry."""
        for key in self._cached_lists(store, prefixes):
            page = store.get(key)
            if any(page.contains(record_id, self._id) for record_id in records):
                store.set(key, lambda page: page.replace_records(records, self._id))
        for record in records.values():
            store.set(self.keys.detail(record[self._id]), lambda _, record=record: record)

    def _stamp(self, changes: Record) -> Record:
        if self.config.timestamps:
            return {**changes, "updated_at": _now()}
        return changes

    def _require_real(self, record_id: RecordId, operation: str) -> None:
        if _is_blank(record_id):
            raise ValueError(f"Cannot {operation} {self.config.entity_name} without an id")
        if is_pending(record_id):
            raise ValueError(f"Cannot {operation} {self.config.entity_name} {record_id}: not created yet")

    @staticmethod
    def _validate(model: type[BaseModel], values: Any, partial_update: bool = True) -> Record:
        """Validate against ``model``. Updates keep only the fields the caller set."""
        if isinstance(values, BaseModel):
            values = values.model_dump(exclude_unset=True)
        return model.model_validate(values).model_dump(mode="json", exclude_unset=partial_update)


def _is_blank(record_id: RecordId | None) -> bool:
    # 0 is a valid id
    return record_id is None or record_id == ""
