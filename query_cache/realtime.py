"""Apply pushed row changes to the cache.

The channel itself is someone else's concern; it hands each change to
``RealtimeBridge.handle``. Keys come from the same factories the CRUD
operations use, so pushed rows land where queries look for them.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from loguru import logger

from query_cache.keys import KeyFactory, QueryKey, check_key_factory
from query_cache.store import CacheStore


class ChangeType(StrEnum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    entity: str
    type: ChangeType
    record: dict[str, Any] | None = None
    old_record: dict[str, Any] | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ChangeEvent":
        """Parse a ``postgres_changes`` payload (``table``, ``eventType``, ``new``, ``old``)."""
        return cls(
            entity=payload["table"],
            type=ChangeType(payload["eventType"]),
            record=payload.get("new") or None,
            old_record=payload.get("old") or None,
        )


@dataclass(frozen=True)
class _Route:
    keys: KeyFactory
    related: tuple[QueryKey, ...]
    id_field: str


class RealtimeBridge:
    def __init__(self, store: CacheStore):
        self._store = store
        self._routes: dict[str, _Route] = {}

    def register(
        self, entity: str, keys: KeyFactory, related: tuple[QueryKey, ...] = (), id_field: str = "id"
    ) -> None:
        check_key_factory(keys, entity)
        self._routes[entity] = _Route(keys, related, id_field)

    def handle(self, event: ChangeEvent) -> bool:
        """Write the change into the cache.

        Returns False, leaving the cache alone, for unregistered entities and for
        records that carry no id.
        """
        route = self._routes.get(event.entity)
        if route is None:
            logger.warning("Ignoring {} change for unregistered entity {}", event.type, event.entity)
            return False

        record = (event.old_record if event.type is ChangeType.DELETE else event.record) or {}
        if route.id_field not in record:
            logger.warning("Ignoring {} on {} without {!r}", event.type, event.entity, route.id_field)
            return False

        detail = route.keys.detail(record[route.id_field])
        if event.type is ChangeType.DELETE:
            self._store.remove(detail)
        else:
            self._store.set(detail, lambda _: record)

        for key in (route.keys.lists(), *route.related):
            self._store.invalidate(key)
        logger.debug("Applied {} on {}", event.type, event.entity)
        return True
