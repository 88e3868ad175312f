"""Hierarchical query keys.

A key is an ordered tuple of segments. Invalidating a key reaches every key
that starts with its segments, so each entity domain roots all of its keys
under ``all``::

    all ─┬─ lists ── list(query)
         ├─ details ── detail(id)
         └─ <scope>, ...      (by_profile, featured, search, ...)
"""

from collections.abc import Hashable, Iterator
from dataclasses import dataclass
from typing import Any

from query_cache.errors import ConfigurationError
from query_cache.filters import ListQuery

REQUIRED_BUILDERS = ("all", "lists", "list", "details", "detail")


@dataclass(frozen=True)
class QueryKey:
    segments: tuple[Hashable, ...]

    def __post_init__(self):
        try:
            hash(self.segments)
        except TypeError as e:
            raise ConfigurationError(f"Query key segments must be hashable: {self.segments!r}") from e

    @property
    def domain(self) -> str:
        return self.segments[0]

    def extend(self, *segments: Hashable) -> "QueryKey":
        return QueryKey(self.segments + segments)

    def is_prefix_of(self, other: "QueryKey") -> bool:
        return other.segments[: len(self.segments)] == self.segments

    def __len__(self) -> int:
        return len(self.segments)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self.segments)

    def __repr__(self) -> str:
        return f"QueryKey{self.segments!r}"


def build_key(domain: str, *segments: Hashable) -> QueryKey:
    if not domain or not isinstance(domain, str):
        raise ConfigurationError(f"Query key domain must be a non-empty string, got {domain!r}")
    return QueryKey((domain, *segments))


class KeyFactory:
    """Key builders for one entity domain."""

    def __init__(self, domain: str):
        self.domain = domain
        self.all = build_key(domain)

    def lists(self) -> QueryKey:
        return self.all.extend("list")

    def list(self, query: Any = None) -> QueryKey:
        return self.lists().extend(ListQuery.of(query))

    def details(self) -> QueryKey:
        return self.all.extend("detail")

    def detail(self, record_id: Hashable) -> QueryKey:
        return self.details().extend(record_id)

    def scoped(self, scope: str, *segments: Hashable) -> QueryKey:
        """Domain-specific key, still rooted under ``all``."""
        return self.all.extend(scope, *segments)


def list_query_of(key: QueryKey) -> ListQuery | None:
    """The list query a ``list(query)`` key was built from, if any."""
    if key.segments and isinstance(key.segments[-1], ListQuery):
        return key.segments[-1]
    return None


def check_key_factory(keys: Any, entity_name: str) -> None:
    """Raise ConfigurationError unless ``keys`` has every builder, rooted under ``all``."""
    missing = [name for name in REQUIRED_BUILDERS if getattr(keys, name, None) is None]
    if missing:
        raise ConfigurationError(f"Key factory for {entity_name!r} is missing: {', '.join(missing)}")

    root = keys.all
    if not isinstance(root, QueryKey):
        raise ConfigurationError(f"Key factory for {entity_name!r}: 'all' must be a QueryKey")
    for name in REQUIRED_BUILDERS[1:]:
        if not callable(getattr(keys, name)):
            raise ConfigurationError(f"Key factory for {entity_name!r}: {name!r} must be callable")

    lists, details = keys.lists(), keys.details()
    built = {
        "lists": (root, lists),
        "list": (lists, keys.list(None)),
        "details": (root, details),
        "detail": (details, keys.detail("_")),
    }
    for name, (parent, child) in built.items():
        if not isinstance(child, QueryKey) or not parent.is_prefix_of(child):
            raise ConfigurationError(f"Key factory for {entity_name!r}: {name!r} is not rooted under its parent")
