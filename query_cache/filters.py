"""Tagged list filters and hashable list queries.

Each filter is chosen explicitly by the caller; nothing is inferred from the
shape of a value. A filter both encodes itself as REST query parameters and
evaluates itself against a cached record.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

from query_cache.errors import ConfigurationError


def _encode(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _quote(value: Any) -> str:
    text = _encode(value)
    if any(ch in text for ch in ',()"'):
        return '"' + text.replace('"', '\\"') + '"'
    return text


def _like_regex(pattern: str, ignore_case: bool) -> re.Pattern:
    parts = []
    for ch in pattern:
        if ch in "%*":
            parts.append(".*")
        elif ch == "_":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL if ignore_case else re.DOTALL)


@dataclass(frozen=True)
class Eq:
    value: Any

    def __post_init__(self):
        try:
            hash(self.value)
        except TypeError as e:
            raise ConfigurationError(f"Eq value must be hashable, got {type(self.value).__name__}") from e

    def params(self, name: str) -> list[tuple[str, str]]:
        if self.value is None:
            return [(name, "is.null")]
        return [(name, f"eq.{_encode(self.value)}")]

    def matches(self, value: Any) -> bool:
        return value == self.value


@dataclass(frozen=True)
class In:
    values: tuple

    def __post_init__(self):
        if isinstance(self.values, (str, bytes)):
            raise ConfigurationError("In expects a collection of values, not a string")
        object.__setattr__(self, "values", tuple(self.values))

    def params(self, name: str) -> list[tuple[str, str]]:
        return [(name, "in.(" + ",".join(_quote(v) for v in self.values) + ")")]

    def matches(self, value: Any) -> bool:
        return value in self.values


@dataclass(frozen=True)
class Range:
    gte: Any = None
    lte: Any = None
    gt: Any = None
    lt: Any = None

    def __post_init__(self):
        if all(bound is None for bound in (self.gte, self.lte, self.gt, self.lt)):
            raise ConfigurationError("Range needs at least one of gte, lte, gt, lt")

    def _bounds(self):
        for op in ("gte", "lte", "gt", "lt"):
            bound = getattr(self, op)
            if bound is not None:
                yield op, bound

    def params(self, name: str) -> list[tuple[str, str]]:
        return [(name, f"{op}.{_encode(bound)}") for op, bound in self._bounds()]

    def matches(self, value: Any) -> bool:
        if value is None:
            return False
        checks = {
            "gte": lambda b: value >= b,
            "lte": lambda b: value <= b,
            "gt": lambda b: value > b,
            "lt": lambda b: value < b,
        }
        try:
            return all(checks[op](bound) for op, bound in self._bounds())
        except TypeError:
            return False


@dataclass(frozen=True)
class Like:
    pattern: str

    def params(self, name: str) -> list[tuple[str, str]]:
        return [(name, f"like.{self.pattern}")]

    def matches(self, value: Any) -> bool:
        return isinstance(value, str) and _like_regex(self.pattern, False).fullmatch(value) is not None


@dataclass(frozen=True)
class ILike:
    pattern: str

    def params(self, name: str) -> list[tuple[str, str]]:
        return [(name, f"ilike.{self.pattern}")]

    def matches(self, value: Any) -> bool:
        return isinstance(value, str) and _like_regex(self.pattern, True).fullmatch(value) is not None


Filter = Eq | In | Range | Like | ILike
FILTER_TYPES = (Eq, In, Range, Like, ILike)


@dataclass(frozen=True)
class ListQuery:
    """Filters plus ordering and paging for one list request."""

    filters: tuple[tuple[str, Filter], ...] = ()
    order: str | None = None
    descending: bool = False
    limit: int | None = None
    offset: int | None = None

    @classmethod
    def of(cls, filters: "ListQuery | Mapping[str, Filter] | None" = None, **options: Any) -> "ListQuery":
        """Build a query from tagged filters; untagged values are rejected."""
        if isinstance(filters, ListQuery):
            return replace(filters, **options) if options else filters
        items = dict(filters or {})
        for name, flt in items.items():
            if not isinstance(flt, FILTER_TYPES):
                raise ConfigurationError(
                    f"Filter for {name!r} must be one of Eq, In, Range, Like, ILike; got {type(flt).__name__}"
                )
        return cls(filters=tuple(sorted(items.items(), key=lambda item: item[0])), **options)

    def params(self) -> list[tuple[str, str]]:
        params = [param for name, flt in self.filters for param in flt.params(name)]
        if self.order:
            params.append(("order", f"{self.order}.{'desc' if self.descending else 'asc'}"))
        if self.limit is not None:
            params.append(("limit", str(self.limit)))
        if self.offset is not None:
            params.append(("offset", str(self.offset)))
        return params

    def matches(self, record: Mapping[str, Any]) -> bool:
        return all(flt.matches(record.get(name)) for name, flt in self.filters)
