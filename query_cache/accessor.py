"""Remote accessor contract and list results."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Protocol

from query_cache.filters import ListQuery
from query_cache.ids import RecordId

Record = dict[str, Any]


@dataclass(frozen=True)
class ListResult:
    """One page of records plus the total count reported by the server."""

    data: list[Record] = field(default_factory=list)
    count: int = 0

    def contains(self, record_id: RecordId, id_field: str = "id") -> bool:
        return any(record.get(id_field) == record_id for record in self.data)

    def append(self, record: Record) -> "ListResult":
        return replace(self, data=[*self.data, record], count=self.count + 1)

    def without(self, record_id: RecordId, id_field: str = "id") -> "ListResult":
        kept = [record for record in self.data if record.get(id_field) != record_id]
        removed = len(self.data) - len(kept)
        return replace(self, data=kept, count=max(self.count - removed, 0))

    def patch(self, changes: Mapping[RecordId, Mapping[str, Any]], id_field: str = "id") -> "ListResult":
        """Merge field changes into matching records."""
        return replace(
            self,
            data=[
                {**record, **changes[record.get(id_field)]} if record.get(id_field) in changes else record
                for record in self.data
            ],
        )

    def replace_records(self, records: Mapping[RecordId, Record], id_field: str = "id") -> "ListResult":
        """Swap matching records for new ones wholesale; nothing of the old record survives."""
        return replace(self, data=[records.get(record.get(id_field), record) for record in self.data])


class RemoteAccessor(Protocol):
    """Network I/O for one entity. Failures raise errors carrying ``code`` and ``message``."""

    async def list(self, query: ListQuery) -> ListResult: ...

    async def get_by_id(self, record_id: RecordId) -> Record: ...

    async def create(self, values: Record) -> Record: ...

    async def update(self, record_id: RecordId, values: Record) -> Record: ...

    async def delete(self, record_id: RecordId) -> None: ...


ACCESSOR_METHODS = ("list", "get_by_id", "create", "update", "delete")
