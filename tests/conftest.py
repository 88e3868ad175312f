"""Shared fixtures: an in-memory accessor, a manual clock and a sleep recorder."""

import asyncio

import pytest
from pydantic import BaseModel

from query_cache.accessor import ListResult
from query_cache.crud import BulkPolicy, EntityConfig, register_entity
from query_cache.errors import NOT_FOUND_CODE, RemoteError
from query_cache.executor import MutationExecutor
from query_cache.keys import KeyFactory
from query_cache.retry import mutation_policy, query_policy
from query_cache.store import CacheStore


class ItemInsert(BaseModel):
    title: str
    status: str = "open"
    owner: str | None = None


class ItemUpdate(BaseModel):
    title: str | None = None
    status: str | None = None


class ManualClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Stands in for asyncio.sleep in retry policies; records delays without waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeAccessor:
    """Remote accessor over a dict of records.

    ``fail(method, error)`` makes every call to ``method`` raise; ``fail_once``
    queues a single failure. ``reject(id, error)`` fails updates for one id.
    ``gate`` holds every call until set.
    """

    def __init__(self, records=()):
        self.records = {record["id"]: dict(record) for record in records}
        self.calls: list[tuple] = []
        self.gate: asyncio.Event | None = None
        self._always: dict[str, Exception] = {}
        self._once: dict[str, list[Exception]] = {}
        self._rejected: dict[str, Exception] = {}
        self._next_id = 1

    def fail(self, method: str, error: Exception) -> None:
        self._always[method] = error

    def fail_once(self, method: str, error: Exception) -> None:
        self._once.setdefault(method, []).append(error)

    def reject(self, record_id: str, error: Exception) -> None:
        self._rejected[record_id] = error

    def count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)

    async def _enter(self, method: str, *args) -> None:
        self.calls.append((method, *args))
        if self.gate is not None:
            await self.gate.wait()
        if self._once.get(method):
            raise self._once[method].pop(0)
        if method in self._always:
            raise self._always[method]

    def _missing(self, record_id) -> RemoteError:
        return RemoteError(f"No row with id {record_id}", code=NOT_FOUND_CODE, status=406)

    async def list(self, query):
        await self._enter("list", query)
        rows = [dict(record) for record in self.records.values() if query.matches(record)]
        return ListResult(data=rows, count=len(rows))

    async def get_by_id(self, record_id):
        await self._enter("get_by_id", record_id)
        if record_id not in self.records:
            raise self._missing(record_id)
        return dict(self.records[record_id])

    async def create(self, values):
        await self._enter("create", values)
        record = {**values, "id": f"srv-{self._next_id}"}
        self._next_id += 1
        self.records[record["id"]] = record
        return dict(record)

    async def update(self, record_id, values):
        await self._enter("update", record_id, values)
        if record_id in self._rejected:
            raise self._rejected[record_id]
        if record_id not in self.records:
            raise self._missing(record_id)
        self.records[record_id] = {**self.records[record_id], **values}
        return dict(self.records[record_id])

    async def delete(self, record_id):
        await self._enter("delete", record_id)
        if record_id not in self.records:
            raise self._missing(record_id)
        del self.records[record_id]


SEED = [
    {"id": "a", "title": "Bike", "status": "open", "owner": "u1"},
    {"id": "b", "title": "Lamp", "status": "open", "owner": "u2"},
    {"id": "c", "title": "Desk", "status": "sold", "owner": "u1"},
]


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def store(clock, sleeps):
    return CacheStore(stale_time=60, gc_time=120, retry=query_policy(sleep=sleeps), clock=clock)


@pytest.fixture
def executor(store, sleeps):
    return MutationExecutor(store, retry=mutation_policy(sleep=sleeps), timeout=None)


@pytest.fixture
def keys():
    return KeyFactory("items")


@pytest.fixture
def accessor():
    return FakeAccessor(SEED)


@pytest.fixture
def make_crud(keys, accessor, store, executor):
    def make(**overrides):
        config = EntityConfig(
            entity_name="items",
            keys=keys,
            accessor=accessor,
            insert_model=ItemInsert,
            update_model=ItemUpdate,
            **{"timestamps": False, "bulk_policy": BulkPolicy.ALL_OR_NOTHING, **overrides},
        )
        return register_entity(config, store, executor)

    return make


@pytest.fixture
def crud(make_crud):
    return make_crud()
