"""In-memory query cache keyed by hierarchical query keys.

All reads and writes are synchronous, so each store operation is atomic with
respect to other coroutines. Only ``fetch`` suspends, while the remote call
runs in its own task. A fetch is tagged with the entry's generation when it
starts; superseding or cancelling it bumps the generation, and a result that
arrives for an old generation is dropped.
"""

import asyncio
import copy
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from loguru import logger

from query_cache.errors import ClassifiedError, classify_error, log_query_error
from query_cache.keys import QueryKey
from query_cache.retry import RetryPolicy, query_policy
from settings import GC_INTERVAL, GC_TIME, STALE_TIME

Fetcher = Callable[[], Awaitable[Any]]


class CacheStatus(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class QueryState:
    """Read-only view of one cache entry, as handed to consumers."""

    key: QueryKey
    data: Any = None
    status: CacheStatus = CacheStatus.IDLE
    error: ClassifiedError | None = None
    updated_at: float | None = None
    is_stale: bool = True
    is_fetching: bool = False


Listener = Callable[[QueryState], None]


@dataclass
class CacheEntry:
    key: QueryKey
    stale_time: float
    value: Any = None
    status: CacheStatus = CacheStatus.IDLE
    error: ClassifiedError | None = None
    updated_at: float | None = None
    stale_at: float = 0.0
    gc_deadline: float | None = None
    fetcher: Fetcher | None = None
    generation: int = 0
    task: asyncio.Task | None = None
    status_before_fetch: CacheStatus = CacheStatus.IDLE

    @property
    def in_flight(self) -> bool:
        return self.task is not None and not self.task.done()


@dataclass(frozen=True)
class EntrySnapshot:
    """Deep copy of an entry's observable state, or a record of its absence."""

    key: QueryKey
    exists: bool
    value: Any = None
    status: CacheStatus = CacheStatus.IDLE
    error: ClassifiedError | None = None
    updated_at: float | None = None
    stale_at: float = 0.0


class CacheStore:
    """Query results with status, staleness and garbage collection."""

    def __init__(
        self,
        stale_time: float = STALE_TIME,
        gc_time: float = GC_TIME,
        retry: RetryPolicy | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._stale_time = stale_time
        self._gc_time = gc_time
        self._retry = retry or query_policy()
        self._clock = clock
        self._entries: dict[QueryKey, CacheEntry] = {}
        self._listeners: dict[QueryKey, list[Listener]] = {}
        self._background: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: QueryKey) -> bool:
        return key in self._entries

    # ========== Reads ==========

    def keys(self, prefix: QueryKey | None = None) -> list[QueryKey]:
        """Cached keys extending ``prefix`` (the prefix itself included)."""
        if prefix is None:
            return list(self._entries)
        return [key for key in self._entries if prefix.is_prefix_of(key)]

    def get(self, key: QueryKey) -> Any:
        """The cached value, or None. Callers must not mutate it; use ``set``."""
        entry = self._entries.get(key)
        return entry.value if entry else None

    def state(self, key: QueryKey) -> QueryState:
        """Read-only view of the entry; idle and empty for unknown keys."""
        entry = self._entries.get(key)
        return self._view(entry) if entry else QueryState(key=key)

    def is_observed(self, key: QueryKey) -> bool:
        """True while at least one subscriber is attached."""
        return bool(self._listeners.get(key))

    # ========== Writes ==========

    def set(self, key: QueryKey, update: Callable[[Any], Any]) -> Any:
        """Replace the value with ``update(previous)`` and notify subscribers."""
        entry = self._ensure(key)
        entry.value = update(entry.value)
        now = self._clock()
        entry.status = CacheStatus.SUCCESS
        entry.error = None
        entry.updated_at = now
        entry.stale_at = now + entry.stale_time
        self._touch(entry)
        self._notify(entry)
        return entry.value

    def invalidate(self, prefix: QueryKey) -> list[QueryKey]:
        """Stale every entry extending ``prefix``; observed ones refetch."""
        now = self._clock()
        keys = self.keys(prefix)
        for key in keys:
            entry = self._entries[key]
            entry.stale_at = now
            self._notify(entry)
            if self.is_observed(key) and entry.fetcher is not None:
                self._schedule_refetch(entry)
        logger.debug("Invalidated {} entries under {}", len(keys), prefix)
        return keys

    def cancel_inflight(self, prefix: QueryKey) -> int:
        """Abandon pending fetches under ``prefix``; their results will be ignored."""
        cancelled = 0
        for key in self.keys(prefix):
            entry = self._entries[key]
            if entry.in_flight:
                self._abandon(entry)
                entry.status = entry.status_before_fetch
                self._notify(entry)
                cancelled += 1
        if cancelled:
            logger.debug("Cancelled {} in-flight fetches under {}", cancelled, prefix)
        return cancelled

    def remove(self, key: QueryKey) -> bool:
        """Hard delete of one exact key."""
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        if entry.in_flight:
            self._abandon(entry)
        for listener in list(self._listeners.get(key, ())):
            self._call(listener, QueryState(key=key))
        return True

    def snapshot(self, prefixes: Iterable[QueryKey]) -> dict[QueryKey, EntrySnapshot]:
        """Capture each prefix key and every cached key extending it."""
        snapshots: dict[QueryKey, EntrySnapshot] = {}
        for prefix in prefixes:
            for key in [prefix, *self.keys(prefix)]:
                if key not in snapshots:
                    snapshots[key] = self._snapshot(key)
        return snapshots

    def restore(self, snapshot: EntrySnapshot) -> None:
        """Put an entry back exactly as captured, removing it if it did not exist."""
        if not snapshot.exists:
            self.remove(snapshot.key)
            return
        entry = self._ensure(snapshot.key)
        entry.value = copy.deepcopy(snapshot.value)
        entry.status = snapshot.status
        entry.error = snapshot.error
        entry.updated_at = snapshot.updated_at
        entry.stale_at = snapshot.stale_at
        self._notify(entry)

    # ========== Observation ==========

    def subscribe(self, key: QueryKey, listener: Listener) -> Callable[[], None]:
        """Observe ``key``; returns the unsubscribe callable."""
        entry = self._ensure(key)
        entry.gc_deadline = None
        self._listeners.setdefault(key, []).append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(key, [])
            if listener in listeners:
                listeners.remove(listener)
            if not listeners:
                self._listeners.pop(key, None)
                current = self._entries.get(key)
                if current is not None:
                    current.gc_deadline = self._clock() + self._gc_time

        return unsubscribe

    # ========== Fetching ==========

    async def fetch(
        self,
        key: QueryKey,
        fetcher: Fetcher,
        *,
        stale_time: float | None = None,
        retry: RetryPolicy | None = None,
        force: bool = False,
    ) -> QueryState:
        """Serve a fresh entry, or fetch it, superseding any fetch already in flight."""
        entry = self._ensure(key)
        entry.fetcher = fetcher
        if stale_time is not None:
            entry.stale_time = stale_time
        if not force and entry.status is CacheStatus.SUCCESS and self._clock() < entry.stale_at:
            return self._view(entry)

        if entry.in_flight:
            logger.debug("Superseding in-flight fetch for {}", key)
            self._abandon(entry)
        else:
            entry.status_before_fetch = entry.status
        entry.generation += 1
        entry.status = CacheStatus.LOADING
        task = asyncio.create_task(self._execute(entry, entry.generation, fetcher, retry or self._retry))
        entry.task = task
        self._notify(entry)

        try:
            await task
        except asyncio.CancelledError:
            if asyncio.current_task().cancelling():
                raise
            logger.debug("Fetch for {} was cancelled", key)
        return self.state(key)

    async def wait_idle(self) -> None:
        """Wait for background refetches scheduled by invalidation."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def collect_garbage(self) -> list[QueryKey]:
        """Evict unobserved, idle entries whose deadline has passed."""
        now = self._clock()
        evicted = [
            key
            for key, entry in self._entries.items()
            if not self.is_observed(key)
            and not entry.in_flight
            and entry.gc_deadline is not None
            and entry.gc_deadline <= now
        ]
        for key in evicted:
            del self._entries[key]
        if evicted:
            logger.debug("GC evicted {} entries", len(evicted))
        return evicted

    async def run_gc(self, interval: float = GC_INTERVAL) -> None:
        """Sweep with ``collect_garbage`` every ``interval`` seconds until cancelled."""
        logger.debug("GC sweeping every {}s", interval)
        while True:
            await asyncio.sleep(interval)
            self.collect_garbage()

    # ========== Internals ==========

    async def _execute(self, entry: CacheEntry, generation: int, fetcher: Fetcher, retry: RetryPolicy) -> None:
        logger.debug("Fetching {}", entry.key)
        try:
            data = await retry.call(fetcher)
        except asyncio.CancelledError:
            self._release(entry)
            if self._is_current(entry, generation):
                entry.generation += 1
                entry.status = entry.status_before_fetch
                self._notify(entry)
            raise
        except Exception as exc:
            self._release(entry)
            if not self._is_current(entry, generation):
                logger.debug("Discarding superseded failure for {}", entry.key)
                return
            error = classify_error(exc)
            log_query_error(entry.key, error)
            entry.status = CacheStatus.ERROR
            entry.error = error
            self._touch(entry)
            self._notify(entry)
            return

        self._release(entry)
        if not self._is_current(entry, generation):
            logger.debug("Discarding superseded result for {}", entry.key)
            return
        now = self._clock()
        entry.value = data
        entry.status = CacheStatus.SUCCESS
        entry.error = None
        entry.updated_at = now
        entry.stale_at = now + entry.stale_time
        self._touch(entry)
        self._notify(entry)

    def _ensure(self, key: QueryKey) -> CacheEntry:
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(key=key, stale_time=self._stale_time)
            self._entries[key] = entry
            self._touch(entry)
        return entry

    def _touch(self, entry: CacheEntry) -> None:
        if not self.is_observed(entry.key):
            entry.gc_deadline = self._clock() + self._gc_time

    def _abandon(self, entry: CacheEntry) -> None:
        entry.generation += 1
        if entry.task is not None:
            entry.task.cancel()
            entry.task = None

    def _release(self, entry: CacheEntry) -> None:
        if entry.task is asyncio.current_task():
            entry.task = None

    def _is_current(self, entry: CacheEntry, generation: int) -> bool:
        return self._entries.get(entry.key) is entry and entry.generation == generation

    def _schedule_refetch(self, entry: CacheEntry) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; {} refetches on next fetch", entry.key)
            return
        task = loop.create_task(self.fetch(entry.key, entry.fetcher, force=True))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _snapshot(self, key: QueryKey) -> EntrySnapshot:
        entry = self._entries.get(key)
        if entry is None:
            return EntrySnapshot(key=key, exists=False)
        return EntrySnapshot(
            key=key,
            exists=True,
            value=copy.deepcopy(entry.value),
            status=entry.status,
            error=entry.error,
            updated_at=entry.updated_at,
            stale_at=entry.stale_at,
        )

    def _view(self, entry: CacheEntry) -> QueryState:
        return QueryState(
            key=entry.key,
            data=entry.value,
            status=entry.status,
            error=entry.error,
            updated_at=entry.updated_at,
            is_stale=entry.status is not CacheStatus.SUCCESS or self._clock() >= entry.stale_at,
            is_fetching=entry.in_flight,
        )

    def _notify(self, entry: CacheEntry) -> None:
        listeners = self._listeners.get(entry.key)
        if not listeners:
            return
        view = self._view(entry)
        for listener in list(listeners):
            self._call(listener, view)

    def _call(self, listener: Listener, view: QueryState) -> None:
        try:
            listener(view)
        except Exception:
            logger.exception("Listener failed for {}", view.key)
