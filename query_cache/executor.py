"""Optimistic mutation executor.

Every mutation walks the same phases::

    IDLE -> CANCELLING_INFLIGHT -> SNAPSHOTTING -> APPLYING_OPTIMISTIC
         -> AWAITING_REMOTE -> COMMITTING | ROLLING_BACK -> SETTLED

Everything before AWAITING_REMOTE runs without suspending, so no other
coroutine sees the cache between the snapshot and the optimistic write.
Two mutations on overlapping keys are not serialised: the last to settle wins.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Generic, TypeVar

from loguru import logger

from query_cache.errors import ClassifiedError, classify_error
from query_cache.keys import QueryKey
from query_cache.retry import RetryPolicy, mutation_policy
from query_cache.store import CacheStore, EntrySnapshot
from settings import MUTATION_TIMEOUT

T = TypeVar("T")


class MutationPhase(StrEnum):
    IDLE = "idle"
    CANCELLING_INFLIGHT = "cancelling_inflight"
    SNAPSHOTTING = "snapshotting"
    APPLYING_OPTIMISTIC = "applying_optimistic"
    AWAITING_REMOTE = "awaiting_remote"
    COMMITTING = "committing"
    ROLLING_BACK = "rolling_back"
    SETTLED = "settled"


@dataclass
class MutationContext:
    """Per-mutation state: snapshots of touched entries and the phase trail."""

    name: str
    snapshots: dict[QueryKey, EntrySnapshot] = field(default_factory=dict)
    phases: list[MutationPhase] = field(default_factory=lambda: [MutationPhase.IDLE])

    @property
    def phase(self) -> MutationPhase:
        return self.phases[-1]

    def enter(self, phase: MutationPhase) -> None:
        self.phases.append(phase)
        logger.debug("{}: {}", self.name, phase)


@dataclass
class Mutation(Generic[T]):
    """One optimistic write.

    ``apply`` may only write under ``touches``; those are the keys snapshotted
    and restored on failure. ``commit`` receives the server's answer.
    ``rollback`` replaces the default full restore.
    """

    name: str
    operation: str
    remote: Callable[[], Awaitable[T]]
    touches: Sequence[QueryKey] = ()
    apply: Callable[[CacheStore], None] | None = None
    commit: Callable[[CacheStore, T], None] | None = None
    rollback: Callable[[CacheStore, MutationContext, Exception], None] | None = None
    invalidates: Sequence[QueryKey] = ()


@dataclass(frozen=True)
class MutationResult(Generic[T]):
    data: T | None = None
    error: ClassifiedError | None = None
    phases: tuple[MutationPhase, ...] = ()

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error.error
        return self.data


def restore_all(store: CacheStore, context: MutationContext, _error: Exception | None = None) -> None:
    for snapshot in context.snapshots.values():
        store.restore(snapshot)


class MutationExecutor:
    """Runs mutations against one store."""

    def __init__(
        self,
        store: CacheStore,
        retry: RetryPolicy | None = None,
        timeout: float | None = MUTATION_TIMEOUT,
    ):
        self._store = store
        self._retry = retry or mutation_policy()
        self._timeout = timeout

    @property
    def store(self) -> CacheStore:
        return self._store

    async def run(self, mutation: Mutation[T]) -> MutationResult[T]:
        """Run one mutation. Remote failures come back as ``result.error``, never raised."""
        context = MutationContext(mutation.name)

        context.enter(MutationPhase.CANCELLING_INFLIGHT)
        for key in mutation.touches:
            self._store.cancel_inflight(key)

        context.enter(MutationPhase.SNAPSHOTTING)
        context.snapshots = self._store.snapshot(mutation.touches)

        context.enter(MutationPhase.APPLYING_OPTIMISTIC)
        try:
            if mutation.apply is not None:
                mutation.apply(self._store)
        except Exception:
            self._roll_back(mutation, context, None)
            self._settle(mutation, context)
            raise

        context.enter(MutationPhase.AWAITING_REMOTE)
        try:
            result = await self._confirm(mutation, context)
        finally:
            self._settle(mutation, context)
        return replace(result, phases=tuple(context.phases))

    async def _confirm(self, mutation: Mutation[T], context: MutationContext) -> MutationResult[T]:
        try:
            data = await self._call_remote(mutation)
        except asyncio.CancelledError:
            self._roll_back(mutation, context, None)
            raise
        except Exception as exc:
            self._roll_back(mutation, context, exc)
            error = classify_error(exc, mutation.operation)
            logger.warning("{} rolled back: {} [{}]", mutation.name, error.message, error.kind)
            return MutationResult(error=error)

        context.enter(MutationPhase.COMMITTING)
        try:
            if mutation.commit is not None:
                mutation.commit(self._store, data)
        except Exception:
            self._roll_back(mutation, context, None)
            logger.warning("{} could not commit the server response; rolled back", mutation.name)
            raise
        logger.debug("{} committed", mutation.name)
        return MutationResult(data=data)

    async def _call_remote(self, mutation: Mutation[T]) -> T:
        if self._timeout is None:
            return await self._retry.call(mutation.remote)

        async def attempt() -> T:
            return await asyncio.wait_for(mutation.remote(), self._timeout)

        return await self._retry.call(attempt)

    def _roll_back(self, mutation: Mutation, context: MutationContext, error: Exception | None) -> None:
        context.enter(MutationPhase.ROLLING_BACK)
        if error is not None and mutation.rollback is not None:
            mutation.rollback(self._store, context, error)
        else:
            restore_all(self._store, context)

    def _settle(self, mutation: Mutation, context: MutationContext) -> None:
        context.enter(MutationPhase.SETTLED)
        for key in mutation.invalidates:
            self._store.invalidate(key)
        context.snapshots.clear()
