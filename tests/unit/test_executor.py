"""Tests for the optimistic mutation executor."""

import asyncio

import pytest

from query_cache.errors import ErrorKind, RemoteError
from query_cache.executor import Mutation, MutationExecutor, MutationPhase
from query_cache.retry import mutation_policy


def _rename(keys, remote, title="Renamed"):
    key = keys.detail("a")
    return Mutation(
        name="items.rename",
        operation="update",
        remote=remote,
        touches=(key,),
        apply=lambda store: store.set(key, lambda old: {**(old or {}), "title": title}),
        commit=lambda store, record: store.set(key, lambda _: record),
        invalidates=(keys.lists(),),
    )


class TestRun:
    @pytest.mark.asyncio
    async def test_commit_phases(self, store, executor, keys):
        store.set(keys.detail("a"), lambda _: {"id": "a", "title": "Bike"})

        async def remote():
            return {"id": "a", "title": "Renamed", "version": 2}

        result = await executor.run(_rename(keys, remote))

        assert result.ok
        assert result.unwrap() == {"id": "a", "title": "Renamed", "version": 2}
        assert store.get(keys.detail("a"))["version"] == 2
        assert result.phases == (
            MutationPhase.IDLE,
            MutationPhase.CANCELLING_INFLIGHT,
            MutationPhase.SNAPSHOTTING,
            MutationPhase.APPLYING_OPTIMISTIC,
            MutationPhase.AWAITING_REMOTE,
            MutationPhase.COMMITTING,
            MutationPhase.SETTLED,
        )

    @pytest.mark.asyncio
    async def test_optimistic_value_visible_while_awaiting(self, store, executor, keys):
        store.set(keys.detail("a"), lambda _: {"id": "a", "title": "Bike"})
        gate = asyncio.Event()

        async def remote():
            await gate.wait()
            return {"id": "a", "title": "Renamed"}

        task = asyncio.create_task(executor.run(_rename(keys, remote)))
        await asyncio.sleep(0)
        assert store.get(keys.detail("a"))["title"] == "Renamed"
        gate.set()
        assert (await task).ok

    @pytest.mark.asyncio
    async def test_failure_rolls_back(self, store, executor, keys, sleeps):
        store.set(keys.detail("a"), lambda _: {"id": "a", "title": "Bike"})
        calls = []

        async def remote():
            calls.append(1)
            raise RemoteError("denied", code="42501", status=403)

        result = await executor.run(_rename(keys, remote))

        assert not result.ok
        assert result.error.kind is ErrorKind.PERMISSION_DENIED
        assert result.error.message == "You don't have permission to modify this resource."
        assert store.get(keys.detail("a")) == {"id": "a", "title": "Bike"}
        assert MutationPhase.ROLLING_BACK in result.phases
        assert MutationPhase.COMMITTING not in result.phases
        assert len(calls) == 2
        assert sleeps.delays == [1]
        with pytest.raises(RemoteError):
            result.unwrap()

    @pytest.mark.asyncio
    async def test_rollback_removes_entries_created_optimistically(self, store, executor, keys):
        async def remote():
            raise RemoteError("bad", status=400)

        result = await executor.run(_rename(keys, remote))
        assert not result.ok
        assert keys.detail("a") not in store

    @pytest.mark.asyncio
    async def test_settle_invalidates(self, store, executor, keys):
        store.set(keys.list(None), lambda _: [])
        store.set(keys.detail("a"), lambda _: {"id": "a"})

        async def remote():
            return {"id": "a"}

        await executor.run(_rename(keys, remote))
        assert store.state(keys.list(None)).is_stale

    @pytest.mark.asyncio
    async def test_apply_error_restores_and_raises(self, store, executor, keys):
        store.set(keys.detail("a"), lambda _: {"id": "a", "title": "Bike"})

        def apply(store):
            store.set(keys.detail("a"), lambda _: {"id": "a", "title": "half-written"})
            raise KeyError("owner")

        async def remote():
            return {}

        mutation = Mutation(name="items.broken", operation="update", remote=remote, touches=(keys.detail("a"),), apply=apply)
        with pytest.raises(KeyError):
            await executor.run(mutation)
        assert store.get(keys.detail("a"))["title"] == "Bike"

    @pytest.mark.asyncio
    async def test_cancelled_mutation_rolls_back(self, store, executor, keys):
        store.set(keys.detail("a"), lambda _: {"id": "a", "title": "Bike"})

        async def remote():
            await asyncio.Event().wait()

        task = asyncio.create_task(executor.run(_rename(keys, remote)))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert store.get(keys.detail("a"))["title"] == "Bike"

    @pytest.mark.asyncio
    async def test_timeout_is_a_network_error(self, store, keys, sleeps):
        executor = MutationExecutor(store, retry=mutation_policy(retries=0, sleep=sleeps), timeout=0.01)
        store.set(keys.detail("a"), lambda _: {"id": "a", "title": "Bike"})

        async def remote():
            await asyncio.Event().wait()

        result = await executor.run(_rename(keys, remote))
        assert result.error.kind is ErrorKind.NETWORK_ERROR
        assert store.get(keys.detail("a"))["title"] == "Bike"

    @pytest.mark.asyncio
    async def test_cancels_inflight_fetch_on_touched_keys(self, store, executor, keys):
        gate = asyncio.Event()

        async def slow():
            await gate.wait()
            return {"id": "a", "title": "stale server copy"}

        store.set(keys.detail("a"), lambda _: {"id": "a", "title": "Bike"})
        fetch = asyncio.create_task(store.fetch(keys.detail("a"), slow, force=True))
        for _ in range(3):
            await asyncio.sleep(0)

        async def remote():
            return {"id": "a", "title": "Renamed"}

        await executor.run(_rename(keys, remote))
        gate.set()
        await fetch

        assert store.get(keys.detail("a"))["title"] == "Renamed"

    @pytest.mark.asyncio
    async def test_commit_error_rolls_back_and_raises(self, store, executor, keys):
        store.set(keys.detail("a"), lambda _: {"id": "a", "title": "Bike"})

        async def remote():
            return {"title": "no id in response"}

        def commit(store, record):
            store.set(keys.detail(record["id"]), lambda _: record)

        mutation = _rename(keys, remote)
        mutation.commit = commit
        with pytest.raises(KeyError):
            await executor.run(mutation)
        assert store.get(keys.detail("a")) == {"id": "a", "title": "Bike"}
