"""Tests for applying pushed changes to the cache."""

import pytest

from query_cache.realtime import ChangeEvent, ChangeType, RealtimeBridge


@pytest.fixture
def bridge(store, keys):
    bridge = RealtimeBridge(store)
    bridge.register("items", keys)
    return bridge


class TestChangeEvent:
    def test_from_payload(self):
        event = ChangeEvent.from_payload(
            {"table": "items", "eventType": "UPDATE", "new": {"id": "a"}, "old": {"id": "a"}}
        )
        assert event.type is ChangeType.UPDATE
        assert event.entity == "items"
        assert event.record == {"id": "a"}

    def test_empty_old_record(self):
        event = ChangeEvent.from_payload({"table": "items", "eventType": "INSERT", "new": {"id": "a"}, "old": {}})
        assert event.old_record is None


class TestHandle:
    def test_insert_sets_detail_and_stales_lists(self, bridge, store, keys):
        store.set(keys.list(None), lambda _: [])
        assert bridge.handle(ChangeEvent("items", ChangeType.INSERT, record={"id": "z", "title": "New"}))
        assert store.get(keys.detail("z")) == {"id": "z", "title": "New"}
        assert store.state(keys.list(None)).is_stale

    def test_update_replaces_detail(self, bridge, store, keys):
        store.set(keys.detail("a"), lambda _: {"id": "a", "title": "Bike"})
        bridge.handle(ChangeEvent("items", ChangeType.UPDATE, record={"id": "a", "title": "Racing bike"}))
        assert store.get(keys.detail("a"))["title"] == "Racing bike"

    def test_delete_removes_detail(self, bridge, store, keys):
        store.set(keys.detail("a"), lambda _: {"id": "a"})
        bridge.handle(ChangeEvent("items", ChangeType.DELETE, old_record={"id": "a"}))
        assert keys.detail("a") not in store

    def test_unregistered_entity_ignored(self, bridge, store):
        assert not bridge.handle(ChangeEvent("unknown", ChangeType.INSERT, record={"id": "a"}))
        assert len(store) == 0

    def test_record_without_id_ignored(self, bridge, store, keys):
        store.set(keys.list(None), lambda _: [])
        assert not bridge.handle(ChangeEvent("items", ChangeType.UPDATE, record={"title": "No id"}))
        assert not bridge.handle(ChangeEvent("items", ChangeType.DELETE, old_record=None))
        assert not store.state(keys.list(None)).is_stale
