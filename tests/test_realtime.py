"""Realtime store and subscription manager tests.

Learn: Callbacks arrive from a background task, so tests let the event
loop spin (wait_until / asyncio.sleep) before asserting. Tests that check
"nothing more arrives" sleep a little and then compare counts.
"""

import asyncio

import pytest

from usersync.errors import RealtimeError
from usersync.realtime.store import DOCUMENT_ID_LENGTH, new_document_id
from usersync.realtime.subscriptions import RealtimeSubscriptionManager

from conftest import DOMAIN_A, DOMAIN_B, BrokenWatchStore, wait_until


class Recorder:
    def __init__(self):
        self.updates = []
        self.errors = []

    def on_update(self, users):
        self.updates.append(users)

    def on_error(self, exc):
        self.errors.append(exc)

    @property
    def latest(self):
        return self.updates[-1]


def test_document_ids_are_distinct_and_alphanumeric():
    ids = {new_document_id() for _ in range(200)}
    assert len(ids) == 200
    assert all(len(i) == DOCUMENT_ID_LENGTH and i.isalnum() for i in ids)


# ═══════════════════════════════════════════════════════════
# In-memory store
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_insert_then_query_by_equality(store):
    alice = await store.insert("users", {"name": "Alice", "email": "a@x.com", "domain": DOMAIN_A})
    await store.insert("users", {"name": "Bob", "email": "b@x.com", "domain": DOMAIN_B})

    docs = await store.query("users", "domain", DOMAIN_A)
    assert docs == [{"id": alice, "name": "Alice", "email": "a@x.com", "domain": DOMAIN_A}]


@pytest.mark.asyncio
async def test_collections_are_separate(store):
    await store.insert("admins", {"name": "Root", "email": "r@x.com", "domain": DOMAIN_A})
    assert await store.query("users", "domain", DOMAIN_A) == []


# ═══════════════════════════════════════════════════════════
# Subscriptions
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_subscribe_delivers_current_result_set_first(store):
    await store.insert("users", {"name": "Alice", "email": "a@x.com", "domain": DOMAIN_A})
    manager = RealtimeSubscriptionManager(store)
    rec = Recorder()

    manager.subscribe(DOMAIN_A, rec.on_update, rec.on_error)
    await wait_until(lambda: rec.updates)

    assert [u.name for u in rec.latest] == ["Alice"]
    assert rec.latest[0].id
    await manager.close()


@pytest.mark.asyncio
async def test_subscribe_pushes_full_set_on_each_change(store):
    manager = RealtimeSubscriptionManager(store)
    rec = Recorder()
    manager.subscribe(DOMAIN_A, rec.on_update, rec.on_error)
    await wait_until(lambda: rec.updates)
    assert rec.latest == []

    await store.insert("users", {"name": "Alice", "email": "a@x.com", "domain": DOMAIN_A})
    await wait_until(lambda: len(rec.updates) == 2)
    await store.insert("users", {"name": "Carol", "email": "c@x.com", "domain": DOMAIN_A})
    await wait_until(lambda: len(rec.updates) == 3)

    assert [u.name for u in rec.latest] == ["Alice", "Carol"]
    await manager.close()


@pytest.mark.asyncio
async def test_changes_for_other_domains_are_ignored(store):
    manager = RealtimeSubscriptionManager(store)
    rec = Recorder()
    manager.subscribe(DOMAIN_A, rec.on_update, rec.on_error)
    await wait_until(lambda: rec.updates)

    await store.insert("users", {"name": "Bob", "email": "b@x.com", "domain": DOMAIN_B})
    await asyncio.sleep(0.05)

    assert len(rec.updates) == 1
    await manager.close()


@pytest.mark.asyncio
async def test_cancel_handle_stops_callbacks(store):
    manager = RealtimeSubscriptionManager(store)
    rec = Recorder()
    handle = manager.subscribe(DOMAIN_A, rec.on_update, rec.on_error)
    await wait_until(lambda: rec.updates)

    handle()
    await store.insert("users", {"name": "Alice", "email": "a@x.com", "domain": DOMAIN_A})
    await asyncio.sleep(0.05)

    assert len(rec.updates) == 1
    assert not handle.active
    await wait_until(lambda: store.watcher_count("users") == 0)


@pytest.mark.asyncio
async def test_cancel_with_change_in_flight_delivers_nothing(store):
    manager = RealtimeSubscriptionManager(store)
    rec = Recorder()
    handle = manager.subscribe(DOMAIN_A, rec.on_update, rec.on_error)
    await wait_until(lambda: rec.updates)

    # The change is queued for the listener before the cancel lands
    await store.insert("users", {"name": "Alice", "email": "a@x.com", "domain": DOMAIN_A})
    handle.cancel()
    await asyncio.sleep(0.05)

    assert len(rec.updates) == 1


@pytest.mark.asyncio
async def test_resubscribe_tears_down_previous_listener(store):
    manager = RealtimeSubscriptionManager(store)
    rec_a, rec_b = Recorder(), Recorder()

    first = manager.subscribe(DOMAIN_A, rec_a.on_update, rec_a.on_error)
    await wait_until(lambda: rec_a.updates)
    second = manager.subscribe(DOMAIN_B, rec_b.on_update, rec_b.on_error)
    await wait_until(lambda: rec_b.updates)

    assert not first.active
    assert second.active
    assert manager.current is second
    await wait_until(lambda: store.watcher_count("users") == 1)

    await store.insert("users", {"name": "Alice", "email": "a@x.com", "domain": DOMAIN_A})
    await asyncio.sleep(0.05)
    assert len(rec_a.updates) == 1
    await manager.close()


@pytest.mark.asyncio
async def test_close_releases_listener(store):
    manager = RealtimeSubscriptionManager(store)
    rec = Recorder()
    manager.subscribe(DOMAIN_A, rec.on_update, rec.on_error)
    await wait_until(lambda: rec.updates)

    await manager.close()

    assert manager.current is None
    assert store.watcher_count("users") == 0


@pytest.mark.asyncio
async def test_watch_failure_calls_on_error_once():
    manager = RealtimeSubscriptionManager(BrokenWatchStore())
    rec = Recorder()
    handle = manager.subscribe(DOMAIN_A, rec.on_update, rec.on_error)

    await wait_until(lambda: rec.errors)
    await asyncio.sleep(0.02)

    assert rec.updates == []
    assert len(rec.errors) == 1
    assert isinstance(rec.errors[0], RealtimeError)
    assert not handle.active


@pytest.mark.asyncio
async def test_on_update_error_propagates_instead_of_on_error(store):
    manager = RealtimeSubscriptionManager(store)
    rec = Recorder()

    def broken_render(users):
        raise ValueError("render failed")

    handle = manager.subscribe(DOMAIN_A, broken_render, rec.on_error)

    with pytest.raises(ValueError, match="render failed"):
        await handle.wait_closed()
    assert rec.errors == []
    assert store.watcher_count("users") == 0


@pytest.mark.asyncio
async def test_malformed_live_document_reported_through_on_error(store):
    await store.insert("users", {"name": "NoEmail", "domain": DOMAIN_A})
    manager = RealtimeSubscriptionManager(store)
    rec = Recorder()
    handle = manager.subscribe(DOMAIN_A, rec.on_update, rec.on_error)

    await wait_until(lambda: rec.errors)

    assert rec.updates == []
    assert not handle.active
    await handle.wait_closed()
    assert store.watcher_count("users") == 0
