import asyncio
import json

import pytest

from chat_relay.server.engine import ChatEngine
from chat_relay.server.errors import PersistenceError
from chat_relay.server.persistence import SnapshotScheduler, SnapshotStore
from chat_relay.shared.dto import Snapshot, User


def populate(engine):
    router = engine.router
    for connection, nickname in (("c1", "alice"), ("c2", "bob"), ("c3", "carol")):
        router.connect(connection)
        router.handle(connection, json.dumps({"type": "register", "nickname": nickname, "password": "pw"}))
    router.handle("c1", json.dumps({"type": "setAvatar", "avatarUrl": "/uploads/alice.png"}))
    for i in range(23):
        router.handle("c1", json.dumps({"type": "sendMessage", "to": "bob", "text": f"msg {i}"}))
    router.handle("c3", json.dumps({"type": "sendMessage", "to": "alice", "audio": "/uploads/hi.webm"}))


def test_snapshot_round_trip(engine, settings):
    populate(engine)
    captured = engine.capture()
    assert captured.message_count == 21

    engine.store.save(captured)
    engine.store.close()

    loaded = SnapshotStore(settings.snapshot_path).load()
    assert loaded.users == captured.users
    assert loaded.conversations == captured.conversations

    fresh = ChatEngine(settings)
    fresh.restore(loaded)
    assert fresh.identities.list() == ["alice", "bob", "carol"]
    assert fresh.identities.get("alice").avatar == "/uploads/alice.png"
    assert fresh.conversations.history("bob", "alice") == engine.conversations.history("alice", "bob")
    assert fresh.identities.login("carol", "pw").nickname == "carol"


def test_save_replaces_previous_snapshot(tmp_path):
    store = SnapshotStore(tmp_path / "state.db")
    store.save(Snapshot(users=[User("alice"), User("bob")]))
    store.save(Snapshot(users=[User("carol")]))
    assert SnapshotStore(tmp_path / "state.db").load().users == [User("carol")]


def test_missing_snapshot_starts_empty(tmp_path):
    store = SnapshotStore(tmp_path / "absent.db")
    snapshot = store.load()
    assert snapshot.users == []
    assert snapshot.conversations == {}


def test_corrupt_snapshot_is_set_aside(tmp_path):
    path = tmp_path / "state.db"
    path.write_bytes(b"definitely not sqlite " * 500)

    store = SnapshotStore(path)
    snapshot = store.load()
    assert snapshot == Snapshot()
    assert not path.exists()
    assert len(list(tmp_path.glob("state.db.corrupt-*"))) == 1

    store.save(Snapshot(users=[User("alice", "pw")]))
    assert SnapshotStore(path).load().users == [User("alice", "pw")]


def test_unwritable_snapshot_raises_persistence_error(tmp_path):
    store = SnapshotStore(tmp_path)  # a directory, not a file
    with pytest.raises(PersistenceError):
        store.save(Snapshot())


@pytest.mark.asyncio
async def test_scheduler_writes_periodically(tmp_path):
    store = SnapshotStore(tmp_path / "state.db")
    captures = []

    def capture():
        captures.append(1)
        return Snapshot(users=[User(f"user{len(captures)}")])

    scheduler = SnapshotScheduler(capture, store, interval=0.01)
    scheduler.start()
    assert scheduler.running
    await asyncio.sleep(0.2)
    await scheduler.stop()
    assert not scheduler.running

    assert len(captures) >= 2
    assert SnapshotStore(tmp_path / "state.db").load().users[0].nickname.startswith("user")


@pytest.mark.asyncio
async def test_scheduler_survives_write_failures(tmp_path):
    class BrokenStore:
        calls = 0

        def save(self, snapshot):
            BrokenStore.calls += 1
            raise PersistenceError("disk full")

    scheduler = SnapshotScheduler(Snapshot, BrokenStore(), interval=0.01)
    assert await scheduler.run_once() is False

    scheduler.start()
    await asyncio.sleep(0.1)
    assert scheduler.running
    await scheduler.stop()
    assert BrokenStore.calls >= 2


@pytest.mark.asyncio
async def test_engine_restores_on_start_and_saves_on_stop(settings):
    first = ChatEngine(settings)
    await first.start()
    populate(first)
    await first.stop()

    second = ChatEngine(settings)
    await second.start()
    try:
        assert second.identities.list() == ["alice", "bob", "carol"]
        assert len(second.conversations.history("alice", "bob")) == 20
        assert second.scheduler.running
    finally:
        await second.stop()
