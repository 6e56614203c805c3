"""SyncEngine: ordered delivery, failure handling and last-writer-wins reads."""

from datetime import timedelta

import httpx
import pytest

from workspace_manager.client.local_store import entity_key
from workspace_manager.client.remote import HttpRemoteClient
from workspace_manager.client.remote import RemoteError
from workspace_manager.client.result import NotFound
from workspace_manager.client.result import Offline
from workspace_manager.client.result import RemoteFailure
from workspace_manager.client.sync_engine import SyncEngine
from workspace_manager.client.sync_queue import SyncOperation
from workspace_manager.events import EventBus
from workspace_manager.events import EventType
from workspace_manager.utils.time import utc_now


class FakeRemote:
    """In-memory remote that records deliveries and fails on demand."""

    def __init__(self):
        self.delivered = []
        self.entities = {}
        self.failures = []  # queue of exceptions raised by push, one per call
        self.fetch_error = None
        self.push_calls = 0

    async def push(self, op):
        self.push_calls += 1
        if self.failures:
            raise self.failures.pop(0)
        self.delivered.append(op)
        return {"op_id": op.op_id, "applied": True, "duplicate": False, "entity": None}

    async def fetch(self, entity_type, entity_id):
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.entities.get((entity_type, entity_id))


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def recorded(events):
    seen = []

    def _subscribe(event_type):
        async def handler(data):
            seen.append((event_type, data))

        events.subscribe(event_type, handler)

    for event_type in EventType:
        _subscribe(event_type)
    return seen


@pytest.fixture
def engine(local_store, remote, events, client_settings):
    return SyncEngine(local_store, remote, events=events, settings=client_settings, online=False)


def _types(recorded):
    return [event_type for event_type, _ in recorded]


# ---------------------------------------------------------------------------
# Delivery order
# ---------------------------------------------------------------------------


async def test_offline_mutations_are_held_then_delivered_in_order(engine, remote, local_store):
    await engine.create_entity("task", "a", {"title": "A"})
    await engine.update_entity("task", "a", {"progress": 50})
    await engine.delete_entity("task", "a")

    assert remote.delivered == []
    assert len(engine.queue) == 3
    assert local_store.get(entity_key("task", "a")) is None

    result = await engine.set_online(True)

    assert result.ok and result.value == 3
    assert [op.op_type.value for op in remote.delivered] == ["create", "update", "delete"]
    assert len(engine.queue) == 0


async def test_online_enqueue_delivers_immediately(engine, remote, recorded):
    await engine.set_online(True)

    result = await engine.create_entity("project", "p1", {"name": "P"})

    assert result.ok
    assert [op.entity_id for op in remote.delivered] == ["p1"]
    assert EventType.SYNC_OPERATION_DELIVERED in _types(recorded)
    assert EventType.SYNC_DRAINED in _types(recorded)


async def test_drain_while_offline_reports_offline(engine):
    result = await engine.drain()

    assert not result.ok
    assert isinstance(result.failure, Offline)


async def test_local_copy_written_before_delivery(engine, local_store):
    await engine.create_entity("task", "t1", {"title": "Draft"})
    await engine.update_entity("task", "t1", {"title": "Final"})

    cached = local_store.get(entity_key("task", "t1"))
    assert cached["title"] == "Final"
    assert cached["id"] == "t1"
    assert cached["updated_at"]


async def test_save_session_state_queues_save_state_op(engine):
    await engine.save_session_state("s1", {"openTaskId": "t1"})

    op = engine.queue.head()
    assert op.op_type.value == "save_state"
    assert op.payload == {"context": {"openTaskId": "t1"}}


async def test_server_copy_cached_only_when_nothing_pending(local_store, events, client_settings):
    class EchoRemote(FakeRemote):
        async def push(self, op):
            self.delivered.append(op)
            return {"op_id": op.op_id, "applied": True, "entity": {"id": op.entity_id, "server": True}}

    engine = SyncEngine(local_store, EchoRemote(), events=events, settings=client_settings, online=False)
    await engine.create_entity("task", "t1", {"title": "A"})
    await engine.set_online(True)

    assert local_store.get(entity_key("task", "t1")) == {"id": "t1", "server": True}


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


async def test_transient_failure_is_retried_within_one_drain(engine, remote):
    remote.failures = [RemoteError("connection reset"), RemoteError("bad gateway", status_code=502)]

    await engine.create_entity("task", "a", {"title": "A"})
    result = await engine.set_online(True)

    assert result.ok and result.value == 1
    assert remote.push_calls == 3
    assert engine.stuck_operation is None


async def test_failing_head_blocks_the_queue(engine, remote):
    await engine.create_entity("task", "a", {"title": "A"})
    await engine.create_entity("task", "b", {"title": "B"})
    remote.failures = [RemoteError("down", status_code=503)] * 3

    result = await engine.set_online(True)

    assert not result.ok
    assert isinstance(result.failure, RemoteFailure)
    assert remote.delivered == []
    assert [op.entity_id for op in engine.queue] == ["a", "b"]

    result = await engine.drain()
    assert result.ok and result.value == 2
    assert [op.entity_id for op in remote.delivered] == ["a", "b"]


async def test_head_marked_stuck_after_repeated_cycles(engine, remote, recorded):
    await engine.create_entity("task", "a", {"title": "A"})
    remote.failures = [RemoteError("down", status_code=503)] * 9

    await engine.set_online(True)
    assert engine.stuck_operation is None
    await engine.drain()
    assert engine.stuck_operation is None

    await engine.drain()

    assert engine.stuck_operation is not None
    assert engine.stuck_operation.entity_id == "a"
    stuck_events = [data for event_type, data in recorded if event_type == EventType.SYNC_OPERATION_STUCK]
    assert len(stuck_events) == 1
    assert stuck_events[0]["failed_cycles"] == 3


async def test_rejected_operation_is_stuck_immediately(engine, remote, recorded):
    remote.failures = [RemoteError("invalid payload", status_code=422)]
    await engine.create_entity("task", "a", {"title": "A"})
    await engine.create_entity("task", "b", {"title": "B"})

    result = await engine.set_online(True)

    assert result.failure.permanent
    assert remote.push_calls == 1
    assert engine.stuck_operation.entity_id == "a"
    assert engine.status().stuck_operation == engine.stuck_operation
    assert EventType.SYNC_OPERATION_STUCK in _types(recorded)


async def test_discard_head_unblocks_queue(engine, remote):
    remote.failures = [RemoteError("invalid payload", status_code=422)]
    await engine.create_entity("task", "a", {"title": "A"})
    await engine.create_entity("task", "b", {"title": "B"})
    await engine.set_online(True)

    discarded = engine.discard_head()
    assert discarded.ok and discarded.value.entity_id == "a"
    assert engine.stuck_operation is None

    result = await engine.drain()
    assert result.ok
    assert [op.entity_id for op in remote.delivered] == ["b"]


async def test_discard_head_on_empty_queue(engine):
    result = engine.discard_head()
    assert isinstance(result.failure, NotFound)


async def test_queue_survives_engine_restart(local_store, remote, events, client_settings):
    first = SyncEngine(local_store, remote, events=events, settings=client_settings, online=False)
    await first.create_entity("task", "a", {"title": "A"})
    await first.update_entity("task", "a", {"title": "B"})

    second = SyncEngine(local_store, remote, events=events, settings=client_settings, online=False)
    await second.set_online(True)

    assert [op.op_type.value for op in remote.delivered] == ["create", "update"]


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def _stamp(delta):
    return (utc_now() + delta).isoformat()


async def test_remote_newer_wins_and_reports_conflict(engine, remote, local_store, recorded):
    local_store.set(entity_key("task", "t1"), {"id": "t1", "title": "Local", "updated_at": _stamp(timedelta(0))})
    remote.entities[("task", "t1")] = {"id": "t1", "title": "Remote", "updated_at": _stamp(timedelta(minutes=1))}
    await engine.set_online(True)

    result = await engine.get_entity("task", "t1")

    assert result.value["title"] == "Remote"
    assert local_store.get(entity_key("task", "t1"))["title"] == "Remote"
    conflicts = [data for event_type, data in recorded if event_type == EventType.ENTITY_CONFLICT_RESOLVED]
    assert conflicts[0]["fields"] == ["title"]


async def test_local_newer_is_kept(engine, remote, local_store):
    local_store.set(entity_key("task", "t1"), {"id": "t1", "title": "Local", "updated_at": _stamp(timedelta(0))})
    remote.entities[("task", "t1")] = {"id": "t1", "title": "Remote", "updated_at": _stamp(timedelta(minutes=-1))}
    await engine.set_online(True)

    result = await engine.get_entity("task", "t1")

    assert result.value["title"] == "Local"


async def test_equal_timestamps_keep_local(engine, remote, local_store):
    stamp = _stamp(timedelta(0))
    local_store.set(entity_key("task", "t1"), {"id": "t1", "title": "Local", "updated_at": stamp})
    remote.entities[("task", "t1")] = {"id": "t1", "title": "Remote", "updated_at": stamp}
    await engine.set_online(True)

    result = await engine.get_entity("task", "t1")

    assert result.value["title"] == "Local"


async def test_server_naive_timestamp_compared_as_utc(engine, remote, local_store):
    local_store.set(entity_key("task", "t1"), {"id": "t1", "title": "Local", "updated_at": "2024-01-01T10:00:00+00:00"})
    remote.entities[("task", "t1")] = {"id": "t1", "title": "Remote", "updated_at": "2024-01-01T10:00:01"}
    await engine.set_online(True)

    result = await engine.get_entity("task", "t1")

    assert result.value["title"] == "Remote"


async def test_remote_copy_cached_when_absent_locally(engine, remote, local_store):
    remote.entities[("project", "p1")] = {"id": "p1", "name": "P", "updated_at": _stamp(timedelta(0))}
    await engine.set_online(True)

    result = await engine.get_entity("project", "p1")

    assert result.value["name"] == "P"
    assert local_store.get(entity_key("project", "p1"))["name"] == "P"


async def test_fetch_failure_falls_back_to_cache(engine, remote, local_store):
    local_store.set(entity_key("task", "t1"), {"id": "t1", "title": "Cached"})
    remote.fetch_error = RemoteError("timeout")
    await engine.set_online(True)

    assert (await engine.get_entity("task", "t1")).value["title"] == "Cached"

    missing = await engine.get_entity("task", "t2")
    assert isinstance(missing.failure, RemoteFailure)


async def test_unknown_everywhere_is_not_found(engine):
    await engine.set_online(True)

    result = await engine.get_entity("task", "ghost")

    assert isinstance(result.failure, NotFound)


async def test_offline_read_uses_cache_only(engine, remote, local_store):
    local_store.set(entity_key("task", "t1"), {"id": "t1", "title": "Cached"})
    remote.entities[("task", "t1")] = {"id": "t1", "title": "Remote", "updated_at": _stamp(timedelta(days=1))}

    assert (await engine.get_entity("task", "t1")).value["title"] == "Cached"
    assert isinstance((await engine.get_entity("task", "t2")).failure, Offline)


# ---------------------------------------------------------------------------
# Malformed replies
# ---------------------------------------------------------------------------


@pytest.fixture
def portal_remote():
    """HTTP remote behind a captive portal: every request gets an HTML 200."""

    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, text="<html>login</html>")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    remote = HttpRemoteClient("http://portal.test", client=client)
    remote.calls = calls
    return remote


async def test_non_json_ack_keeps_operation_queued(local_store, portal_remote, client_settings):
    engine = SyncEngine(local_store, portal_remote, settings=client_settings, online=True)

    result = await engine.update_entity("task", "t1", {"title": "Edited"})

    assert result.ok
    assert len(engine.queue) == 1
    assert engine.queue.head().entity_id == "t1"
    assert engine.draining is False
    assert len(portal_remote.calls) == client_settings.sync_max_attempts

    drained = await engine.drain()
    assert isinstance(drained.failure, RemoteFailure)
    assert drained.failure.status_code is None
    assert not drained.failure.permanent


async def test_non_json_read_falls_back_to_cache(local_store, portal_remote, client_settings):
    engine = SyncEngine(local_store, portal_remote, settings=client_settings, online=True)
    local_store.set(entity_key("task", "t1"), {"id": "t1", "title": "Cached"})

    assert (await engine.get_entity("task", "t1")).value["title"] == "Cached"
    assert isinstance((await engine.get_entity("task", "t2")).failure, RemoteFailure)


async def test_unexpected_remote_exception_becomes_failure(engine, remote):
    remote.failures = [KeyError("entity")] * 3
    remote.fetch_error = TypeError("bad payload")
    await engine.create_entity("task", "a", {"title": "A"})

    result = await engine.set_online(True)

    assert isinstance(result.failure, RemoteFailure)
    assert "KeyError" in str(result.failure)
    assert [op.entity_id for op in engine.queue] == ["a"]

    read = await engine.get_entity("task", "b")
    assert isinstance(read.failure, RemoteFailure)
