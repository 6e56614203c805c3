"""Offline-first sync engine.

Local mutations are written to the :class:`LocalStore` first and queued as
:class:`SyncOperation` records.  Whenever the client is online the engine
drains the queue head-of-line: one operation in flight at a time, strictly in
enqueue order.  A failing head blocks everything behind it.

Each delivery is retried with exponential back-off for transient failures
(transport errors, 408/429/5xx).  When the head keeps failing across drain
cycles, or the server rejects it outright, it is reported as *stuck* so the
UI can offer to discard it; nothing is ever dropped automatically.

Reads go through :meth:`SyncEngine.get_entity`, which reconciles the cached
copy with the server's using last-writer-wins on ``updated_at``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any
from typing import Dict
from typing import Optional

from workspace_manager.client.local_store import LocalStore
from workspace_manager.client.local_store import entity_key
from workspace_manager.client.remote import RemoteClient
from workspace_manager.client.remote import RemoteError
from workspace_manager.client.result import Err
from workspace_manager.client.result import NotFound
from workspace_manager.client.result import Offline
from workspace_manager.client.result import Ok
from workspace_manager.client.result import RemoteFailure
from workspace_manager.client.result import Result
from workspace_manager.client.sync_queue import SyncOperation
from workspace_manager.client.sync_queue import SyncQueue
from workspace_manager.config import Settings
from workspace_manager.config import get_settings
from workspace_manager.events import EventBus
from workspace_manager.events import EventType
from workspace_manager.metrics import client_sync_delivered_total
from workspace_manager.metrics import client_sync_delivery_seconds
from workspace_manager.metrics import client_sync_failed_total
from workspace_manager.models.enums import SyncOpType
from workspace_manager.utils.log import get_logger
from workspace_manager.utils.retry import RetryPolicy
from workspace_manager.utils.retry import async_retry
from workspace_manager.utils.retry import is_retryable_http_exc
from workspace_manager.utils.time import parse_timestamp
from workspace_manager.utils.time import utc_now

logger = logging.getLogger(__name__)
slog = get_logger(component="sync")


@dataclass(frozen=True)
class SyncStatus:
    queue_length: int
    online: bool
    draining: bool
    stuck_operation: Optional[SyncOperation]


class SyncEngine:
    def __init__(
        self,
        store: LocalStore,
        remote: RemoteClient,
        *,
        queue: Optional[SyncQueue] = None,
        events: Optional[EventBus] = None,
        settings: Optional[Settings] = None,
        online: bool = True,
    ):
        settings = settings or get_settings(validate=False)

        self.store = store
        self.remote = remote
        self.queue = queue or SyncQueue(store)
        self.events = events or EventBus()

        self._online = online
        self._draining = False
        self._stuck_threshold = max(1, settings.sync_stuck_threshold)
        self._failed_cycles = 0
        self._failing_op_id: Optional[str] = None
        self._stuck: Optional[SyncOperation] = None

        self._deliver = async_retry(
            RetryPolicy.from_settings(settings),
            retriable=is_retryable_http_exc,
            provider="sync",
        )(self._push)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def online(self) -> bool:
        return self._online

    @property
    def draining(self) -> bool:
        return self._draining

    @property
    def stuck_operation(self) -> Optional[SyncOperation]:
        return self._stuck

    def status(self) -> SyncStatus:
        return SyncStatus(
            queue_length=len(self.queue),
            online=self._online,
            draining=self._draining,
            stuck_operation=self._stuck,
        )

    # ------------------------------------------------------------------
    # Local mutations
    # ------------------------------------------------------------------

    async def create_entity(self, entity_type: str, entity_id: str, data: Dict[str, Any]) -> Result[SyncOperation]:
        now = utc_now().isoformat()
        local = {**data, "id": entity_id, "created_at": data.get("created_at", now), "updated_at": now}
        self.store.set(entity_key(entity_type, entity_id), local)
        return await self.enqueue(SyncOperation.new(SyncOpType.CREATE, entity_type, entity_id, data))

    async def update_entity(self, entity_type: str, entity_id: str, changes: Dict[str, Any]) -> Result[SyncOperation]:
        key = entity_key(entity_type, entity_id)
        local = self.store.get(key, {"id": entity_id})
        local.update(changes)
        local["updated_at"] = utc_now().isoformat()
        self.store.set(key, local)
        return await self.enqueue(SyncOperation.new(SyncOpType.UPDATE, entity_type, entity_id, changes))

    async def delete_entity(self, entity_type: str, entity_id: str) -> Result[SyncOperation]:
        self.store.remove(entity_key(entity_type, entity_id))
        return await self.enqueue(SyncOperation.new(SyncOpType.DELETE, entity_type, entity_id))

    async def save_session_state(self, session_id: str, context: Dict[str, Any]) -> Result[SyncOperation]:
        key = entity_key("session", session_id)
        local = self.store.get(key, {"id": session_id})
        now = utc_now().isoformat()
        local.update({"context": context, "last_active": now, "updated_at": now})
        self.store.set(key, local)
        return await self.enqueue(
            SyncOperation.new(SyncOpType.SAVE_STATE, "session", session_id, {"context": context})
        )

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    async def enqueue(self, op: SyncOperation) -> Result[SyncOperation]:
        """Queue *op* and drain when possible.

        An ``Err(PersistenceFailure)`` means the op is queued in memory only;
        it is still delivered during this process lifetime.
        """

        persisted = self.queue.append(op)
        slog.info("sync-enqueued", op_id=op.op_id, op_type=op.op_type.value, entity_id=op.entity_id)
        await self.events.publish(EventType.SYNC_OPERATION_ENQUEUED, op.to_dict())

        if self._online and not self._draining:
            await self.drain()

        if not persisted.ok:
            return persisted
        return Ok(op)

    async def drain(self) -> Result[int]:
        """Deliver queued operations in order; returns how many went through."""

        if self._draining:
            return Ok(0)
        if not self._online:
            return Err(Offline("Client is offline"))

        self._draining = True
        delivered = 0
        try:
            while self._online and len(self.queue):
                op = self.queue.head()
                started = time.perf_counter()
                try:
                    ack = await self._deliver(op)
                except RemoteError as exc:
                    client_sync_delivery_seconds.observe(time.perf_counter() - started)
                    await self._record_failure(op, exc)
                    return Err(RemoteFailure(str(exc), status_code=exc.status_code))
                client_sync_delivery_seconds.observe(time.perf_counter() - started)

                self.queue.pop_head()
                delivered += 1
                self._clear_failure()
                client_sync_delivered_total.inc()
                self._cache_server_copy(op, ack)

                slog.info(
                    "sync-delivered",
                    op_id=op.op_id,
                    duplicate=bool(ack.get("duplicate")),
                    remaining=len(self.queue),
                )
                await self.events.publish(
                    EventType.SYNC_OPERATION_DELIVERED,
                    {**op.to_dict(), "duplicate": bool(ack.get("duplicate"))},
                )

            if not len(self.queue):
                await self.events.publish(EventType.SYNC_DRAINED, {"delivered": delivered})
            return Ok(delivered)
        finally:
            self._draining = False

    async def _push(self, op: SyncOperation) -> Dict[str, Any]:
        try:
            return await self.remote.push(op)
        except RemoteError:
            raise
        except Exception as exc:
            raise _as_remote_error("push", exc) from exc

    async def _fetch(self, entity_type: str, entity_id: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.remote.fetch(entity_type, entity_id)
        except RemoteError:
            raise
        except Exception as exc:
            raise _as_remote_error("fetch", exc) from exc

    def _cache_server_copy(self, op: SyncOperation, ack: Dict[str, Any]) -> None:
        """Adopt the server's copy unless later local edits are still queued."""

        entity = ack.get("entity")
        if not entity or self.queue.pending_for(op.entity_type, op.entity_id):
            return
        self.store.set(entity_key(op.entity_type, op.entity_id), entity)

    async def _record_failure(self, op: SyncOperation, exc: RemoteError) -> None:
        client_sync_failed_total.inc()
        if self._failing_op_id != op.op_id:
            self._failing_op_id = op.op_id
            self._failed_cycles = 0
        self._failed_cycles += 1

        permanent = not is_retryable_http_exc(exc)
        slog.warning(
            "sync-failed",
            op_id=op.op_id,
            status_code=exc.status_code,
            failed_cycles=self._failed_cycles,
            permanent=permanent,
            error=str(exc),
        )

        if self._stuck is not None and self._stuck.op_id == op.op_id:
            return
        if permanent or self._failed_cycles >= self._stuck_threshold:
            self._stuck = op
            logger.warning("Sync operation %s is stuck at the head of the queue: %s", op.op_id, exc)
            await self.events.publish(
                EventType.SYNC_OPERATION_STUCK,
                {
                    **op.to_dict(),
                    "reason": str(exc),
                    "status_code": exc.status_code,
                    "failed_cycles": self._failed_cycles,
                },
            )

    def _clear_failure(self) -> None:
        self._failing_op_id = None
        self._failed_cycles = 0
        self._stuck = None

    def discard_head(self) -> Result[SyncOperation]:
        """Drop the head operation; the user's way out of a stuck queue."""

        op = self.queue.pop_head()
        if op is None:
            return Err(NotFound("Sync queue is empty"))
        self._clear_failure()
        logger.warning("Discarded queued operation %s (%s %s)", op.op_id, op.op_type.value, op.entity_id)
        return Ok(op)

    # ------------------------------------------------------------------
    # Connectivity
    # ------------------------------------------------------------------

    async def set_online(self, online: bool) -> Result[int]:
        was_online = self._online
        self._online = online
        if online != was_online:
            logger.info("Sync engine is now %s", "online" if online else "offline")
        if online:
            return await self.drain()
        return Ok(0)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_entity(self, entity_type: str, entity_id: str) -> Result[Dict[str, Any]]:
        """Return the newest known copy of an entity.

        The server's copy replaces the cached one only when its
        ``updated_at`` is strictly newer; a tie keeps the local copy.
        """

        key = entity_key(entity_type, entity_id)
        local = self.store.get(key)

        if not self._online:
            if local is None:
                return Err(Offline(f"{entity_type} {entity_id} is not cached and the client is offline"))
            return Ok(local)

        try:
            remote = await self._fetch(entity_type, entity_id)
        except RemoteError as exc:
            logger.info("Remote fetch of %s %s failed, serving cached copy: %s", entity_type, entity_id, exc)
            if local is None:
                return Err(RemoteFailure(str(exc), status_code=exc.status_code))
            return Ok(local)

        if remote is None:
            if local is None:
                return Err(NotFound(f"{entity_type} {entity_id} not found"))
            return Ok(local)

        if local is not None and not _is_newer(remote, local):
            return Ok(local)

        if local is not None:
            changed = _changed_fields(local, remote)
            if changed:
                await self.events.publish(
                    EventType.ENTITY_CONFLICT_RESOLVED,
                    {
                        "entity_type": getattr(entity_type, "value", entity_type),
                        "entity_id": entity_id,
                        "fields": changed,
                        "local_updated_at": local.get("updated_at"),
                        "remote_updated_at": remote.get("updated_at"),
                    },
                )
        self.store.set(key, remote)
        return Ok(remote)


def _as_remote_error(call: str, exc: Exception) -> RemoteError:
    logger.warning("Remote %s raised %s: %s", call, type(exc).__name__, exc)
    return RemoteError(f"{call} failed: {type(exc).__name__}: {exc}")


def _is_newer(remote: Dict[str, Any], local: Dict[str, Any]) -> bool:
    remote_ts = parse_timestamp(remote.get("updated_at"))
    local_ts = parse_timestamp(local.get("updated_at"))
    if remote_ts is None:
        return False
    if local_ts is None:
        return True
    return remote_ts > local_ts


def _changed_fields(local: Dict[str, Any], remote: Dict[str, Any]) -> list[str]:
    keys = (set(local) | set(remote)) - {"updated_at"}
    return sorted(k for k in keys if local.get(k) != remote.get(k))


__all__ = ["SyncEngine", "SyncStatus"]
