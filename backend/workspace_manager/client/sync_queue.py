"""Durable FIFO of pending mutations.

The queue is rewritten to the Local Store under ``sync_queue`` after every
change, so pending work survives a restart.  Operations are only ever
appended at the tail and removed from the head.
"""

from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import Dict
from typing import Iterator
from typing import List
from typing import Optional

from workspace_manager.client.local_store import LocalStore
from workspace_manager.client.result import Result
from workspace_manager.models.enums import EntityType
from workspace_manager.models.enums import SyncOpType
from workspace_manager.utils.time import utc_now

logger = logging.getLogger(__name__)

QUEUE_KEY = "sync_queue"


@dataclass(frozen=True)
class SyncOperation:
    """One local mutation awaiting delivery.

    The JSON shape matches the body of ``POST /api/sync/operations``.
    """

    op_id: str
    op_type: SyncOpType
    entity_type: EntityType
    entity_id: str
    payload: Dict[str, Any] = field(default_factory=dict)
    enqueued_at: str = ""

    @classmethod
    def new(
        cls,
        op_type: SyncOpType | str,
        entity_type: EntityType | str,
        entity_id: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> "SyncOperation":
        return cls(
            op_id=str(uuid.uuid4()),
            op_type=SyncOpType(op_type),
            entity_type=EntityType(entity_type),
            entity_id=entity_id,
            payload=copy.deepcopy(payload or {}),
            enqueued_at=utc_now().isoformat(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "op_id": self.op_id,
            "op_type": self.op_type.value,
            "entity_type": self.entity_type.value,
            "entity_id": self.entity_id,
            "payload": copy.deepcopy(self.payload),
            "enqueued_at": self.enqueued_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyncOperation":
        return cls(
            op_id=data["op_id"],
            op_type=SyncOpType(data["op_type"]),
            entity_type=EntityType(data["entity_type"]),
            entity_id=data["entity_id"],
            payload=copy.deepcopy(data.get("payload") or {}),
            enqueued_at=data.get("enqueued_at") or "",
        )

    def targets(self, entity_type: EntityType | str, entity_id: str) -> bool:
        return self.entity_type == EntityType(entity_type) and self.entity_id == entity_id


class SyncQueue:
    def __init__(self, store: LocalStore, key: str = QUEUE_KEY):
        self._store = store
        self._key = key
        self._ops: List[SyncOperation] = self._load()

    def _load(self) -> List[SyncOperation]:
        ops = []
        for raw in self._store.get(self._key, []) or []:
            try:
                ops.append(SyncOperation.from_dict(raw))
            except (KeyError, TypeError, ValueError) as exc:
                logger.error("Dropping malformed queued operation %r: %s", raw, exc)
        if ops:
            logger.info("Restored %d pending sync operation(s)", len(ops))
        return ops

    def _persist(self) -> Result[None]:
        return self._store.set(self._key, [op.to_dict() for op in self._ops])

    def __len__(self) -> int:
        return len(self._ops)

    def __iter__(self) -> Iterator[SyncOperation]:
        return iter(list(self._ops))

    def head(self) -> Optional[SyncOperation]:
        return self._ops[0] if self._ops else None

    def append(self, op: SyncOperation) -> Result[None]:
        self._ops.append(op)
        return self._persist()

    def pop_head(self) -> Optional[SyncOperation]:
        if not self._ops:
            return None
        op = self._ops.pop(0)
        self._persist()
        return op

    def pending_for(self, entity_type: EntityType | str, entity_id: str) -> bool:
        """True when any queued op still targets the given entity."""

        return any(op.targets(entity_type, entity_id) for op in self._ops)


__all__ = ["QUEUE_KEY", "SyncOperation", "SyncQueue"]
