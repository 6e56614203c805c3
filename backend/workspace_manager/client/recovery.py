"""Recovery points: named snapshots of application state.

Application components register a *provider* (returns their current state)
and an *applier* (replaces their state) with a :class:`StateRegistry`.  A
recovery point captures every provider at once; restoring hands each piece
back to its applier, so state is replaced wholesale rather than merged.

Snapshots live in the Local Store under
``recovery:snapshot:<created-at ms>:<id>`` and the list of point records
under ``recovery:points``.  Only the newest ``RECOVERY_MAX_POINTS`` points are
kept; older ones are pruned together with their snapshots.
"""

from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import asdict
from dataclasses import dataclass
from enum import Enum
from typing import Any
from typing import Callable
from typing import Dict
from typing import List
from typing import Optional

from workspace_manager.client.local_store import LocalStore
from workspace_manager.client.result import Err
from workspace_manager.client.result import Failure
from workspace_manager.client.result import NotFound
from workspace_manager.client.result import Ok
from workspace_manager.client.result import Result
from workspace_manager.events import EventBus
from workspace_manager.events import EventType
from workspace_manager.metrics import recovery_points_created_total
from workspace_manager.utils.time import utc_now

logger = logging.getLogger(__name__)

POINTS_KEY = "recovery:points"
SNAPSHOT_PREFIX = "recovery:snapshot:"


class RecoveryKind(str, Enum):
    AUTOMATIC = "automatic"
    MANUAL = "manual"
    WINDOW_CLOSE = "window_close"
    ERROR = "error"


@dataclass(frozen=True)
class RecoveryPoint:
    id: str
    created_at: str
    description: str
    snapshot_key: str
    kind: RecoveryKind
    context: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecoveryPoint":
        return cls(
            id=data["id"],
            created_at=data["created_at"],
            description=data.get("description", ""),
            snapshot_key=data["snapshot_key"],
            kind=RecoveryKind(data.get("kind", RecoveryKind.MANUAL.value)),
            context=data.get("context"),
        )


class StateRegistry:
    """Named state providers captured by recovery points."""

    def __init__(self):
        self._providers: Dict[str, Callable[[], Any]] = {}
        self._appliers: Dict[str, Callable[[Any], None]] = {}

    def register(self, name: str, provider: Callable[[], Any], applier: Callable[[Any], None]) -> None:
        self._providers[name] = provider
        self._appliers[name] = applier

    def unregister(self, name: str) -> None:
        self._providers.pop(name, None)
        self._appliers.pop(name, None)

    def names(self) -> List[str]:
        return sorted(self._providers)

    def snapshot(self) -> Dict[str, Any]:
        return {name: copy.deepcopy(provider()) for name, provider in self._providers.items()}

    def apply(self, snapshot: Dict[str, Any]) -> None:
        for name, value in snapshot.items():
            applier = self._appliers.get(name)
            if applier is None:
                logger.warning("Snapshot holds state for unregistered component %r; skipping", name)
                continue
            applier(copy.deepcopy(value))


class RecoveryPointStore:
    def __init__(
        self,
        store: LocalStore,
        registry: StateRegistry,
        *,
        max_points: int = 20,
        events: Optional[EventBus] = None,
    ):
        self.store = store
        self.registry = registry
        self.max_points = max(1, max_points)
        self.events = events or EventBus()

    def list_recovery_points(self) -> List[RecoveryPoint]:
        """All retained points, oldest first."""

        points = []
        for raw in self.store.get(POINTS_KEY, []) or []:
            try:
                points.append(RecoveryPoint.from_dict(raw))
            except (KeyError, TypeError, ValueError) as exc:
                logger.error("Ignoring malformed recovery point record %r: %s", raw, exc)
        return points

    def latest(self) -> Optional[RecoveryPoint]:
        points = self.list_recovery_points()
        return points[-1] if points else None

    async def create_recovery_point(
        self,
        description: str,
        kind: RecoveryKind | str = RecoveryKind.MANUAL,
        context: Optional[Dict[str, Any]] = None,
    ) -> Result[str]:
        kind = RecoveryKind(kind)
        try:
            snapshot = self.registry.snapshot()
        except Exception as exc:
            logger.exception("Could not capture application state for recovery point")
            return Err(Failure(f"State capture failed: {exc}"))

        created = utc_now()
        point_id = str(uuid.uuid4())
        point = RecoveryPoint(
            id=point_id,
            created_at=created.isoformat(),
            description=description,
            snapshot_key=f"{SNAPSHOT_PREFIX}{int(created.timestamp() * 1000)}:{point_id}",
            kind=kind,
            context=copy.deepcopy(context),
        )

        # Failed writes are logged by the store; the point stays usable for
        # the rest of this process either way.
        self.store.set(point.snapshot_key, snapshot)
        points = self.list_recovery_points()
        points.append(point)
        points = self._prune(points)
        self.store.set(POINTS_KEY, [p.to_dict() for p in points])

        recovery_points_created_total.labels(kind.value).inc()
        logger.info("Created %s recovery point %s: %s", kind.value, point_id, description)
        await self.events.publish(EventType.RECOVERY_POINT_CREATED, point.to_dict())
        return Ok(point_id)

    def _prune(self, points: List[RecoveryPoint]) -> List[RecoveryPoint]:
        excess = len(points) - self.max_points
        if excess <= 0:
            return points
        for old in points[:excess]:
            self.store.remove(old.snapshot_key)
            logger.debug("Pruned recovery point %s", old.id)
        return points[excess:]

    async def restore_from_recovery_point(self, point_id: str) -> Result[Dict[str, Any]]:
        point = next((p for p in self.list_recovery_points() if p.id == point_id), None)
        if point is None:
            return Err(NotFound(f"Recovery point {point_id} not found"))

        snapshot = self.store.get(point.snapshot_key)
        if snapshot is None:
            return Err(NotFound(f"Snapshot for recovery point {point_id} is missing"))

        try:
            self.registry.apply(snapshot)
        except Exception as exc:
            logger.exception("Could not apply recovery point %s", point_id)
            return Err(Failure(f"State restore failed: {exc}"))
        logger.info("Restored application state from recovery point %s", point_id)
        await self.events.publish(EventType.RECOVERY_POINT_RESTORED, point.to_dict())
        return Ok(snapshot)


__all__ = [
    "POINTS_KEY",
    "SNAPSHOT_PREFIX",
    "RecoveryKind",
    "RecoveryPoint",
    "StateRegistry",
    "RecoveryPointStore",
]
