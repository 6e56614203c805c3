"""Event bus implementation for decoupled event handling."""

import logging
from enum import Enum
from typing import Any
from typing import Awaitable
from typing import Callable
from typing import Dict
from typing import Set

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], Awaitable[None]]


class EventType(str, Enum):
    """Standardized event types for the system."""

    # Work session lifecycle (server)
    SESSION_CREATED = "session_created"
    SESSION_UPDATED = "session_updated"
    SESSION_RESUMED = "session_resumed"
    SESSION_COMPLETED = "session_completed"
    SESSION_STATE_SAVED = "session_state_saved"

    # Offline sync (client)
    SYNC_OPERATION_ENQUEUED = "sync_operation_enqueued"
    SYNC_OPERATION_DELIVERED = "sync_operation_delivered"
    SYNC_OPERATION_STUCK = "sync_operation_stuck"
    SYNC_DRAINED = "sync_drained"
    ENTITY_CONFLICT_RESOLVED = "entity_conflict_resolved"

    # Recovery points (client)
    RECOVERY_POINT_CREATED = "recovery_point_created"
    RECOVERY_POINT_RESTORED = "recovery_point_restored"


class EventBus:
    """Central event bus for publishing and subscribing to events."""

    def __init__(self):
        self._subscribers: Dict[EventType, Set[Handler]] = {}

    async def publish(self, event_type: EventType, data: Dict[str, Any]) -> None:
        """Publish an event to all subscribers.

        Handler failures are logged and never reach the publisher.
        """
        if event_type not in self._subscribers:
            return

        logger.debug("Publishing event %s with data: %s", event_type, data)

        for callback in list(self._subscribers[event_type]):
            try:
                await callback(data)
            except Exception as e:
                logger.error("Error in event handler for %s: %s", event_type, e)

    def subscribe(self, event_type: EventType, callback: Handler) -> None:
        if event_type not in self._subscribers:
            self._subscribers[event_type] = set()

        self._subscribers[event_type].add(callback)
        logger.debug("Added subscriber for event %s", event_type)

    def unsubscribe(self, event_type: EventType, callback: Handler) -> None:
        if event_type in self._subscribers:
            self._subscribers[event_type].discard(callback)
            logger.debug("Removed subscriber for event %s", event_type)

            if not self._subscribers[event_type]:
                del self._subscribers[event_type]


# Process-wide bus for the server; client contexts construct their own.
event_bus = EventBus()
