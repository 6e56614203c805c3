"""Session audit trail fed from the server event bus.

Routers publish lifecycle events after a session changes; the subscribers
here turn each one into a structured log line and a Prometheus sample.
"""

from typing import Any
from typing import Dict

from workspace_manager.metrics import session_events_total
from workspace_manager.utils.log import get_logger

from .event_bus import EventBus
from .event_bus import EventType

slog = get_logger(component="sessions")

SESSION_EVENTS = (
    EventType.SESSION_CREATED,
    EventType.SESSION_UPDATED,
    EventType.SESSION_RESUMED,
    EventType.SESSION_COMPLETED,
    EventType.SESSION_STATE_SAVED,
)


def _audit_handler(event_type: EventType):
    async def handler(data: Dict[str, Any]) -> None:
        session_events_total.labels(event_type.value).inc()
        slog.info(
            "session-event",
            event_type=event_type.value,
            session_id=data.get("session_id", data.get("id")),
            user_id=data.get("user_id"),
            status=data.get("status"),
        )

    return handler


_HANDLERS = {event_type: _audit_handler(event_type) for event_type in SESSION_EVENTS}


def register_session_audit(bus: EventBus) -> None:
    """Subscribe the audit handlers to *bus*; repeated calls are harmless."""

    for event_type, handler in _HANDLERS.items():
        bus.subscribe(event_type, handler)


__all__ = ["SESSION_EVENTS", "register_session_audit"]
