"""Decorators for event handling."""

import functools
from datetime import datetime
from typing import Any
from typing import Callable
from typing import Dict

from .event_bus import EventType
from .event_bus import event_bus


def _row_payload(row: Any) -> Dict[str, Any]:
    payload = {}
    for column in row.__table__.columns:
        value = getattr(row, column.name)
        if isinstance(value, datetime):
            value = value.isoformat()
        payload[column.name] = getattr(value, "value", value)
    return payload


def event_payload(result: Any) -> Dict[str, Any]:
    """Flatten a handler's return value into an event body."""

    if hasattr(result, "__table__"):
        return _row_payload(result)
    if hasattr(result, "model_dump"):
        return result.model_dump(mode="json")
    return dict(result)


def publish_event(event_type: EventType):
    """Publish *event_type* after the decorated router handler succeeds.

    The handler must be a coroutine returning an ORM row (sessions,
    workspaces, ...), a pydantic model or a mapping.  Nothing is published
    when it raises or returns ``None``.
    """

    def decorator(func: Callable):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            result = await func(*args, **kwargs)

            if result is not None:
                data = event_payload(result)
                data["event_type"] = event_type.value
                await event_bus.publish(event_type, data)

            return result

        return wrapper

    return decorator


__all__ = ["event_payload", "publish_event"]
