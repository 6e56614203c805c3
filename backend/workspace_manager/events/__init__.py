"""Event system for decoupled communication between components."""

from .event_bus import EventBus
from .event_bus import EventType
from .event_bus import event_bus

__all__ = ["EventBus", "EventType", "event_bus"]
