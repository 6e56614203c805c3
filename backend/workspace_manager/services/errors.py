"""Domain errors raised by the service layer.

Routers translate these into HTTP responses (``403``/``404``/``422``); the
sync service maps them onto the same status codes so offline clients see
identical semantics whether a mutation arrives directly or via the queue.
"""


class ServiceError(Exception):
    """Base class for service-level failures."""


class AccessDenied(ServiceError):
    """Caller is authenticated but not allowed to touch the entity."""


class EntityNotFound(ServiceError):
    """The referenced entity does not exist."""


class InvalidOperation(ServiceError, ValueError):
    """Request is well-formed but violates an entity rule."""
