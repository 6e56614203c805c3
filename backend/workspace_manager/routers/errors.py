"""Translate service-layer errors into HTTP responses."""

from fastapi import HTTPException
from fastapi import status

from workspace_manager.services.errors import AccessDenied
from workspace_manager.services.errors import EntityNotFound
from workspace_manager.services.errors import InvalidOperation
from workspace_manager.services.errors import ServiceError

# Starlette renamed the 422 constant; the number is stable across releases.
HTTP_422 = 422


def http_error(exc: ServiceError) -> HTTPException:
    if isinstance(exc, AccessDenied):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, EntityNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, InvalidOperation):
        return HTTPException(status_code=HTTP_422, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
