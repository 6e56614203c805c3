import warnings

import pytest

from workspace_manager.routers.errors import http_error
from workspace_manager.services.errors import AccessDenied
from workspace_manager.services.errors import EntityNotFound
from workspace_manager.services.errors import InvalidOperation
from workspace_manager.services.errors import ServiceError


@pytest.mark.parametrize(
    "error,status_code",
    [
        (AccessDenied("no"), 403),
        (EntityNotFound("gone"), 404),
        (InvalidOperation("bad"), 422),
        (ServiceError("other"), 400),
    ],
)
def test_service_errors_map_to_status_codes(error, status_code):
    with warnings.catch_warnings():
        warnings.simplefilter("error", DeprecationWarning)
        exc = http_error(error)

    assert exc.status_code == status_code
    assert exc.detail == str(error)
