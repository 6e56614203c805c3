"""FastAPI dependency that exposes the *current user*.

The concrete strategy (development bypass vs. JWT validation) lives in
:pymod:`workspace_manager.auth.strategy`; it is picked from
``settings.auth_disabled`` on first use.
"""

from __future__ import annotations

from fastapi import Depends
from fastapi import HTTPException
from fastapi import Request
from fastapi import status
from sqlalchemy.orm import Session

from workspace_manager.auth.strategy import DevAuthStrategy
from workspace_manager.auth.strategy import JWTAuthStrategy
from workspace_manager.config import get_settings
from workspace_manager.database import get_db

_settings = get_settings()

# Tests patch this constant to toggle dev ↔ JWT behaviour.
AUTH_DISABLED: bool = _settings.auth_disabled  # noqa: N816

_strategy_cache: dict[str, object] = {}


def _get_strategy():  # noqa: D401 – internal helper
    """Return *singleton* strategy instance based on ``AUTH_DISABLED`` flag."""

    if AUTH_DISABLED:
        if "dev" not in _strategy_cache:
            _strategy_cache["dev"] = DevAuthStrategy()
        return _strategy_cache["dev"]

    if "jwt" not in _strategy_cache:
        _strategy_cache["jwt"] = JWTAuthStrategy()
    return _strategy_cache["jwt"]


def get_current_user(request: Request, db: Session = Depends(get_db)):
    """Return the authenticated *User* row or raise **401**."""

    if "Authorization" not in request.headers and not AUTH_DISABLED:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _get_strategy().get_current_user(request, db)


__all__ = [
    "get_current_user",
]
