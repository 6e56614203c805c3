"""Authentication strategies for the workspace manager API.

Two interchangeable implementations sit behind :class:`AuthStrategy`:

• :class:`DevAuthStrategy` – used when *AUTH_DISABLED* is set (local
  development, the test-suite); every request resolves to a development user.
• :class:`JWTAuthStrategy` – validates HS256 bearer tokens minted by
  :func:`workspace_manager.auth.tokens.issue_token`.

The choice is made once in :pymod:`workspace_manager.dependencies.auth` so
request handlers stay branch-free.
"""

from __future__ import annotations

from abc import ABC
from abc import abstractmethod
from typing import Any

from fastapi import HTTPException
from fastapi import Request
from fastapi import status
from jose import JWTError
from jose import jwt
from sqlalchemy.orm import Session

from workspace_manager.config import get_settings
from workspace_manager.crud import crud
from workspace_manager.utils.time import utc_now_naive

JWT_ALGORITHM = "HS256"


class AuthStrategy(ABC):
    """Pluggable authentication backend (strategy pattern)."""

    @abstractmethod
    def get_current_user(self, request: Request, db: Session):  # noqa: D401 – abstract
        """Return the authenticated user or raise **401**."""


class DevAuthStrategy(AuthStrategy):
    """Bypass all checks – every request is the development user."""

    DEV_EMAIL = "dev@local"

    def __init__(self):
        self._settings = get_settings(validate=False)

    def _get_or_create_dev_user(self, db: Session):
        desired_role = "ADMIN" if self._settings.dev_admin else "USER"

        user = crud.get_user_by_email(db, self.DEV_EMAIL)
        if user is not None:
            if getattr(user, "role", "USER") != desired_role:
                user.role = desired_role
                db.commit()
                db.refresh(user)
            return user

        return crud.create_user(
            db,
            email=self.DEV_EMAIL,
            provider="dev",
            role=desired_role,
            display_name="Developer",
        )

    def get_current_user(self, request: Request, db: Session):  # noqa: D401 – impl
        return self._get_or_create_dev_user(db)


class JWTAuthStrategy(AuthStrategy):
    """Production strategy that validates HS256 tokens."""

    def __init__(self):
        self._secret = get_settings().jwt_secret

    def _decode(self, token: str) -> dict[str, Any]:
        return jwt.decode(token, self._secret, algorithms=[JWT_ALGORITHM])

    def get_current_user(self, request: Request, db: Session):  # noqa: D401 – impl
        auth_header: str | None = request.headers.get("Authorization")
        if not auth_header or not auth_header.lower().startswith("bearer "):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

        token = auth_header[7:].strip()
        if not token:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

        try:
            payload = self._decode(token)
        except JWTError:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

        try:
            user_id_int = int(payload.get("sub"))
        except (TypeError, ValueError):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject")

        user = crud.get_user(db, user_id_int)
        if user is None or not getattr(user, "is_active", True):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")

        if getattr(user, "last_login", None) is None:
            user.last_login = utc_now_naive()
            db.commit()

        return user


__all__ = [
    "AuthStrategy",
    "DevAuthStrategy",
    "JWTAuthStrategy",
    "JWT_ALGORITHM",
]
