"""Access-token minting.

There is no login endpoint; operators mint tokens for users (and the
offline client's ``REMOTE_API_TOKEN``) with :func:`issue_token`.
"""

from __future__ import annotations

from datetime import datetime
from datetime import timedelta
from datetime import timezone

from jose import jwt

from workspace_manager.auth.strategy import JWT_ALGORITHM
from workspace_manager.config import get_settings


def issue_token(
    user_id: int,
    email: str,
    expires_delta: timedelta = timedelta(hours=12),
    *,
    secret: str | None = None,
) -> str:
    """Return a signed HS256 access token for *user_id*."""

    expiry = datetime.now(timezone.utc) + expires_delta
    payload = {
        "sub": str(user_id),
        "email": email,
        "exp": int(expiry.timestamp()),
    }
    return jwt.encode(payload, secret or get_settings(validate=False).jwt_secret, algorithm=JWT_ALGORITHM)


__all__ = ["issue_token"]
