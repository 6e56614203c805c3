"""Centralised configuration helper.

This module eliminates scattered ``os.getenv`` calls by exposing a **single**
:class:`Settings` container (retrieved via :func:`get_settings`) that both the
FastAPI server and the offline client read from.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# ``_REPO_ROOT`` points to the top-level repository directory (one level
# **above** the "backend" folder).

_REPO_ROOT = Path(__file__).resolve().parents[3]


def _truthy(value: str | None) -> bool:  # noqa: D401 – small helper
    """Return *True* when *value* looks like an affirmative string."""

    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:  # noqa: D401 – simple data container
    """Lightweight settings container populated from environment variables."""

    # Runtime flags -----------------------------------------------------
    testing: bool
    auth_disabled: bool

    # Secrets -----------------------------------------------------------
    jwt_secret: str

    # Database ---------------------------------------------------------
    database_url: str

    # Misc
    dev_admin: bool
    log_level: str
    allowed_cors_origins: str

    # Session tracking --------------------------------------------------
    activity_timeout_minutes: int

    # Offline client ----------------------------------------------------
    remote_api_url: str
    remote_api_token: str | None
    sync_max_attempts: int
    sync_base_delay: float
    sync_max_delay: float
    sync_stuck_threshold: int
    recovery_interval_seconds: int
    recovery_max_points: int
    local_store_dir: str

    # Helper for tests to override values at runtime -------------------
    def override(self, **kwargs: Any) -> None:  # pragma: no cover – test util
        for key, value in kwargs.items():
            if not hasattr(self, key):  # pragma: no cover – safety
                raise AttributeError(f"Settings has no attribute '{key}'")
            setattr(self, key, value)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


def _load_settings() -> Settings:  # noqa: D401 – helper
    """Populate :class:`Settings` from environment variables."""

    node_env = os.getenv("NODE_ENV", "development")

    if node_env == "test":
        env_path = _REPO_ROOT / ".env.test"
        if not env_path.exists():
            env_path = _REPO_ROOT / ".env"
    else:
        env_path = _REPO_ROOT / ".env"

    if env_path.exists():
        current_testing = os.getenv("TESTING")
        load_dotenv(env_path, override=True)
        # The test-suite sets TESTING before importing anything; never let a
        # developer .env flip it back.
        if current_testing:
            os.environ["TESTING"] = current_testing

    testing = _truthy(os.getenv("TESTING"))

    return Settings(
        testing=testing,
        auth_disabled=_truthy(os.getenv("AUTH_DISABLED")) or testing,
        jwt_secret=os.getenv("JWT_SECRET", "dev-secret"),
        database_url=os.getenv("DATABASE_URL", ""),
        dev_admin=_truthy(os.getenv("DEV_ADMIN")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        allowed_cors_origins=os.getenv("ALLOWED_CORS_ORIGINS", ""),
        activity_timeout_minutes=int(os.getenv("ACTIVITY_TIMEOUT_MINUTES", "15")),
        remote_api_url=os.getenv("REMOTE_API_URL", "http://localhost:8000"),
        remote_api_token=os.getenv("REMOTE_API_TOKEN"),
        sync_max_attempts=int(os.getenv("SYNC_MAX_ATTEMPTS", "3")),
        sync_base_delay=float(os.getenv("SYNC_BASE_DELAY", "0.5")),
        sync_max_delay=float(os.getenv("SYNC_MAX_DELAY", "8.0")),
        sync_stuck_threshold=int(os.getenv("SYNC_STUCK_THRESHOLD", "3")),
        recovery_interval_seconds=int(os.getenv("RECOVERY_INTERVAL_SECONDS", "300")),
        recovery_max_points=int(os.getenv("RECOVERY_MAX_POINTS", "20")),
        local_store_dir=os.getenv("LOCAL_STORE_DIR", str(Path.home() / ".workspace-manager")),
    )


# ------------------------------------------------------------------
# Runtime validation – fail fast when *required* settings are missing.
# ------------------------------------------------------------------


def _validate_required(settings: Settings) -> None:  # noqa: D401 – helper
    """Abort startup when mandatory configuration is missing.

    Unit-tests run against an in-memory SQLite database with the auth bypass
    enabled, so validation is skipped when *TESTING* is set.
    """

    if settings.testing:
        return

    missing_vars = []

    if not settings.database_url:
        missing_vars.append("DATABASE_URL")

    if not settings.auth_disabled:
        weak = settings.jwt_secret.strip() in {"", "dev-secret"} or len(settings.jwt_secret) < 16
        if weak:
            missing_vars.append("JWT_SECRET (must be >=16 chars, not 'dev-secret')")

    if settings.activity_timeout_minutes <= 0:
        missing_vars.append("ACTIVITY_TIMEOUT_MINUTES (must be positive)")

    if settings.recovery_max_points <= 0:
        missing_vars.append("RECOVERY_MAX_POINTS (must be positive)")

    if missing_vars:
        raise RuntimeError(
            f"CRITICAL: Missing or invalid environment variables: {', '.join(missing_vars)}\n"
            f"Set these in your .env file or deployment environment."
        )


def get_settings(*, validate: bool = True) -> Settings:  # noqa: D401 – public accessor
    """Return :class:`Settings` instance loaded from environment.

    The offline client passes ``validate=False``: it never opens the database
    and does not sign tokens, so the server-side checks do not apply.
    """

    settings = _load_settings()
    if validate:
        _validate_required(settings)
    return settings


__all__ = [
    "Settings",
    "get_settings",
]
