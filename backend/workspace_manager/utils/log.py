"""Structured logger shared by the sync machinery.

Most modules log through ``logging.getLogger(__name__)``.  Code paths that
emit machine-readable events (retry attempts, queue transitions) use the
*structlog* logger exposed here so calls look like
``log.info("sync-delivered", op_id=..., attempts=...)``.
"""

from __future__ import annotations

import logging
from typing import Any

import structlog

if not structlog.is_configured():
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
    )

# Keep the logger global so every import shares the same base instance.
log = structlog.get_logger("workspace_manager")


def get_logger(**bindings: Any):  # noqa: D401 – factory helper
    """Return a bound logger carrying *bindings* on every event."""

    return log.bind(**bindings)


__all__ = ["log", "get_logger"]
