"""Top-level error boundary for the client.

Wrap an entry point so an unhandled exception first captures an ``error``
recovery point and then continues as before::

    boundary = ErrorBoundary(context.recovery, on_error=show_reload_prompt)

    @boundary
    async def handle_action(...):
        ...

Capturing the recovery point is best effort: if that fails too, the failure
is logged and the original exception is what the caller sees.
"""

from __future__ import annotations

import functools
import logging
from typing import Callable
from typing import Optional

from workspace_manager.client.recovery import RecoveryKind
from workspace_manager.client.recovery import RecoveryPointStore
from workspace_manager.client.result import Err
from workspace_manager.client.result import Failure
from workspace_manager.client.result import Result

logger = logging.getLogger(__name__)


class ErrorBoundary:
    def __init__(
        self,
        recovery: RecoveryPointStore,
        *,
        description: str = "Unhandled error",
        on_error: Optional[Callable[[Exception], None]] = None,
        reraise: bool = True,
    ):
        self.recovery = recovery
        self.description = description
        self.on_error = on_error
        self.reraise = reraise

    async def capture(self, exc: Exception) -> Result[str]:
        try:
            result = await self.recovery.create_recovery_point(
                f"{self.description}: {type(exc).__name__}",
                RecoveryKind.ERROR,
                {"error": str(exc), "error_type": type(exc).__name__},
            )
        except Exception as inner:
            logger.error("Could not create error recovery point: %s", inner)
            return Err(Failure(str(inner)))
        if not result.ok:
            logger.error("Could not create error recovery point: %s", result.failure)
        return result

    async def __aenter__(self) -> "ErrorBoundary":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if not isinstance(exc, Exception):
            return False

        logger.error("Unhandled client error: %s", exc, exc_info=(exc_type, exc, tb))
        await self.capture(exc)
        if self.on_error is not None:
            try:
                self.on_error(exc)
            except Exception as callback_exc:
                logger.error("Error callback failed: %s", callback_exc)
        return not self.reraise

    def __call__(self, fn):
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            async with self:
                return await fn(*args, **kwargs)

        return wrapper


__all__ = ["ErrorBoundary"]
