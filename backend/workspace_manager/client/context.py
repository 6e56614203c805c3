"""Client composition root.

:class:`ClientContext` owns one instance of every client component and their
lifecycle.  The application entry point creates it once and hands it (or the
pieces it needs) to whoever needs them; nothing in the client is global.

    async with ClientContext() as ctx:
        ctx.registry.register("editor", editor.dump, editor.load)
        await ctx.sync.create_entity("task", task_id, {...})
        await ctx.checkpoint("Before bulk edit")
"""

from __future__ import annotations

import logging
from typing import Any
from typing import Dict
from typing import Optional

from workspace_manager.client.errors import ErrorBoundary
from workspace_manager.client.local_store import FileStorageBackend
from workspace_manager.client.local_store import LocalStore
from workspace_manager.client.recovery import RecoveryKind
from workspace_manager.client.recovery import RecoveryPointStore
from workspace_manager.client.recovery import StateRegistry
from workspace_manager.client.remote import HttpRemoteClient
from workspace_manager.client.remote import RemoteClient
from workspace_manager.client.result import Result
from workspace_manager.client.scheduler import RecoveryScheduler
from workspace_manager.client.sync_engine import SyncEngine
from workspace_manager.config import Settings
from workspace_manager.config import get_settings
from workspace_manager.events import EventBus

logger = logging.getLogger(__name__)


class ClientContext:
    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        store: Optional[LocalStore] = None,
        remote: Optional[RemoteClient] = None,
        events: Optional[EventBus] = None,
        online: bool = True,
    ):
        self.settings = settings or get_settings(validate=False)
        self.events = events or EventBus()
        self.store = store or LocalStore(FileStorageBackend(self.settings.local_store_dir))
        self.remote = remote or HttpRemoteClient(self.settings.remote_api_url, self.settings.remote_api_token)
        self.registry = StateRegistry()

        self.sync = SyncEngine(self.store, self.remote, events=self.events, settings=self.settings, online=online)
        self.recovery = RecoveryPointStore(
            self.store,
            self.registry,
            max_points=self.settings.recovery_max_points,
            events=self.events,
        )
        self.scheduler = RecoveryScheduler(self.recovery, interval_seconds=self.settings.recovery_interval_seconds)
        self.error_boundary = ErrorBoundary(self.recovery)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        self.scheduler.start()
        if len(self.sync.queue) and self.sync.online:
            # Work left over from a previous run.
            await self.sync.drain()

    async def close(self) -> None:
        self.scheduler.stop()
        aclose = getattr(self.remote, "aclose", None)
        if aclose is not None:
            await aclose()

    async def __aenter__(self) -> "ClientContext":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self.close()
        return False

    # ------------------------------------------------------------------
    # Recovery triggers
    # ------------------------------------------------------------------

    async def checkpoint(self, description: str, context: Optional[Dict[str, Any]] = None) -> Result[str]:
        """Recovery point requested explicitly by the user."""

        return await self.recovery.create_recovery_point(description, RecoveryKind.MANUAL, context)

    async def on_window_close(self) -> Result[str]:
        result = await self.recovery.create_recovery_point("Window closed", RecoveryKind.WINDOW_CLOSE)
        if not result.ok:
            logger.warning("Window-close recovery point failed: %s", result.failure)
        return result


__all__ = ["ClientContext"]
