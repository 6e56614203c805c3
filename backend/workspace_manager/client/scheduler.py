"""Periodic recovery points on an APScheduler interval job."""

from __future__ import annotations

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from workspace_manager.client.recovery import RecoveryKind
from workspace_manager.client.recovery import RecoveryPointStore

logger = logging.getLogger(__name__)

JOB_ID = "automatic-recovery-point"


class RecoveryScheduler:
    """Creates an automatic recovery point every *interval_seconds*."""

    def __init__(
        self,
        recovery: RecoveryPointStore,
        interval_seconds: int = 300,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        self.recovery = recovery
        self.interval_seconds = interval_seconds
        self.scheduler = scheduler or AsyncIOScheduler()
        self._started = False

    @property
    def running(self) -> bool:
        return self._started

    def start(self) -> None:
        """Register the job and start the scheduler (needs a running loop)."""

        if self._started:
            return
        self.scheduler.add_job(
            self.run_once,
            "interval",
            seconds=self.interval_seconds,
            id=JOB_ID,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        if not self.scheduler.running:
            self.scheduler.start()
        self._started = True
        logger.info("Automatic recovery points every %s seconds", self.interval_seconds)

    def stop(self) -> None:
        if not self._started:
            return
        if self.scheduler.get_job(JOB_ID) is not None:
            self.scheduler.remove_job(JOB_ID)
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self._started = False
        logger.info("Automatic recovery points stopped")

    async def run_once(self) -> None:
        result = await self.recovery.create_recovery_point("Automatic recovery point", RecoveryKind.AUTOMATIC)
        if not result.ok:
            logger.warning("Automatic recovery point failed: %s", result.failure)


__all__ = ["JOB_ID", "RecoveryScheduler"]
