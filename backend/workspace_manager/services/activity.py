"""Request-path activity tracking.

Every authenticated API request refreshes the caller's ``last_active`` and
that of their active work session.  A session whose previous activity is
older than the configured timeout is paused first, so the gap shows up as a
pause rather than as continuous work.
"""

from __future__ import annotations

import logging
from datetime import datetime
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from workspace_manager.config import get_settings
from workspace_manager.crud import crud
from workspace_manager.metrics import activity_tracking_errors_total
from workspace_manager.metrics import sessions_auto_paused_total
from workspace_manager.models.enums import SessionStatus
from workspace_manager.models.models import User
from workspace_manager.models.models import WorkSession
from workspace_manager.utils.time import utc_now_naive

logger = logging.getLogger(__name__)


class ActivityTracker:
    """Applies the inactivity rule for one user at a time."""

    def __init__(self, timeout: Optional[timedelta] = None):
        if timeout is None:
            timeout = timedelta(minutes=get_settings(validate=False).activity_timeout_minutes)
        self.timeout = timeout

    def track(self, db: Session, user: User, *, now: Optional[datetime] = None) -> Optional[WorkSession]:
        """Record activity for *user*; returns the session that was touched.

        Never raises: a tracking failure is logged, counted and rolled back
        so the request itself proceeds.
        """

        now = now or utc_now_naive()
        try:
            crud.touch_user(db, user, now)

            work_session = crud.get_active_session(db, user.id)
            if work_session is not None:
                # Compare against the stored value before overwriting it.
                idle = now - work_session.last_active
                if idle > self.timeout:
                    work_session.status = SessionStatus.PAUSED.value
                    sessions_auto_paused_total.inc()
                    logger.info(
                        "Session %s paused after %.0f seconds of inactivity",
                        work_session.id,
                        idle.total_seconds(),
                    )
                work_session.last_active = now
                work_session.updated_at = now

            db.commit()
            return work_session
        except Exception:
            logger.exception("Activity tracking failed for user %s", getattr(user, "id", None))
            activity_tracking_errors_total.inc()
            db.rollback()
            return None

