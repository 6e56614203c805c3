"""Session service – resume, complete and save-state for work sessions.

Resume and save-state are owner-only even for admins: they act on a user's
own working context rather than administering the record.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from typing import Dict
from typing import Optional

from sqlalchemy.orm import Session

from workspace_manager.crud import crud
from workspace_manager.models.enums import SessionStatus
from workspace_manager.models.models import User
from workspace_manager.models.models import WorkSession
from workspace_manager.services import access
from workspace_manager.services.errors import AccessDenied
from workspace_manager.services.errors import EntityNotFound
from workspace_manager.utils.time import utc_now_naive

logger = logging.getLogger(__name__)


class SessionService:
    @staticmethod
    def resume(db: Session, user: User, session_id: str, *, now: Optional[datetime] = None) -> WorkSession:
        """Reactivate a paused session and mark it as just used.

        Completed sessions are returned unchanged apart from ``last_active``.
        """

        work_session = crud.get_session(db, session_id)
        if work_session is None:
            raise EntityNotFound("Session not found")
        if work_session.user_id != user.id:
            raise AccessDenied("Unauthorized")

        changes: Dict[str, Any] = {}
        if work_session.status == SessionStatus.PAUSED:
            changes["status"] = SessionStatus.ACTIVE
            logger.info("Resuming paused session %s for user %s", session_id, user.id)

        return crud.update_session(db, work_session, changes, now=now or utc_now_naive())

    @staticmethod
    def complete(db: Session, user: User, session_id: str, *, now: Optional[datetime] = None) -> WorkSession:
        work_session = crud.get_session(db, session_id)
        if work_session is None:
            raise EntityNotFound("Session not found")
        if not access.can_access_session(user, work_session):
            raise AccessDenied("Not your session")

        return crud.update_session(db, work_session, {"status": SessionStatus.COMPLETED}, now=now)

    @staticmethod
    def save_state(
        db: Session,
        user: User,
        session_id: str,
        context: Optional[Dict[str, Any]],
        *,
        now: Optional[datetime] = None,
    ) -> WorkSession:
        """Overwrite the session's resume context.

        An unknown id is reported as *access denied*, the same as somebody
        else's session, so this endpoint never reveals which ids exist.
        """

        work_session = crud.get_session(db, session_id)
        if work_session is None or work_session.user_id != user.id:
            raise AccessDenied("Access denied")

        return crud.update_session(db, work_session, {"context": context or {}}, now=now)
