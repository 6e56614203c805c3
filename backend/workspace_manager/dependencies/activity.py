"""Dependency that records request activity for the authenticated user."""

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.orm import Session

from workspace_manager.database import get_db
from workspace_manager.dependencies.auth import get_current_user
from workspace_manager.services.activity import ActivityTracker


def get_tracked_user(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    """Resolve the caller and apply the inactivity rule to their session.

    Tracking runs before the handler, so a handler that resumes a session
    sees it already paused when the caller had been idle past the timeout.
    """

    ActivityTracker().track(db, current_user)
    return current_user


__all__ = ["get_tracked_user"]
