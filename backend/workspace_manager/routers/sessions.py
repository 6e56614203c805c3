"""Work-session endpoints.

Besides plain CRUD this router carries the two session-tracking entry points
the UI relies on:

* ``GET /resume-session/{id}`` – reactivate a paused session.
* ``POST /session-tracking/save-state`` – persist the client's resume context.

Both are owner-only.  Activity tracking (see
:pymod:`workspace_manager.services.activity`) runs ahead of every handler here.
"""

import logging
from typing import List
from typing import Optional

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import Query
from fastapi import status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from workspace_manager.crud import crud
from workspace_manager.database import get_db
from workspace_manager.dependencies.activity import get_tracked_user
from workspace_manager.events import EventType
from workspace_manager.events import event_bus
from workspace_manager.events.decorators import publish_event
from workspace_manager.models.enums import SessionStatus
from workspace_manager.routers.errors import http_error
from workspace_manager.schemas.schemas import SaveStateRequest
from workspace_manager.schemas.schemas import SaveStateResponse
from workspace_manager.schemas.schemas import SessionCreate
from workspace_manager.schemas.schemas import SessionOut
from workspace_manager.schemas.schemas import SessionUpdate
from workspace_manager.services import access
from workspace_manager.services.entity_service import EntityService
from workspace_manager.services.errors import ServiceError
from workspace_manager.services.session_service import SessionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sessions"])


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


@router.get("/sessions", response_model=List[SessionOut])
def read_sessions(
    status_filter: Optional[SessionStatus] = Query(None, alias="status"),
    user_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user=Depends(get_tracked_user),
):
    """List the caller's sessions; admins may ask for another user's."""

    if user_id is not None and user_id != current_user.id and not access.is_admin(current_user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your sessions")

    return crud.get_sessions(
        db,
        user_id=user_id if user_id is not None else current_user.id,
        status=status_filter.value if status_filter else None,
        skip=skip,
        limit=limit,
    )


@router.post("/sessions", response_model=SessionOut, status_code=status.HTTP_201_CREATED)
@publish_event(EventType.SESSION_CREATED)
async def create_session(
    work_session: SessionCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_tracked_user),
):
    try:
        return EntityService.create_session(db, current_user, work_session)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.get("/sessions/{session_id}", response_model=SessionOut)
def read_session(session_id: str, db: Session = Depends(get_db), current_user=Depends(get_tracked_user)):
    try:
        return EntityService.get_session(db, current_user, session_id)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.put("/sessions/{session_id}", response_model=SessionOut)
@publish_event(EventType.SESSION_UPDATED)
async def update_session(
    session_id: str,
    work_session: SessionUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_tracked_user),
):
    try:
        return EntityService.update_session(db, current_user, session_id, work_session)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(session_id: str, db: Session = Depends(get_db), current_user=Depends(get_tracked_user)):
    try:
        EntityService.delete_session(db, current_user, session_id)
    except ServiceError as exc:
        raise http_error(exc) from exc
    return None


@router.post("/sessions/{session_id}/complete", response_model=SessionOut)
@publish_event(EventType.SESSION_COMPLETED)
async def complete_session(session_id: str, db: Session = Depends(get_db), current_user=Depends(get_tracked_user)):
    """Mark the session completed; ``duration_minutes`` is derived here."""

    try:
        return SessionService.complete(db, current_user, session_id)
    except ServiceError as exc:
        raise http_error(exc) from exc


# ---------------------------------------------------------------------------
# Session tracking
# ---------------------------------------------------------------------------


@router.get("/resume-session/{session_id}", response_model=SessionOut)
@publish_event(EventType.SESSION_RESUMED)
async def resume_session(session_id: str, db: Session = Depends(get_db), current_user=Depends(get_tracked_user)):
    try:
        return SessionService.resume(db, current_user, session_id)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.post("/session-tracking/save-state", response_model=SaveStateResponse)
async def save_session_state(
    body: SaveStateRequest,
    db: Session = Depends(get_db),
    current_user=Depends(get_tracked_user),
):
    try:
        SessionService.save_state(db, current_user, body.sessionId, body.context)
    except ServiceError as exc:
        raise http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to save state for session %s: %s", body.sessionId, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save session state",
        ) from exc

    await event_bus.publish(
        EventType.SESSION_STATE_SAVED,
        {"session_id": body.sessionId, "user_id": current_user.id},
    )
    return SaveStateResponse(success=True)
