"""Workspace CRUD endpoints."""

import logging
from typing import List

from fastapi import APIRouter
from fastapi import Depends
from fastapi import status
from sqlalchemy.orm import Session

from workspace_manager.crud import crud
from workspace_manager.database import get_db
from workspace_manager.dependencies.activity import get_tracked_user
from workspace_manager.routers.errors import http_error
from workspace_manager.schemas.schemas import WorkspaceCreate
from workspace_manager.schemas.schemas import WorkspaceOut
from workspace_manager.schemas.schemas import WorkspaceUpdate
from workspace_manager.services.entity_service import EntityService
from workspace_manager.services.errors import ServiceError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["workspaces"])


@router.get("", response_model=List[WorkspaceOut])
def read_workspaces(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user=Depends(get_tracked_user),
):
    """Any authenticated user may list workspaces."""

    return crud.get_workspaces(db, skip=skip, limit=limit)


@router.post("", response_model=WorkspaceOut, status_code=status.HTTP_201_CREATED)
def create_workspace(
    workspace: WorkspaceCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_tracked_user),
):
    try:
        return EntityService.create_workspace(db, current_user, workspace)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.get("/{workspace_id}", response_model=WorkspaceOut)
def read_workspace(workspace_id: str, db: Session = Depends(get_db), current_user=Depends(get_tracked_user)):
    try:
        return EntityService.get_workspace(db, current_user, workspace_id)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.put("/{workspace_id}", response_model=WorkspaceOut)
def update_workspace(
    workspace_id: str,
    workspace: WorkspaceUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_tracked_user),
):
    try:
        return EntityService.update_workspace(db, current_user, workspace_id, workspace)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.delete("/{workspace_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_workspace(workspace_id: str, db: Session = Depends(get_db), current_user=Depends(get_tracked_user)):
    try:
        EntityService.delete_workspace(db, current_user, workspace_id)
    except ServiceError as exc:
        raise http_error(exc) from exc
    logger.info("Workspace %s deleted by user %s", workspace_id, current_user.id)
    return None
