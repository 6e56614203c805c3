"""Project CRUD endpoints.

List results are filtered in SQL to the projects the caller may read.
"""

from typing import List
from typing import Optional

from fastapi import APIRouter
from fastapi import Depends
from fastapi import status
from sqlalchemy.orm import Session

from workspace_manager.database import get_db
from workspace_manager.dependencies.activity import get_tracked_user
from workspace_manager.routers.errors import http_error
from workspace_manager.schemas.schemas import ProjectCreate
from workspace_manager.schemas.schemas import ProjectOut
from workspace_manager.schemas.schemas import ProjectUpdate
from workspace_manager.services.entity_service import EntityService
from workspace_manager.services.errors import ServiceError

router = APIRouter(tags=["projects"])


@router.get("", response_model=List[ProjectOut])
def read_projects(
    workspace_id: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user=Depends(get_tracked_user),
):
    return EntityService.list_projects(db, current_user, workspace_id=workspace_id, skip=skip, limit=limit)


@router.post("", response_model=ProjectOut, status_code=status.HTTP_201_CREATED)
def create_project(project: ProjectCreate, db: Session = Depends(get_db), current_user=Depends(get_tracked_user)):
    try:
        return EntityService.create_project(db, current_user, project)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.get("/{project_id}", response_model=ProjectOut)
def read_project(project_id: str, db: Session = Depends(get_db), current_user=Depends(get_tracked_user)):
    try:
        return EntityService.get_project(db, current_user, project_id)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.put("/{project_id}", response_model=ProjectOut)
def update_project(
    project_id: str,
    project: ProjectUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_tracked_user),
):
    try:
        return EntityService.update_project(db, current_user, project_id, project)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_project(project_id: str, db: Session = Depends(get_db), current_user=Depends(get_tracked_user)):
    try:
        EntityService.delete_project(db, current_user, project_id)
    except ServiceError as exc:
        raise http_error(exc) from exc
    return None
