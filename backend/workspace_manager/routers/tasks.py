"""Task CRUD endpoints."""

from typing import List
from typing import Optional

from fastapi import APIRouter
from fastapi import Depends
from fastapi import status
from sqlalchemy.orm import Session

from workspace_manager.database import get_db
from workspace_manager.dependencies.activity import get_tracked_user
from workspace_manager.routers.errors import http_error
from workspace_manager.schemas.schemas import TaskCreate
from workspace_manager.schemas.schemas import TaskOut
from workspace_manager.schemas.schemas import TaskUpdate
from workspace_manager.services.entity_service import EntityService
from workspace_manager.services.errors import ServiceError

router = APIRouter(tags=["tasks"])


@router.get("", response_model=List[TaskOut])
def read_tasks(
    project_id: Optional[str] = None,
    assignee_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user=Depends(get_tracked_user),
):
    return EntityService.list_tasks(
        db,
        current_user,
        project_id=project_id,
        assignee_id=assignee_id,
        skip=skip,
        limit=limit,
    )


@router.post("", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
def create_task(task: TaskCreate, db: Session = Depends(get_db), current_user=Depends(get_tracked_user)):
    try:
        return EntityService.create_task(db, current_user, task)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.get("/{task_id}", response_model=TaskOut)
def read_task(task_id: str, db: Session = Depends(get_db), current_user=Depends(get_tracked_user)):
    try:
        return EntityService.get_task(db, current_user, task_id)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.put("/{task_id}", response_model=TaskOut)
def update_task(
    task_id: str,
    task: TaskUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_tracked_user),
):
    try:
        return EntityService.update_task(db, current_user, task_id, task)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(task_id: str, db: Session = Depends(get_db), current_user=Depends(get_tracked_user)):
    try:
        EntityService.delete_task(db, current_user, task_id)
    except ServiceError as exc:
        raise http_error(exc) from exc
    return None
