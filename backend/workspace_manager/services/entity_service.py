"""Entity service – access-checked CRUD for workspaces, projects, tasks and
sessions.

Routers and the sync endpoint both go through this façade so a mutation
delivered from an offline client's queue is subject to exactly the same
validation and access rules as one made directly over HTTP.
"""

from __future__ import annotations

import logging
from typing import Any
from typing import Callable
from typing import Dict

from pydantic import BaseModel
from pydantic import ValidationError
from sqlalchemy.orm import Session

from workspace_manager.crud import crud
from workspace_manager.models.enums import EntityType
from workspace_manager.models.models import Project
from workspace_manager.models.models import Task
from workspace_manager.models.models import User
from workspace_manager.models.models import WorkSession
from workspace_manager.models.models import Workspace
from workspace_manager.schemas.schemas import ProjectCreate
from workspace_manager.schemas.schemas import ProjectOut
from workspace_manager.schemas.schemas import ProjectUpdate
from workspace_manager.schemas.schemas import SessionCreate
from workspace_manager.schemas.schemas import SessionOut
from workspace_manager.schemas.schemas import SessionUpdate
from workspace_manager.schemas.schemas import TaskCreate
from workspace_manager.schemas.schemas import TaskOut
from workspace_manager.schemas.schemas import TaskUpdate
from workspace_manager.schemas.schemas import WorkspaceCreate
from workspace_manager.schemas.schemas import WorkspaceOut
from workspace_manager.schemas.schemas import WorkspaceUpdate
from workspace_manager.services import access
from workspace_manager.services.errors import AccessDenied
from workspace_manager.services.errors import EntityNotFound
from workspace_manager.services.errors import InvalidOperation

logger = logging.getLogger(__name__)


class EntityService:
    """Stateless helpers; every method takes the request-scoped session."""

    # ------------------------------------------------------------------
    # Workspaces
    # ------------------------------------------------------------------

    @staticmethod
    def get_workspace(db: Session, user: User, workspace_id: str) -> Workspace:
        workspace = crud.get_workspace(db, workspace_id)
        if workspace is None:
            raise EntityNotFound(f"Workspace {workspace_id} not found")
        if not access.can_read_workspace(user, workspace):
            raise AccessDenied("Not allowed to read this workspace")
        return workspace

    @staticmethod
    def create_workspace(db: Session, user: User, data: WorkspaceCreate) -> Workspace:
        owner_id = data.owner_id or user.id
        if owner_id != user.id and not access.is_admin(user):
            raise AccessDenied("Only admins can create workspaces on behalf of another user")
        if data.id and crud.get_workspace(db, data.id) is not None:
            raise InvalidOperation(f"Workspace {data.id} already exists")

        return crud.create_workspace(
            db,
            name=data.name,
            owner_id=owner_id,
            description=data.description,
            members=[m.model_dump() for m in data.members],
            status=data.status,
            workspace_id=data.id,
        )

    @staticmethod
    def update_workspace(db: Session, user: User, workspace_id: str, data: WorkspaceUpdate) -> Workspace:
        workspace = crud.get_workspace(db, workspace_id)
        if workspace is None:
            raise EntityNotFound(f"Workspace {workspace_id} not found")
        if not access.can_update_workspace(user, workspace):
            raise AccessDenied("Only workspace members can update this workspace")
        return crud.update_workspace(db, workspace, data.model_dump(exclude_unset=True))

    @staticmethod
    def delete_workspace(db: Session, user: User, workspace_id: str) -> None:
        workspace = crud.get_workspace(db, workspace_id)
        if workspace is None:
            raise EntityNotFound(f"Workspace {workspace_id} not found")
        if not access.can_delete_workspace(user, workspace):
            raise AccessDenied("Only the workspace owner can delete this workspace")
        crud.delete_workspace(db, workspace)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    @staticmethod
    def get_project(db: Session, user: User, project_id: str) -> Project:
        project = crud.get_project(db, project_id)
        if project is None:
            raise EntityNotFound(f"Project {project_id} not found")
        if not access.can_read_project(user, project):
            raise AccessDenied("Not allowed to read this project")
        return project

    @staticmethod
    def list_projects(db: Session, user: User, *, workspace_id: str | None = None, skip: int = 0, limit: int = 100):
        return crud.get_projects(
            db,
            workspace_id=workspace_id,
            visibility=access.project_visibility(user),
            skip=skip,
            limit=limit,
        )

    @staticmethod
    def create_project(db: Session, user: User, data: ProjectCreate) -> Project:
        workspace = crud.get_workspace(db, data.workspace_id)
        if workspace is None:
            raise EntityNotFound(f"Workspace {data.workspace_id} not found")
        if not access.can_write_project(user, workspace):
            raise AccessDenied("Only workspace members can add projects")
        if data.id and crud.get_project(db, data.id) is not None:
            raise InvalidOperation(f"Project {data.id} already exists")

        fields = data.model_dump(exclude={"id", "name", "workspace_id", "assignees"})
        return crud.create_project(
            db,
            name=data.name,
            workspace_id=data.workspace_id,
            created_by_id=user.id,
            project_id=data.id,
            assignees=[a.model_dump() for a in data.assignees],
            **fields,
        )

    @staticmethod
    def update_project(db: Session, user: User, project_id: str, data: ProjectUpdate) -> Project:
        project = crud.get_project(db, project_id)
        if project is None:
            raise EntityNotFound(f"Project {project_id} not found")
        if not access.can_write_project(user, project.workspace):
            raise AccessDenied("Only workspace members can update this project")
        return crud.update_project(db, project, data.model_dump(exclude_unset=True))

    @staticmethod
    def delete_project(db: Session, user: User, project_id: str) -> None:
        project = crud.get_project(db, project_id)
        if project is None:
            raise EntityNotFound(f"Project {project_id} not found")
        if not access.can_write_project(user, project.workspace):
            raise AccessDenied("Only workspace members can delete this project")
        crud.delete_project(db, project)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    @staticmethod
    def get_task(db: Session, user: User, task_id: str) -> Task:
        task = crud.get_task(db, task_id)
        if task is None:
            raise EntityNotFound(f"Task {task_id} not found")
        if not access.can_read_task(user, task):
            raise AccessDenied("Not allowed to read this task")
        return task

    @staticmethod
    def list_tasks(
        db: Session,
        user: User,
        *,
        project_id: str | None = None,
        assignee_id: int | None = None,
        skip: int = 0,
        limit: int = 100,
    ):
        return crud.get_tasks(
            db,
            project_id=project_id,
            assignee_id=assignee_id,
            visibility=access.task_visibility(user),
            skip=skip,
            limit=limit,
        )

    @staticmethod
    def create_task(db: Session, user: User, data: TaskCreate) -> Task:
        project = crud.get_project(db, data.project_id)
        if project is None:
            raise EntityNotFound(f"Project {data.project_id} not found")
        if not access.can_write_task(user, project):
            raise AccessDenied("Only workspace members can add tasks")
        if data.id and crud.get_task(db, data.id) is not None:
            raise InvalidOperation(f"Task {data.id} already exists")

        fields = data.model_dump(exclude={"id", "title", "project_id"})
        try:
            return crud.create_task(
                db,
                title=data.title,
                project_id=data.project_id,
                created_by_id=user.id,
                task_id=data.id,
                **fields,
            )
        except ValueError as exc:
            raise InvalidOperation(str(exc)) from exc

    @staticmethod
    def update_task(db: Session, user: User, task_id: str, data: TaskUpdate) -> Task:
        task = crud.get_task(db, task_id)
        if task is None:
            raise EntityNotFound(f"Task {task_id} not found")
        if not access.can_write_task(user, task.project):
            raise AccessDenied("Only workspace members can update this task")
        try:
            return crud.update_task(db, task, data.model_dump(exclude_unset=True))
        except ValueError as exc:
            raise InvalidOperation(str(exc)) from exc

    @staticmethod
    def delete_task(db: Session, user: User, task_id: str) -> None:
        task = crud.get_task(db, task_id)
        if task is None:
            raise EntityNotFound(f"Task {task_id} not found")
        if not access.can_write_task(user, task.project):
            raise AccessDenied("Only workspace members can delete this task")
        crud.delete_task(db, task)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    @staticmethod
    def get_session(db: Session, user: User, session_id: str) -> WorkSession:
        work_session = crud.get_session(db, session_id)
        if work_session is None:
            raise EntityNotFound(f"Session {session_id} not found")
        if not access.can_access_session(user, work_session):
            raise AccessDenied("Not your session")
        return work_session

    @staticmethod
    def create_session(db: Session, user: User, data: SessionCreate) -> WorkSession:
        if data.id and crud.get_session(db, data.id) is not None:
            raise InvalidOperation(f"Session {data.id} already exists")
        fields = data.model_dump(exclude={"id"}, exclude_none=True)
        return crud.create_session(db, user_id=user.id, session_id=data.id, **fields)

    @staticmethod
    def update_session(db: Session, user: User, session_id: str, data: SessionUpdate) -> WorkSession:
        work_session = EntityService.get_session(db, user, session_id)
        return crud.update_session(db, work_session, data.model_dump(exclude_unset=True))

    @staticmethod
    def delete_session(db: Session, user: User, session_id: str) -> None:
        work_session = EntityService.get_session(db, user, session_id)
        crud.delete_session(db, work_session)

    # ------------------------------------------------------------------
    # Generic dispatch (used by the sync endpoint)
    # ------------------------------------------------------------------

    @staticmethod
    def get(db: Session, user: User, entity_type: EntityType | str, entity_id: str):
        handler = _HANDLERS[EntityType(entity_type)]
        return handler.get(db, user, entity_id)

    @staticmethod
    def create(db: Session, user: User, entity_type: EntityType | str, entity_id: str, payload: Dict[str, Any]):
        handler = _HANDLERS[EntityType(entity_type)]
        data = _validate(handler.create_schema, {**payload, "id": entity_id})
        return handler.create(db, user, data)

    @staticmethod
    def update(db: Session, user: User, entity_type: EntityType | str, entity_id: str, payload: Dict[str, Any]):
        handler = _HANDLERS[EntityType(entity_type)]
        data = _validate(handler.update_schema, payload)
        return handler.update(db, user, entity_id, data)

    @staticmethod
    def delete(db: Session, user: User, entity_type: EntityType | str, entity_id: str) -> None:
        handler = _HANDLERS[EntityType(entity_type)]
        handler.delete(db, user, entity_id)

    @staticmethod
    def serialize(entity_type: EntityType | str, row: Any) -> Dict[str, Any]:
        """Return the JSON shape clients cache locally for *row*."""

        handler = _HANDLERS[EntityType(entity_type)]
        return handler.out_schema.model_validate(row).model_dump(mode="json")


def _validate(schema: type[BaseModel], payload: Dict[str, Any]) -> BaseModel:
    try:
        return schema.model_validate(payload)
    except ValidationError as exc:
        raise InvalidOperation(f"Invalid payload: {exc.errors(include_url=False)}") from exc


class _Handler:
    def __init__(
        self,
        *,
        get: Callable,
        create: Callable,
        update: Callable,
        delete: Callable,
        create_schema: type[BaseModel],
        update_schema: type[BaseModel],
        out_schema: type[BaseModel],
    ):
        self.get = get
        self.create = create
        self.update = update
        self.delete = delete
        self.create_schema = create_schema
        self.update_schema = update_schema
        self.out_schema = out_schema


_HANDLERS: Dict[EntityType, _Handler] = {
    EntityType.WORKSPACE: _Handler(
        get=EntityService.get_workspace,
        create=EntityService.create_workspace,
        update=EntityService.update_workspace,
        delete=EntityService.delete_workspace,
        create_schema=WorkspaceCreate,
        update_schema=WorkspaceUpdate,
        out_schema=WorkspaceOut,
    ),
    EntityType.PROJECT: _Handler(
        get=EntityService.get_project,
        create=EntityService.create_project,
        update=EntityService.update_project,
        delete=EntityService.delete_project,
        create_schema=ProjectCreate,
        update_schema=ProjectUpdate,
        out_schema=ProjectOut,
    ),
    EntityType.TASK: _Handler(
        get=EntityService.get_task,
        create=EntityService.create_task,
        update=EntityService.update_task,
        delete=EntityService.delete_task,
        create_schema=TaskCreate,
        update_schema=TaskUpdate,
        out_schema=TaskOut,
    ),
    EntityType.SESSION: _Handler(
        get=EntityService.get_session,
        create=EntityService.create_session,
        update=EntityService.update_session,
        delete=EntityService.delete_session,
        create_schema=SessionCreate,
        update_schema=SessionUpdate,
        out_schema=SessionOut,
    ),
}
