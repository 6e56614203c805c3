# UTC helper
# Keep stdlib ``datetime`` for type annotations; runtime *now()* comes from
# ``utc_now_naive``.
from contextlib import contextmanager
from datetime import datetime
from datetime import timezone
from typing import Any
from typing import Dict
from typing import Iterable
from typing import Iterator
from typing import List
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm import selectinload

from workspace_manager.models.enums import SessionStatus
from workspace_manager.models.enums import TaskStatus
from workspace_manager.models.models import Project
from workspace_manager.models.models import ProjectAssignee
from workspace_manager.models.models import SyncOperationRecord
from workspace_manager.models.models import Task
from workspace_manager.models.models import User
from workspace_manager.models.models import WorkSession
from workspace_manager.models.models import Workspace
from workspace_manager.models.models import WorkspaceMember
from workspace_manager.utils.time import utc_now_naive

# NOTE: For return type hints we use ``Optional[User]`` rather than PEP 604
# unions; the SQLAlchemy declarative classes override ``|`` at runtime.


def _naive(value: Optional[datetime]) -> Optional[datetime]:
    """Strip tzinfo (after converting to UTC) so SQLite stores comparable values."""

    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _as_value(value: Any) -> Any:
    """Unwrap ``str`` enums so JSON columns store plain strings."""

    return getattr(value, "value", value)


_UNIT_OF_WORK = "unit_of_work"


def _commit(db: Session) -> None:
    """Commit, or only flush while an enclosing :func:`unit_of_work` is open."""

    if db.info.get(_UNIT_OF_WORK):
        db.flush()
    else:
        db.commit()


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """Run several helpers below as one transaction.

    Helpers flush instead of committing inside the block; the block commits
    once on exit and rolls everything back if anything raises.
    """

    if db.info.get(_UNIT_OF_WORK):
        yield db
        return

    db.info[_UNIT_OF_WORK] = True
    try:
        yield db
        db.info.pop(_UNIT_OF_WORK, None)
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.info.pop(_UNIT_OF_WORK, None)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email).first()


def create_user(
    db: Session,
    *,
    email: str,
    provider: Optional[str] = None,
    provider_user_id: Optional[str] = None,
    role: str = "USER",
    display_name: Optional[str] = None,
) -> User:
    """Insert a new user row and return it."""

    new_user = User(
        email=email,
        provider=provider,
        provider_user_id=provider_user_id,
        role=role,
        display_name=display_name,
    )
    db.add(new_user)
    _commit(db)
    db.refresh(new_user)
    return new_user


def update_user(db: Session, user_id: int, *, display_name: Optional[str] = None) -> Optional[User]:
    """Partial update for the profile fields a user may edit themselves."""

    user = get_user(db, user_id)
    if user is None:
        return None

    if display_name is not None:
        user.display_name = display_name

    _commit(db)
    db.refresh(user)
    return user


def touch_user(db: Session, user: User, now: datetime) -> None:
    """Record activity on *user* without committing."""

    user.last_active = now


# ---------------------------------------------------------------------------
# Workspaces
# ---------------------------------------------------------------------------


def get_workspace(db: Session, workspace_id: str) -> Optional[Workspace]:
    return (
        db.query(Workspace)
        .options(selectinload(Workspace.members))
        .filter(Workspace.id == workspace_id)
        .first()
    )


def get_workspaces(db: Session, *, skip: int = 0, limit: int = 100) -> List[Workspace]:
    return (
        db.query(Workspace)
        .options(selectinload(Workspace.members))
        .order_by(Workspace.created_at)
        .offset(skip)
        .limit(limit)
        .all()
    )


def _sync_members(workspace: Workspace, members: Iterable[Dict[str, Any]]) -> None:
    """Make ``workspace.members`` match *members* keyed on ``user_id``.

    Existing rows are updated in place so the (workspace, user) unique
    constraint never sees a delete-then-insert of the same pair.
    """

    wanted = {int(m["user_id"]): _as_value(m.get("role") or "member") for m in members}
    existing = {m.user_id: m for m in workspace.members}

    for user_id, member in existing.items():
        if user_id not in wanted:
            workspace.members.remove(member)
        else:
            member.role = wanted[user_id]

    for user_id, role in wanted.items():
        if user_id not in existing:
            workspace.members.append(WorkspaceMember(user_id=user_id, role=role))


def create_workspace(
    db: Session,
    *,
    name: str,
    owner_id: int,
    description: Optional[str] = None,
    members: Optional[List[Dict[str, Any]]] = None,
    status: str = "active",
    workspace_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Workspace:
    """Create a workspace; ``created_at``/``updated_at`` are stamped here."""

    now = now or utc_now_naive()
    workspace = Workspace(
        name=name,
        owner_id=owner_id,
        description=description,
        status=_as_value(status),
        created_at=now,
        updated_at=now,
    )
    if workspace_id:
        workspace.id = workspace_id
    _sync_members(workspace, members or [])

    db.add(workspace)
    _commit(db)
    db.refresh(workspace)
    return workspace


def update_workspace(
    db: Session,
    workspace: Workspace,
    changes: Dict[str, Any],
    *,
    now: Optional[datetime] = None,
) -> Workspace:
    for key, value in changes.items():
        if key == "members":
            _sync_members(workspace, value or [])
        elif key in {"name", "description", "status"}:
            setattr(workspace, key, _as_value(value))
    workspace.updated_at = now or utc_now_naive()

    _commit(db)
    db.refresh(workspace)
    return workspace


def delete_workspace(db: Session, workspace: Workspace) -> None:
    db.delete(workspace)
    _commit(db)


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


def get_project(db: Session, project_id: str) -> Optional[Project]:
    return (
        db.query(Project)
        .options(selectinload(Project.assignees), selectinload(Project.workspace).selectinload(Workspace.members))
        .filter(Project.id == project_id)
        .first()
    )


def get_projects(
    db: Session,
    *,
    workspace_id: Optional[str] = None,
    visibility=None,
    skip: int = 0,
    limit: int = 100,
) -> List[Project]:
    """Return projects, optionally restricted by workspace and an access clause."""

    query = db.query(Project).options(selectinload(Project.assignees))
    if workspace_id is not None:
        query = query.filter(Project.workspace_id == workspace_id)
    if visibility is not None:
        query = query.filter(visibility)
    return query.order_by(Project.created_at).offset(skip).limit(limit).all()


def _sync_assignees(project: Project, assignees: Iterable[Dict[str, Any]]) -> None:
    wanted = {int(a["user_id"]): _as_value(a.get("role") or "contributor") for a in assignees}
    existing = {a.user_id: a for a in project.assignees}

    for user_id, assignee in existing.items():
        if user_id not in wanted:
            project.assignees.remove(assignee)
        else:
            assignee.role = wanted[user_id]

    for user_id, role in wanted.items():
        if user_id not in existing:
            project.assignees.append(ProjectAssignee(user_id=user_id, role=role))


_PROJECT_FIELDS = {"name", "description", "status", "priority", "start_date", "due_date", "tags", "progress"}


def create_project(
    db: Session,
    *,
    name: str,
    workspace_id: str,
    created_by_id: Optional[int],
    project_id: Optional[str] = None,
    assignees: Optional[List[Dict[str, Any]]] = None,
    now: Optional[datetime] = None,
    **fields: Any,
) -> Project:
    now = now or utc_now_naive()
    project = Project(
        name=name,
        workspace_id=workspace_id,
        created_by_id=created_by_id,
        created_at=now,
        updated_at=now,
        tags=[],
        progress=0,
    )
    if project_id:
        project.id = project_id
    _apply_fields(project, fields, _PROJECT_FIELDS)
    _sync_assignees(project, assignees or [])

    db.add(project)
    _commit(db)
    db.refresh(project)
    return project


def update_project(
    db: Session,
    project: Project,
    changes: Dict[str, Any],
    *,
    now: Optional[datetime] = None,
) -> Project:
    if "assignees" in changes:
        _sync_assignees(project, changes["assignees"] or [])
    _apply_fields(project, changes, _PROJECT_FIELDS)
    project.updated_at = now or utc_now_naive()

    _commit(db)
    db.refresh(project)
    return project


def delete_project(db: Session, project: Project) -> None:
    db.delete(project)
    _commit(db)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

_TASK_FIELDS = {
    "title",
    "description",
    "parent_id",
    "status",
    "priority",
    "assignee_id",
    "estimated_hours",
    "actual_hours",
    "start_date",
    "due_date",
    "tags",
    "dependencies",
    "comments",
    "progress",
}


def _apply_fields(row: Any, changes: Dict[str, Any], allowed: set) -> None:
    for key, value in changes.items():
        if key not in allowed:
            continue
        if isinstance(value, datetime):
            value = _naive(value)
        elif isinstance(value, list):
            value = [_jsonable(v) for v in value]
        setattr(row, key, _as_value(value))


def _jsonable(item: Any) -> Any:
    """Normalise list items (dicts with enums / datetimes) for JSON columns."""

    if isinstance(item, dict):
        return {k: _jsonable(v) for k, v in item.items()}
    if isinstance(item, datetime):
        return item.isoformat()
    return _as_value(item)


def _check_task_references(task: Task) -> None:
    """A task may not be its own parent or depend on itself."""

    if task.parent_id is not None and task.parent_id == task.id:
        raise ValueError("A task cannot be its own parent")
    for dep in task.dependencies or []:
        if dep.get("task_id") == task.id:
            raise ValueError("A task cannot depend on itself")


def _derive_completed_date(task: Task, now: datetime) -> None:
    if task.status == TaskStatus.COMPLETED:
        if task.completed_date is None:
            task.completed_date = now
    else:
        task.completed_date = None


def _stamp_comments(task: Task, now: datetime) -> None:
    if not task.comments:
        return
    task.comments = [
        {**comment, "created_at": comment.get("created_at") or now.isoformat()} for comment in task.comments
    ]


def get_task(db: Session, task_id: str) -> Optional[Task]:
    return db.query(Task).filter(Task.id == task_id).first()


def get_tasks(
    db: Session,
    *,
    project_id: Optional[str] = None,
    assignee_id: Optional[int] = None,
    visibility=None,
    skip: int = 0,
    limit: int = 100,
) -> List[Task]:
    query = db.query(Task)
    if project_id is not None:
        query = query.filter(Task.project_id == project_id)
    if assignee_id is not None:
        query = query.filter(Task.assignee_id == assignee_id)
    if visibility is not None:
        query = query.filter(visibility)
    return query.order_by(Task.created_at).offset(skip).limit(limit).all()


def create_task(
    db: Session,
    *,
    title: str,
    project_id: str,
    created_by_id: Optional[int],
    task_id: Optional[str] = None,
    now: Optional[datetime] = None,
    **fields: Any,
) -> Task:
    now = now or utc_now_naive()
    task = Task(
        title=title,
        project_id=project_id,
        created_by_id=created_by_id,
        created_at=now,
        updated_at=now,
        status=TaskStatus.TO_DO.value,
        tags=[],
        dependencies=[],
        comments=[],
        progress=0,
    )
    if task_id:
        task.id = task_id
    _apply_fields(task, fields, _TASK_FIELDS)
    _check_task_references(task)
    _derive_completed_date(task, now)
    _stamp_comments(task, now)

    db.add(task)
    _commit(db)
    db.refresh(task)
    return task


def update_task(db: Session, task: Task, changes: Dict[str, Any], *, now: Optional[datetime] = None) -> Task:
    now = now or utc_now_naive()
    _apply_fields(task, changes, _TASK_FIELDS)
    try:
        _check_task_references(task)
    except ValueError:
        db.rollback()
        raise
    _derive_completed_date(task, now)
    _stamp_comments(task, now)
    task.updated_at = now

    _commit(db)
    db.refresh(task)
    return task


def delete_task(db: Session, task: Task) -> None:
    db.delete(task)
    _commit(db)


# ---------------------------------------------------------------------------
# Work sessions
# ---------------------------------------------------------------------------

_SESSION_FIELDS = {"workspace_id", "project_id", "task_id", "status", "notes", "context"}


def get_session(db: Session, session_id: str) -> Optional[WorkSession]:
    return db.query(WorkSession).filter(WorkSession.id == session_id).first()


def get_sessions(
    db: Session,
    *,
    user_id: Optional[int] = None,
    status: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[WorkSession]:
    query = db.query(WorkSession)
    if user_id is not None:
        query = query.filter(WorkSession.user_id == user_id)
    if status is not None:
        query = query.filter(WorkSession.status == status)
    return query.order_by(WorkSession.started_at.desc()).offset(skip).limit(limit).all()


def get_active_session(db: Session, user_id: int) -> Optional[WorkSession]:
    """Return the user's active session (most recently active if several)."""

    return (
        db.query(WorkSession)
        .filter(WorkSession.user_id == user_id, WorkSession.status == SessionStatus.ACTIVE.value)
        .order_by(WorkSession.last_active.desc())
        .first()
    )


def _derive_completion(work_session: WorkSession, now: datetime) -> None:
    """Stamp ``completed_at`` and the rounded duration when a session completes."""

    if work_session.status != SessionStatus.COMPLETED or work_session.completed_at is not None:
        return
    work_session.completed_at = now
    if work_session.started_at is not None:
        elapsed = (now - work_session.started_at).total_seconds()
        work_session.duration_minutes = max(0, round(elapsed / 60))


def create_session(
    db: Session,
    *,
    user_id: int,
    session_id: Optional[str] = None,
    now: Optional[datetime] = None,
    **fields: Any,
) -> WorkSession:
    now = now or utc_now_naive()
    work_session = WorkSession(
        user_id=user_id,
        status=SessionStatus.ACTIVE.value,
        started_at=now,
        last_active=now,
        context={},
        created_at=now,
        updated_at=now,
    )
    if session_id:
        work_session.id = session_id
    _apply_fields(work_session, fields, _SESSION_FIELDS)
    _derive_completion(work_session, now)

    db.add(work_session)
    _commit(db)
    db.refresh(work_session)
    return work_session


def update_session(
    db: Session,
    work_session: WorkSession,
    changes: Dict[str, Any],
    *,
    now: Optional[datetime] = None,
) -> WorkSession:
    """Apply *changes*; every change counts as activity on the session."""

    now = now or utc_now_naive()
    _apply_fields(work_session, changes, _SESSION_FIELDS)
    work_session.last_active = now
    work_session.updated_at = now
    _derive_completion(work_session, now)

    _commit(db)
    db.refresh(work_session)
    return work_session


def delete_session(db: Session, work_session: WorkSession) -> None:
    db.delete(work_session)
    _commit(db)


# ---------------------------------------------------------------------------
# Sync ledger
# ---------------------------------------------------------------------------


def get_sync_operation(db: Session, user_id: int, op_id: str) -> Optional[SyncOperationRecord]:
    return (
        db.query(SyncOperationRecord)
        .filter(SyncOperationRecord.user_id == user_id, SyncOperationRecord.op_id == op_id)
        .first()
    )


def record_sync_operation(
    db: Session,
    *,
    user_id: int,
    op_id: str,
    op_type: str,
    entity_type: str,
    entity_id: str,
    payload: Dict[str, Any],
    enqueued_at: Optional[datetime] = None,
) -> SyncOperationRecord:
    record = SyncOperationRecord(
        user_id=user_id,
        op_id=op_id,
        op_type=_as_value(op_type),
        entity_type=_as_value(entity_type),
        entity_id=entity_id,
        payload=payload,
        enqueued_at=_naive(enqueued_at),
        applied_at=utc_now_naive(),
    )
    db.add(record)
    _commit(db)
    db.refresh(record)
    return record
