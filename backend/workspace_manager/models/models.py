import uuid

from sqlalchemy import JSON
from sqlalchemy import Boolean
from sqlalchemy import Column
from sqlalchemy import DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Float
from sqlalchemy import ForeignKey
from sqlalchemy import Integer
from sqlalchemy import String
from sqlalchemy import Text
from sqlalchemy import UniqueConstraint
from sqlalchemy.ext.mutable import MutableDict
from sqlalchemy.ext.mutable import MutableList
from sqlalchemy.orm import relationship

from workspace_manager.database import Base
from workspace_manager.models.enums import AssigneeRole
from workspace_manager.models.enums import MemberRole
from workspace_manager.models.enums import Priority
from workspace_manager.models.enums import ProjectStatus
from workspace_manager.models.enums import SessionStatus
from workspace_manager.models.enums import TaskStatus
from workspace_manager.models.enums import UserRole
from workspace_manager.models.enums import WorkspaceStatus
from workspace_manager.utils.time import utc_now_naive


def _enum(enum_cls, name: str) -> SAEnum:
    """Non-native enum column that persists the enum *values* ("in-progress")."""

    return SAEnum(
        enum_cls,
        native_enum=False,
        name=name,
        values_callable=lambda members: [m.value for m in members],
    )


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Application user.

    Authentication itself is delegated (bearer token or the development
    bypass); the row only carries identity, role and activity timestamps.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    provider = Column(String, nullable=True)
    provider_user_id = Column(String, nullable=True, index=True)

    email = Column(String, unique=True, nullable=False, index=True)
    display_name = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    role = Column(_enum(UserRole, "user_role_enum"), nullable=False, default=UserRole.USER.value)

    # Updated by the activity tracker on every authenticated request.
    last_active = Column(DateTime, nullable=True)
    last_login = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utc_now_naive)
    updated_at = Column(DateTime, default=utc_now_naive, onupdate=utc_now_naive)

# ---------------------------------------------------------------------------
# Workspaces
# ---------------------------------------------------------------------------


class Workspace(Base):
    __tablename__ = "workspaces"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    owner = relationship("User", foreign_keys=[owner_id])

    status = Column(
        _enum(WorkspaceStatus, "workspace_status_enum"),
        nullable=False,
        default=WorkspaceStatus.ACTIVE.value,
    )

    members = relationship(
        "WorkspaceMember",
        back_populates="workspace",
        cascade="all, delete-orphan",
        order_by="WorkspaceMember.id",
    )
    projects = relationship("Project", back_populates="workspace", cascade="all, delete-orphan")

    created_at = Column(DateTime, default=utc_now_naive)
    updated_at = Column(DateTime, default=utc_now_naive)


class WorkspaceMember(Base):
    __tablename__ = "workspace_members"
    __table_args__ = (UniqueConstraint("workspace_id", "user_id", name="uq_workspace_member"),)

    id = Column(Integer, primary_key=True, index=True)
    workspace_id = Column(String(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(_enum(MemberRole, "member_role_enum"), nullable=False, default=MemberRole.MEMBER.value)

    workspace = relationship("Workspace", back_populates="members")


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    workspace_id = Column(String(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True)
    workspace = relationship("Workspace", back_populates="projects")

    status = Column(_enum(ProjectStatus, "project_status_enum"), nullable=False, default=ProjectStatus.PLANNING.value)
    priority = Column(_enum(Priority, "project_priority_enum"), nullable=False, default=Priority.MEDIUM.value)

    start_date = Column(DateTime, nullable=True)
    due_date = Column(DateTime, nullable=True)

    assignees = relationship(
        "ProjectAssignee",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectAssignee.id",
    )
    tasks = relationship("Task", back_populates="project", cascade="all, delete-orphan")

    tags = Column(MutableList.as_mutable(JSON), nullable=False, default=list)
    progress = Column(Integer, nullable=False, default=0)

    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utc_now_naive)
    updated_at = Column(DateTime, default=utc_now_naive)


class ProjectAssignee(Base):
    __tablename__ = "project_assignees"
    __table_args__ = (UniqueConstraint("project_id", "user_id", name="uq_project_assignee"),)

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(
        _enum(AssigneeRole, "assignee_role_enum"),
        nullable=False,
        default=AssigneeRole.CONTRIBUTOR.value,
    )

    project = relationship("Project", back_populates="assignees")


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class Task(Base):
    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    project = relationship("Project", back_populates="tasks")

    # Sub-task hierarchy; a task is never its own parent (enforced in crud).
    parent_id = Column(String(36), ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True)

    status = Column(_enum(TaskStatus, "task_status_enum"), nullable=False, default=TaskStatus.TO_DO.value)
    priority = Column(_enum(Priority, "task_priority_enum"), nullable=False, default=Priority.MEDIUM.value)

    assignee_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    estimated_hours = Column(Float, nullable=True)
    actual_hours = Column(Float, nullable=True)

    start_date = Column(DateTime, nullable=True)
    due_date = Column(DateTime, nullable=True)
    completed_date = Column(DateTime, nullable=True)

    tags = Column(MutableList.as_mutable(JSON), nullable=False, default=list)
    # [{"task_id": str, "type": DependencyType}]
    dependencies = Column(MutableList.as_mutable(JSON), nullable=False, default=list)
    # [{"user_id": int, "content": str, "created_at": iso-str}]
    comments = Column(MutableList.as_mutable(JSON), nullable=False, default=list)

    progress = Column(Integer, nullable=False, default=0)

    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utc_now_naive)
    updated_at = Column(DateTime, default=utc_now_naive)


# ---------------------------------------------------------------------------
# Work sessions
# ---------------------------------------------------------------------------


class WorkSession(Base):
    """A user's work session; *context* holds the state needed to resume."""

    __tablename__ = "sessions"

    id = Column(String(36), primary_key=True, default=_new_id)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    user = relationship("User", backref="work_sessions")

    workspace_id = Column(String(36), ForeignKey("workspaces.id", ondelete="SET NULL"), nullable=True)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="SET NULL"), nullable=True)
    task_id = Column(String(36), ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True)

    status = Column(
        _enum(SessionStatus, "session_status_enum"),
        nullable=False,
        default=SessionStatus.ACTIVE.value,
        index=True,
    )
    notes = Column(Text, nullable=True)

    started_at = Column(DateTime, nullable=False, default=utc_now_naive)
    last_active = Column(DateTime, nullable=False, default=utc_now_naive)
    completed_at = Column(DateTime, nullable=True)
    duration_minutes = Column(Integer, nullable=True)

    context = Column(MutableDict.as_mutable(JSON), nullable=True, default=dict)

    created_at = Column(DateTime, default=utc_now_naive)
    updated_at = Column(DateTime, default=utc_now_naive)


# ---------------------------------------------------------------------------
# Sync ledger
# ---------------------------------------------------------------------------


class SyncOperationRecord(Base):
    """An operation delivered by an offline client.

    Clients generate a unique ``op_id`` per queued mutation; the row makes
    re-delivery after a crash idempotent.  Uniqueness is scoped per user.
    """

    __tablename__ = "sync_operations"
    __table_args__ = (UniqueConstraint("user_id", "op_id", name="uq_sync_operations_user_op"),)

    id = Column(Integer, primary_key=True, index=True)
    op_id = Column(String, nullable=False, index=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    op_type = Column(String, nullable=False)
    entity_type = Column(String, nullable=False)
    entity_id = Column(String(36), nullable=False, index=True)
    payload = Column(JSON, nullable=False, default=dict)

    enqueued_at = Column(DateTime, nullable=True)
    applied_at = Column(DateTime, nullable=False, default=utc_now_naive)
