from datetime import datetime
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from pydantic import BaseModel
from pydantic import Field

from workspace_manager.models.enums import AssigneeRole
from workspace_manager.models.enums import DependencyType
from workspace_manager.models.enums import EntityType
from workspace_manager.models.enums import MemberRole
from workspace_manager.models.enums import Priority
from workspace_manager.models.enums import ProjectStatus
from workspace_manager.models.enums import SessionStatus
from workspace_manager.models.enums import SyncOpType
from workspace_manager.models.enums import TaskStatus
from workspace_manager.models.enums import UserRole
from workspace_manager.models.enums import WorkspaceStatus

# ------------------------------------------------------------
# Users
# ------------------------------------------------------------


class UserOut(BaseModel):
    id: int
    email: str
    display_name: Optional[str] = None
    role: UserRole
    is_active: bool
    last_active: Optional[datetime] = None
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserUpdate(BaseModel):
    display_name: Optional[str] = None


# ------------------------------------------------------------
# Workspaces
# ------------------------------------------------------------


class WorkspaceMemberIn(BaseModel):
    user_id: int
    role: MemberRole = MemberRole.MEMBER


class WorkspaceMemberOut(WorkspaceMemberIn):
    class Config:
        from_attributes = True


class WorkspaceCreate(BaseModel):
    # Offline clients mint ids locally so later queued updates can refer to
    # the same row; omitted ids are generated server-side.
    id: Optional[str] = None
    name: str
    description: Optional[str] = None
    owner_id: Optional[int] = None
    members: List[WorkspaceMemberIn] = Field(default_factory=list)
    status: WorkspaceStatus = WorkspaceStatus.ACTIVE


class WorkspaceUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    members: Optional[List[WorkspaceMemberIn]] = None
    status: Optional[WorkspaceStatus] = None


class WorkspaceOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    owner_id: int
    members: List[WorkspaceMemberOut] = Field(default_factory=list)
    status: WorkspaceStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ------------------------------------------------------------
# Projects
# ------------------------------------------------------------


class ProjectAssigneeIn(BaseModel):
    user_id: int
    role: AssigneeRole = AssigneeRole.CONTRIBUTOR


class ProjectAssigneeOut(ProjectAssigneeIn):
    class Config:
        from_attributes = True


class ProjectCreate(BaseModel):
    id: Optional[str] = None
    name: str
    description: Optional[str] = None
    workspace_id: str
    status: ProjectStatus = ProjectStatus.PLANNING
    priority: Priority = Priority.MEDIUM
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    assignees: List[ProjectAssigneeIn] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    progress: int = Field(0, ge=0, le=100)


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[ProjectStatus] = None
    priority: Optional[Priority] = None
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    assignees: Optional[List[ProjectAssigneeIn]] = None
    tags: Optional[List[str]] = None
    progress: Optional[int] = Field(None, ge=0, le=100)


class ProjectOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    workspace_id: str
    status: ProjectStatus
    priority: Priority
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    assignees: List[ProjectAssigneeOut] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    progress: int
    created_by_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ------------------------------------------------------------
# Tasks
# ------------------------------------------------------------


class TaskDependency(BaseModel):
    task_id: str
    type: DependencyType = DependencyType.FINISH_TO_START


class TaskComment(BaseModel):
    user_id: int
    content: str
    created_at: Optional[datetime] = None


class TaskCreate(BaseModel):
    id: Optional[str] = None
    title: str
    description: Optional[str] = None
    project_id: str
    parent_id: Optional[str] = None
    status: TaskStatus = TaskStatus.TO_DO
    priority: Priority = Priority.MEDIUM
    assignee_id: Optional[int] = None
    estimated_hours: Optional[float] = Field(None, ge=0)
    actual_hours: Optional[float] = Field(None, ge=0)
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)
    dependencies: List[TaskDependency] = Field(default_factory=list)
    comments: List[TaskComment] = Field(default_factory=list)
    progress: int = Field(0, ge=0, le=100)


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    parent_id: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[Priority] = None
    assignee_id: Optional[int] = None
    estimated_hours: Optional[float] = Field(None, ge=0)
    actual_hours: Optional[float] = Field(None, ge=0)
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    tags: Optional[List[str]] = None
    dependencies: Optional[List[TaskDependency]] = None
    comments: Optional[List[TaskComment]] = None
    progress: Optional[int] = Field(None, ge=0, le=100)


class TaskOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    project_id: str
    parent_id: Optional[str] = None
    status: TaskStatus
    priority: Priority
    assignee_id: Optional[int] = None
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)
    dependencies: List[TaskDependency] = Field(default_factory=list)
    comments: List[TaskComment] = Field(default_factory=list)
    progress: int
    created_by_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ------------------------------------------------------------
# Work sessions
# ------------------------------------------------------------


class SessionCreate(BaseModel):
    id: Optional[str] = None
    workspace_id: Optional[str] = None
    project_id: Optional[str] = None
    task_id: Optional[str] = None
    notes: Optional[str] = None
    context: Optional[Dict[str, Any]] = None


class SessionUpdate(BaseModel):
    workspace_id: Optional[str] = None
    project_id: Optional[str] = None
    task_id: Optional[str] = None
    status: Optional[SessionStatus] = None
    notes: Optional[str] = None
    context: Optional[Dict[str, Any]] = None


class SessionOut(BaseModel):
    id: str
    user_id: int
    workspace_id: Optional[str] = None
    project_id: Optional[str] = None
    task_id: Optional[str] = None
    status: SessionStatus
    notes: Optional[str] = None
    started_at: datetime
    last_active: datetime
    completed_at: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    context: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SaveStateRequest(BaseModel):
    """Body of ``POST /api/session-tracking/save-state``."""

    sessionId: str = Field(..., description="Session to update")
    context: Optional[Dict[str, Any]] = Field(None, description="Opaque client state to resume from")


class SaveStateResponse(BaseModel):
    success: bool = True


# ------------------------------------------------------------
# Offline sync
# ------------------------------------------------------------


class SyncOperationIn(BaseModel):
    """One queued client mutation."""

    op_id: str = Field(..., description="Client-generated unique operation ID")
    op_type: SyncOpType
    entity_type: EntityType
    entity_id: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    enqueued_at: Optional[datetime] = None


class SyncOperationResult(BaseModel):
    op_id: str
    applied: bool
    duplicate: bool = False
    entity: Optional[Dict[str, Any]] = None
