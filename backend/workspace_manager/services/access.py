"""Per-collection access predicates.

Each collection gates reads and writes on caller identity, role and workspace
membership:

* Workspaces – everyone may read; admins, the owner and members may update;
  only admins and the owner may delete.
* Projects – admins, project assignees and members of the parent workspace
  may read; admins and workspace members may write.
* Tasks – admins, the task assignee and members of the project's workspace
  may read; admins and workspace members may write.
* Sessions – admins and the owning user only.

The ``*_visibility`` helpers return SQL clauses equivalent to the read
predicates so list endpoints filter in the database.
"""

from __future__ import annotations

from sqlalchemy import or_

from workspace_manager.models.models import Project
from workspace_manager.models.models import ProjectAssignee
from workspace_manager.models.models import Task
from workspace_manager.models.models import User
from workspace_manager.models.models import WorkSession
from workspace_manager.models.models import Workspace
from workspace_manager.models.models import WorkspaceMember


def is_admin(user: User) -> bool:
    return getattr(user, "role", "USER") == "ADMIN"


def is_workspace_member(user: User, workspace: Workspace | None) -> bool:
    """Owner counts as a member even when absent from the members list."""

    if workspace is None:
        return False
    if workspace.owner_id == user.id:
        return True
    return any(m.user_id == user.id for m in workspace.members)


# Workspaces ---------------------------------------------------------------


def can_read_workspace(user: User, workspace: Workspace) -> bool:
    return True


def can_update_workspace(user: User, workspace: Workspace) -> bool:
    return is_admin(user) or is_workspace_member(user, workspace)


def can_delete_workspace(user: User, workspace: Workspace) -> bool:
    return is_admin(user) or workspace.owner_id == user.id


# Projects -----------------------------------------------------------------


def can_read_project(user: User, project: Project) -> bool:
    if is_admin(user):
        return True
    if any(a.user_id == user.id for a in project.assignees):
        return True
    return is_workspace_member(user, project.workspace)


def can_write_project(user: User, workspace: Workspace | None) -> bool:
    return is_admin(user) or is_workspace_member(user, workspace)


def _workspace_member_clause(user: User):
    return or_(
        Workspace.owner_id == user.id,
        Workspace.members.any(WorkspaceMember.user_id == user.id),
    )


def project_visibility(user: User):
    """SQL clause matching projects *user* may read (``None`` for admins)."""

    if is_admin(user):
        return None
    return or_(
        Project.assignees.any(ProjectAssignee.user_id == user.id),
        Project.workspace.has(_workspace_member_clause(user)),
    )


# Tasks --------------------------------------------------------------------


def can_read_task(user: User, task: Task) -> bool:
    if is_admin(user) or task.assignee_id == user.id:
        return True
    project = task.project
    return project is not None and is_workspace_member(user, project.workspace)


def can_write_task(user: User, project: Project | None) -> bool:
    if is_admin(user):
        return True
    return project is not None and is_workspace_member(user, project.workspace)


def task_visibility(user: User):
    if is_admin(user):
        return None
    return or_(
        Task.assignee_id == user.id,
        Task.project.has(Project.workspace.has(_workspace_member_clause(user))),
    )


# Sessions -----------------------------------------------------------------


def can_access_session(user: User, work_session: WorkSession) -> bool:
    return is_admin(user) or work_session.user_id == user.id


__all__ = [
    "is_admin",
    "is_workspace_member",
    "can_read_workspace",
    "can_update_workspace",
    "can_delete_workspace",
    "can_read_project",
    "can_write_project",
    "project_visibility",
    "can_read_task",
    "can_write_task",
    "task_visibility",
    "can_access_session",
]
