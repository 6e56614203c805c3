"""Shared *Enum* definitions for SQLAlchemy & Pydantic models.

The Enums inherit from ``str`` so that:

* JSON serialisation remains unchanged (values render as plain strings).
* Equality checks against raw literals (``status == "paused"``) keep working.
"""

from __future__ import annotations

from enum import Enum


class UserRole(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class WorkspaceStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class MemberRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


class ProjectStatus(str, Enum):
    PLANNING = "planning"
    IN_PROGRESS = "in-progress"
    ON_HOLD = "on-hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class AssigneeRole(str, Enum):
    LEAD = "lead"
    CONTRIBUTOR = "contributor"
    REVIEWER = "reviewer"
    OBSERVER = "observer"


class TaskStatus(str, Enum):
    TO_DO = "to-do"
    IN_PROGRESS = "in-progress"
    IN_REVIEW = "in-review"
    BLOCKED = "blocked"
    COMPLETED = "completed"


class DependencyType(str, Enum):
    FINISH_TO_START = "finish-to-start"
    START_TO_START = "start-to-start"
    FINISH_TO_FINISH = "finish-to-finish"
    START_TO_FINISH = "start-to-finish"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class EntityType(str, Enum):
    WORKSPACE = "workspace"
    PROJECT = "project"
    TASK = "task"
    SESSION = "session"


class SyncOpType(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    SAVE_STATE = "save_state"


__all__ = [
    "UserRole",
    "WorkspaceStatus",
    "MemberRole",
    "ProjectStatus",
    "Priority",
    "AssigneeRole",
    "TaskStatus",
    "DependencyType",
    "SessionStatus",
    "EntityType",
    "SyncOpType",
]
