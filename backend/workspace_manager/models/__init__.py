"""Database models for the application."""

from .models import Project
from .models import ProjectAssignee
from .models import SyncOperationRecord
from .models import Task
from .models import User
from .models import WorkSession
from .models import Workspace
from .models import WorkspaceMember

__all__ = [
    "Project",
    "ProjectAssignee",
    "SyncOperationRecord",
    "Task",
    "User",
    "WorkSession",
    "Workspace",
    "WorkspaceMember",
]
