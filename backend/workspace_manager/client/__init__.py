"""Offline-first client: local store, sync queue/engine and recovery points."""

from workspace_manager.client.context import ClientContext
from workspace_manager.client.errors import ErrorBoundary
from workspace_manager.client.local_store import FileStorageBackend
from workspace_manager.client.local_store import LocalStore
from workspace_manager.client.local_store import MemoryStorageBackend
from workspace_manager.client.recovery import RecoveryKind
from workspace_manager.client.recovery import RecoveryPoint
from workspace_manager.client.recovery import RecoveryPointStore
from workspace_manager.client.recovery import StateRegistry
from workspace_manager.client.remote import HttpRemoteClient
from workspace_manager.client.remote import RemoteError
from workspace_manager.client.result import Err
from workspace_manager.client.result import NotFound
from workspace_manager.client.result import Offline
from workspace_manager.client.result import Ok
from workspace_manager.client.result import PersistenceFailure
from workspace_manager.client.result import RemoteFailure
from workspace_manager.client.scheduler import RecoveryScheduler
from workspace_manager.client.sync_engine import SyncEngine
from workspace_manager.client.sync_queue import SyncOperation
from workspace_manager.client.sync_queue import SyncQueue

__all__ = [
    "ClientContext",
    "ErrorBoundary",
    "FileStorageBackend",
    "LocalStore",
    "MemoryStorageBackend",
    "RecoveryKind",
    "RecoveryPoint",
    "RecoveryPointStore",
    "StateRegistry",
    "HttpRemoteClient",
    "RemoteError",
    "Err",
    "NotFound",
    "Offline",
    "Ok",
    "PersistenceFailure",
    "RemoteFailure",
    "RecoveryScheduler",
    "SyncEngine",
    "SyncOperation",
    "SyncQueue",
]
