"""Offline sync endpoint.

Clients replay their queued mutations here one at a time, in enqueue order.
Delivery is at-least-once; the server dedupes on the client-generated
``op_id`` so retries are always safe.
"""

import logging

from fastapi import APIRouter
from fastapi import Depends
from sqlalchemy.orm import Session

from workspace_manager.database import get_db
from workspace_manager.dependencies.activity import get_tracked_user
from workspace_manager.routers.errors import http_error
from workspace_manager.schemas.schemas import SyncOperationIn
from workspace_manager.schemas.schemas import SyncOperationResult
from workspace_manager.services.errors import ServiceError
from workspace_manager.services.sync_service import SyncService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sync"])


@router.post("/operations", response_model=SyncOperationResult)
def apply_sync_operation(
    operation: SyncOperationIn,
    db: Session = Depends(get_db),
    current_user=Depends(get_tracked_user),
) -> SyncOperationResult:
    """Apply one queued operation, or acknowledge it as a duplicate."""

    try:
        return SyncService.apply(db, current_user, operation)
    except ServiceError as exc:
        logger.info("Rejected sync operation %s: %s", operation.op_id, exc)
        raise http_error(exc) from exc
