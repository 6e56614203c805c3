"""Sync service – applies queued client mutations exactly once.

Clients deliver at least once, so the same ``op_id`` can arrive repeatedly
(lost acknowledgements, retries after a timeout).  Each applied operation is
recorded in the per-user ``sync_operations`` ledger; a repeat is acknowledged
as a duplicate and returns the entity's current state without touching it.
"""

from __future__ import annotations

import logging
from typing import Any
from typing import Dict
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from workspace_manager.crud import crud
from workspace_manager.metrics import sync_operations_applied_total
from workspace_manager.metrics import sync_operations_duplicate_total
from workspace_manager.models.enums import EntityType
from workspace_manager.models.enums import SyncOpType
from workspace_manager.models.models import User
from workspace_manager.schemas.schemas import SyncOperationIn
from workspace_manager.schemas.schemas import SyncOperationResult
from workspace_manager.services.entity_service import EntityService
from workspace_manager.services.errors import EntityNotFound
from workspace_manager.services.errors import InvalidOperation
from workspace_manager.services.errors import ServiceError
from workspace_manager.services.session_service import SessionService

logger = logging.getLogger(__name__)


class SyncService:
    @staticmethod
    def apply(db: Session, user: User, op: SyncOperationIn) -> SyncOperationResult:
        """Apply *op* on behalf of *user* unless its ``op_id`` was seen before.

        Raises :class:`AccessDenied`, :class:`EntityNotFound` or
        :class:`InvalidOperation` for operations the server rejects.  The
        entity change and its ledger row commit together, so an op either
        took effect and is remembered or neither happened.
        """

        if crud.get_sync_operation(db, user.id, op.op_id) is not None:
            return SyncService._duplicate(db, user, op)

        try:
            with crud.unit_of_work(db):
                entity = SyncService._dispatch(db, user, op)
                crud.record_sync_operation(
                    db,
                    user_id=user.id,
                    op_id=op.op_id,
                    op_type=op.op_type,
                    entity_type=op.entity_type,
                    entity_id=op.entity_id,
                    payload=op.payload,
                    enqueued_at=op.enqueued_at,
                )
        except IntegrityError:
            if crud.get_sync_operation(db, user.id, op.op_id) is None:
                raise
            # A concurrent delivery of the same op won the ledger insert.
            logger.debug("Duplicate op_id %s from user %s, acknowledging", op.op_id, user.id)
            return SyncService._duplicate(db, user, op)

        sync_operations_applied_total.labels(op.op_type.value, op.entity_type.value).inc()
        logger.info(
            "Applied %s %s %s (op %s) for user %s",
            op.op_type.value,
            op.entity_type.value,
            op.entity_id,
            op.op_id,
            user.id,
        )
        return SyncOperationResult(op_id=op.op_id, applied=True, entity=entity)

    # ------------------------------------------------------------------

    @staticmethod
    def _dispatch(db: Session, user: User, op: SyncOperationIn) -> Optional[Dict[str, Any]]:
        if op.op_type == SyncOpType.CREATE:
            row = EntityService.create(db, user, op.entity_type, op.entity_id, op.payload)
            return EntityService.serialize(op.entity_type, row)

        if op.op_type == SyncOpType.UPDATE:
            row = EntityService.update(db, user, op.entity_type, op.entity_id, op.payload)
            return EntityService.serialize(op.entity_type, row)

        if op.op_type == SyncOpType.DELETE:
            try:
                EntityService.delete(db, user, op.entity_type, op.entity_id)
            except EntityNotFound:
                # Already gone: the delete's intent holds.
                logger.debug("Delete of missing %s %s treated as applied", op.entity_type.value, op.entity_id)
            return None

        if op.op_type == SyncOpType.SAVE_STATE:
            if op.entity_type != EntityType.SESSION:
                raise InvalidOperation("save_state only applies to sessions")
            row = SessionService.save_state(db, user, op.entity_id, op.payload.get("context"))
            return EntityService.serialize(EntityType.SESSION, row)

        raise InvalidOperation(f"Unsupported operation type {op.op_type}")

    @staticmethod
    def _duplicate(db: Session, user: User, op: SyncOperationIn) -> SyncOperationResult:
        sync_operations_duplicate_total.inc()
        entity = None
        try:
            row = EntityService.get(db, user, op.entity_type, op.entity_id)
            entity = EntityService.serialize(op.entity_type, row)
        except ServiceError:
            # Deleted since, or no longer visible to the caller.
            entity = None
        return SyncOperationResult(op_id=op.op_id, applied=False, duplicate=True, entity=entity)
