"""
Bulk Action Audit Service
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ..db import session_scope
from ..errors import NotFound, StorageError
from ..models.bulk_action_log import BulkActionLog

logger = logging.getLogger(__name__)

STARTED = "started"
COMPLETED = "completed"
FAILED = "failed"
PARTIAL = "partial"

TERMINAL_STATUSES = (COMPLETED, FAILED, PARTIAL)
ACTION_TYPES = ("approve", "flight_log", "deliver", "bill", "delete")


class AuditLogger:
    """Writes one log entry per bulk run: opened before any job is touched,
    finalized once after every item resolved."""

    def __init__(self, session_factory=None):
        self.session_factory = session_factory

    def open(self, action_type: str, pipeline: str, job_ids: List[int], acting_user_id: int) -> int:
        if action_type not in ACTION_TYPES:
            raise ValueError(f"unknown bulk action type: {action_type}")
        try:
            with session_scope(self.session_factory) as db:
                entry = BulkActionLog(
                    action_type=action_type,
                    pipeline=pipeline,
                    job_ids=list(job_ids),
                    job_count=len(job_ids),
                    performed_by=acting_user_id,
                    status=STARTED,
                )
                db.add(entry)
                db.flush()
                log_id = entry.id
        except SQLAlchemyError as e:
            logger.error(f"Failed to open bulk action log: {e}")
            raise StorageError("Could not open bulk action log") from e

        logger.info("Bulk action log opened", extra={
            "component": "audit",
            "log_id": log_id,
            "action_type": action_type,
            "job_count": len(job_ids),
            "performed_by": acting_user_id,
        })
        return log_id

    def finalize(self, log_id: int, status: str, errors: Optional[List[Dict[str, Any]]] = None) -> None:
        if status not in TERMINAL_STATUSES:
            raise ValueError(f"not a terminal status: {status}")
        try:
            with session_scope(self.session_factory) as db:
                entry = db.get(BulkActionLog, log_id)
                if entry is None:
                    raise NotFound(f"Bulk action log {log_id} not found")
                if entry.status != STARTED:
                    raise StorageError(f"Bulk action log {log_id} already finalized as {entry.status}")
                entry.status = status
                entry.error_details = list(errors) if errors else None
                entry.completed_at = datetime.now(timezone.utc)
        except SQLAlchemyError as e:
            logger.error(f"Failed to finalize bulk action log {log_id}: {e}")
            raise StorageError(f"Could not finalize bulk action log {log_id}") from e

        logger.info("Bulk action log finalized", extra={
            "component": "audit",
            "log_id": log_id,
            "status": status,
            "error_count": len(errors or []),
        })


def get_bulk_action_log(log_id: int, session_factory=None) -> Dict[str, Any]:
    with session_scope(session_factory) as db:
        entry = db.get(BulkActionLog, log_id)
        if entry is None:
            raise NotFound(f"Bulk action log {log_id} not found")
        return entry.to_dict()


def list_bulk_action_logs(limit: int = 100, offset: int = 0, action_type: Optional[str] = None,
                          status: Optional[str] = None, session_factory=None) -> List[Dict[str, Any]]:
    """Audit records, newest first"""
    stmt = select(BulkActionLog)
    if action_type:
        stmt = stmt.where(BulkActionLog.action_type == action_type)
    if status:
        stmt = stmt.where(BulkActionLog.status == status)
    stmt = stmt.order_by(BulkActionLog.id.desc()).limit(limit).offset(offset)

    with session_scope(session_factory) as db:
        return [entry.to_dict() for entry in db.execute(stmt).scalars().all()]
