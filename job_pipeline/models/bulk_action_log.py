"""
Bulk Action Log Model
"""

from sqlalchemy import Column, Integer, String, JSON, DateTime
from sqlalchemy.sql import func
from ..db import Base


class BulkActionLog(Base):
    __tablename__ = "bulk_action_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    action_type = Column(String(32), nullable=False, index=True)  # approve|flight_log|deliver|bill|delete
    pipeline = Column(String(50), nullable=False)  # originating stage, "none" for deletes
    job_ids = Column(JSON, nullable=False)
    job_count = Column(Integer, nullable=False)
    performed_by = Column(Integer, nullable=False, index=True)
    status = Column(String(16), nullable=False, default="started", index=True)  # started|completed|failed|partial
    error_details = Column(JSON, nullable=True)  # [{"jobId": .., "error": ..}]
    created_at = Column(DateTime, nullable=False, default=func.now())
    completed_at = Column(DateTime, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "actionType": self.action_type,
            "pipeline": self.pipeline,
            "jobIds": list(self.job_ids or []),
            "jobCount": self.job_count,
            "performedBy": self.performed_by,
            "status": self.status,
            "errorDetails": self.error_details,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
        }
