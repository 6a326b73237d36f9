"""
Job metadata store: one value per (job id, key), writes are upserts
"""

import logging
from typing import Dict, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from ..models.job import JobMeta

logger = logging.getLogger(__name__)


def _upsert_statement(dialect_name: str, job_id: int, key: str, value: str):
    """Native single-statement upsert where the dialect has one"""
    values = {"job_id": job_id, "meta_key": key, "meta_value": value}
    if dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
        stmt = insert(JobMeta).values(**values)
        return stmt.on_conflict_do_update(
            index_elements=[JobMeta.job_id, JobMeta.meta_key],
            set_={"meta_value": stmt.excluded.meta_value},
        )
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
        stmt = insert(JobMeta).values(**values)
        return stmt.on_conflict_do_update(
            constraint="uq_job_meta_job_key",
            set_={"meta_value": stmt.excluded.meta_value},
        )
    if dialect_name in ("mysql", "mariadb"):
        from sqlalchemy.dialects.mysql import insert
        stmt = insert(JobMeta).values(**values)
        return stmt.on_duplicate_key_update(meta_value=stmt.inserted.meta_value)
    return None


class MetadataStore:
    """Key/value metadata bound to the caller's session (and so its transaction).

    Nothing is committed here; the owning unit of work decides when the writes
    become visible. Store errors propagate unchanged.
    """

    def __init__(self, session: Session):
        self.session = session

    def set(self, job_id: int, key: str, value: str) -> None:
        stmt = _upsert_statement(self.session.get_bind().dialect.name, job_id, key, value)
        if stmt is not None:
            self.session.execute(stmt)
            return

        # Generic fallback: update in place, insert on first write
        result = self.session.execute(
            update(JobMeta)
            .where(JobMeta.job_id == job_id, JobMeta.meta_key == key)
            .values(meta_value=value)
        )
        if result.rowcount == 0:
            self.session.add(JobMeta(job_id=job_id, meta_key=key, meta_value=value))
            self.session.flush()

    def get_all(self, job_id: int) -> Dict[str, str]:
        rows = self.session.execute(
            select(JobMeta.meta_key, JobMeta.meta_value).where(JobMeta.job_id == job_id)
        ).all()
        return {row.meta_key: row.meta_value for row in rows}

    def get_one(self, job_id: int, key: str) -> Optional[str]:
        return self.session.execute(
            select(JobMeta.meta_value)
            .where(JobMeta.job_id == job_id, JobMeta.meta_key == key)
            .limit(1)
        ).scalar_one_or_none()

    def delete_all(self, job_id: int) -> int:
        result = self.session.execute(delete(JobMeta).where(JobMeta.job_id == job_id))
        logger.debug("Deleted job metadata", extra={
            "component": "metadata", "job_id": job_id, "rows": result.rowcount
        })
        return result.rowcount
