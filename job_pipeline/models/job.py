"""
Job and Job Metadata Models
"""

from sqlalchemy import Column, Integer, String, Text, JSON, ForeignKey, UniqueConstraint
from ..db import Base


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Cached stage, recomputed from dates + metadata after every mutation
    pipeline = Column(String(32), nullable=False, default="bids", index=True)
    name = Column(String(255), nullable=True)
    created_by = Column(Integer, nullable=False)
    site_id = Column(Integer, nullable=False)
    client_id = Column(Integer, nullable=True, index=True)
    client_type = Column(String(32), nullable=True)  # organization | individual
    products = Column(JSON, nullable=False, default=list)  # [product_id, ...]
    dates = Column(JSON, nullable=False, default=dict)  # milestone -> ISO date
    recurring_occurrence_id = Column(Integer, nullable=True, unique=True)

    def to_dict(self, meta=None):
        """Convert to dictionary for API responses"""
        return {
            "id": self.id,
            "pipeline": self.pipeline,
            "name": self.name,
            "createdBy": self.created_by,
            "siteId": self.site_id,
            "clientId": self.client_id,
            "clientType": self.client_type,
            "products": list(self.products or []),
            "dates": dict(self.dates or {}),
            "recurringOccurrenceId": self.recurring_occurrence_id,
            "meta": dict(meta or {}),
        }


class JobMeta(Base):
    __tablename__ = "job_meta"

    meta_id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False, index=True)
    meta_key = Column(String(255), nullable=False)
    meta_value = Column(Text, nullable=False)

    # One value per (job, key): writes are upserts
    __table_args__ = (
        UniqueConstraint("job_id", "meta_key", name="uq_job_meta_job_key"),
    )
