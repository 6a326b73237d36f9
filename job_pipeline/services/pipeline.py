"""
Pipeline stage resolution

A job's stage is never stored as truth: it is derived from which milestone dates
and metadata keys are present, checked most-advanced first. Presence is all that
counts. A job with ``billed`` but no ``flown`` is still in ``bill``; milestone
order is not validated.
"""

from typing import Callable, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from ..models.job import Job
from .metadata import MetadataStore

BIDS = "bids"
SCHEDULED = "scheduled"
PROCESSING_DELIVER = "processing-deliver"
BILL = "bill"
COMPLETED = "completed"

STAGES = (BIDS, SCHEDULED, PROCESSING_DELIVER, BILL, COMPLETED)


def _present(source: Optional[Mapping[str, object]], key: str) -> bool:
    if not source:
        return False
    value = source.get(key)
    return value is not None and value != ""


Predicate = Callable[[Mapping[str, object], Mapping[str, str]], bool]

# Evaluated top to bottom; first match wins
_RULES: List[Tuple[Predicate, str]] = [
    (lambda dates, meta: _present(dates, "bill_paid"), COMPLETED),
    (lambda dates, meta: _present(dates, "billed"), BILL),
    (lambda dates, meta: _present(dates, "flown"), PROCESSING_DELIVER),
    (lambda dates, meta: _present(dates, "scheduled") or _present(meta, "scheduled_flight"), SCHEDULED),
]


def resolve_stage(dates: Optional[Mapping[str, object]], metadata: Optional[Mapping[str, str]]) -> str:
    """Map a job's dates and metadata snapshot to exactly one stage"""
    dates = dates or {}
    metadata = metadata or {}
    for predicate, stage in _RULES:
        if predicate(dates, metadata):
            return stage
    return BIDS


def update_job_pipeline(session: Session, job: Job, metadata: Optional[Dict[str, str]] = None) -> str:
    """Recompute and store the job's stage inside the caller's transaction"""
    if metadata is None:
        metadata = MetadataStore(session).get_all(job.id)
    stage = resolve_stage(job.dates, metadata)
    job.pipeline = stage
    session.flush()
    return stage
