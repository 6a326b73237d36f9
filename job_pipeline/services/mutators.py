"""
Stage-specific job mutators

Each mutator writes dates and metadata for one job and re-resolves its stage,
all inside a single transaction. Payloads are validated before the transaction
opens, so an invalid payload never leaves a partial write behind.
"""

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Type

from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import session_scope
from ..errors import InvalidPayload, NotFound, StorageError
from ..models.job import Job
from ..schemas.job import (
    ApprovePayload, BillPaidPayload, BillPayload, DeletePayload, DeliverPayload,
    LogFlightPayload, SchedulePayload,
)
from . import events
from .events import JobEvent, job_event
from .metadata import MetadataStore
from .pipeline import update_job_pipeline

logger = logging.getLogger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def merge_dates(job: Job, **milestones: date) -> None:
    """Merge milestone dates into the job's dates map (reassigned so the JSON change is tracked)"""
    merged = dict(job.dates or {})
    for name, value in milestones.items():
        merged[name] = value.isoformat()
    job.dates = merged


def _approve(session: Session, job: Job, payload: ApprovePayload, today: date) -> List[JobEvent]:
    MetadataStore(session).set(job.id, "approved_flight", payload.approved_flight.isoformat())
    return []


def _schedule(session: Session, job: Job, payload: SchedulePayload, today: date) -> List[JobEvent]:
    meta = MetadataStore(session)
    merge_dates(job, scheduled=payload.scheduled_date)
    meta.set(job.id, "scheduled_flight", payload.scheduled_flight.isoformat())
    meta.set(job.id, "persons_assigned", json.dumps(payload.persons_assigned))
    return [job_event(
        events.SCHEDULED, job,
        scheduled_date=payload.scheduled_date.isoformat(),
        persons_assigned=list(payload.persons_assigned),
    )]


def _log_flight(session: Session, job: Job, payload: LogFlightPayload, today: date) -> List[JobEvent]:
    merge_dates(job, flown=payload.flown_date, logged=today)
    MetadataStore(session).set(job.id, "flight_log", json.dumps(payload.flight_log))
    return []


def _deliver(session: Session, job: Job, payload: DeliverPayload, today: date) -> List[JobEvent]:
    delivered = payload.delivered_date or today
    merge_dates(job, delivered=delivered)
    return [job_event(events.DELIVERED, job, delivered_date=delivered.isoformat())]


def _bill(session: Session, job: Job, payload: BillPayload, today: date) -> List[JobEvent]:
    billed = payload.billed_date or today
    merge_dates(job, billed=billed)
    MetadataStore(session).set(job.id, "invoice_number", payload.invoice_number)
    return [job_event(
        events.BILLED, job,
        billed_date=billed.isoformat(),
        invoice_number=payload.invoice_number,
    )]


def _bill_paid(session: Session, job: Job, payload: BillPaidPayload, today: date) -> List[JobEvent]:
    merge_dates(job, bill_paid=payload.bill_paid_date or today)
    if payload.invoice_paid:
        MetadataStore(session).set(job.id, "invoice_paid", payload.invoice_paid)
    return []


def _delete(session: Session, job: Job, payload: DeletePayload, today: date) -> List[JobEvent]:
    # Metadata rows first, they reference the job row
    MetadataStore(session).delete_all(job.id)
    session.delete(job)
    session.flush()
    return []


@dataclass(frozen=True)
class Mutator:
    name: str
    payload_model: Type[BaseModel]
    apply: Callable[[Session, Job, Any, date], List[JobEvent]]
    resolves_stage: bool = True


MUTATORS: Dict[str, Mutator] = {
    m.name: m for m in (
        Mutator("approve", ApprovePayload, _approve),
        Mutator("schedule", SchedulePayload, _schedule),
        Mutator("log-flight", LogFlightPayload, _log_flight),
        Mutator("deliver", DeliverPayload, _deliver),
        Mutator("bill", BillPayload, _bill),
        Mutator("bill-paid", BillPaidPayload, _bill_paid),
        Mutator("delete", DeletePayload, _delete, resolves_stage=False),
    )
}


def get_mutator(action: str) -> Mutator:
    try:
        return MUTATORS[action]
    except KeyError:
        raise InvalidPayload(f"Unknown action: {action}")


def validation_message(exc: ValidationError) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(part) for part in err.get("loc", ()))
    return f"{loc}: {err.get('msg')}" if loc else str(err.get("msg"))


def parse_payload(action: str, raw: Optional[Mapping[str, Any]]) -> BaseModel:
    """Validate a raw payload for ``action``; raises InvalidPayload"""
    mutator = get_mutator(action)
    try:
        return mutator.payload_model.model_validate(dict(raw or {}))
    except ValidationError as e:
        raise InvalidPayload(validation_message(e)) from e


def apply_mutation(action: str, job_id: int, payload: BaseModel, session_factory=None,
                   today: Optional[date] = None) -> List[JobEvent]:
    """Run one mutator against one job in its own transaction.

    Returns the events to hand to the side-effect dispatcher once the caller is
    done. Raises NotFound, or StorageError when the store fails; either way the
    transaction is rolled back.
    """
    mutator = get_mutator(action)
    if not isinstance(payload, mutator.payload_model):
        raise InvalidPayload(f"{action} expects {mutator.payload_model.__name__}")

    today = today or utc_today()
    try:
        with session_scope(session_factory) as session:
            job = session.get(Job, job_id)
            if job is None:
                raise NotFound(f"Job {job_id} not found")

            emitted = mutator.apply(session, job, payload, today)
            if mutator.resolves_stage:
                stage = update_job_pipeline(session, job)
                logger.info("Job mutated", extra={
                    "component": "mutators", "action": action, "job_id": job_id, "stage": stage
                })
            else:
                logger.info("Job removed", extra={
                    "component": "mutators", "action": action, "job_id": job_id
                })
    except SQLAlchemyError as e:
        logger.error("Job mutation failed in store", extra={
            "component": "mutators", "action": action, "job_id": job_id, "error": str(e)
        })
        raise StorageError(f"{action} failed for job {job_id}: {e.__class__.__name__}") from e

    return emitted
