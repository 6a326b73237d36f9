"""
Workflow entry points used by the API layer

Single-item actions run one mutator and report its failure directly. Bulk actions
run the same mutators through the Bulk Executor and always return a result.
Courtesy notifications are handed to the dispatcher only after the work is done.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from ..errors import InvalidPayload, WorkflowError
from ..schemas.bulk import BulkRequest
from .audit import AuditLogger
from .bulk import BulkExecutor, BulkResult
from .jobs import get_job
from .mutators import apply_mutation, parse_payload, validation_message
from .prometheus_metrics import prometheus_metrics
from .side_effects import SideEffectDispatcher, side_effects

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BulkAction:
    mutator: str
    action_type: str  # value persisted in the audit log
    pipeline: str  # stage the targeted jobs are picked from


BULK_ACTIONS: Dict[str, BulkAction] = {
    "approve": BulkAction("approve", "approve", "bids"),
    "schedule": BulkAction("schedule", "approve", "scheduled"),
    "flight-log": BulkAction("log-flight", "flight_log", "processing-deliver"),
    "deliver": BulkAction("deliver", "deliver", "bill"),
    "bill": BulkAction("bill", "bill", "completed"),
    "bill-paid": BulkAction("bill-paid", "bill", "completed"),
    "delete": BulkAction("delete", "delete", "none"),
}

SINGLE_ACTIONS = ("approve", "schedule", "log-flight", "deliver", "bill", "bill-paid", "delete")


def _mutate(action: str, job_id: int, payload, session_factory=None, today: Optional[date] = None):
    try:
        emitted = apply_mutation(action, job_id, payload, session_factory=session_factory, today=today)
    except WorkflowError as e:
        prometheus_metrics.increment_mutation(action, e.code)
        raise
    prometheus_metrics.increment_mutation(action, "ok")
    return emitted


def run_job_action(action: str, job_id: int, raw_payload: Optional[Mapping[str, Any]], acting_user_id: int,
                   dispatcher: Optional[SideEffectDispatcher] = None, session_factory=None,
                   today: Optional[date] = None) -> Dict[str, Any]:
    """Apply one mutator to one job; errors propagate to the caller"""
    if action not in SINGLE_ACTIONS:
        raise InvalidPayload(f"Unknown action: {action}")

    payload = parse_payload(action, raw_payload)
    emitted = _mutate(action, job_id, payload, session_factory=session_factory, today=today)
    logger.info("Job action applied", extra={
        "component": "workflow", "action": action, "job_id": job_id, "performed_by": acting_user_id
    })

    (dispatcher or side_effects).dispatch_all(emitted)

    if action == "delete":
        return {"deleted": job_id}
    return get_job(job_id, session_factory=session_factory)


def run_bulk_action(bulk_name: str, body: Optional[Mapping[str, Any]], acting_user_id: int,
                    executor: Optional[BulkExecutor] = None, dispatcher: Optional[SideEffectDispatcher] = None,
                    session_factory=None, today: Optional[date] = None) -> BulkResult:
    """Validate a bulk request and run it as one audited unit.

    The request body and payload are validated before the audit log is opened;
    from then on per-item failures land in the result, never in an exception.
    """
    bulk_action = BULK_ACTIONS.get(bulk_name)
    if bulk_action is None:
        raise InvalidPayload(f"Unknown bulk action: {bulk_name}")

    body = dict(body or {})
    try:
        request = BulkRequest.model_validate(body)
    except ValidationError as e:
        raise InvalidPayload(validation_message(e)) from e

    raw_payload = {k: v for k, v in body.items() if k != "jobIds"}
    payload = parse_payload(bulk_action.mutator, raw_payload)

    def mutator_fn(job_id: int):
        return _mutate(bulk_action.mutator, job_id, payload, session_factory=session_factory, today=today)

    executor = executor or BulkExecutor(AuditLogger(session_factory))
    result = executor.run(
        acting_user_id, bulk_action.action_type, bulk_action.pipeline, request.job_ids, mutator_fn,
    )

    # Only successful items emitted events
    (dispatcher or side_effects).dispatch_all(result.events)
    return result
