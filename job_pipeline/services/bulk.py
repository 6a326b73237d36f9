"""
Bulk Executor

Applies one mutator to many jobs as a single audited unit. Every item runs in its
own transaction; a failing item is recorded and the run moves on.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..config import BULK_MAX_WORKERS
from ..errors import WorkflowError
from .audit import AuditLogger, COMPLETED, FAILED, PARTIAL
from .events import JobEvent
from .prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

INTERNAL_ERROR = "InternalError"

# A mutator bound to its payload: takes a job id, returns the events it emitted
MutatorFn = Callable[[int], Optional[List[JobEvent]]]


@dataclass
class BulkResult:
    total: int
    succeeded: int
    failed: int
    errors: List[Dict[str, Any]] = field(default_factory=list)
    log_id: Optional[int] = None
    warnings: List[str] = field(default_factory=list)
    events: List[JobEvent] = field(default_factory=list)

    @property
    def status(self) -> str:
        return final_status(self.total, self.failed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "errors": list(self.errors),
            "logId": self.log_id,
            "warnings": list(self.warnings),
        }


def final_status(total: int, failed: int) -> str:
    if failed == 0:
        return COMPLETED
    if failed == total:
        return FAILED
    return PARTIAL


def dedupe_job_ids(job_ids: List[int]) -> List[int]:
    """Drop repeated ids, keeping first-seen order"""
    seen = set()
    unique = []
    for job_id in job_ids:
        if job_id not in seen:
            seen.add(job_id)
            unique.append(job_id)
    return unique


class BulkExecutor:
    """Runs a mutator over a list of job ids with per-item isolation"""

    def __init__(self, audit_logger: Optional[AuditLogger] = None, max_workers: int = BULK_MAX_WORKERS):
        self.audit_logger = audit_logger or AuditLogger()
        self.max_workers = max(1, max_workers)

    def run(self, acting_user_id: int, action_type: str, origin_pipeline: str,
            job_ids: List[int], mutator_fn: MutatorFn) -> BulkResult:
        job_ids = dedupe_job_ids(job_ids)
        if not job_ids:
            raise ValueError("bulk run needs at least one job id")

        start = time.time()
        # Opened before any job is touched; a StorageError here aborts the run
        log_id = self.audit_logger.open(action_type, origin_pipeline, job_ids, acting_user_id)

        outcomes = self._run_items(job_ids, mutator_fn)

        result = BulkResult(total=len(job_ids), succeeded=0, failed=0, log_id=log_id)
        for job_id, (error, emitted) in zip(job_ids, outcomes):
            if error is None:
                result.succeeded += 1
                result.events.extend(emitted)
            else:
                result.failed += 1
                result.errors.append({"jobId": job_id, "error": error})

        status = result.status
        try:
            self.audit_logger.finalize(log_id, status, result.errors)
        except Exception as e:
            # Per-item results are still returned
            logger.error("Bulk action log finalize failed", extra={
                "component": "bulk",
                "log_id": log_id,
                "status": status,
                "error": str(e),
            })
            prometheus_metrics.increment_audit_finalize_failures()
            result.warnings.append(f"Audit log {log_id} could not be finalized: {e}")

        elapsed = time.time() - start
        prometheus_metrics.record_bulk_action(action_type, status, result.succeeded, result.failed, elapsed)
        logger.info("Bulk action finished", extra={
            "component": "bulk",
            "log_id": log_id,
            "action_type": action_type,
            "pipeline": origin_pipeline,
            "status": status,
            "total": result.total,
            "succeeded": result.succeeded,
            "failed": result.failed,
            "latency_ms": round(elapsed * 1000, 2),
        })
        return result

    def _run_items(self, job_ids: List[int], mutator_fn: MutatorFn) -> List[Tuple[Optional[str], List[JobEvent]]]:
        """Outcomes in input order: (error code or None, emitted events)"""
        if self.max_workers == 1 or len(job_ids) == 1:
            return [self._run_one(job_id, mutator_fn) for job_id in job_ids]

        workers = min(self.max_workers, len(job_ids))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="bulk") as pool:
            return list(pool.map(lambda job_id: self._run_one(job_id, mutator_fn), job_ids))

    def _run_one(self, job_id: int, mutator_fn: MutatorFn) -> Tuple[Optional[str], List[JobEvent]]:
        try:
            emitted = mutator_fn(job_id)
        except WorkflowError as e:
            logger.warning("Bulk item failed", extra={
                "component": "bulk", "job_id": job_id, "error": e.code, "detail": e.message
            })
            return e.code, []
        except Exception:
            logger.exception("Bulk item raised unexpectedly", extra={
                "component": "bulk", "job_id": job_id
            })
            return INTERNAL_ERROR, []
        return None, list(emitted or [])
