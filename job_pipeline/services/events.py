from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..models.job import Job

SCHEDULED = "scheduled"
DELIVERED = "delivered"
BILLED = "billed"


@dataclass(frozen=True)
class JobEvent:
    """A successful transition that deserves a courtesy notification.

    Carries a plain snapshot of the job so the dispatcher never touches the
    mutator's session.
    """
    kind: str
    job_id: int
    job_name: Optional[str]
    created_by: int
    client_id: Optional[int]
    client_type: Optional[str]
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def job_title(self) -> str:
        return self.job_name or f"Job #{self.job_id}"


def job_event(kind: str, job: Job, **data) -> JobEvent:
    return JobEvent(
        kind=kind,
        job_id=job.id,
        job_name=job.name,
        created_by=job.created_by,
        client_id=job.client_id,
        client_type=job.client_type,
        data=data,
    )
