from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config import BULK_MAX_JOB_IDS


class BulkRequest(BaseModel):
    """Job id list of a bulk call; the remaining body fields are the mutator payload"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    job_ids: List[int] = Field(..., alias="jobIds", min_length=1, max_length=BULK_MAX_JOB_IDS)

    @field_validator("job_ids")
    @classmethod
    def positive_ids(cls, v: List[int]) -> List[int]:
        if any(job_id <= 0 for job_id in v):
            raise ValueError("job ids must be positive integers")
        return v


class BulkError(BaseModel):
    jobId: int
    error: str


class BulkResultOut(BaseModel):
    total: int
    succeeded: int
    failed: int
    errors: List[BulkError]
    logId: Optional[int] = None
    warnings: List[str] = []


class BulkActionLogOut(BaseModel):
    id: int
    actionType: str
    pipeline: str
    jobIds: List[int]
    jobCount: int
    performedBy: int
    status: str
    errorDetails: Optional[List[BulkError]] = None
    createdAt: Optional[str] = None
    completedAt: Optional[str] = None
