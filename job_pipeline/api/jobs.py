"""
Jobs API: job records and single-item workflow actions
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from ..auth import ActingUser, get_acting_user
from ..schemas.job import JobCreate, JobListResponse, JobOut, JobUpdate
from ..services import jobs as job_service
from ..services.pipeline import STAGES
from ..services.workflow import SINGLE_ACTIONS, run_job_action

logger = logging.getLogger("api.jobs")

router = APIRouter(tags=["Jobs"])


@router.get("/jobs", response_model=JobListResponse)
def list_jobs(
    pipeline: Optional[str] = Query(None, description="Filter by stage"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    user: ActingUser = Depends(get_acting_user),
):
    """List jobs of one stage, or all active jobs plus the most recent completed ones"""
    if pipeline is not None and pipeline not in STAGES:
        raise HTTPException(status_code=400, detail=f"Unknown pipeline stage: {pipeline}")
    return job_service.list_jobs(pipeline=pipeline, limit=limit, offset=offset)


@router.post("/jobs", response_model=JobOut, status_code=201)
def create_job(data: JobCreate, user: ActingUser = Depends(get_acting_user)):
    return job_service.create_job(data, acting_user_id=user.id)


@router.get("/jobs/{job_id}", response_model=JobOut)
def get_job(job_id: int, user: ActingUser = Depends(get_acting_user)):
    return job_service.get_job(job_id)


@router.patch("/jobs/{job_id}", response_model=JobOut)
def update_job(job_id: int, data: JobUpdate, user: ActingUser = Depends(get_acting_user)):
    return job_service.update_job(job_id, data)


@router.delete("/jobs/{job_id}")
def delete_job(job_id: int, user: ActingUser = Depends(get_acting_user)):
    return run_job_action("delete", job_id, None, acting_user_id=user.id)


@router.post("/jobs/{job_id}/{action}", response_model=JobOut)
def job_action(
    job_id: int,
    action: str,
    payload: Optional[Dict[str, Any]] = Body(None),
    user: ActingUser = Depends(get_acting_user),
):
    """Apply one of approve, schedule, log-flight, deliver, bill, bill-paid"""
    if action == "delete" or action not in SINGLE_ACTIONS:
        raise HTTPException(status_code=404, detail=f"Unknown job action: {action}")
    return run_job_action(action, job_id, payload, acting_user_id=user.id)
