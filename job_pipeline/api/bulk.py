"""
Bulk API: one action over many jobs, tracked as a single audit record
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from ..auth import ActingUser, get_acting_user, require_admin
from ..schemas.bulk import BulkActionLogOut, BulkResultOut
from ..schemas.job import JobOut
from ..services import audit
from ..services.jobs import get_jobs
from ..services.workflow import BULK_ACTIONS, run_bulk_action

logger = logging.getLogger("api.bulk")

router = APIRouter(prefix="/bulk", tags=["Bulk"])


def _parse_ids(ids: str) -> List[int]:
    parsed = []
    for part in ids.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            parsed.append(int(part))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid job id: {part}")
    return parsed


@router.get("/jobs", response_model=List[JobOut])
def bulk_get_jobs(ids: str = Query(..., description="Comma separated job ids"),
                  user: ActingUser = Depends(get_acting_user)):
    """Existing jobs of the list; unknown ids are skipped"""
    return get_jobs(_parse_ids(ids))


@router.get("/logs", response_model=List[BulkActionLogOut])
def list_bulk_logs(
    action_type: Optional[str] = Query(None, alias="actionType"),
    status: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    user: ActingUser = Depends(require_admin()),
):
    return audit.list_bulk_action_logs(limit=limit, offset=offset, action_type=action_type, status=status)


@router.get("/logs/{log_id}", response_model=BulkActionLogOut)
def get_bulk_log(log_id: int, user: ActingUser = Depends(require_admin())):
    return audit.get_bulk_action_log(log_id)


@router.post("/{action}", response_model=BulkResultOut)
def bulk_action(action: str, body: Dict[str, Any] = Body(...), user: ActingUser = Depends(get_acting_user)):
    """Always 200 once the run started; inspect ``failed`` and ``errors`` for per-job outcomes"""
    if action not in BULK_ACTIONS:
        raise HTTPException(status_code=404, detail=f"Unknown bulk action: {action}")
    result = run_bulk_action(action, body, acting_user_id=user.id)
    return result.to_dict()
