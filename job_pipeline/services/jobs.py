"""
Job records: create, edit, read and list
"""

import logging
from collections import defaultdict
from datetime import date
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..db import session_scope
from ..errors import NotFound, StorageError
from ..models.job import Job, JobMeta
from ..schemas.job import JobCreate, JobUpdate
from .metadata import MetadataStore
from .mutators import merge_dates, utc_today
from .pipeline import BIDS, COMPLETED, STAGES, update_job_pipeline

logger = logging.getLogger(__name__)

RECENT_COMPLETED_LIMIT = 50


def _meta_maps(db, job_ids: List[int]) -> Dict[int, Dict[str, str]]:
    maps: Dict[int, Dict[str, str]] = defaultdict(dict)
    if not job_ids:
        return maps
    rows = db.execute(
        select(JobMeta.job_id, JobMeta.meta_key, JobMeta.meta_value).where(JobMeta.job_id.in_(job_ids))
    ).all()
    for row in rows:
        maps[row.job_id][row.meta_key] = row.meta_value
    return maps


def _write_optional_meta(meta: MetadataStore, job_id: int, data: Union[JobCreate, JobUpdate]) -> None:
    if data.notes is not None:
        meta.set(job_id, "notes", data.notes)
    if data.amount_payable is not None:
        meta.set(job_id, "amount_payable", data.amount_payable)


def _job_for_occurrence(db, occurrence_id: int) -> Optional[Dict[str, Any]]:
    existing = db.execute(
        select(Job).where(Job.recurring_occurrence_id == occurrence_id)
    ).scalar_one_or_none()
    if existing is None:
        return None
    return existing.to_dict(MetadataStore(db).get_all(existing.id))


def create_job(data: JobCreate, acting_user_id: int, session_factory=None,
               today: Optional[date] = None) -> Dict[str, Any]:
    """Store a new job in ``bids``.

    Jobs produced for a recurring occurrence are unique per occurrence: asking
    again returns the job that already exists, including when a concurrent
    caller inserted it first.
    """
    occurrence_id = data.recurring_occurrence_id
    try:
        with session_scope(session_factory) as db:
            if occurrence_id is not None:
                existing = _job_for_occurrence(db, occurrence_id)
                if existing is not None:
                    logger.info("Job already exists for occurrence", extra={
                        "component": "jobs",
                        "job_id": existing["id"],
                        "occurrence_id": occurrence_id
                    })
                    return existing

            job = Job(
                pipeline=BIDS,
                name=data.name,
                created_by=acting_user_id,
                site_id=data.site_id,
                client_id=data.client_id,
                client_type=data.client_type,
                products=list(data.products),
                dates={},
                recurring_occurrence_id=occurrence_id,
            )
            merge_dates(job, requested=data.date_requested or today or utc_today())
            db.add(job)
            db.flush()

            meta = MetadataStore(db)
            _write_optional_meta(meta, job.id, data)
            result = job.to_dict(meta.get_all(job.id))
    except IntegrityError as e:
        if occurrence_id is None:
            raise StorageError(f"Could not create job: {e.orig}") from e
        # Lost the insert race for this occurrence
        try:
            with session_scope(session_factory) as db:
                existing = _job_for_occurrence(db, occurrence_id)
        except SQLAlchemyError as lookup_error:
            raise StorageError(f"Could not create job: {lookup_error.__class__.__name__}") from lookup_error
        if existing is None:
            raise StorageError(f"Could not create job: {e.orig}") from e
        logger.info("Job created concurrently for occurrence", extra={
            "component": "jobs",
            "job_id": existing["id"],
            "occurrence_id": occurrence_id
        })
        return existing
    except SQLAlchemyError as e:
        raise StorageError(f"Could not create job: {e.__class__.__name__}") from e

    logger.info("Job created", extra={
        "component": "jobs", "job_id": result["id"], "created_by": acting_user_id
    })
    return result


def update_job(job_id: int, data: JobUpdate, session_factory=None) -> Dict[str, Any]:
    """Edit the descriptive fields of a job and re-resolve its stage"""
    fields = data.model_dump(exclude_unset=True, exclude={"notes", "amount_payable"})
    try:
        with session_scope(session_factory) as db:
            job = db.get(Job, job_id)
            if job is None:
                raise NotFound(f"Job {job_id} not found")

            for name, value in fields.items():
                if value is not None:
                    setattr(job, name, list(value) if name == "products" else value)

            meta = MetadataStore(db)
            _write_optional_meta(meta, job_id, data)
            metadata = meta.get_all(job_id)
            update_job_pipeline(db, job, metadata)
            result = job.to_dict(metadata)
    except SQLAlchemyError as e:
        raise StorageError(f"Could not update job {job_id}: {e.__class__.__name__}") from e

    logger.info("Job updated", extra={
        "component": "jobs", "job_id": job_id, "fields": sorted(fields)
    })
    return result


def get_job(job_id: int, session_factory=None) -> Dict[str, Any]:
    with session_scope(session_factory) as db:
        job = db.get(Job, job_id)
        if job is None:
            raise NotFound(f"Job {job_id} not found")
        return job.to_dict(MetadataStore(db).get_all(job_id))


def get_jobs(job_ids: List[int], session_factory=None) -> List[Dict[str, Any]]:
    """Existing jobs of ``job_ids`` in request order; unknown ids are skipped"""
    if not job_ids:
        return []
    with session_scope(session_factory) as db:
        jobs = {j.id: j for j in db.execute(select(Job).where(Job.id.in_(job_ids))).scalars().all()}
        metas = _meta_maps(db, list(jobs))
        ordered = []
        seen = set()
        for job_id in job_ids:
            if job_id in jobs and job_id not in seen:
                seen.add(job_id)
                ordered.append(jobs[job_id].to_dict(metas.get(job_id)))
        return ordered


def count_by_stage(db) -> Dict[str, int]:
    counts = {stage: 0 for stage in STAGES}
    for stage, count in db.execute(select(Job.pipeline, func.count(Job.id)).group_by(Job.pipeline)).all():
        counts[stage] = count
    return counts


def list_jobs(pipeline: Optional[str] = None, limit: int = 100, offset: int = 0,
              session_factory=None) -> Dict[str, Any]:
    """Jobs of one stage, or every active job plus the most recent completed ones"""
    with session_scope(session_factory) as db:
        if pipeline:
            stmt = (
                select(Job).where(Job.pipeline == pipeline)
                .order_by(Job.id.desc()).limit(limit).offset(offset)
            )
            jobs = list(db.execute(stmt).scalars().all())
        else:
            active = db.execute(
                select(Job).where(Job.pipeline != COMPLETED).order_by(Job.id.desc())
            ).scalars().all()
            completed = db.execute(
                select(Job).where(Job.pipeline == COMPLETED)
                .order_by(Job.id.desc()).limit(RECENT_COMPLETED_LIMIT)
            ).scalars().all()
            jobs = list(active) + list(completed)

        metas = _meta_maps(db, [j.id for j in jobs])
        return {
            "jobs": [j.to_dict(metas.get(j.id)) for j in jobs],
            "counts": count_by_stage(db),
        }
