"""
Tests for the job metadata store
"""

import pytest
from sqlalchemy import func, select

from job_pipeline.db import session_scope
from job_pipeline.models import JobMeta
from job_pipeline.services.metadata import MetadataStore, _upsert_statement


def test_set_then_get(db_session, make_job):
    job_id = make_job()
    store = MetadataStore(db_session)
    store.set(job_id, "invoice_number", "INV-1")
    db_session.commit()

    assert store.get_one(job_id, "invoice_number") == "INV-1"
    assert store.get_all(job_id) == {"invoice_number": "INV-1"}


def test_set_overwrites_single_row(db_session, make_job):
    job_id = make_job()
    store = MetadataStore(db_session)
    store.set(job_id, "notes", "first")
    store.set(job_id, "notes", "second")
    db_session.commit()

    assert store.get_one(job_id, "notes") == "second"
    count = db_session.execute(
        select(func.count()).select_from(JobMeta).where(JobMeta.job_id == job_id)
    ).scalar_one()
    assert count == 1


def test_get_one_missing_key(db_session, make_job):
    job_id = make_job()
    assert MetadataStore(db_session).get_one(job_id, "nope") is None


def test_get_all_is_scoped_to_job(db_session, make_job):
    a = make_job(meta={"notes": "a"})
    b = make_job(meta={"notes": "b", "amount_payable": "120.00"})
    store = MetadataStore(db_session)
    assert store.get_all(a) == {"notes": "a"}
    assert store.get_all(b) == {"notes": "b", "amount_payable": "120.00"}


def test_delete_all(db_session, make_job):
    job_id = make_job(meta={"notes": "x", "invoice_number": "INV-2"})
    other = make_job(meta={"notes": "keep"})
    store = MetadataStore(db_session)

    assert store.delete_all(job_id) == 2
    db_session.commit()
    assert store.get_all(job_id) == {}
    assert store.get_all(other) == {"notes": "keep"}


def test_write_rolls_back_with_transaction(make_job):
    job_id = make_job()
    with pytest.raises(RuntimeError):
        with session_scope() as db:
            MetadataStore(db).set(job_id, "notes", "never committed")
            raise RuntimeError("boom")

    with session_scope() as db:
        assert MetadataStore(db).get_all(job_id) == {}


def test_upsert_statement_per_dialect():
    assert _upsert_statement("sqlite", 1, "k", "v") is not None
    assert _upsert_statement("postgresql", 1, "k", "v") is not None
    assert _upsert_statement("mysql", 1, "k", "v") is not None
    assert _upsert_statement("oracle", 1, "k", "v") is None
