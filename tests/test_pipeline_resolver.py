"""
Tests for pipeline stage resolution
"""

import pytest

from job_pipeline.services.pipeline import (
    BIDS, BILL, COMPLETED, PROCESSING_DELIVER, SCHEDULED, resolve_stage, update_job_pipeline,
)
from job_pipeline.models import Job


class TestResolveStage:
    """Stage is derived from which milestones are present."""

    def test_empty_job_is_in_bids(self):
        assert resolve_stage({}, {}) == BIDS
        assert resolve_stage(None, None) == BIDS

    def test_requested_and_approved_stay_in_bids(self):
        assert resolve_stage({"requested": "2024-01-01"}, {"approved_flight": "2024-01-05"}) == BIDS

    def test_scheduled_date(self):
        assert resolve_stage({"scheduled": "2024-01-10"}, {}) == SCHEDULED

    def test_scheduled_flight_metadata_alone(self):
        assert resolve_stage({}, {"scheduled_flight": "2024-01-10"}) == SCHEDULED

    def test_flown_advances_to_processing_deliver(self):
        dates = {"scheduled": "2024-01-10"}
        assert resolve_stage(dates, {}) == SCHEDULED
        dates["flown"] = "2024-01-11"
        assert resolve_stage(dates, {}) == PROCESSING_DELIVER

    def test_delivered_without_billing_stays_processing_deliver(self):
        dates = {"scheduled": "2024-01-10", "flown": "2024-01-11", "delivered": "2024-01-12"}
        assert resolve_stage(dates, {}) == PROCESSING_DELIVER

    def test_billed(self):
        dates = {"scheduled": "2024-01-10", "flown": "2024-01-11", "billed": "2024-01-13"}
        assert resolve_stage(dates, {}) == BILL

    def test_bill_paid_completes(self):
        dates = {"flown": "2024-01-11", "billed": "2024-01-13", "bill_paid": "2024-02-01"}
        assert resolve_stage(dates, {}) == COMPLETED

    def test_billed_without_flown_is_still_bill(self):
        """Presence beats ordering: a skipped milestone is not validated."""
        dates = {"scheduled": "2024-01-10", "billed": "2024-01-13"}
        assert resolve_stage(dates, {}) == BILL

    def test_bill_paid_alone_is_completed(self):
        assert resolve_stage({"bill_paid": "2024-02-01"}, {}) == COMPLETED

    @pytest.mark.parametrize("blank", [None, ""])
    def test_blank_values_count_as_absent(self, blank):
        assert resolve_stage({"billed": blank, "flown": "2024-01-11"}, {}) == PROCESSING_DELIVER
        assert resolve_stage({}, {"scheduled_flight": blank}) == BIDS

    def test_pure_function(self):
        dates = {"scheduled": "2024-01-10", "flown": "2024-01-11"}
        meta = {"scheduled_flight": "2024-01-10"}
        first = resolve_stage(dates, meta)
        assert resolve_stage(dates, meta) == first
        assert dates == {"scheduled": "2024-01-10", "flown": "2024-01-11"}


def test_update_job_pipeline_persists_stage(db_session, make_job):
    job_id = make_job(dates={"flown": "2024-01-11"}, pipeline=BIDS)
    job = db_session.get(Job, job_id)

    assert update_job_pipeline(db_session, job) == PROCESSING_DELIVER
    db_session.commit()
    db_session.expire_all()
    assert db_session.get(Job, job_id).pipeline == PROCESSING_DELIVER


def test_update_job_pipeline_reads_metadata(db_session, make_job):
    job_id = make_job(meta={"scheduled_flight": "2024-01-10"})
    job = db_session.get(Job, job_id)
    assert update_job_pipeline(db_session, job) == SCHEDULED
