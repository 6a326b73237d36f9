# tests/conftest.py
import os
import tempfile

import pytest

# Point the store at a throwaway SQLite file before the package reads its config
_TMP_DIR = tempfile.mkdtemp(prefix="job-pipeline-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ.setdefault("BULK_MAX_WORKERS", "1")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("EMAIL_PROVIDER", "console")
os.environ.setdefault("APP_BASE_URL", "https://app.example.test")

from job_pipeline.db import Base, SessionLocal, engine, session_scope  # noqa: E402
from job_pipeline.models import Job, JobMeta, Organization, User  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_schema():
    """Every test starts from empty tables"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def make_job():
    """Insert a job (plus optional metadata rows) and return its id"""
    def _make(name="Roof survey", created_by=42, site_id=3, client_id=7, client_type="organization",
              dates=None, meta=None, pipeline="bids", products=None):
        with session_scope() as db:
            job = Job(
                name=name,
                created_by=created_by,
                site_id=site_id,
                client_id=client_id,
                client_type=client_type,
                products=products or [],
                dates=dates or {},
                pipeline=pipeline,
            )
            db.add(job)
            db.flush()
            for key, value in (meta or {}).items():
                db.add(JobMeta(job_id=job.id, meta_key=key, meta_value=value))
            return job.id
    return _make


@pytest.fixture
def contacts():
    """Seed the contact directory: two pilots, one individual client, one organization"""
    with session_scope() as db:
        db.add_all([
            User(id=7, email="client@example.test", first_name="Casey", last_name="Client"),
            User(id=11, email="pilot.one@example.test", first_name="Pat", last_name="Pilot"),
            User(id=12, email="pilot.two@example.test", first_name="Robin"),
            User(id=20, email="ops@acme.test", first_name="Alex", last_name="Ops"),
            Organization(id=5, name="Acme Roofing", primary_contact_id=20),
        ])


class FakeNotifier:
    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    async def notify(self, user_id, type, title, message, link=None):
        if user_id in self.fail_for:
            raise RuntimeError(f"notifier down for {user_id}")
        self.sent.append({"user_id": user_id, "type": type, "title": title, "message": message, "link": link})


class FakeEmailSender:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def send_template_email(self, recipient, template_name, data):
        if self.fail:
            raise RuntimeError("mail service unavailable")
        self.sent.append({"recipient": recipient, "template": template_name, "data": data})


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest.fixture
def client(notifier, email_sender, monkeypatch):
    """TestClient with the app lifespan running and fake side-effect senders"""
    from fastapi.testclient import TestClient
    from job_pipeline.main import app
    from job_pipeline.services.side_effects import side_effects

    monkeypatch.setattr(side_effects, "notifier", notifier)
    monkeypatch.setattr(side_effects, "email_sender", email_sender)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def user_headers():
    return {"X-User-Id": "42"}


@pytest.fixture
def admin_headers():
    return {"X-User-Id": "1", "X-User-Roles": "admin"}
