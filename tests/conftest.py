import os
from datetime import datetime, timezone
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

# Must be set before interview_scheduler.config is imported anywhere.
os.environ["DISABLE_DOTENV"] = "1"
# The import-time engine never touches the developer database; the `app`
# fixture rebinds it to a temporary file.
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
# Ensure tests never reach a real SMTP server or calendar bridge.
os.environ["SMTP_HOST"] = ""
os.environ["CALENDAR_SYNC_URL"] = ""

# Every test runs "now" = Tuesday 2030-01-01 08:00 UTC; fixtures book later that week.
NOW = datetime(2030, 1, 1, 8, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def test_db_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    return tmp_path_factory.mktemp("db") / "test.sqlite3"


@pytest.fixture()
def clock():
    from interview_scheduler.services.clock import FixedClock

    return FixedClock(NOW)


@pytest.fixture()
def app(test_db_path: Path, clock) -> FastAPI:
    """
    The real application bound to a fresh temporary SQLite DB, with the
    clock pinned. Tables are rebuilt here, so startup table creation is off.
    """
    from interview_scheduler import database
    from interview_scheduler.main import create_app
    from interview_scheduler.utils.dependencies import get_clock

    database.configure(f"sqlite+pysqlite:///{test_db_path}")
    database.init_db(reset=True)

    fastapi_app = create_app(init_database=False)
    fastapi_app.dependency_overrides[get_clock] = lambda: clock
    return fastapi_app


@pytest.fixture()
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def db_session(app: FastAPI):
    """
    Direct SQLAlchemy session bound to the same temporary SQLite DB used by the test app.
    """
    from interview_scheduler import database

    db = database.SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def make_employer(db_session):
    from interview_scheduler.models.employer import Employer

    def _make(company_name: str = "Acme", contact_email: str | None = "hr@acme.example"):
        employer = Employer(company_name=company_name, contact_email=contact_email)
        db_session.add(employer)
        db_session.commit()
        db_session.refresh(employer)
        return employer

    return _make


@pytest.fixture()
def make_application(db_session):
    """Job + candidate + application under an employer."""
    from interview_scheduler.models.application import Application
    from interview_scheduler.models.candidate import Candidate
    from interview_scheduler.models.job import Job

    counter = {"n": 0}

    def _make(employer, *, candidate=None, job=None):
        counter["n"] += 1
        n = counter["n"]
        if job is None:
            job = Job(employer_id=int(employer.id), title=f"Backend Engineer {n}")
            db_session.add(job)
        if candidate is None:
            candidate = Candidate(full_name=f"Candidate {n}", email=f"cand{n}@example.com")
            db_session.add(candidate)
        db_session.flush()
        application = Application(job_id=int(job.id), candidate_id=int(candidate.id), status="applied")
        db_session.add(application)
        db_session.commit()
        db_session.refresh(application)
        return application

    return _make


@pytest.fixture()
def book(db_session):
    """Insert an interview row directly, bypassing conflict checks."""
    from interview_scheduler.models.interview import Interview

    def _book(application, start: datetime, duration: int = 60, *, status: str = "scheduled"):
        it = Interview(
            application_id=int(application.id),
            employer_id=int(application.job.employer_id),
            candidate_id=int(application.candidate_id),
            job_id=int(application.job_id),
            scheduled_at=start,
            duration=duration,
            interview_type="video",
            status=status,
            was_rescheduled=False,
        )
        db_session.add(it)
        db_session.commit()
        db_session.refresh(it)
        return it

    return _book
