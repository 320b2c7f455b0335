from __future__ import annotations

import os
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from investment_portal.core.db.base import Base
from investment_portal.modules.jobs import service as jobs
from investment_portal.modules.jobs.models import BackgroundJob
from investment_portal.modules.sequences.service import next_value
from investment_portal.shared.enums import JobStatus

WORKERS = 8


@pytest.fixture()
def shared_engine(tmp_path):
    """An engine whose connections are really separate, unlike the in-memory StaticPool one."""
    url = os.environ.get("TEST_CONCURRENCY_DATABASE_URL") or f"sqlite+pysqlite:///{tmp_path / 'race.db'}"
    connect_args = {"check_same_thread": False, "timeout": 30} if url.startswith("sqlite") else {}
    engine = create_engine(url, connect_args=connect_args, pool_size=WORKERS, max_overflow=0)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def shared_sessions(shared_engine) -> sessionmaker[Session]:
    return sessionmaker(bind=shared_engine, autoflush=False, autocommit=False, class_=Session)


def _race(fn, n: int = WORKERS) -> list:
    start = threading.Barrier(n)

    def _run(_):
        start.wait()
        return fn()

    with ThreadPoolExecutor(max_workers=n) as pool:
        return list(pool.map(_run, range(n)))


def test_concurrent_sequence_calls_get_distinct_consecutive_values(shared_sessions):
    def _one() -> int:
        with shared_sessions() as db:
            value = next_value(db, "INV_2026")
            db.commit()
            return value

    values = _race(_one)

    assert sorted(values) == list(range(1, WORKERS + 1))


def test_only_one_concurrent_claim_wins(shared_sessions):
    with shared_sessions() as db:
        job = BackgroundJob(
            job_type=jobs.PREPARE_AI_JOB,
            status=JobStatus.pending.value,
            attempts=0,
            max_attempts=3,
            result={},
        )
        db.add(job)
        db.commit()
        job_id = job.id

    def _one() -> bool:
        with shared_sessions() as db:
            return jobs.claim_job(db, job_id)

    claims = _race(_one)

    assert claims.count(True) == 1
    with shared_sessions() as db:
        claimed = db.get(BackgroundJob, job_id)
        assert claimed.status == JobStatus.processing.value
        assert claimed.attempts == 1
