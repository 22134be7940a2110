"""Shared fixtures: a fresh hiring database, a controllable clock and injected collaborators."""

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from db.schema import init_db
from pipeline.directory import create_job_opening, register_candidate
from pipeline.offer_engine import OfferLifecycleEngine
from pipeline.services import HiringServices
from pipeline.side_effects import SideEffectQueue
from pipeline.stage_engine import StageTransitionEngine
from utils.notifications import NotificationError, Notifier
from utils.portal_tokens import PortalTokenSigner
from utils.resume_scoring import KeywordScorer

START = datetime(2026, 2, 4, 9, 0, 0, tzinfo=timezone.utc)

TEST_PORTAL_SECRET = "test-portal-secret"


class FakeClock:
    """Callable clock the tests move forward by hand."""

    def __init__(self, start: datetime = START):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


class RecordingNotifier(Notifier):
    name = "recording"

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    def send(self, template_key, payload):
        if self.fail:
            raise NotificationError("smtp unavailable")
        self.sent.append((template_key, payload))


@pytest.fixture
def db_path(tmp_path):
    return str(init_db(str(tmp_path / "hireflow.db")))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def services(db_path, clock, notifier):
    queue = SideEffectQueue(db_path, max_workers=1, clock=clock)
    services = HiringServices(
        db_path=db_path,
        notifier=notifier,
        scorer=KeywordScorer(),
        side_effects=queue,
        portal_signer=PortalTokenSigner(TEST_PORTAL_SECRET),
        clock=clock,
    )
    yield services
    queue.shutdown()


@pytest.fixture
def stage_engine(services):
    return StageTransitionEngine(services)


@pytest.fixture
def offer_engine(services, stage_engine):
    return OfferLifecycleEngine(services, stage_engine)


@pytest.fixture
def make_application(services, stage_engine):
    """Factory creating a job, a candidate and their application at 'shortlisting'."""
    counter = itertools.count(1)

    def factory(
        resume_text="Python developer with 5 years experience in SQL",
        skills="python, sql",
        phone="+91 98450 12345",
    ):
        n = next(counter)
        job = create_job_opening(services, f"Backend Engineer {n}", department="Engineering", skills=skills)
        candidate = register_candidate(
            services,
            f"Candidate {n}",
            f"candidate{n}@example.com",
            phone=phone,
            resume_text=resume_text,
        )
        application = stage_engine.create_application(candidate.id, job.id, actor="recruiter")
        services.side_effects.drain()
        return application

    return factory
