import itertools
import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
# the app's startup hook touches the configured database; keep it out of the repo
os.environ.setdefault(
    "HIFZ_DATABASE_URL", f"sqlite:///{os.path.join(tempfile.gettempdir(), 'hifz-test.db')}"
)

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from hifz.config import Settings
from hifz.db import Base
from hifz.dependencies import get_db, get_delivery_channel, get_scorer
from hifz.errors import DeliveryFailed, ScorerUnavailable
from hifz.main import app
from hifz.models import (
    Group,
    GroupLevel,
    User,
    UserRole,
    VerificationMode,
)
from hifz.services.review_queue import ReviewQueue
from hifz.services.scorer import ScoreResult
from hifz.services.tasks import TaskService
from hifz.services.verification import VerificationPolicy
from hifz.services.workflow import SubmissionWorkflow

# Use in-memory SQLite for testing to ensure isolation
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

_chat_ids = itertools.count(1000)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeScorer:
    """Returns a fixed score, or raises when ``fail`` is set."""

    def __init__(self, score: float = 90.0):
        self.score_value = score
        self.fail = False
        self.calls = []

    def score(self, payload, expected_text):
        self.calls.append((payload, expected_text))
        if self.fail:
            raise ScorerUnavailable("scorer down")
        return ScoreResult(score=self.score_value, transcript="bismillah")


class FakeChannel:
    """Records every delivery; raises ``DeliveryFailed`` while ``fail`` is set."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def deliver(self, recipient, content):
        if self.fail:
            raise DeliveryFailed("chat unreachable")
        self.sent.append((recipient, content))

    def to(self, recipient):
        return [content for chat, content in self.sent if chat == recipient]

    def review_ids(self, recipient):
        """Submission ids handed to a mentor, read from the pass button."""
        ids = []
        for content in self.to(recipient):
            for button in content.buttons:
                if button.callback_data.startswith("review:pass:"):
                    ids.append(int(button.callback_data.rsplit(":", 1)[1]))
        return ids


@pytest.fixture(scope="function")
def session():
    """
    Create a fresh database session for each test.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def settings():
    return Settings(database_url=SQLALCHEMY_DATABASE_URL, total_pages=602)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def scorer():
    return FakeScorer()


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def task_service(settings, clock, scorer):
    return TaskService(VerificationPolicy(scorer), settings=settings, clock=clock)


@pytest.fixture
def review_queue(channel, clock):
    return ReviewQueue(channel, clock=clock)


@pytest.fixture
def workflow(task_service, review_queue):
    return SubmissionWorkflow(task_service, review_queue)


@pytest.fixture(scope="function")
def client(session, scorer, channel):
    """
    Create a TestClient with the database session and the fakes injected.
    """
    def override_get_db():
        try:
            yield session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_scorer] = lambda: scorer
    app.dependency_overrides[get_delivery_channel] = lambda: channel
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_user(session, role=UserRole.STUDENT, name=None):
    user = User(
        name=name or f"{role.value}-{next(_chat_ids)}",
        role=role,
        chat_id=next(_chat_ids),
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def make_group(session, mentor=None, **overrides):
    mentor = mentor or make_user(session, UserRole.MENTOR)
    values = {
        "name": "Al-Baqarah circle",
        "mentor_id": mentor.id,
        "level": GroupLevel.LEVEL_1,
        "learning_required_count": 3,
        "consolidation_required_count": 2,
        "whole_page_required_count": 2,
        "verification_mode": VerificationMode.MANUAL,
        "ai_enabled": False,
    }
    values.update(overrides)
    group = Group(**values)
    session.add(group)
    session.commit()
    session.refresh(group)
    return group
