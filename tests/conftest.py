import os
import tempfile
from datetime import datetime, timezone

# Keep the default SQLite file out of the working tree
os.environ.setdefault("DB_DIR", tempfile.mkdtemp(prefix="exam-tests-"))

import pytest
from sqlalchemy.orm import sessionmaker

from exam_api.config import SessionSettings
from exam_api.database import init_db, make_engine
from exam_api.models.exams import Exam, Option, Question, QuestionType
from exam_api.services.attempt_service import SqlAttemptGateway
from exam_api.services.session_controller import ExamSession

FIXED_NOW = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)


class ManualJob:
    """Timer handle fired explicitly by tests."""

    def __init__(self, interval, callback, name):
        self.interval = interval
        self.callback = callback
        self.name = name
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def fire(self, times=1):
        for _ in range(times):
            if self.cancelled:
                break
            self.callback()


class ManualScheduler:
    def __init__(self):
        self.jobs = []

    def every(self, interval, callback, name):
        job = ManualJob(interval, callback, name)
        self.jobs.append(job)
        return job

    def job(self, suffix):
        return next(j for j in reversed(self.jobs) if j.name.endswith(suffix))


class DeferredExecutor:
    """Queues submitted writes until the test runs them."""

    def __init__(self):
        self.pending = []

    def submit(self, fn, *args):
        self.pending.append((fn, args))

    def shutdown(self, wait=True):
        pass

    def run(self, reverse=False):
        pending, self.pending = self.pending, []
        for fn, args in reversed(pending) if reverse else pending:
            fn(*args)


class StaticExamProvider:
    def __init__(self, *exams):
        self.exams = {exam.id: exam for exam in exams}

    def get_exam_by_id(self, exam_id):
        return self.exams.get(exam_id)


class RecordingGateway:
    """Delegates to a real gateway, recording calls and optionally failing some."""

    def __init__(self, inner, fail=()):
        self.inner = inner
        self.fail = set(fail)
        self.calls = []

    def __getattr__(self, name):
        method = getattr(self.inner, name)

        def wrapper(*args):
            self.calls.append((name, args))
            if name in self.fail:
                raise RuntimeError(f"{name} unavailable")
            return method(*args)

        return wrapper

    def count(self, name):
        return sum(1 for call, _ in self.calls if call == name)


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway(session_factory):
    return RecordingGateway(SqlAttemptGateway(session_factory))


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def settings():
    return SessionSettings(
        tick_interval_seconds=1,
        autosave_interval_seconds=5,
        low_time_warning_seconds=300,
        low_time_warning_display_seconds=10,
        shuffle_questions=False,
    )


@pytest.fixture
def two_question_exam():
    return Exam(
        id=1,
        title="Capitals",
        duration="1h",
        questions=[
            Question(
                id="q1",
                text="Capital of France?",
                type=QuestionType.SINGLE,
                options=[Option(id="a", text="Paris"), Option(id="b", text="Lyon")],
                correct_answer="a",
            ),
            Question(
                id="q2",
                text="The Seine flows through Paris.",
                type=QuestionType.TRUE_FALSE,
                correct_answer="true",
            ),
        ],
    )


@pytest.fixture
def make_session(gateway, scheduler, settings):
    def _make(exam, **kwargs):
        kwargs.setdefault("clock", lambda: FIXED_NOW)
        return ExamSession(
            "user-1",
            exam.id,
            exams=kwargs.pop("exams", StaticExamProvider(exam)),
            attempts=kwargs.pop("attempts", gateway),
            scheduler=kwargs.pop("scheduler", scheduler),
            settings=kwargs.pop("settings", settings),
            **kwargs,
        )

    return _make
