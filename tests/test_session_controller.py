import random
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

import pytest

from exam_api.config import SessionSettings
from exam_api.errors import AttemptCompletedError, ExamNotFoundError, SessionInactiveError
from exam_api.models.exams import Exam, ProgressSnapshot, Question, QuestionType
from exam_api.services import attempt_service
from exam_api.services.attempt_service import SqlAttemptGateway
from exam_api.services.scoring_service import score_exam
from exam_api.services.session_controller import (
    EVENT_FINISHED,
    EVENT_LOW_TIME_WARNING,
    EVENT_WARNING_DISMISSED,
    FinishReason,
    SessionState,
)

from tests.conftest import FIXED_NOW, DeferredExecutor, RecordingGateway, StaticExamProvider


def _exam_with_duration(duration: str, exam_id: int = 2) -> Exam:
    return Exam(
        id=exam_id,
        title="Short",
        duration=duration,
        questions=[
            Question(id="q1", type=QuestionType.SINGLE, correct_answer="a"),
            Question(id="q2", type=QuestionType.TEXT, correct_answer="Paris"),
        ],
    )


def test_new_session_starts_with_full_duration(make_session, two_question_exam, scheduler, gateway) -> None:
    session = make_session(two_question_exam).start()

    assert session.state is SessionState.ACTIVE
    assert not session.resumed
    assert session.time_left == 3600
    assert session.time_display == "01:00:00"
    assert session.answers == {}
    assert session.flags == []
    assert session.current_index == 0
    assert gateway.count("create_attempt") == 1
    assert {job.name.rsplit("-", 1)[-1] for job in scheduler.jobs} == {"countdown", "autosave"}
    assert scheduler.job("countdown").interval == 1
    assert scheduler.job("autosave").interval == 5


def test_finish_scores_answers(make_session, two_question_exam) -> None:
    session = make_session(two_question_exam).start()
    session.submit_answer("q1", "a")

    result = session.finish()

    assert result.score == 1
    assert result.total == 2
    assert result.correct_count == 1
    assert result.unanswered_count == 1
    assert result.percentage == 50
    assert result.date == FIXED_NOW
    assert session.state is SessionState.FINISHED
    assert session.finish_reason is FinishReason.SUBMITTED


def test_finish_is_one_shot(make_session, two_question_exam, gateway, scheduler) -> None:
    session = make_session(two_question_exam).start()
    session.submit_answer("q1", "a")

    first = session.finish()
    second = session.finish()

    assert second is first
    assert gateway.count("complete_attempt") == 1
    assert all(job.cancelled for job in scheduler.jobs)


def test_finish_persists_completed_attempt(make_session, two_question_exam, gateway) -> None:
    session = make_session(two_question_exam).start()
    session.submit_answer("q1", "a")
    result = session.finish()

    stored = gateway.find_completed_result("user-1", two_question_exam.id)
    assert stored == result
    assert gateway.find_incomplete_attempt("user-1", two_question_exam.id) is None


def test_timer_expiry_finishes_session(make_session, scheduler, gateway) -> None:
    exam = _exam_with_duration("3")
    events = []
    session = make_session(exam, listener=lambda event, s: events.append(event)).start()
    session.submit_answer("q2", " paris ")

    scheduler.job("countdown").fire(10)

    assert session.state is SessionState.FINISHED
    assert session.finish_reason is FinishReason.TIMEOUT
    assert session.time_left == 0
    assert session.result == score_exam(exam, {"q2": " paris "}, completed_at=FIXED_NOW)
    assert events == [EVENT_FINISHED]
    assert gateway.count("complete_attempt") == 1


def test_no_tick_or_autosave_after_finish(make_session, two_question_exam, scheduler, gateway) -> None:
    session = make_session(two_question_exam).start()
    scheduler.job("countdown").fire(5)
    session.finish()
    saves = gateway.count("save_progress")

    session.tick()
    session.autosave()

    assert session.time_left == 3595
    assert gateway.count("save_progress") == saves


def test_low_time_warning_shown_once_and_dismissed(make_session, scheduler) -> None:
    events = []
    session = make_session(
        _exam_with_duration("302"), listener=lambda event, s: events.append(event)
    ).start()
    countdown = scheduler.job("countdown")

    countdown.fire(2)
    assert session.time_left == 300
    assert not session.low_time_warning

    countdown.fire()
    assert session.low_time_warning
    assert events == [EVENT_LOW_TIME_WARNING]

    countdown.fire(9)
    assert session.time_left == 290
    assert not session.low_time_warning
    assert events == [EVENT_LOW_TIME_WARNING, EVENT_WARNING_DISMISSED]

    countdown.fire(5)
    assert events.count(EVENT_LOW_TIME_WARNING) == 1


def test_resume_restores_saved_progress(make_session, two_question_exam, gateway) -> None:
    gateway.save_progress(
        "user-1",
        two_question_exam.id,
        ProgressSnapshot(
            answers={"q1": "a"},
            current_index=1,
            time_left=120,
            flags=[1],
            timestamp=FIXED_NOW,
        ),
    )

    session = make_session(two_question_exam).start()

    assert session.resumed
    assert session.answers == {"q1": "a"}
    assert session.time_left == 120
    assert session.current_index == 1
    assert session.flags == [1]
    assert gateway.count("create_attempt") == 0


@pytest.mark.parametrize("stored_time_left", [0, -10, None])
def test_resume_with_invalid_time_uses_full_duration(
    make_session, two_question_exam, gateway, stored_time_left
) -> None:
    gateway.save_progress(
        "user-1",
        two_question_exam.id,
        ProgressSnapshot(answers={"q1": "b"}, time_left=stored_time_left, timestamp=FIXED_NOW),
    )

    session = make_session(two_question_exam).start()

    assert session.answers == {"q1": "b"}
    assert session.time_left == 3600


def test_question_order_is_frozen_per_attempt(make_session) -> None:
    exam = Exam(
        id=3,
        title="Ordered",
        questions=[
            Question(id=f"q{i}", type=QuestionType.SINGLE, correct_answer="a") for i in range(8)
        ],
    )
    shuffled = SessionSettings(shuffle_questions=True)

    first = make_session(exam, settings=shuffled, rng=random.Random(4)).start()
    order = first.exam.question_ids()
    first.quit()

    resumed = make_session(exam, settings=shuffled, rng=random.Random(99)).start()

    assert sorted(order) == sorted(exam.question_ids())
    assert resumed.exam.question_ids() == order


def test_completed_attempt_is_reported(make_session, two_question_exam) -> None:
    session = make_session(two_question_exam).start()
    session.submit_answer("q1", "a")
    result = session.finish()

    with pytest.raises(AttemptCompletedError) as excinfo:
        make_session(two_question_exam).start()
    assert excinfo.value.result == result


def test_missing_exam_raises(make_session, two_question_exam) -> None:
    session = make_session(two_question_exam, exams=StaticExamProvider())
    with pytest.raises(ExamNotFoundError):
        session.start()
    assert session.state is SessionState.LOADING


def test_load_failure_starts_fresh(make_session, two_question_exam, session_factory) -> None:
    failing = RecordingGateway(
        SqlAttemptGateway(session_factory),
        fail={"find_incomplete_attempt", "find_completed_result"},
    )
    session = make_session(two_question_exam, attempts=failing).start()

    assert session.state is SessionState.ACTIVE
    assert session.answers == {}
    assert session.time_left == 3600


def test_save_failures_are_swallowed(make_session, two_question_exam, session_factory, scheduler) -> None:
    failing = RecordingGateway(
        SqlAttemptGateway(session_factory), fail={"save_progress", "complete_attempt"}
    )
    session = make_session(two_question_exam, attempts=failing).start()

    session.submit_answer("q1", "a")
    scheduler.job("autosave").fire()
    result = session.finish()

    assert session.answers == {"q1": "a"}
    assert failing.count("save_progress") == 2
    assert result.correct_count == 1


def test_answer_last_write_wins_and_saves(make_session, two_question_exam, gateway, db) -> None:
    session = make_session(two_question_exam).start()
    session.submit_answer("q1", "b")
    session.submit_answer("q1", "a")

    assert session.answers == {"q1": "a"}
    assert gateway.count("save_progress") == 2
    stored = attempt_service.find_incomplete_attempt(db, "user-1", two_question_exam.id)
    assert stored.answers == {"q1": "a"}


def test_autosave_writes_full_state(make_session, two_question_exam, scheduler, db) -> None:
    session = make_session(two_question_exam).start()
    session.go_to(1)
    scheduler.job("countdown").fire(7)
    scheduler.job("autosave").fire()

    stored = attempt_service.find_incomplete_attempt(db, "user-1", two_question_exam.id)
    assert stored.time_left == 3593
    assert stored.last_open_question == 1
    assert stored.timestamp.replace(tzinfo=timezone.utc) == FIXED_NOW


def test_navigation_bounds(make_session, two_question_exam) -> None:
    session = make_session(two_question_exam).start()

    assert session.go_to(1)
    assert session.current_question.id == "q2"
    assert not session.go_to(2)
    assert not session.go_to(-1)
    assert session.current_index == 1
    assert session.previous_question()
    assert not session.previous_question()
    assert session.current_index == 0


def test_toggle_flag(make_session, two_question_exam, gateway) -> None:
    session = make_session(two_question_exam).start()

    assert session.toggle_flag(1) is True
    assert session.toggle_flag() is True
    assert session.flags == [0, 1]
    assert session.toggle_flag(1) is False
    assert session.toggle_flag(5) is False
    assert session.flags == [0]
    assert gateway.count("save_progress") == 3


def test_quit_saves_and_allows_resume(make_session, two_question_exam, scheduler) -> None:
    session = make_session(two_question_exam).start()
    session.submit_answer("q2", "Paris")
    scheduler.job("countdown").fire(30)

    session.quit()

    assert session.state is SessionState.ACTIVE
    assert session.closed
    assert all(job.cancelled for job in scheduler.jobs)
    with pytest.raises(SessionInactiveError):
        session.submit_answer("q1", "a")
    with pytest.raises(SessionInactiveError):
        session.finish()

    resumed = make_session(two_question_exam).start()
    assert resumed.answers == {"q2": "Paris"}
    assert resumed.time_left == 3570


def test_mutations_after_finish_are_rejected(make_session, two_question_exam) -> None:
    session = make_session(two_question_exam).start()
    session.finish()

    with pytest.raises(SessionInactiveError):
        session.submit_answer("q1", "a")
    with pytest.raises(SessionInactiveError):
        session.go_to(1)
    with pytest.raises(SessionInactiveError):
        session.toggle_flag(0)


def test_progress_counts_answered_questions(make_session, two_question_exam) -> None:
    session = make_session(two_question_exam).start()
    session.submit_answer("q1", "a")
    session.submit_answer("q2", "")

    assert session.answered_count == 1
    assert session.progress == 50


def test_progress_ignores_answers_to_unknown_questions(make_session, two_question_exam) -> None:
    session = make_session(two_question_exam).start()
    session.submit_answer("q1", "a")
    session.submit_answer("zz", "a")
    session.submit_answer("yy", "b")

    assert session.answers["zz"] == "a"
    assert session.answered_count == 1
    assert session.progress == 50


@pytest.mark.parametrize("reverse", [False, True])
def test_autosave_racing_finish_leaves_no_attempt_in_progress(
    make_session, two_question_exam, db, reverse
) -> None:
    executor = DeferredExecutor()
    session = make_session(two_question_exam, executor=executor).start()
    session.submit_answer("q1", "a")
    session.autosave()
    result = session.finish()

    executor.run(reverse=reverse)

    assert attempt_service.list_in_progress_attempts(db, "user-1") == []
    completed = attempt_service.list_completed_attempts(db, "user-1")
    assert len(completed) == 1
    assert completed[0].result["score"] == result.score


def test_background_writes_reach_storage(make_session, two_question_exam, gateway) -> None:
    executor = ThreadPoolExecutor(max_workers=1)
    session = make_session(
        two_question_exam,
        executor=executor,
        clock=lambda: datetime.now(timezone.utc),
    ).start()
    session.submit_answer("q1", "a")
    result = session.finish()
    executor.shutdown(wait=True)

    assert gateway.find_completed_result("user-1", two_question_exam.id) == result


def test_late_inline_save_does_not_reopen_completed_attempt(
    make_session, two_question_exam, session_factory, db
) -> None:
    inner = SqlAttemptGateway(session_factory)
    holder = {}

    class FinishingGateway:
        """Completes the session while a progress write is in flight."""

        def __getattr__(self, name):
            return getattr(inner, name)

        def save_progress(self, user_id, exam_id, snapshot):
            if "session" in holder:
                holder.pop("session").finish()
            inner.save_progress(user_id, exam_id, snapshot)

    session = make_session(two_question_exam, attempts=FinishingGateway()).start()
    session.submit_answer("q1", "a")
    holder["session"] = session

    session.autosave()

    assert session.state is SessionState.FINISHED
    assert attempt_service.list_in_progress_attempts(db, "user-1") == []
    assert attempt_service.is_exam_completed(db, "user-1", two_question_exam.id)
