"""
Exam session controller.

Runs one timed attempt of one user at one exam:

    LOADING --start()--> ACTIVE --finish() / time up--> FINISHED

While ACTIVE two repeating timers run: a one-second countdown and a
five-second autosave. Both are cancelled under the session lock before
the state becomes FINISHED, so no tick or autosave acts after completion.
Every answer and flag change is also written through immediately.
Progress writes that arrive after completion are dropped.
Persistence failures are logged and swallowed; in-memory state stays
authoritative for the rest of the session.
"""
import enum
import logging
import random
import threading
from concurrent.futures import Executor
from datetime import datetime
from typing import Any, Callable

from exam_api.config import SessionSettings
from exam_api.errors import (
    AttemptCompletedError,
    ExamNotFoundError,
    SessionInactiveError,
)
from exam_api.models.exams import (
    AnswerValue,
    AttemptRecord,
    Exam,
    ProgressSnapshot,
    Question,
    Result,
)
from exam_api.services.attempt_service import AttemptGateway
from exam_api.services.exam_service import (
    ExamProvider,
    apply_question_order,
    shuffle_question_order,
)
from exam_api.services.scheduler import Scheduler, TimerHandle
from exam_api.services.scoring_service import is_unanswered, score_exam
from exam_api.utils.time_utils import (
    calculate_progress,
    format_seconds,
    parse_duration,
    utc_now,
)

logger = logging.getLogger(__name__)

EVENT_LOW_TIME_WARNING = "low_time_warning"
EVENT_WARNING_DISMISSED = "low_time_warning_dismissed"
EVENT_FINISHED = "finished"


class SessionState(str, enum.Enum):
    """Lifecycle of an exam session."""

    LOADING = "loading"
    ACTIVE = "active"
    FINISHED = "finished"


class FinishReason(str, enum.Enum):
    SUBMITTED = "submitted"
    TIMEOUT = "timeout"


SessionListener = Callable[[str, "ExamSession"], None]


class ExamSession:
    """One user's timed attempt at an exam."""

    def __init__(
        self,
        user_id: str,
        exam_id: int,
        exams: ExamProvider,
        attempts: AttemptGateway,
        scheduler: Scheduler,
        settings: SessionSettings | None = None,
        *,
        executor: Executor | None = None,
        clock: Callable[[], datetime] = utc_now,
        rng: random.Random | None = None,
        listener: SessionListener | None = None,
    ) -> None:
        self.user_id = user_id
        self.exam_id = exam_id
        self._exams = exams
        self._attempts = attempts
        self._scheduler = scheduler
        self._settings = settings or SessionSettings()
        self._executor = executor
        self._clock = clock
        self._rng = rng
        self._listener = listener

        self._lock = threading.RLock()
        self._state = SessionState.LOADING
        self._closed = False
        self._exam: Exam | None = None
        self._answers: dict[str, AnswerValue | None] = {}
        self._flags: set[int] = set()
        self._current_index = 0
        self._time_left = 0
        self._resumed = False
        self._result: Result | None = None
        self._finish_reason: FinishReason | None = None

        self._warning_shown = False
        self._warning_active = False
        self._warning_dismiss_at = 0

        self._countdown: TimerHandle | None = None
        self._autosave: TimerHandle | None = None

    # ── Lifecycle ──────────────────────────────────────────────────────────

    def start(self) -> "ExamSession":
        """
        Resume the stored attempt or start a new one, then start the timers.

        Raises:
            ExamNotFoundError: The exam does not exist.
            AttemptCompletedError: The user already completed this exam.
        """
        with self._lock:
            if self._state is not SessionState.LOADING:
                return self

            exam = self._exams.get_exam_by_id(self.exam_id)
            if exam is None:
                raise ExamNotFoundError(self.exam_id)

            completed = self._load("completed result", self._attempts.find_completed_result)
            if completed is not None:
                raise AttemptCompletedError(self.exam_id, completed)

            attempt = self._load("attempt in progress", self._attempts.find_incomplete_attempt)
            if attempt is not None:
                self._resume(exam, attempt)
            else:
                self._initialize(exam)

            self._state = SessionState.ACTIVE
            name = f"exam-{self.exam_id}-user-{self.user_id}"
            self._countdown = self._scheduler.every(
                self._settings.tick_interval_seconds, self.tick, name=f"{name}-countdown"
            )
            self._autosave = self._scheduler.every(
                self._settings.autosave_interval_seconds, self.autosave, name=f"{name}-autosave"
            )

        logger.info(
            "%s exam %s for user %s (%s left)",
            "Resumed" if self._resumed else "Started",
            self.exam_id, self.user_id, format_seconds(self._time_left),
        )
        return self

    def _load(self, what: str, fetch: Callable[[str, int], Any]) -> Any:
        try:
            return fetch(self.user_id, self.exam_id)
        except Exception:
            logger.exception(
                "Failed to load %s for user %s on exam %s; starting fresh",
                what, self.user_id, self.exam_id,
            )
            return None

    def _resume(self, exam: Exam, attempt: AttemptRecord) -> None:
        self._exam = apply_question_order(exam, attempt.question_order)
        count = len(self._exam.questions)

        self._answers = dict(attempt.answers or {})
        self._flags = {i for i in attempt.flags if 0 <= i < count}
        index = attempt.last_open_question
        self._current_index = index if 0 <= index < count else 0

        if attempt.time_left is not None and attempt.time_left > 0:
            self._time_left = attempt.time_left
        else:
            # never run a resumed attempt with no time on the clock
            self._time_left = parse_duration(exam.duration)
            logger.warning(
                "Stored time left %r for user %s on exam %s is invalid; reset to %ss",
                attempt.time_left, self.user_id, self.exam_id, self._time_left,
            )
        self._resumed = True

    def _initialize(self, exam: Exam) -> None:
        if self._settings.shuffle_questions:
            order = shuffle_question_order(exam, self._rng)
        else:
            order = exam.question_ids()

        try:
            record = self._attempts.create_attempt(self.user_id, self.exam_id, order)
            if record.question_order:
                order = record.question_order
        except Exception:
            logger.exception(
                "Failed to create attempt for user %s on exam %s; continuing in memory",
                self.user_id, self.exam_id,
            )

        self._exam = apply_question_order(exam, order)
        self._answers = {}
        self._flags = set()
        self._current_index = 0
        self._time_left = parse_duration(exam.duration)

    # ── Timers ─────────────────────────────────────────────────────────────

    def tick(self) -> None:
        """Countdown step; finishes the attempt when the clock reaches zero."""
        events: list[str] = []
        with self._lock:
            if not self._accepting_input:
                return

            if (
                not self._warning_shown
                and self._time_left == self._settings.low_time_warning_seconds
            ):
                self._warning_shown = True
                self._warning_active = True
                self._warning_dismiss_at = (
                    self._time_left - self._settings.low_time_warning_display_seconds
                )
                events.append(EVENT_LOW_TIME_WARNING)

            self._time_left = max(0, self._time_left - 1)

            if self._warning_active and self._time_left <= self._warning_dismiss_at:
                self._warning_active = False
                events.append(EVENT_WARNING_DISMISSED)

            for event in events:
                self._notify(event)

            if self._time_left <= 0:
                logger.info("Time is up for user %s on exam %s", self.user_id, self.exam_id)
                # still holding the lock, so quit() cannot slip in before completion
                self._complete(FinishReason.TIMEOUT)

    def autosave(self) -> None:
        """Periodic full-state write while the session is active."""
        with self._lock:
            if not self._accepting_input:
                return
            snapshot = self._snapshot()
        self._persist_progress(snapshot)

    def _cancel_timers(self) -> None:
        for handle in (self._countdown, self._autosave):
            if handle is not None:
                handle.cancel()
        self._countdown = None
        self._autosave = None

    # ── User actions ───────────────────────────────────────────────────────

    def submit_answer(self, question_id: str, value: AnswerValue | None) -> None:
        """Record an answer (last write wins) and save immediately."""
        with self._lock:
            self._require_input()
            self._answers[question_id] = value
            snapshot = self._snapshot()
        self._persist_progress(snapshot)

    def toggle_flag(self, index: int | None = None) -> bool:
        """
        Flag or unflag a question for review (defaults to the current one).

        Returns:
            Whether the question is flagged afterwards. Out-of-range
            indices are ignored.
        """
        with self._lock:
            self._require_input()
            if index is None:
                index = self._current_index
            if not 0 <= index < self.question_count:
                return False
            if index in self._flags:
                self._flags.discard(index)
                flagged = False
            else:
                self._flags.add(index)
                flagged = True
            snapshot = self._snapshot()
        self._persist_progress(snapshot)
        return flagged

    def go_to(self, index: int) -> bool:
        """Move to a question; out-of-range requests are ignored."""
        with self._lock:
            self._require_input()
            if not 0 <= index < self.question_count:
                return False
            self._current_index = index
            return True

    def next_question(self) -> bool:
        return self.go_to(self._current_index + 1)

    def previous_question(self) -> bool:
        return self.go_to(self._current_index - 1)

    def finish(self) -> Result:
        """Submit the attempt. Calling it again returns the first result."""
        return self._complete(FinishReason.SUBMITTED)

    def quit(self) -> None:
        """
        Leave without finishing: save progress and stop the timers.
        The attempt stays in progress and can be resumed by a new session.
        """
        with self._lock:
            if self._state is not SessionState.ACTIVE or self._closed:
                return
            self._cancel_timers()
            self._closed = True
            self._warning_active = False
            snapshot = self._snapshot()
        self._persist_progress(snapshot)
        self._shutdown_executor()
        logger.info(
            "User %s left exam %s with %s remaining",
            self.user_id, self.exam_id, format_seconds(snapshot.time_left),
        )

    def _complete(self, reason: FinishReason) -> Result:
        with self._lock:
            if self._state is SessionState.FINISHED:
                return self._result
            if self._state is SessionState.LOADING or self._closed:
                raise SessionInactiveError("Session is not active")

            self._cancel_timers()
            self._warning_active = False
            result = score_exam(self._exam, self._answers, completed_at=self._clock())
            self._result = result
            self._finish_reason = reason
            self._state = SessionState.FINISHED
            answers = dict(self._answers)

        self._submit(self._write_completion, result, answers)
        self._shutdown_executor()
        logger.info(
            "Exam %s finished for user %s (%s): %s/%s",
            self.exam_id, self.user_id, reason.value, result.score, result.total,
        )
        self._notify(EVENT_FINISHED)
        return result

    # ── Persistence ────────────────────────────────────────────────────────

    def _snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot(
            answers=dict(self._answers),
            current_index=self._current_index,
            time_left=self._time_left,
            flags=list(self._flags),
            timestamp=self._clock(),
        )

    def _persist_progress(self, snapshot: ProgressSnapshot) -> None:
        self._submit(self._write_progress, snapshot)

    def _write_progress(self, snapshot: ProgressSnapshot) -> None:
        # held across the write so finish() cannot complete between check and save
        with self._lock:
            if self._state is SessionState.FINISHED:
                logger.debug(
                    "Dropped stale progress write for user %s on exam %s",
                    self.user_id, self.exam_id,
                )
                return
            try:
                self._attempts.save_progress(self.user_id, self.exam_id, snapshot)
            except Exception:
                logger.exception(
                    "Failed to save progress for user %s on exam %s",
                    self.user_id, self.exam_id,
                )

    def _write_completion(self, result: Result, answers: dict[str, AnswerValue | None]) -> None:
        try:
            self._attempts.complete_attempt(self.user_id, self.exam_id, result, answers)
        except Exception:
            logger.exception(
                "Failed to store result for user %s on exam %s",
                self.user_id, self.exam_id,
            )

    def _submit(self, fn: Callable[..., None], *args: Any) -> None:
        # writes are fire-and-forget when an executor is configured
        if self._executor is None:
            fn(*args)
            return
        try:
            self._executor.submit(fn, *args)
        except RuntimeError:
            logger.warning("Write executor is shut down; writing inline")
            fn(*args)

    def _shutdown_executor(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False)

    def _notify(self, event: str) -> None:
        if self._listener is None:
            return
        try:
            self._listener(event, self)
        except Exception:
            logger.exception("Session listener failed on %s", event)

    # ── State ──────────────────────────────────────────────────────────────

    @property
    def _accepting_input(self) -> bool:
        return self._state is SessionState.ACTIVE and not self._closed

    def _require_input(self) -> None:
        if not self._accepting_input:
            raise SessionInactiveError(
                f"Session for exam {self.exam_id} is {self._state.value}"
                + (" (closed)" if self._closed else "")
            )

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def resumed(self) -> bool:
        return self._resumed

    @property
    def exam(self) -> Exam | None:
        return self._exam

    @property
    def question_count(self) -> int:
        return len(self._exam.questions) if self._exam else 0

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def current_question(self) -> Question | None:
        if not self._exam or not self._exam.questions:
            return None
        return self._exam.questions[self._current_index]

    @property
    def answers(self) -> dict[str, AnswerValue | None]:
        with self._lock:
            return dict(self._answers)

    @property
    def flags(self) -> list[int]:
        with self._lock:
            return sorted(self._flags)

    @property
    def answered_count(self) -> int:
        """Answered questions of this exam; answers to unknown ids are not counted."""
        with self._lock:
            if self._exam is None:
                return 0
            return sum(
                1 for qid in self._exam.question_ids()
                if not is_unanswered(self._answers.get(qid))
            )

    @property
    def progress(self) -> int:
        return calculate_progress(self.answered_count, self.question_count)

    @property
    def time_left(self) -> int:
        return self._time_left

    @property
    def time_display(self) -> str:
        return format_seconds(self._time_left)

    @property
    def low_time_warning(self) -> bool:
        return self._warning_active

    @property
    def result(self) -> Result | None:
        return self._result

    @property
    def finish_reason(self) -> FinishReason | None:
        return self._finish_reason
