"""
In-memory registry of live exam sessions.

HTTP requests for the same (user, exam) reach the same ExamSession, so one
countdown runs per attempt in this process. Finished and closed sessions
are dropped after SESSION_IDLE_TTL_SECONDS without access.
"""
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

from exam_api.config import SESSION_IDLE_TTL_SECONDS, SessionSettings
from exam_api.errors import AttemptCompletedError
from exam_api.services.attempt_service import AttemptGateway
from exam_api.services.exam_service import ExamProvider
from exam_api.services.scheduler import Scheduler
from exam_api.services.session_controller import (
    EVENT_FINISHED,
    EVENT_LOW_TIME_WARNING,
    EVENT_WARNING_DISMISSED,
    ExamSession,
    SessionState,
)

logger = logging.getLogger(__name__)

SessionKey = tuple[str, int]


def _log_session_event(event: str, session: ExamSession) -> None:
    if event == EVENT_LOW_TIME_WARNING:
        logger.info(
            "Low time warning for user %s on exam %s (%s left)",
            session.user_id, session.exam_id, session.time_display,
        )
    elif event == EVENT_WARNING_DISMISSED:
        logger.debug(
            "Low time warning dismissed for user %s on exam %s",
            session.user_id, session.exam_id,
        )
    elif event == EVENT_FINISHED:
        reason = session.finish_reason.value if session.finish_reason else "unknown"
        logger.info(
            "Session for user %s on exam %s closed out (%s)",
            session.user_id, session.exam_id, reason,
        )


class SessionRegistry:
    """Creates, tracks and evicts ExamSession objects."""

    def __init__(
        self,
        exams: ExamProvider,
        attempts: AttemptGateway,
        scheduler: Scheduler,
        settings: SessionSettings | None = None,
        *,
        background_writes: bool = True,
        idle_ttl: float = SESSION_IDLE_TTL_SECONDS,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._exams = exams
        self._attempts = attempts
        self._scheduler = scheduler
        self._settings = settings or SessionSettings()
        self._background_writes = background_writes
        self._idle_ttl = idle_ttl
        self._monotonic = monotonic

        self._lock = threading.Lock()
        self._sessions: dict[SessionKey, ExamSession] = {}
        self._touched: dict[SessionKey, float] = {}

    def _new_session(self, user_id: str, exam_id: int) -> ExamSession:
        executor = None
        if self._background_writes:
            # one worker keeps full-state overwrites in order
            executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix=f"exam-{exam_id}-user-{user_id}-save"
            )
        return ExamSession(
            user_id,
            exam_id,
            exams=self._exams,
            attempts=self._attempts,
            scheduler=self._scheduler,
            settings=self._settings,
            executor=executor,
            listener=_log_session_event,
        )

    def get(self, user_id: str, exam_id: int) -> ExamSession | None:
        """Get the live session, if any."""
        key = (user_id, exam_id)
        with self._lock:
            session = self._sessions.get(key)
            if session is not None:
                self._touched[key] = self._monotonic()
            return session

    def get_or_start(self, user_id: str, exam_id: int) -> ExamSession:
        """
        Return the running session for (user, exam), or start one.

        Raises whatever ExamSession.start() raises when a new session cannot
        be started (exam missing, attempt already completed).
        """
        key = (user_id, exam_id)
        with self._lock:
            session = self._sessions.get(key)
            if session is not None and not session.closed:
                self._touched[key] = self._monotonic()
                if session.state is SessionState.FINISHED:
                    # its result may still be queued for writing
                    raise AttemptCompletedError(exam_id, session.result)
                return session

            session = self._new_session(user_id, exam_id)
            try:
                session.start()
            except Exception:
                self._sessions.pop(key, None)
                self._touched.pop(key, None)
                raise
            self._sessions[key] = session
            self._touched[key] = self._monotonic()
            return session

    def quit(self, user_id: str, exam_id: int) -> bool:
        """Leave a session without finishing it. Returns False if none is live."""
        key = (user_id, exam_id)
        with self._lock:
            session = self._sessions.pop(key, None)
            self._touched.pop(key, None)
        if session is None:
            return False
        session.quit()
        return True

    def cleanup_idle(self) -> int:
        """Drop finished or closed sessions not accessed within the TTL."""
        now = self._monotonic()
        removed = 0
        with self._lock:
            for key, touched in list(self._touched.items()):
                session = self._sessions[key]
                if session.state is SessionState.ACTIVE and not session.closed:
                    continue
                if now - touched > self._idle_ttl:
                    del self._sessions[key]
                    del self._touched[key]
                    removed += 1
        if removed:
            logger.info("Dropped %d idle exam sessions", removed)
        return removed

    def shutdown(self) -> None:
        """Save and stop every running session."""
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
            self._touched.clear()
        for session in sessions:
            session.quit()
        logger.info("Stopped %d exam sessions", len(sessions))

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
