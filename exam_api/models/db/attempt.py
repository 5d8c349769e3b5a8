"""
Exam attempt database model.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

import sqlalchemy as sa
from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from exam_api.database import Base


def _load_json(raw: str | None, default: Any) -> Any:
    if not raw:
        return default
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return default


class ExamAttempt(Base):
    """
    One user's attempt at an exam.
    At most one row per (user_id, exam_id) has completed_at unset.
    """

    __tablename__ = "exam_attempts"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    # References (user ids come from the external login service)
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    exam_id: Mapped[int] = mapped_column(
        ForeignKey("exams.id", ondelete="CASCADE"), index=True, nullable=False
    )

    # Progress
    question_order_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    answers_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    flags_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_open_question: Mapped[int] = mapped_column(default=0, nullable=False)
    time_left: Mapped[int | None] = mapped_column(nullable=True)
    timestamp: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )

    # Timing
    started_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True, index=True
    )

    # Results
    score: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    result_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def question_order(self) -> list[str] | None:
        """Parse the frozen question order from JSON."""
        return _load_json(self.question_order_json, None)

    @question_order.setter
    def question_order(self, value: list[str] | None) -> None:
        self.question_order_json = json.dumps(value) if value else None

    @property
    def answers(self) -> dict[str, Any]:
        """Parse answers from JSON."""
        return _load_json(self.answers_json, {})

    @answers.setter
    def answers(self, value: dict[str, Any] | None) -> None:
        self.answers_json = json.dumps(value or {})

    @property
    def flags(self) -> list[int]:
        """Parse flagged question indices from JSON."""
        return _load_json(self.flags_json, [])

    @flags.setter
    def flags(self, value: list[int] | None) -> None:
        self.flags_json = json.dumps(sorted(value)) if value else None

    @property
    def result(self) -> dict[str, Any] | None:
        """Parse the stored result from JSON."""
        return _load_json(self.result_json, None)

    @result.setter
    def result(self, value: dict[str, Any] | None) -> None:
        self.result_json = json.dumps(value) if value else None

    @property
    def is_completed(self) -> bool:
        """Check if attempt is completed."""
        return self.completed_at is not None
