"""
Subject, Exam and Question database models.
"""

from __future__ import annotations

import enum
import json
from datetime import datetime, timezone
from typing import Any

import sqlalchemy as sa
from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from exam_api.database import Base


class ExamPublication(str, enum.Enum):
    """Publication status of an exam."""

    DRAFT = "draft"
    PUBLISHED = "published"


class Subject(Base):
    """Subject grouping exams (e.g. mathematics, physics)."""

    __tablename__ = "subjects"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    code: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)

    exams: Mapped[list["ExamRow"]] = relationship("ExamRow", back_populates="subject")


class ExamRow(Base):
    """
    Exam record.
    Duration is kept as the human-readable string entered by admins ("2h30").
    """

    __tablename__ = "exams"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration: Mapped[str | None] = mapped_column(String(32), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=ExamPublication.DRAFT.value, nullable=False
    )
    available_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    subject_id: Mapped[int | None] = mapped_column(
        ForeignKey("subjects.id", ondelete="SET NULL"), nullable=True, index=True
    )

    # Relationships
    subject: Mapped["Subject | None"] = relationship("Subject", back_populates="exams")
    questions: Mapped[list["QuestionRow"]] = relationship(
        "QuestionRow",
        back_populates="exam",
        cascade="all, delete-orphan",
        order_by="QuestionRow.position",
    )


class QuestionRow(Base):
    """
    Question record.
    Options and the correct answer are stored as JSON text.
    """

    __tablename__ = "questions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    exam_id: Mapped[int] = mapped_column(
        ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(default=0, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    points: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    options_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    correct_answer: Mapped[str | None] = mapped_column(Text, nullable=True)

    exam: Mapped["ExamRow"] = relationship("ExamRow", back_populates="questions")

    @property
    def options(self) -> list[dict[str, Any]]:
        """Parse options from JSON."""
        if not self.options_json:
            return []
        try:
            return json.loads(self.options_json)
        except (json.JSONDecodeError, TypeError):
            return []

    @options.setter
    def options(self, value: list[dict[str, Any]] | None) -> None:
        """Serialize options to JSON."""
        self.options_json = json.dumps(value) if value else None
