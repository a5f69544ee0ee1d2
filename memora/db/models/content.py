"""
Content and session models.

Items and knowledge units are registered by the content collaborator; the
review core only reads them. Study sessions group reviews for reporting.
"""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class KnowledgeUnit(Base):
    """
    A concept whose mastery is tracked with BKT.

    Seed columns override the configured defaults when set.
    """

    __tablename__ = "knowledge_units"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    name: Mapped[str] = mapped_column(Text, default="")
    p_init: Mapped[float | None] = mapped_column(Float)
    p_slip: Mapped[float | None] = mapped_column(Float)
    p_guess: Mapped[float | None] = mapped_column(Float)
    p_transit: Mapped[float | None] = mapped_column(Float)

    def __repr__(self) -> str:
        return f"<KnowledgeUnit {self.id} name={self.name!r}>"


class Item(Base):
    """A reviewable flashcard or quiz question."""

    __tablename__ = "items"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    kind: Mapped[str] = mapped_column(Text, nullable=False)  # 'flashcard' | 'quiz'
    front: Mapped[str] = mapped_column(Text, default="")
    back: Mapped[str] = mapped_column(Text, default="")
    knowledge_unit_id: Mapped[str | None] = mapped_column(
        ForeignKey("knowledge_units.id", ondelete="SET NULL"), index=True
    )

    def __repr__(self) -> str:
        return f"<Item {self.id} kind={self.kind} unit={self.knowledge_unit_id}>"


class StudySession(Base):
    """A study session; reviews reference it and it identifies the student."""

    __tablename__ = "study_sessions"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    student_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    item_kind: Mapped[str] = mapped_column(Text, nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Filled in when the session ends, computed from its review logs
    items_reviewed: Mapped[int] = mapped_column(Integer, default=0)
    avg_grade: Mapped[float | None] = mapped_column(Float)
    total_time_ms: Mapped[int | None] = mapped_column(Integer)

    def __repr__(self) -> str:
        return f"<StudySession {self.id} student={self.student_id} ended={self.ended_at}>"
