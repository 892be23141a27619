"""Change record models for tracking edits to tasks and notes."""
from datetime import datetime
from enum import StrEnum

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, utc_now


class EntityType(StrEnum):
    """Type of entity that a change record applies to."""

    TASK = "task"
    NOTE = "note"


class TaskHistory(Base):
    """
    Full-snapshot change record for a task.

    Each row is a redundant copy of every tracked task field as it was immediately
    BEFORE the write that appended the row. Rows are immutable: history only grows.

    Ordering key is created_at; the auto-increment id breaks ties (insertion order).
    """

    __tablename__ = "task_history"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    task_id: Mapped[int] = mapped_column(
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_all_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    group_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Timestamp (only created_at - history records are immutable)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )

    __table_args__ = (
        # Primary query: one task's full log in replay order
        Index("ix_task_history_task_created", "task_id", "created_at", "id"),
    )


class NoteChange(Base):
    """
    Incremental change record for a note.

    Uses reverse patches: content_patch transforms the note's content AFTER the write
    into the content BEFORE it (going backwards in time), encoded as diff-match-patch
    patch text. The title is not patched; it holds the overwritten (pre-write) title.

    Ordering key is created_at; the auto-increment id breaks ties (insertion order).
    """

    __tablename__ = "note_changes"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    note_id: Mapped[int] = mapped_column(
        ForeignKey("notes.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Title before the write; None means the writer did not record a title
    title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    # Reverse patch new -> old; None when the write did not touch the content
    content_patch: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )

    __table_args__ = (
        Index("ix_note_changes_note_created", "note_id", "created_at", "id"),
    )
