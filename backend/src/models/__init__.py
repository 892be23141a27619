"""SQLAlchemy models."""
from models.base import Base, TimestampMixin
from models.content_history import EntityType, NoteChange, TaskHistory
from models.note import Note
from models.task import Task

__all__ = [
    "Base",
    "EntityType",
    "Note",
    "NoteChange",
    "Task",
    "TaskHistory",
    "TimestampMixin",
]
