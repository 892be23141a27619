"""Note model for storing user notes with markdown content."""
from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, TimestampMixin


class Note(Base, TimestampMixin):
    """Note model - stores user notes with markdown content."""

    __tablename__ = "notes"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)  # Required
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")  # Markdown
