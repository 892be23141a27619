"""Pydantic schemas for note endpoints."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class NoteCreate(BaseModel):
    """Schema for creating a new note."""

    title: str  # Required for notes
    content: str = ""  # Markdown content

    @field_validator("title")
    @classmethod
    def check_title_not_empty(cls, v: str) -> str:
        """Validate title is not empty."""
        if not v or not v.strip():
            raise ValueError("Title cannot be empty")
        return v


class NoteUpdate(BaseModel):
    """Schema for updating an existing note. Null fields are left unchanged."""

    title: str | None = None
    content: str | None = None
    expected_updated_at: datetime | None = Field(
        default=None,
        description="For optimistic locking. If provided and the note was modified after "
                    "this timestamp, returns 409 Conflict with current server state.",
    )

    @field_validator("title")
    @classmethod
    def check_title_not_empty(cls, v: str | None) -> str | None:
        """Validate title is not empty if provided."""
        if v is not None and not v.strip():
            raise ValueError("Title cannot be empty")
        return v


class NoteResponse(BaseModel):
    """Schema for note responses."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    content: str
    created_at: datetime
    updated_at: datetime
