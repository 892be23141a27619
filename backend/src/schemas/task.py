"""Pydantic schemas for task endpoints."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class TaskCreate(BaseModel):
    """Schema for creating a new task."""

    title: str
    description: str = ""
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_all_day: bool = False
    status: bool = False
    group_id: str | None = None

    @field_validator("title")
    @classmethod
    def check_title_not_empty(cls, v: str) -> str:
        """Validate title is not empty."""
        if not v or not v.strip():
            raise ValueError("Title cannot be empty")
        return v

    @model_validator(mode="after")
    def check_date_range(self) -> "TaskCreate":
        """Validate the task does not end before it starts."""
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        return self


class TaskUpdate(BaseModel):
    """
    Schema for updating an existing task.

    Only fields that are explicitly set are written. Setting start_date or end_date
    to null clears it; title and description ignore null.
    """

    title: str | None = None
    description: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_all_day: bool | None = None
    status: bool | None = None
    group_id: str | None = None
    expected_updated_at: datetime | None = Field(
        default=None,
        description="For optimistic locking. If provided and the task was modified after "
                    "this timestamp, returns 409 Conflict with current server state.",
    )

    @field_validator("title")
    @classmethod
    def check_title_not_empty(cls, v: str | None) -> str | None:
        """Validate title is not empty if provided."""
        if v is not None and not v.strip():
            raise ValueError("Title cannot be empty")
        return v

    @model_validator(mode="after")
    def check_date_range(self) -> "TaskUpdate":
        """Validate the task does not end before it starts, when both dates are sent."""
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        return self


class TaskResponse(BaseModel):
    """Schema for task responses."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    start_date: datetime | None
    end_date: datetime | None
    is_all_day: bool
    status: bool
    group_id: str | None
    created_at: datetime
    updated_at: datetime
