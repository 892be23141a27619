"""Pydantic schemas for history endpoints."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from models.content_history import EntityType
from schemas.note import NoteResponse
from schemas.task import TaskResponse
from services.diff_renderer import DiffKind
from services.reconstruction import VersionLabel


class DiffRunResponse(BaseModel):
    """Schema for one run of a rendered text diff."""

    kind: DiffKind
    text: str
    omitted: int = 0  # Characters cut by truncation (0 if the run is complete)


class FieldChangeResponse(BaseModel):
    """Schema for one changed field between a version and the version before it."""

    field: str
    before: Any
    after: Any
    diff: list[DiffRunResponse] | None = None  # Only for long text fields


class VersionResponse(BaseModel):
    """Schema for one reconstructed version."""

    index: int  # 0 = current; pass this to the revert endpoint
    number: int  # 1 = creation
    label: VersionLabel
    timestamp: datetime
    fields: dict[str, Any]
    changed_fields: list[str] | None  # None for the creation version
    changes: list[FieldChangeResponse]


class HistoryResponse(BaseModel):
    """Schema for an entity's reconstructed history, newest first."""

    entity_type: EntityType
    entity_id: int
    head_updated_at: datetime  # Send back as expected_updated_at when reverting
    versions: list[VersionResponse]
    warnings: list[str] | None = None  # Reconstruction warnings if any records were unreadable


class RevertRequest(BaseModel):
    """Schema for a revert request body."""

    expected_updated_at: datetime | None = Field(
        default=None,
        description="The head_updated_at the client saw when loading history. If the entity "
                    "was modified after this timestamp, returns 409 Conflict.",
    )


class RevertResponse(BaseModel):
    """Schema for revert operation response."""

    message: str
    index: int  # Version index that was reverted to
    entity: TaskResponse | NoteResponse
