"""Service layer for note operations."""
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from models.content_history import EntityType, NoteChange
from models.note import Note
from schemas.note import NoteCreate, NoteUpdate
from services.base_entity_service import BaseEntityService
from services.patch_codec import PatchCodec


class NoteService(BaseEntityService[Note]):
    """
    Note service.

    Note history is incremental: each update appends a NoteChange holding the
    pre-write title and a reverse patch from the new content to the old content.
    """

    model = Note
    entity_type = EntityType.NOTE
    required_fields = frozenset({"title", "content"})

    def __init__(self, codec: PatchCodec | None = None) -> None:
        self.codec = codec or PatchCodec()

    def _build_change_record(
        self,
        entity: Note,
        new_values: dict[str, Any],
        written_at: datetime,
    ) -> NoteChange:
        """Record the overwritten title and the patch back to the old content."""
        old_content = entity.content or ""
        new_content = new_values.get("content", old_content)
        return NoteChange(
            note_id=entity.id,
            title=entity.title,
            content_patch=self.codec.make_reverse_patch(new_content, old_content),
            created_at=written_at,
        )

    async def create(self, db: AsyncSession, data: NoteCreate) -> Note:
        """
        Create a new note.

        Creation writes no change record; the first update records the initial state.
        """
        note = Note(title=data.title, content=data.content)
        db.add(note)
        await db.flush()
        await db.refresh(note)
        return note

    async def update(
        self,
        db: AsyncSession,
        note_id: int,
        data: NoteUpdate,
    ) -> Note | None:
        """
        Update a note.

        Args:
            db: Database session.
            note_id: ID of the note to update.
            data: Update data; null fields are left unchanged.

        Returns:
            The updated note, or None if not found.
        """
        values = data.model_dump(exclude_unset=True, exclude={"expected_updated_at"})
        return await self.update_fields(db, note_id, values)


note_service = NoteService()
