"""Service layer for reverting a task or note to a past version."""
import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.content_history import EntityType
from models.note import Note
from models.task import Task
from services.autosave import DebouncedAutosave
from services.exceptions import (
    EntityNotFoundError,
    InvalidVersionError,
    RevertConflictError,
    RevertWriteFailedError,
    VersionNotFoundError,
)
from services.history_service import HistoryService
from services.reconstruction import ReconstructedSnapshot
from services.utils import to_utc

logger = logging.getLogger(__name__)


class RevertService:
    """
    Revert copies a past version forward as a new head write.

    Nothing is rewound: change records newer than the target stay in place and the
    revert itself appends one more record, so it can be inspected and reverted too.
    """

    def __init__(self, history: HistoryService) -> None:
        self.history = history

    async def revert(
        self,
        db: AsyncSession,
        entity_type: EntityType | str,
        entity_id: int,
        index: int,
        expected_updated_at: datetime | None = None,
        autosave: DebouncedAutosave | None = None,
    ) -> Task | Note:
        """
        Revert an entity to the version at `index` of its reconstructed history.

        The history is rebuilt from the current head, so the index refers to the
        same list a fresh history view would show.

        Args:
            db: Database session.
            entity_type: Type of entity.
            entity_id: ID of the entity.
            index: Version index (1 = the version before current).
            expected_updated_at: head_updated_at from the history view the caller
                picked the version from. If None, no staleness check is made.
            autosave: Autosave registry to flush before writing, if any.

        Returns:
            The updated entity head.

        Raises:
            EntityNotFoundError: If the entity does not exist.
            LogFetchFailedError: If the head or log cannot be read.
            InvalidVersionError: If index is 0 (already the current version).
            VersionNotFoundError: If index is outside the history.
            RevertConflictError: If the head changed after expected_updated_at.
            RevertWriteFailedError: If the head update is rejected. Any autosave flushed
                before the write is still in the session.)
        """
        _, result = await self.history.reconstruct(db, entity_type, entity_id)
        if index == 0:
            raise InvalidVersionError("Cannot revert to the current version")
        if index < 0 or index >= len(result.snapshots):
            raise VersionNotFoundError(index, len(result.snapshots))

        return await self.revert_to_snapshot(
            db,
            entity_id,
            result.snapshots[index],
            expected_updated_at=expected_updated_at,
            autosave=autosave,
        )

    async def revert_to_snapshot(
        self,
        db: AsyncSession,
        entity_id: int,
        target: ReconstructedSnapshot,
        expected_updated_at: datetime | None = None,
        autosave: DebouncedAutosave | None = None,
    ) -> Task | Note:
        """
        Write a reconstructed snapshot's fields as the new head.

        Order matters: the head is re-validated first, then any pending autosave is
        flushed as its own change, then the snapshot is written on top of it.
        """
        entity_type = target.entity_type
        service = self.history.service_for(entity_type)

        current_updated_at = await service.get_updated_at(db, entity_id)
        if current_updated_at is None:
            raise EntityNotFoundError(entity_type, entity_id)
        if (
            expected_updated_at is not None
            and to_utc(current_updated_at) > to_utc(expected_updated_at)
        ):
            current = await service.get(db, entity_id)
            if current is None:
                # Race condition: entity was deleted between timestamp check and fetch
                raise EntityNotFoundError(entity_type, entity_id)
            raise RevertConflictError(current, to_utc(current_updated_at))

        # Each step gets its own savepoint, so a rejected revert write leaves the
        # flushed autosave in the transaction for the caller to commit
        try:
            if autosave is not None:
                async with db.begin_nested():
                    await autosave.flush(entity_type, entity_id, db)
            async with db.begin_nested():
                entity = await service.update_fields(db, entity_id, dict(target.fields))
        except SQLAlchemyError as e:
            logger.exception("Revert write failed for %s %s", entity_type, entity_id)
            raise RevertWriteFailedError(entity_type, entity_id) from e

        if entity is None:
            raise EntityNotFoundError(entity_type, entity_id)

        logger.info(
            "Reverted %s %s to version %d (%s)",
            entity_type,
            entity_id,
            target.number,
            target.label,
        )
        return entity
