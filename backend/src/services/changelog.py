"""Read access to the append-only change log of a task or note."""
import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.content_history import EntityType, NoteChange, TaskHistory
from services.exceptions import LogFetchFailedError

logger = logging.getLogger(__name__)


async def fetch_change_log(
    db: AsyncSession,
    entity_type: EntityType | str,
    entity_id: int,
) -> list[TaskHistory] | list[NoteChange]:
    """
    Fetch every change record for an entity in one bulk read.

    Records are ordered ascending by created_at, ties broken by insertion order (id).
    No pagination: reconstruction needs the full log.

    Args:
        db: Database session.
        entity_type: Type of entity.
        entity_id: ID of the entity.

    Returns:
        The entity's change records, oldest first.

    Raises:
        LogFetchFailedError: If the read fails.
    """
    entity_type_value = EntityType(entity_type)
    if entity_type_value == EntityType.TASK:
        stmt = (
            select(TaskHistory)
            .where(TaskHistory.task_id == entity_id)
            .order_by(TaskHistory.created_at.asc(), TaskHistory.id.asc())
        )
    else:
        stmt = (
            select(NoteChange)
            .where(NoteChange.note_id == entity_id)
            .order_by(NoteChange.created_at.asc(), NoteChange.id.asc())
        )

    try:
        result = await db.execute(stmt)
        return list(result.scalars().all())
    except SQLAlchemyError as e:
        logger.exception("Change log fetch failed for %s %s", entity_type_value, entity_id)
        raise LogFetchFailedError(entity_type_value, entity_id) from e
