"""
Base service class for entity head reads and writes.

Provides shared logic for Task and Note. Every update goes through update_fields(),
which appends exactly one change record describing the state before the write;
entity-specific record layout is defined by _build_change_record().
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Generic, Protocol, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.base import Base, utc_now
from models.content_history import EntityType

logger = logging.getLogger(__name__)


class VersionedEntity(Protocol):
    """Protocol for entities whose head writes are recorded in a change log."""

    id: int
    created_at: datetime
    updated_at: datetime


T = TypeVar("T", bound=VersionedEntity)


class BaseEntityService(ABC, Generic[T]):
    """
    Abstract base class for versioned entity operations.

    Subclasses must define:
    - model: The SQLAlchemy model class
    - entity_type: The EntityType used to key history and autosave

    Subclasses must implement:
    - create(): Entity-specific construction
    - _build_change_record(): The change record for a pending write
    """

    model: type[T]
    entity_type: EntityType

    # Fields where None in an update means "leave unchanged" (non-nullable columns)
    required_fields: frozenset[str] = frozenset()

    @abstractmethod
    def _build_change_record(
        self,
        entity: T,
        new_values: dict[str, Any],
        written_at: datetime,
    ) -> Base:
        """
        Build the change record appended by a write.

        Args:
            entity: The entity head before the write is applied.
            new_values: Field values about to be written.
            written_at: Timestamp shared by the record and the new head.

        Returns:
            Unsaved change record capturing the pre-write state.
        """
        ...

    async def get(self, db: AsyncSession, entity_id: int) -> T | None:
        """Get an entity by ID, or None if it does not exist."""
        result = await db.execute(select(self.model).where(self.model.id == entity_id))
        return result.scalar_one_or_none()

    async def get_updated_at(self, db: AsyncSession, entity_id: int) -> datetime | None:
        """
        Get just the updated_at timestamp for an entity.

        Lightweight query for optimistic lock checks.
        """
        result = await db.execute(
            select(self.model.updated_at).where(self.model.id == entity_id),
        )
        return result.scalar_one_or_none()

    async def update_fields(
        self,
        db: AsyncSession,
        entity_id: int,
        values: dict[str, Any],
    ) -> T | None:
        """
        Write new field values to the entity head and append one change record.

        This is the single write path for user edits, autosaves and reverts, so every
        head change is auditable the same way.

        Args:
            db: Database session.
            entity_id: ID of the entity to update.
            values: Field values to write. None for a required field is ignored.

        Returns:
            The updated entity, or None if not found.
        """
        entity = await self.get(db, entity_id)
        if entity is None:
            return None

        new_values = {
            field: value
            for field, value in values.items()
            if not (value is None and field in self.required_fields)
        }

        written_at = utc_now()
        db.add(self._build_change_record(entity, new_values, written_at))

        for field, value in new_values.items():
            setattr(entity, field, value)
        entity.updated_at = written_at

        await db.flush()
        await db.refresh(entity)
        logger.debug(
            "Updated %s %s fields=%s", self.entity_type, entity_id, sorted(new_values),
        )
        return entity
