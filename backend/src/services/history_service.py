"""Service layer for building the version history view of tasks and notes."""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.content_history import EntityType
from models.note import Note
from models.task import Task
from services.autosave import DebouncedAutosave
from services.base_entity_service import BaseEntityService
from services.change_detection import TEXT_DIFF_FIELDS, diff_fields, in_display_order
from services.changelog import fetch_change_log
from services.diff_renderer import DEFAULT_DISPLAY_LIMIT, DiffRenderer, DiffRun
from services.exceptions import EntityNotFoundError, LogFetchFailedError
from services.note_service import note_service
from services.patch_codec import PatchCodec
from services.reconstruction import ReconstructedSnapshot, ReconstructionResult, strategy_for
from services.task_service import task_service
from services.utils import to_utc

logger = logging.getLogger(__name__)


@dataclass
class FieldChange:
    """How one field differs between a version and the version before it."""

    field: str
    before: Any
    after: Any
    diff: list[DiffRun] | None = None  # Rendered for long text fields only


@dataclass
class VersionView:
    """A reconstructed version plus what changed relative to the next-older version."""

    snapshot: ReconstructedSnapshot
    changed_fields: list[str] | None  # None for the creation version (nothing older)
    changes: list[FieldChange] = field(default_factory=list)


@dataclass
class HistoryView:
    """Display payload for an entity's history, newest version first."""

    entity_type: EntityType
    entity_id: int
    head_updated_at: datetime
    versions: list[VersionView]
    warnings: list[str] = field(default_factory=list)


class HistoryService:
    """Service for reconstructing and presenting entity history."""

    def __init__(
        self,
        diff_display_limit: int = DEFAULT_DISPLAY_LIMIT,
        diff_timeout: float = 0.0,
    ) -> None:
        """
        Initialize the history service.

        Args:
            diff_display_limit: Maximum rendered length of a single diff run.
            diff_timeout: Differ time budget in seconds; 0 keeps output deterministic.
        """
        self.codec = PatchCodec(diff_timeout=diff_timeout)
        self.renderer = DiffRenderer(display_limit=diff_display_limit, diff_timeout=diff_timeout)

    @staticmethod
    def service_for(entity_type: EntityType | str) -> BaseEntityService[Any]:
        """Get the entity service that owns the head for an entity type."""
        services: dict[EntityType, BaseEntityService[Any]] = {
            EntityType.TASK: task_service,
            EntityType.NOTE: note_service,
        }
        return services[EntityType(entity_type)]

    async def get_head(
        self,
        db: AsyncSession,
        entity_type: EntityType | str,
        entity_id: int,
    ) -> Task | Note:
        """
        Read the current head of an entity.

        Raises:
            EntityNotFoundError: If the entity does not exist.
            LogFetchFailedError: If the read fails.
        """
        entity_type_value = EntityType(entity_type)
        try:
            entity = await self.service_for(entity_type_value).get(db, entity_id)
        except SQLAlchemyError as e:
            logger.exception("Head fetch failed for %s %s", entity_type_value, entity_id)
            raise LogFetchFailedError(entity_type_value, entity_id) from e
        if entity is None:
            raise EntityNotFoundError(entity_type_value, entity_id)
        return entity

    async def reconstruct(
        self,
        db: AsyncSession,
        entity_type: EntityType | str,
        entity_id: int,
    ) -> tuple[Task | Note, ReconstructionResult]:
        """
        Load the head and full change log, then replay them into past versions.

        The log is read once, in bulk, before any replay starts; everything after
        that is in memory.

        Returns:
            Tuple of (entity head, reconstruction result).

        Raises:
            EntityNotFoundError: If the entity does not exist.
            LogFetchFailedError: If the head or log read fails.
        """
        head = await self.get_head(db, entity_type, entity_id)
        records = await fetch_change_log(db, entity_type, entity_id)
        result = strategy_for(entity_type, self.codec).reconstruct(head, records)
        if result.warnings:
            logger.warning(
                "History for %s %s reconstructed with %d unreadable records",
                EntityType(entity_type),
                entity_id,
                len(result.warnings),
            )
        return head, result

    def describe_changes(
        self,
        newer: ReconstructedSnapshot,
        older: ReconstructedSnapshot,
    ) -> list[FieldChange]:
        """Describe each changed field between two adjacent versions, in display order."""
        changes = []
        for name in in_display_order(newer.entity_type, diff_fields(newer, older)):
            before = older.fields.get(name)
            after = newer.fields.get(name)
            rendered = None
            if name in TEXT_DIFF_FIELDS:
                rendered = self.renderer.render(before or "", after or "")
            changes.append(FieldChange(field=name, before=before, after=after, diff=rendered))
        return changes

    async def get_history(
        self,
        db: AsyncSession,
        entity_type: EntityType | str,
        entity_id: int,
        autosave: DebouncedAutosave | None = None,
    ) -> HistoryView:
        """
        Build the history view for an entity.

        Any pending autosave for the entity is flushed first, so the view includes
        the edit that was waiting on its timer.

        Args:
            db: Database session.
            entity_type: Type of entity.
            entity_id: ID of the entity.
            autosave: Autosave registry to flush, if any.

        Returns:
            HistoryView with versions newest first. The current version is index 0
            and the creation version is last.
        """
        if autosave is not None:
            await autosave.flush(entity_type, entity_id, db)

        # A failed read rolls back only this savepoint, not the flushed edit
        async with db.begin_nested():
            head, result = await self.reconstruct(db, entity_type, entity_id)
        snapshots = result.snapshots

        versions = []
        for position, snapshot in enumerate(snapshots):
            if position == len(snapshots) - 1:
                versions.append(VersionView(snapshot=snapshot, changed_fields=None))
                continue
            older = snapshots[position + 1]
            changes = self.describe_changes(snapshot, older)
            versions.append(
                VersionView(
                    snapshot=snapshot,
                    changed_fields=[change.field for change in changes],
                    changes=changes,
                ),
            )

        return HistoryView(
            entity_type=EntityType(entity_type),
            entity_id=entity_id,
            head_updated_at=to_utc(head.updated_at),
            versions=versions,
            warnings=result.warnings,
        )
