"""
Replay of an entity's change log into an ordered list of full past versions.

Two storage strategies share one replay loop:

- SnapshotStrategy (tasks): every change record is already a full copy of the
  task's fields as they were before the write.
- PatchStrategy (notes): every change record holds the overwritten title and a
  reverse patch that turns the post-write content into the pre-write content.

Both walk the log newest to oldest starting from the entity head, coalescing
records whose replay produces no observable difference from the version
emitted before them.
"""
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from models.content_history import EntityType, NoteChange, TaskHistory
from models.note import Note
from models.task import Task
from services.change_detection import changed_fields
from services.exceptions import PatchApplyError
from services.patch_codec import PatchCodec
from services.utils import to_utc

logger = logging.getLogger(__name__)


class VersionLabel(StrEnum):
    """Position of a version in the reconstructed history."""

    CURRENT = "current"
    PREVIOUS = "previous"
    CREATED = "created"


@dataclass(frozen=True)
class ReconstructedSnapshot:
    """One full historical state of an entity. Built per request, never persisted."""

    entity_type: EntityType
    index: int  # 0 = current head, increasing towards creation
    number: int  # 1 = creation, counting up to the current head
    label: VersionLabel
    timestamp: datetime  # When this version took effect
    fields: dict[str, Any]


@dataclass
class ReconstructionResult:
    """Ordered versions newest to oldest, plus warnings for degraded steps."""

    snapshots: list[ReconstructedSnapshot]
    warnings: list[str] = field(default_factory=list)

    @property
    def current(self) -> ReconstructedSnapshot:
        """The head version."""
        return self.snapshots[0]

    @property
    def created(self) -> ReconstructedSnapshot:
        """The version at creation."""
        return self.snapshots[-1]


def _log_order_key(record: TaskHistory | NoteChange) -> tuple[datetime, int]:
    """Ordering key for change records: created_at, ties broken by insertion order."""
    return to_utc(record.created_at), record.id


class ReconstructionStrategy(ABC):
    """How one entity type's change records are turned back into full versions."""

    entity_type: EntityType

    @abstractmethod
    def head_fields(self, head: Any) -> dict[str, Any]:
        """Extract the tracked fields of the entity head."""
        ...

    @abstractmethod
    def replay(
        self,
        head_fields: dict[str, Any],
        records: Sequence[Any],
        warnings: list[str],
    ) -> Iterator[tuple[dict[str, Any], datetime]]:
        """
        Walk records newest to oldest, yielding the version each record restores.

        Args:
            head_fields: Tracked fields of the entity head.
            records: Change records sorted newest first.
            warnings: Collector for degraded steps; the strategy appends here
                instead of raising.

        Yields:
            Tuples of (fields as of before the record's write, record timestamp).
        """
        ...

    def reconstruct(self, head: Any, records: Sequence[Any]) -> ReconstructionResult:
        """
        Rebuild the ordered history of an entity.

        Args:
            head: The entity's current state.
            records: The entity's change log, in any order. Sorted here ascending by
                (created_at, id) and replayed from the newest end.

        Returns:
            ReconstructionResult whose first snapshot equals the head and whose last
            snapshot is the state at creation. Records that change nothing relative
            to the previously emitted version are not emitted.
        """
        ordered = sorted(records, key=_log_order_key)
        ordered.reverse()

        warnings: list[str] = []
        current = self.head_fields(head)
        # (fields, time the version was superseded); the head is never superseded
        versions: list[tuple[dict[str, Any], datetime | None]] = [(current, None)]

        for fields, superseded_at in self.replay(current, ordered, warnings):
            if changed_fields(self.entity_type, fields, versions[-1][0]):
                versions.append((fields, superseded_at))

        # A version took effect when the next-older emitted version was superseded;
        # the oldest took effect when the entity was created.
        effective = [superseded_at for _, superseded_at in versions[1:]]
        effective.append(to_utc(head.created_at))

        total = len(versions)
        snapshots = []
        for index, ((fields, _), timestamp) in enumerate(zip(versions, effective, strict=True)):
            if index == 0:
                label = VersionLabel.CURRENT
            elif index == total - 1:
                label = VersionLabel.CREATED
            else:
                label = VersionLabel.PREVIOUS
            snapshots.append(
                ReconstructedSnapshot(
                    entity_type=self.entity_type,
                    index=index,
                    number=total - index,
                    label=label,
                    timestamp=timestamp,
                    fields=fields,
                ),
            )
        return ReconstructionResult(snapshots=snapshots, warnings=warnings)


def _task_fields(source: Task | TaskHistory) -> dict[str, Any]:
    """Tracked task fields from a task head or a task history row (same attribute names)."""
    return {
        "title": source.title or "",
        "description": source.description or "",
        "start_date": to_utc(source.start_date) if source.start_date else None,
        "end_date": to_utc(source.end_date) if source.end_date else None,
        "is_all_day": bool(source.is_all_day),
        "status": bool(source.status),
        "group_id": source.group_id,
    }


class SnapshotStrategy(ReconstructionStrategy):
    """Tasks: each change record is a full snapshot; no patching involved."""

    entity_type = EntityType.TASK

    def head_fields(self, head: Task) -> dict[str, Any]:
        """Extract the tracked fields of a task."""
        return _task_fields(head)

    def replay(
        self,
        head_fields: dict[str, Any],  # noqa: ARG002
        records: Sequence[TaskHistory],
        warnings: list[str],  # noqa: ARG002
    ) -> Iterator[tuple[dict[str, Any], datetime]]:
        """Yield each record's snapshot as-is."""
        for record in records:
            yield _task_fields(record), to_utc(record.created_at)


class PatchStrategy(ReconstructionStrategy):
    """Notes: content is rebuilt by applying reverse patches; title is overwritten."""

    entity_type = EntityType.NOTE

    def __init__(self, codec: PatchCodec | None = None) -> None:
        self.codec = codec or PatchCodec()

    def head_fields(self, head: Note) -> dict[str, Any]:
        """Extract the tracked fields of a note."""
        return {"title": head.title or "", "content": head.content or ""}

    def replay(
        self,
        head_fields: dict[str, Any],
        records: Sequence[NoteChange],
        warnings: list[str],
    ) -> Iterator[tuple[dict[str, Any], datetime]]:
        """
        Carry a running (title, content) pair backwards through the log.

        A patch that fails to decode or apply leaves the running content untouched,
        so that step shows no content change and later (older) steps still replay
        against the last good content.
        """
        title = head_fields["title"]
        content = head_fields["content"]

        for record in records:
            if record.content_patch:
                try:
                    content = self.codec.apply(record.content_patch, content)
                except PatchApplyError as e:
                    warnings.append(f"Unreadable content change {record.id}: {e}")
                    logger.warning(
                        "Skipping content patch for note %s change %s: %s",
                        record.note_id,
                        record.id,
                        e,
                    )
            if record.title is not None:
                title = record.title
            yield {"title": title, "content": content}, to_utc(record.created_at)


def strategy_for(
    entity_type: EntityType | str,
    codec: PatchCodec | None = None,
) -> ReconstructionStrategy:
    """Get the reconstruction strategy for an entity type."""
    entity_type_value = EntityType(entity_type)
    if entity_type_value == EntityType.TASK:
        return SnapshotStrategy()
    return PatchStrategy(codec)
