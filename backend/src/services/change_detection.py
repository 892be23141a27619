"""Field-level change detection between two adjacent versions of an entity."""
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from models.content_history import EntityType
from services.utils import to_epoch_millis

if TYPE_CHECKING:
    from services.reconstruction import ReconstructedSnapshot


# Tracked fields per entity type, in display order
TRACKED_FIELDS: dict[EntityType, tuple[str, ...]] = {
    EntityType.TASK: (
        "title",
        "description",
        "start_date",
        "end_date",
        "is_all_day",
        "status",
        "group_id",
    ),
    EntityType.NOTE: ("title", "content"),
}

# Compared as instants, not as serialized strings
TIMESTAMP_FIELDS = frozenset({"start_date", "end_date"})

# Long free-text fields rendered as diffs rather than from/to values
TEXT_DIFF_FIELDS = frozenset({"description", "content"})


def _comparable(field: str, value: Any) -> Any:
    if field in TIMESTAMP_FIELDS:
        return to_epoch_millis(value)
    return value


def changed_fields(
    entity_type: EntityType,
    newer: Mapping[str, Any],
    older: Mapping[str, Any],
) -> set[str]:
    """
    Compute the tracked fields whose values differ between two field mappings.

    Timestamps are compared at millisecond precision, so `2025-01-01T10:00:00Z` and
    `2025-01-01T10:00:00.000+00:00` are the same value. A field missing from a
    mapping compares as None.

    Returns:
        Set of differing field names; empty when the versions are identical.
    """
    return {
        field
        for field in TRACKED_FIELDS[entity_type]
        if _comparable(field, newer.get(field)) != _comparable(field, older.get(field))
    }


def diff_fields(newer: "ReconstructedSnapshot", older: "ReconstructedSnapshot") -> set[str]:
    """Compute the set of changed fields between two reconstructed snapshots."""
    if newer.entity_type != older.entity_type:
        raise ValueError(
            f"Cannot compare a {newer.entity_type} snapshot with a {older.entity_type} snapshot",
        )
    return changed_fields(newer.entity_type, newer.fields, older.fields)


def in_display_order(entity_type: EntityType, fields: Iterable[str]) -> list[str]:
    """Sort field names into the entity type's declared display order."""
    wanted = set(fields)
    return [field for field in TRACKED_FIELDS[entity_type] if field in wanted]
