"""Shared exceptions for history and revert operations."""
from datetime import datetime


class EntityNotFoundError(Exception):
    """Raised when a task or note does not exist."""

    def __init__(self, entity_type: str, entity_id: int) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type.capitalize()} not found: {entity_id}")


class LogFetchFailedError(Exception):
    """
    Raised when the bulk change-log read for an entity fails.

    Reconstruction is not attempted; callers surface this as "history unavailable".
    """

    def __init__(self, entity_type: str, entity_id: int) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"History unavailable for {entity_type} {entity_id}")


class PatchApplyError(Exception):
    """
    Raised when a note content patch cannot be decoded or does not apply cleanly.

    Never escapes reconstruction: the step is treated as unchanged and logged.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)


class InvalidVersionError(Exception):
    """Raised when a revert targets a version that cannot be reverted to."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class VersionNotFoundError(InvalidVersionError):
    """Raised when a version index is outside the reconstructed history."""

    def __init__(self, index: int, total: int) -> None:
        self.index = index
        self.total = total
        super().__init__(f"Version {index} not found (history has {total} versions)")


class StaleHeadError(Exception):
    """
    Raised when an entity was modified after the caller last loaded it.

    Carries the current head so the caller can show the newer state.
    """

    def __init__(self, current: object, current_updated_at: datetime) -> None:
        self.current = current
        self.current_updated_at = current_updated_at
        super().__init__("This item was modified since you loaded it")


class RevertConflictError(StaleHeadError):
    """Raised when the head changed between loading history and invoking revert."""


class RevertWriteFailedError(Exception):
    """Raised when the head update performed by a revert is rejected by storage."""

    def __init__(self, entity_type: str, entity_id: int) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"Revert of {entity_type} {entity_id} could not be saved")
