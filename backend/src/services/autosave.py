"""
Debounced autosave with an explicit cancel-and-flush contract.

An open editor holds at most one pending write per entity. Each new edit replaces
the pending write and restarts the timer; when the timer fires the write runs in
its own session. Opening history or reverting first calls flush(), which cancels
the timer and performs the pending write inside the caller's session, so the
edit is recorded as its own change before anything else happens. An explicit
save calls supersede() instead, which drops the pending write and waits for one
already running.
"""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.content_history import EntityType

logger = logging.getLogger(__name__)

SaveCallback = Callable[[AsyncSession], Awaitable[object]]
AutosaveKey = tuple[EntityType, int]


@dataclass
class _PendingSave:
    save: SaveCallback
    handle: asyncio.TimerHandle


class DebouncedAutosave:
    """Registry of pending debounced writes, one per (entity type, entity id)."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        delay: float = 2.0,
    ) -> None:
        """
        Initialize the registry.

        Args:
            session_factory: Creates sessions for writes fired by the timer.
            delay: Debounce delay in seconds.
        """
        self.session_factory = session_factory
        self.delay = delay
        self._pending: dict[AutosaveKey, _PendingSave] = {}
        self._in_flight: dict[AutosaveKey, asyncio.Task] = {}

    @staticmethod
    def _key(entity_type: EntityType | str, entity_id: int) -> AutosaveKey:
        return EntityType(entity_type), entity_id

    def schedule(
        self,
        entity_type: EntityType | str,
        entity_id: int,
        save: SaveCallback,
    ) -> None:
        """Replace any pending write for the entity and restart its timer."""
        key = self._key(entity_type, entity_id)
        self.cancel(entity_type, entity_id)
        handle = asyncio.get_running_loop().call_later(self.delay, self._fire, key)
        self._pending[key] = _PendingSave(save=save, handle=handle)

    @property
    def pending_count(self) -> int:
        """Number of writes waiting on their timer, across all entities."""
        return len(self._pending)

    def has_pending(self, entity_type: EntityType | str, entity_id: int) -> bool:
        """Whether a write is waiting on its timer for the entity."""
        return self._key(entity_type, entity_id) in self._pending

    def cancel(self, entity_type: EntityType | str, entity_id: int) -> bool:
        """
        Discard the pending write for the entity without performing it.

        Returns:
            True if a pending write was discarded.
        """
        pending = self._pending.pop(self._key(entity_type, entity_id), None)
        if pending is None:
            return False
        pending.handle.cancel()
        return True

    async def supersede(self, entity_type: EntityType | str, entity_id: int) -> bool:
        """
        Discard the pending write and wait for any timer-fired write still running.

        Used before an explicit save, so no autosave for the entity can land after it.

        Returns:
            True if a pending write was discarded.
        """
        discarded = self.cancel(entity_type, entity_id)
        in_flight = self._in_flight.get(self._key(entity_type, entity_id))
        if in_flight is not None:
            await asyncio.shield(in_flight)
        return discarded

    async def flush(
        self,
        entity_type: EntityType | str,
        entity_id: int,
        db: AsyncSession,
    ) -> bool:
        """
        Cancel the timer and perform the pending write now, in the caller's session.

        Also waits for a timer-fired write that is still running, so no autosave for
        the entity can land after this returns. If the write raises, it is put back
        on its timer and the error propagates.

        Returns:
            True if a pending write was performed here.
        """
        key = self._key(entity_type, entity_id)
        in_flight = self._in_flight.get(key)
        if in_flight is not None:
            await asyncio.shield(in_flight)

        pending = self._pending.pop(key, None)
        if pending is None:
            return False
        pending.handle.cancel()
        try:
            await pending.save(db)
        except Exception:
            self._restore(key, pending.save)
            raise
        logger.info("Flushed pending autosave for %s %s", key[0], key[1])
        return True

    def _restore(self, key: AutosaveKey, save: SaveCallback) -> None:
        # A newer edit scheduled meanwhile wins
        if key in self._pending:
            return
        handle = asyncio.get_running_loop().call_later(self.delay, self._fire, key)
        self._pending[key] = _PendingSave(save=save, handle=handle)
        logger.warning("Flush failed; autosave for %s %s is pending again", key[0], key[1])

    def _fire(self, key: AutosaveKey) -> None:
        pending = self._pending.pop(key, None)
        if pending is None:
            return
        task = asyncio.create_task(self._save_in_own_session(key, pending.save))
        self._in_flight[key] = task
        task.add_done_callback(lambda done: self._clear_in_flight(key, done))

    def _clear_in_flight(self, key: AutosaveKey, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    async def _save_in_own_session(self, key: AutosaveKey, save: SaveCallback) -> None:
        async with self.session_factory() as db:
            try:
                await save(db)
                await db.commit()
            except Exception:
                await db.rollback()
                # Nobody awaits a timer-fired write; the log is the only place to report it
                logger.exception("Autosave failed for %s %s", key[0], key[1])

    async def aclose(self) -> None:
        """Discard all pending writes and wait for running ones to finish."""
        for pending in self._pending.values():
            pending.handle.cancel()
        self._pending.clear()
        if self._in_flight:
            await asyncio.gather(*self._in_flight.values(), return_exceptions=True)
