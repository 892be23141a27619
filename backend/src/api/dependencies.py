"""FastAPI dependencies for injection."""
from functools import lru_cache

from fastapi import Request

from core.config import get_settings
from db.session import get_async_session
from services.autosave import DebouncedAutosave
from services.history_service import HistoryService
from services.revert_service import RevertService


@lru_cache
def get_history_service() -> HistoryService:
    """Get the history service configured from settings."""
    settings = get_settings()
    return HistoryService(
        diff_display_limit=settings.diff_display_limit,
        diff_timeout=settings.diff_timeout,
    )


@lru_cache
def get_revert_service() -> RevertService:
    """Get the revert service sharing the configured history service."""
    return RevertService(get_history_service())


def get_autosave(request: Request) -> DebouncedAutosave:
    """Get the application's autosave registry (created in the app lifespan)."""
    return request.app.state.autosave


__all__ = [
    "get_async_session",
    "get_autosave",
    "get_history_service",
    "get_revert_service",
    "get_settings",
]
