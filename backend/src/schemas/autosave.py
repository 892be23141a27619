"""Pydantic schemas for debounced editor saves."""
from pydantic import BaseModel


class AutosaveScheduledResponse(BaseModel):
    """Response for a scheduled (debounced) save."""

    entity_id: int
    delay: float  # Seconds until the write fires unless flushed or replaced
