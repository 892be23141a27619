"""Optimistic locking helpers for conflict detection on updates."""
from datetime import datetime
from typing import Any

from fastapi import HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from services.base_entity_service import BaseEntityService
from services.exceptions import StaleHeadError
from services.utils import to_utc


def conflict_detail(error: StaleHeadError, response_schema: type[BaseModel]) -> dict:
    """Build the 409 response body for a stale write, including current server state."""
    return {
        "error": "conflict",
        "message": str(error),
        "server_state": response_schema.model_validate(error.current).model_dump(mode="json"),
    }


async def check_optimistic_lock(
    db: AsyncSession,
    service: BaseEntityService[Any],
    entity_id: int,
    expected_updated_at: datetime | None,
    response_schema: type[BaseModel],
) -> None:
    """
    Check for conflicts before update. Raises HTTPException 409 if stale.

    Call this at the start of update endpoints when expected_updated_at is provided.
    If expected_updated_at is None, this is a no-op (backwards compatible).

    Args:
        db: Database session.
        service: Entity service with get_updated_at() method.
        entity_id: ID of the entity to check.
        expected_updated_at: Client's expected updated_at timestamp. If None, skip check.
        response_schema: Pydantic schema to serialize the current entity state.

    Raises:
        HTTPException: 404 if entity not found, 409 if entity was modified.
    """
    if expected_updated_at is None:
        return  # No optimistic locking requested

    current_updated_at = await service.get_updated_at(db, entity_id)
    if current_updated_at is None:
        raise HTTPException(status_code=404, detail="Entity not found")

    if to_utc(current_updated_at) > to_utc(expected_updated_at):
        # Entity was modified since client loaded it
        current_entity = await service.get(db, entity_id)
        if current_entity is None:
            # Race condition: entity was deleted between timestamp check and fetch
            raise HTTPException(status_code=404, detail="Entity not found")
        raise HTTPException(
            status_code=409,
            detail=conflict_detail(
                StaleHeadError(current_entity, to_utc(current_updated_at)), response_schema,
            ),
        )
