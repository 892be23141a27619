"""History API endpoints for viewing and reverting task and note versions."""
from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import (
    get_async_session,
    get_autosave,
    get_history_service,
    get_revert_service,
)
from api.helpers import conflict_detail
from models.content_history import EntityType
from schemas.history import (
    DiffRunResponse,
    FieldChangeResponse,
    HistoryResponse,
    RevertRequest,
    RevertResponse,
    VersionResponse,
)
from schemas.note import NoteResponse
from schemas.task import TaskResponse
from services.autosave import DebouncedAutosave
from services.exceptions import (
    EntityNotFoundError,
    InvalidVersionError,
    LogFetchFailedError,
    RevertConflictError,
    RevertWriteFailedError,
    VersionNotFoundError,
)
from services.history_service import HistoryService, VersionView
from services.revert_service import RevertService

router = APIRouter(prefix="/history", tags=["history"])


def _response_schema_for(entity_type: EntityType) -> type[TaskResponse] | type[NoteResponse]:
    """Get the response schema used to serialize an entity head."""
    if entity_type == EntityType.TASK:
        return TaskResponse
    return NoteResponse


def _version_response(view: VersionView) -> VersionResponse:
    snapshot = view.snapshot
    return VersionResponse(
        index=snapshot.index,
        number=snapshot.number,
        label=snapshot.label,
        timestamp=snapshot.timestamp,
        fields=dict(snapshot.fields),
        changed_fields=view.changed_fields,
        changes=[
            FieldChangeResponse(
                field=change.field,
                before=change.before,
                after=change.after,
                diff=(
                    [
                        DiffRunResponse(kind=run.kind, text=run.text, omitted=run.omitted)
                        for run in change.diff
                    ]
                    if change.diff is not None
                    else None
                ),
            )
            for change in view.changes
        ],
    )


@router.get("/{entity_type}/{entity_id}", response_model=HistoryResponse)
async def get_entity_history(
    entity_type: EntityType,
    entity_id: int,
    db: AsyncSession = Depends(get_async_session),
    history_service: HistoryService = Depends(get_history_service),
    autosave: DebouncedAutosave = Depends(get_autosave),
) -> HistoryResponse:
    """
    Get the reconstructed version history for a task or note.

    Versions are newest first: index 0 is the current version and the last entry is
    the creation version. Each version lists the fields that differ from the version
    before it, with rendered diffs for long text fields.

    A pending autosave for the entity is flushed before the history is built.

    Returns:
    - 200 with the history
    - 404 if the entity does not exist
    - 503 if the change log could not be read
    """
    try:
        view = await history_service.get_history(db, entity_type, entity_id, autosave=autosave)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail=f"{entity_type.capitalize()} not found")
    except LogFetchFailedError:
        # Keep the autosave that was flushed before the read failed
        await db.commit()
        raise HTTPException(status_code=503, detail="History unavailable")

    return HistoryResponse(
        entity_type=view.entity_type,
        entity_id=view.entity_id,
        head_updated_at=view.head_updated_at,
        versions=[_version_response(version) for version in view.versions],
        warnings=view.warnings or None,
    )


@router.post(
    "/{entity_type}/{entity_id}/revert/{index}",
    response_model=RevertResponse,
)
async def revert_to_version(
    entity_type: EntityType,
    entity_id: int,
    index: int = Path(..., description="Version index from the history view (0 = current)"),
    data: RevertRequest | None = None,
    db: AsyncSession = Depends(get_async_session),
    revert_service: RevertService = Depends(get_revert_service),
    autosave: DebouncedAutosave = Depends(get_autosave),
) -> RevertResponse:
    """
    Revert a task or note to a previous version.

    The chosen version's fields are written as a new head, which appends a change
    record of its own. Earlier change records are never removed.

    Returns:
    - 200 with the new head
    - 400 if index is 0 (the current version)
    - 404 if the entity or version does not exist
    - 409 if the entity changed after expected_updated_at
    - 503 if the change log could not be read or the write was rejected
    """
    response_schema = _response_schema_for(entity_type)
    expected_updated_at = data.expected_updated_at if data is not None else None

    try:
        entity = await revert_service.revert(
            db,
            entity_type,
            entity_id,
            index,
            expected_updated_at=expected_updated_at,
            autosave=autosave,
        )
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail=f"{entity_type.capitalize()} not found")
    except LogFetchFailedError:
        raise HTTPException(status_code=503, detail="History unavailable")
    except VersionNotFoundError:
        raise HTTPException(status_code=404, detail="Version not found")
    except InvalidVersionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RevertConflictError as e:
        raise HTTPException(status_code=409, detail=conflict_detail(e, response_schema))
    except RevertWriteFailedError:
        # Only the revert write was rolled back; commit the flushed autosave
        await db.commit()
        raise HTTPException(status_code=503, detail="Revert could not be saved")

    return RevertResponse(
        message="Reverted successfully",
        index=index,
        entity=response_schema.model_validate(entity),
    )
