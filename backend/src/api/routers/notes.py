"""Notes endpoints: head reads and writes that feed the note change log."""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_autosave
from api.helpers import check_optimistic_lock
from models.content_history import EntityType
from schemas.autosave import AutosaveScheduledResponse
from schemas.note import NoteCreate, NoteResponse, NoteUpdate
from services.autosave import DebouncedAutosave
from services.note_service import note_service

router = APIRouter(prefix="/notes", tags=["notes"])


@router.post("/", response_model=NoteResponse, status_code=201)
async def create_note(
    data: NoteCreate,
    db: AsyncSession = Depends(get_async_session),
) -> NoteResponse:
    """Create a new note."""
    note = await note_service.create(db, data)
    return NoteResponse.model_validate(note)


@router.get("/{note_id}", response_model=NoteResponse)
async def get_note(
    note_id: int,
    db: AsyncSession = Depends(get_async_session),
) -> NoteResponse:
    """Get a single note by ID."""
    note = await note_service.get(db, note_id)
    if note is None:
        raise HTTPException(status_code=404, detail="Note not found")
    return NoteResponse.model_validate(note)


@router.patch("/{note_id}", response_model=NoteResponse)
async def update_note(
    note_id: int,
    data: NoteUpdate,
    db: AsyncSession = Depends(get_async_session),
    autosave: DebouncedAutosave = Depends(get_autosave),
) -> NoteResponse:
    """
    Update a note.

    An explicit save supersedes any pending autosave for the note: the pending
    write is discarded, and a write already running finishes before this one.
    """
    # Check for conflicts before updating
    await check_optimistic_lock(
        db, note_service, note_id, data.expected_updated_at, NoteResponse,
    )
    await autosave.supersede(EntityType.NOTE, note_id)

    note = await note_service.update(db, note_id, data)
    if note is None:
        raise HTTPException(status_code=404, detail="Note not found")
    return NoteResponse.model_validate(note)


@router.post(
    "/{note_id}/autosave",
    response_model=AutosaveScheduledResponse,
    status_code=202,
)
async def autosave_note(
    note_id: int,
    data: NoteUpdate,
    db: AsyncSession = Depends(get_async_session),
    autosave: DebouncedAutosave = Depends(get_autosave),
) -> AutosaveScheduledResponse:
    """
    Schedule a debounced save of editor state.

    Each call replaces the previous pending save and restarts the timer. Opening the
    note's history or reverting it flushes the pending save first.
    """
    if await note_service.get_updated_at(db, note_id) is None:
        raise HTTPException(status_code=404, detail="Note not found")

    async def save(session: AsyncSession) -> None:
        await note_service.update(session, note_id, data)

    autosave.schedule(EntityType.NOTE, note_id, save)
    return AutosaveScheduledResponse(entity_id=note_id, delay=autosave.delay)
