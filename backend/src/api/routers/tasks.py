"""Tasks endpoints: head reads and writes that feed the task history."""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_autosave
from api.helpers import check_optimistic_lock
from models.content_history import EntityType
from schemas.autosave import AutosaveScheduledResponse
from schemas.task import TaskCreate, TaskResponse, TaskUpdate
from services.autosave import DebouncedAutosave
from services.task_service import task_service

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.post("/", response_model=TaskResponse, status_code=201)
async def create_task(
    data: TaskCreate,
    db: AsyncSession = Depends(get_async_session),
) -> TaskResponse:
    """Create a new task."""
    task = await task_service.create(db, data)
    return TaskResponse.model_validate(task)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: int,
    db: AsyncSession = Depends(get_async_session),
) -> TaskResponse:
    """Get a single task by ID."""
    task = await task_service.get(db, task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return TaskResponse.model_validate(task)


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    data: TaskUpdate,
    db: AsyncSession = Depends(get_async_session),
    autosave: DebouncedAutosave = Depends(get_autosave),
) -> TaskResponse:
    """Update a task. Supersedes any pending autosave for the task."""
    # Check for conflicts before updating
    await check_optimistic_lock(
        db, task_service, task_id, data.expected_updated_at, TaskResponse,
    )
    await autosave.supersede(EntityType.TASK, task_id)

    task = await task_service.update(db, task_id, data)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return TaskResponse.model_validate(task)


@router.post(
    "/{task_id}/autosave",
    response_model=AutosaveScheduledResponse,
    status_code=202,
)
async def autosave_task(
    task_id: int,
    data: TaskUpdate,
    db: AsyncSession = Depends(get_async_session),
    autosave: DebouncedAutosave = Depends(get_autosave),
) -> AutosaveScheduledResponse:
    """Schedule a debounced save of task editor state."""
    if await task_service.get_updated_at(db, task_id) is None:
        raise HTTPException(status_code=404, detail="Task not found")

    async def save(session: AsyncSession) -> None:
        await task_service.update(session, task_id, data)

    autosave.schedule(EntityType.TASK, task_id, save)
    return AutosaveScheduledResponse(entity_id=task_id, delay=autosave.delay)
