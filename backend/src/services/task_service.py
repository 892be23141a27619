"""Service layer for task operations."""
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from models.content_history import EntityType, TaskHistory
from models.task import Task
from schemas.task import TaskCreate, TaskUpdate
from services.base_entity_service import BaseEntityService


class TaskService(BaseEntityService[Task]):
    """
    Task service.

    Task history uses full snapshots: each update appends a TaskHistory row holding
    a copy of every tracked field as it was before the update.
    """

    model = Task
    entity_type = EntityType.TASK
    required_fields = frozenset({"title", "description", "is_all_day", "status"})

    def _build_change_record(
        self,
        entity: Task,
        new_values: dict[str, Any],  # noqa: ARG002
        written_at: datetime,
    ) -> TaskHistory:
        """Snapshot the task as it is before the write."""
        return TaskHistory(
            task_id=entity.id,
            title=entity.title,
            description=entity.description,
            start_date=entity.start_date,
            end_date=entity.end_date,
            is_all_day=entity.is_all_day,
            status=entity.status,
            group_id=entity.group_id,
            created_at=written_at,
        )

    async def create(self, db: AsyncSession, data: TaskCreate) -> Task:
        """
        Create a new task.

        Creation writes no change record; the first update records the initial state.
        """
        task = Task(**data.model_dump())
        db.add(task)
        await db.flush()
        await db.refresh(task)
        return task

    async def update(
        self,
        db: AsyncSession,
        task_id: int,
        data: TaskUpdate,
    ) -> Task | None:
        """
        Update a task.

        Args:
            db: Database session.
            task_id: ID of the task to update.
            data: Update data; only explicitly set fields are written.

        Returns:
            The updated task, or None if not found.
        """
        values = data.model_dump(exclude_unset=True, exclude={"expected_updated_at"})
        return await self.update_fields(db, task_id, values)


task_service = TaskService()
