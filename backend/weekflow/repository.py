"""
SQL-backed storage for the lifecycle engine.

Each write commits on its own; a failed commit is rolled back and surfaced
as RemoteFailureError so the engine can keep its optimistic state and mark
the affected tasks unconfirmed.
"""

import uuid
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import delete, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel, select

from weekflow.exceptions import RemoteFailureError
from weekflow.logging_config import get_logger
from weekflow.models import (
    Attachment,
    RecurringTaskTemplate,
    Subtask,
    Task,
    TaskActivity,
    TaskComment,
    TaskDependency,
    WeekCursor,
    WeeklyTaskCompletion,
)

logger = get_logger(__name__)


class SqlTaskRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    def _detached(self, rows) -> list:
        # The engine owns its copies; a rollback here must not expire them.
        rows = list(rows)
        for row in rows:
            self.session.expunge(row)
        return rows

    async def fetch_tasks(self, user_id: str) -> list[Task]:
        query = select(Task).where(Task.user_id == user_id).order_by(Task.sort_order, Task.created_at)
        result = await self.session.execute(query)
        return self._detached(result.scalars().all())

    async def fetch_subtasks(self, task_ids: Sequence[uuid.UUID]) -> list[Subtask]:
        if not task_ids:
            return []
        query = select(Subtask).where(Subtask.task_id.in_(task_ids)).order_by(Subtask.position)
        result = await self.session.execute(query)
        return self._detached(result.scalars().all())

    async def fetch_dependencies(self, task_ids: Sequence[uuid.UUID]) -> list[TaskDependency]:
        if not task_ids:
            return []
        query = select(TaskDependency).where(
            or_(
                TaskDependency.task_id.in_(task_ids),
                TaskDependency.depends_on_task_id.in_(task_ids),
            )
        )
        result = await self.session.execute(query)
        return self._detached(result.scalars().all())

    async def fetch_templates(self, user_id: str) -> list[RecurringTaskTemplate]:
        query = select(RecurringTaskTemplate).where(RecurringTaskTemplate.user_id == user_id)
        result = await self.session.execute(query)
        return self._detached(result.scalars().all())

    async def fetch_attachments(self, task_ids: Sequence[uuid.UUID]) -> list[Attachment]:
        if not task_ids:
            return []
        query = select(Attachment).where(Attachment.task_id.in_(task_ids))
        result = await self.session.execute(query)
        return self._detached(result.scalars().all())

    async def fetch_completions(self, user_id: str, week_number: int) -> list[WeeklyTaskCompletion]:
        query = select(WeeklyTaskCompletion).where(
            WeeklyTaskCompletion.user_id == user_id,
            WeeklyTaskCompletion.week_number == week_number,
        )
        result = await self.session.execute(query)
        return self._detached(result.scalars().all())

    async def get_completion(
        self,
        user_id: str,
        task_id: uuid.UUID,
        week_number: int,
    ) -> Optional[WeeklyTaskCompletion]:
        record = await self._find_completion(user_id, task_id, week_number)
        if record is not None:
            self.session.expunge(record)
        return record

    async def _find_completion(self, user_id, task_id, week_number) -> Optional[WeeklyTaskCompletion]:
        query = select(WeeklyTaskCompletion).where(
            WeeklyTaskCompletion.user_id == user_id,
            WeeklyTaskCompletion.task_id == task_id,
            WeeklyTaskCompletion.week_number == week_number,
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def upsert_completion(self, record: WeeklyTaskCompletion) -> WeeklyTaskCompletion:
        """Insert or update the record keyed by (task_id, user_id, week_number)."""
        try:
            stored = await self._find_completion(record.user_id, record.task_id, record.week_number)
            if stored is None:
                stored = await self.session.merge(record)
            else:
                stored.status = record.status
                stored.progress_current = record.progress_current
                stored.updated_at = datetime.utcnow()
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Completion upsert failed for task={record.task_id} week={record.week_number}: {e}")
            raise RemoteFailureError(str(e), operation="upsert_completion") from e

        self.session.expunge(stored)
        return stored

    async def get_week_cursor(self, user_id: str) -> Optional[WeekCursor]:
        cursor = await self.session.get(WeekCursor, user_id)
        if cursor is not None:
            self.session.expunge(cursor)
        return cursor

    async def list_template_owners(self) -> list[str]:
        query = (
            select(RecurringTaskTemplate.user_id)
            .where(RecurringTaskTemplate.is_active == True)  # noqa: E712
            .distinct()
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def save(self, *entities: SQLModel) -> None:
        """Insert or update all entities in a single transaction."""
        try:
            for entity in entities:
                await self.session.merge(entity)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Save of {len(entities)} entities failed: {e}")
            raise RemoteFailureError(str(e), operation="save") from e

    async def delete(self, *entities: SQLModel) -> None:
        """
        Delete entities in a single transaction.

        Deleting a task also removes its subtasks, completion records, comments
        and every dependency edge touching it. Its attachments go too unless a
        migrated fork still shares them.
        """
        try:
            for entity in entities:
                if isinstance(entity, Task):
                    await self._delete_task_children(entity.id)
                stored = await self.session.get(type(entity), entity.id)
                if stored is not None:
                    await self.session.delete(stored)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Delete of {len(entities)} entities failed: {e}")
            raise RemoteFailureError(str(e), operation="delete") from e

    async def _delete_task_children(self, task_id: uuid.UUID) -> None:
        await self.session.execute(delete(Subtask).where(Subtask.task_id == task_id))
        await self.session.execute(
            delete(WeeklyTaskCompletion).where(WeeklyTaskCompletion.task_id == task_id)
        )
        await self.session.execute(delete(TaskComment).where(TaskComment.task_id == task_id))
        await self.session.execute(
            delete(TaskDependency).where(
                or_(TaskDependency.task_id == task_id, TaskDependency.depends_on_task_id == task_id)
            )
        )

        sharers = await self.session.execute(
            select(Task.id).where(Task.attachment_owner_id == task_id).limit(1)
        )
        if sharers.scalar_one_or_none() is None:
            await self.session.execute(delete(Attachment).where(Attachment.task_id == task_id))


class SqlActivitySink:
    """Writes activity records into the task_activities table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(self, activity: TaskActivity) -> None:
        try:
            self.session.add(activity)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
