# tests/fakes.py

import uuid
from typing import Optional, Sequence

from sqlmodel import SQLModel

from weekflow.exceptions import RemoteFailureError
from weekflow.models import (
    Attachment,
    RecurringTaskTemplate,
    Subtask,
    Task,
    TaskActivity,
    TaskDependency,
    WeekCursor,
    WeeklyTaskCompletion,
)


def _key(entity: SQLModel):
    if isinstance(entity, WeekCursor):
        return entity.user_id
    return entity.id


class FakeRepository:
    """
    In-memory TaskRepository.

    - Stores plain dicts, so reads hand out fresh instances like a real
      database would (local mutations never leak into "storage")
    - fail_writes=True makes every write raise RemoteFailureError
    """

    def __init__(self) -> None:
        self.rows: dict[type, dict] = {}
        self.fail_writes = False
        self.write_count = 0

    # -- helpers -------------------------------------------------------

    def _table(self, model: type) -> dict:
        return self.rows.setdefault(model, {})

    def _all(self, model: type) -> list:
        return [model(**row) for row in self._table(model).values()]

    def _check_writable(self) -> None:
        if self.fail_writes:
            raise RemoteFailureError("simulated outage")
        self.write_count += 1

    def put(self, *entities: SQLModel) -> None:
        """Seed storage directly, bypassing fail_writes."""
        for entity in entities:
            self._table(type(entity))[_key(entity)] = entity.model_dump()

    def stored(self, model: type, key) -> Optional[SQLModel]:
        row = self._table(model).get(key)
        return model(**row) if row is not None else None

    # -- reads ---------------------------------------------------------

    async def fetch_tasks(self, user_id: str) -> list[Task]:
        return [t for t in self._all(Task) if t.user_id == user_id]

    async def fetch_subtasks(self, task_ids: Sequence[uuid.UUID]) -> list[Subtask]:
        wanted = set(task_ids)
        return sorted((s for s in self._all(Subtask) if s.task_id in wanted), key=lambda s: s.position)

    async def fetch_dependencies(self, task_ids: Sequence[uuid.UUID]) -> list[TaskDependency]:
        wanted = set(task_ids)
        return [
            d for d in self._all(TaskDependency)
            if d.task_id in wanted or d.depends_on_task_id in wanted
        ]

    async def fetch_templates(self, user_id: str) -> list[RecurringTaskTemplate]:
        return [t for t in self._all(RecurringTaskTemplate) if t.user_id == user_id]

    async def fetch_attachments(self, task_ids: Sequence[uuid.UUID]) -> list[Attachment]:
        wanted = set(task_ids)
        return [a for a in self._all(Attachment) if a.task_id in wanted]

    async def fetch_completions(self, user_id: str, week_number: int) -> list[WeeklyTaskCompletion]:
        return [
            c for c in self._all(WeeklyTaskCompletion)
            if c.user_id == user_id and c.week_number == week_number
        ]

    async def get_completion(self, user_id, task_id, week_number) -> Optional[WeeklyTaskCompletion]:
        for record in self._all(WeeklyTaskCompletion):
            if (record.user_id, record.task_id, record.week_number) == (user_id, task_id, week_number):
                return record
        return None

    async def get_week_cursor(self, user_id: str) -> Optional[WeekCursor]:
        return self.stored(WeekCursor, user_id)

    async def list_template_owners(self) -> list[str]:
        return sorted({t.user_id for t in self._all(RecurringTaskTemplate) if t.is_active})

    # -- writes --------------------------------------------------------

    async def upsert_completion(self, record: WeeklyTaskCompletion) -> WeeklyTaskCompletion:
        self._check_writable()
        existing = await self.get_completion(record.user_id, record.task_id, record.week_number)
        if existing is not None:
            record.id = existing.id
        self.put(record)
        return self.stored(WeeklyTaskCompletion, record.id)

    async def save(self, *entities: SQLModel) -> None:
        self._check_writable()
        self.put(*entities)

    async def delete(self, *entities: SQLModel) -> None:
        self._check_writable()
        for entity in entities:
            if isinstance(entity, Task):
                self._drop(Subtask, lambda s: s.task_id == entity.id)
                self._drop(WeeklyTaskCompletion, lambda c: c.task_id == entity.id)
                self._drop(
                    TaskDependency,
                    lambda d: entity.id in (d.task_id, d.depends_on_task_id),
                )
            self._table(type(entity)).pop(_key(entity), None)

    def _drop(self, model: type, predicate) -> None:
        table = self._table(model)
        for key, row in list(table.items()):
            if predicate(model(**row)):
                del table[key]


class FakeActivitySink:
    """
    Collects activity records; fail=True makes every record() raise.
    """

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.records: list[TaskActivity] = []

    async def record(self, activity: TaskActivity) -> None:
        if self.fail:
            raise RuntimeError("activity store unavailable")
        self.records.append(activity)

    def of_type(self, activity_type) -> list[TaskActivity]:
        return [r for r in self.records if r.activity_type == activity_type]
