"""
Ports (interfaces) the lifecycle engine depends on.

The engine talks to storage, identity and the activity log through these
Protocols, so the SQL repository, the HTTP auth layer and test fakes are
interchangeable.
"""

import uuid
from typing import Optional, Protocol, Sequence

from sqlmodel import SQLModel

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


class TaskRepository(Protocol):
    """
    Storage collaborator.

    Writes either commit as a whole or raise RemoteFailureError. No version
    tokens: the last write wins.
    """

    async def fetch_tasks(self, user_id: str) -> list[Task]: ...
    async def fetch_subtasks(self, task_ids: Sequence[uuid.UUID]) -> list[Subtask]: ...
    async def fetch_dependencies(self, task_ids: Sequence[uuid.UUID]) -> list[TaskDependency]: ...
    async def fetch_templates(self, user_id: str) -> list[RecurringTaskTemplate]: ...
    async def fetch_attachments(self, task_ids: Sequence[uuid.UUID]) -> list[Attachment]: ...
    async def fetch_completions(self, user_id: str, week_number: int) -> list[WeeklyTaskCompletion]: ...

    async def get_completion(
        self,
        user_id: str,
        task_id: uuid.UUID,
        week_number: int,
    ) -> Optional[WeeklyTaskCompletion]: ...

    async def upsert_completion(self, record: WeeklyTaskCompletion) -> WeeklyTaskCompletion: ...

    async def get_week_cursor(self, user_id: str) -> Optional[WeekCursor]: ...
    async def list_template_owners(self) -> list[str]: ...

    async def save(self, *entities: SQLModel) -> None: ...
    async def delete(self, *entities: SQLModel) -> None: ...


class IdentityProvider(Protocol):
    """Supplies the acting user; None means nobody is signed in."""

    def current_user_id(self) -> Optional[str]: ...


class ActivitySink(Protocol):
    """Best-effort audit trail."""

    async def record(self, activity: TaskActivity) -> None: ...


class StaticIdentity:
    """Identity fixed at construction (one request, one worker job)."""

    def __init__(self, user_id: Optional[str]):
        self._user_id = user_id

    def current_user_id(self) -> Optional[str]:
        return self._user_id

    def __repr__(self):
        return f"StaticIdentity(user_id={self._user_id})"
