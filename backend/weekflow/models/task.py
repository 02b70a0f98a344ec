import uuid
from datetime import date, datetime
from enum import Enum

from sqlmodel import SQLModel, Field


class TaskCategory(str, Enum):
    LIFE_ADMIN = "life_admin"
    WORK = "work"
    WEEKLY_RECURRING = "weekly_recurring"


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    BLOCKED = "blocked"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class RecurrencePattern(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


DEFAULT_SORT_ORDER = 999


class Task(SQLModel, table=True):
    """
    A unit of work living in one week bucket.

    Key fields:
    - status: the status the user intends the task to have
    - blocked_by_dependencies: override set by the dependency resolver; while it
      is on, the task shows as blocked without losing its intended status
    - original_week_number / recurrence_weeks: the visibility window of a
      weekly recurring task (origin week and span)
    - attachment_owner_id: task whose attachments this task shares (migrated forks)
    """

    __tablename__ = "tasks"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: str = Field(index=True)
    category: TaskCategory = Field(index=True)
    title: str
    description: str | None = Field(default=None)
    status: TaskStatus = Field(default=TaskStatus.TODO)
    blocked_by_dependencies: bool = Field(default=False)
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    due_date: date | None = Field(default=None)
    week_number: int = Field(index=True)
    sort_order: int | None = Field(default=DEFAULT_SORT_ORDER)

    # Progress
    progress_current: int = Field(default=0)
    progress_total: int | None = Field(default=None)
    auto_progress: bool = Field(default=False)
    weighted_progress: bool = Field(default=False)

    # Recurrence
    is_recurring: bool = Field(default=False)
    recurrence_pattern: RecurrencePattern | None = Field(default=None)
    original_week_number: int | None = Field(default=None)
    recurrence_weeks: int | None = Field(default=None)
    recurring_template_id: uuid.UUID | None = Field(default=None, index=True)

    attachment_owner_id: uuid.UUID | None = Field(default=None)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def effective_status(self) -> TaskStatus:
        if self.blocked_by_dependencies:
            return TaskStatus.BLOCKED
        return self.status

    @property
    def in_recurring_category(self) -> bool:
        return self.category == TaskCategory.WEEKLY_RECURRING


class Subtask(SQLModel, table=True):
    """Ordered checklist item of a task. An unset weight counts as 1."""

    __tablename__ = "subtasks"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    task_id: uuid.UUID = Field(foreign_key="tasks.id", index=True)
    title: str
    is_completed: bool = Field(default=False)
    position: int = Field(default=1)
    weight: int | None = Field(default=None, ge=0)
    auto_complete_parent: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)
