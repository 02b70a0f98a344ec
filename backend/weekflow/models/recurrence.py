import uuid
from datetime import date, datetime

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field

from weekflow.models.task import (
    RecurrencePattern,
    TaskCategory,
    TaskPriority,
    TaskStatus,
)


class RecurringTaskTemplate(SQLModel, table=True):
    """Definition that recurring task rows are materialized from, one per week."""

    __tablename__ = "recurring_task_templates"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: str = Field(index=True)
    title: str
    description: str | None = Field(default=None)
    category: TaskCategory = Field(default=TaskCategory.WEEKLY_RECURRING)
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    recurrence_pattern: RecurrencePattern = Field(default=RecurrencePattern.WEEKLY)
    recurrence_day_of_week: int | None = Field(default=None, ge=0, le=6)
    recurrence_day_of_month: int | None = Field(default=None, ge=1, le=31)
    auto_create_days_before: int = Field(default=0, ge=0)
    is_active: bool = Field(default=True, index=True)
    last_created_at: datetime | None = Field(default=None)
    next_creation_date: date | None = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class WeeklyTaskCompletion(SQLModel, table=True):
    """
    Per-week status of a recurring task.

    Lets one logical task be done in week 5 and still todo in week 6.
    Unique on (task_id, user_id, week_number).
    """

    __tablename__ = "weekly_task_completions"
    __table_args__ = (
        UniqueConstraint("task_id", "user_id", "week_number", name="uq_weekly_completion"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    task_id: uuid.UUID = Field(foreign_key="tasks.id", index=True)
    user_id: str = Field(index=True)
    week_number: int = Field(index=True)
    status: TaskStatus = Field(default=TaskStatus.TODO)
    progress_current: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
