import uuid
from datetime import date, datetime

from pydantic import BaseModel

from weekflow.models import (
    RecurrencePattern,
    TaskCategory,
    TaskPriority,
    TaskStatus,
)


class RecurringTemplateCreate(BaseModel):
    title: str
    description: str | None = None
    category: TaskCategory = TaskCategory.WEEKLY_RECURRING
    priority: TaskPriority = TaskPriority.MEDIUM
    recurrence_pattern: RecurrencePattern = RecurrencePattern.WEEKLY
    recurrence_day_of_week: int | None = None
    recurrence_day_of_month: int | None = None
    auto_create_days_before: int = 0


class RecurringTemplateUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    category: TaskCategory | None = None
    priority: TaskPriority | None = None
    recurrence_pattern: RecurrencePattern | None = None
    recurrence_day_of_week: int | None = None
    recurrence_day_of_month: int | None = None
    auto_create_days_before: int | None = None
    is_active: bool | None = None


class RecurringTemplateRead(BaseModel):
    id: uuid.UUID
    title: str
    description: str | None
    category: TaskCategory
    priority: TaskPriority
    recurrence_pattern: RecurrencePattern
    recurrence_day_of_week: int | None
    recurrence_day_of_month: int | None
    auto_create_days_before: int
    is_active: bool
    last_created_at: datetime | None
    next_creation_date: date | None

    model_config = {"from_attributes": True}


class WeeklyCompletionSet(BaseModel):
    status: TaskStatus
    progress_current: int = 0


class WeeklyCompletionRead(BaseModel):
    task_id: uuid.UUID
    week_number: int
    status: TaskStatus
    progress_current: int
    updated_at: datetime

    model_config = {"from_attributes": True}
