import uuid
from datetime import date, datetime

from pydantic import BaseModel

from weekflow.models import (
    RecurrencePattern,
    TaskCategory,
    TaskPriority,
    TaskStatus,
)
from weekflow.schemas.dependency import DependencyRead


class TaskCreate(BaseModel):
    """Schema for creating a new task."""
    category: TaskCategory
    title: str
    description: str | None = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: date | None = None
    week_number: int | None = None  # Defaults to the engine's current week
    sort_order: int | None = None
    progress_current: int = 0
    progress_total: int | None = None
    auto_progress: bool = False
    weighted_progress: bool = False
    is_recurring: bool = False
    recurrence_pattern: RecurrencePattern | None = None
    recurrence_weeks: int | None = None  # Span for weekly recurring tasks, 1..15
    recurring_template_id: uuid.UUID | None = None


class TaskUpdate(BaseModel):
    """Schema for updating a task. Only the fields that are set are applied."""
    title: str | None = None
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: date | None = None
    category: TaskCategory | None = None
    week_number: int | None = None
    sort_order: int | None = None
    progress_current: int | None = None
    progress_total: int | None = None
    auto_progress: bool | None = None
    weighted_progress: bool | None = None
    is_recurring: bool | None = None
    recurrence_pattern: RecurrencePattern | None = None
    recurrence_weeks: int | None = None


class SubtaskCreate(BaseModel):
    title: str
    weight: int | None = None
    auto_complete_parent: bool = False


class SubtaskRead(BaseModel):
    id: uuid.UUID
    task_id: uuid.UUID
    title: str
    is_completed: bool
    position: int
    weight: int | None
    auto_complete_parent: bool

    model_config = {"from_attributes": True}


class ProgressSettingsUpdate(BaseModel):
    auto_progress: bool
    weighted_progress: bool = False


class AttachmentCreate(BaseModel):
    file_name: str
    file_url: str  # Reference into the external file store
    file_size: int = 0
    file_type: str | None = None


class AttachmentRead(BaseModel):
    id: uuid.UUID
    task_id: uuid.UUID
    file_name: str
    file_size: int
    file_type: str | None
    file_url: str
    thumbnail_url: str | None
    uploaded_at: datetime

    model_config = {"from_attributes": True}


class CommentCreate(BaseModel):
    content: str
    parent_comment_id: uuid.UUID | None = None


class CommentRead(BaseModel):
    id: uuid.UUID
    task_id: uuid.UUID
    parent_comment_id: uuid.UUID | None
    content: str
    created_at: datetime

    model_config = {"from_attributes": True}


class TaskRead(BaseModel):
    """
    A task as shown for one week.

    status/progress_current are the effective values for that week (the weekly
    completion record for recurring tasks, "blocked" while dependencies hold
    the task back); intended_status is what the user last set.
    """
    id: uuid.UUID
    category: TaskCategory
    title: str
    description: str | None
    status: TaskStatus
    intended_status: TaskStatus
    is_blocked: bool
    priority: TaskPriority
    due_date: date | None
    week_number: int
    sort_order: int | None
    progress_current: int
    progress_total: int | None
    auto_progress: bool
    weighted_progress: bool
    is_recurring: bool
    recurrence_pattern: RecurrencePattern | None
    original_week_number: int | None
    recurrence_weeks: int | None
    recurring_template_id: uuid.UUID | None
    created_at: datetime
    updated_at: datetime
    subtasks: list[SubtaskRead] = []
    dependencies: list[DependencyRead] = []
    attachments: list[AttachmentRead] = []
    unconfirmed: bool = False  # Local change not yet committed to storage


class SubtaskUpdate(BaseModel):
    title: str


class SubtaskWeightUpdate(BaseModel):
    weight: int | None = None  # None counts as 1


class SubtaskReorder(BaseModel):
    subtask_ids: list[uuid.UUID]


class ProgressUpdate(BaseModel):
    progress_current: int


class TaskReorder(BaseModel):
    """Schema for placing tasks into a category in the given order."""
    category: TaskCategory
    task_ids: list[uuid.UUID]


class BulkTaskIds(BaseModel):
    task_ids: list[uuid.UUID]


class BulkTaskUpdate(BaseModel):
    task_ids: list[uuid.UUID]
    changes: TaskUpdate


class BulkTaskMove(BaseModel):
    task_ids: list[uuid.UUID]
    category: TaskCategory


class WeeklyStatusUpdate(BaseModel):
    """Status change issued from the current week's board."""
    status: TaskStatus | None = None
    progress_current: int | None = None


class DependencyStatusRead(BaseModel):
    task_id: uuid.UUID
    can_start: bool
