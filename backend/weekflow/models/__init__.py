from weekflow.models.task import (
    DEFAULT_SORT_ORDER,
    RecurrencePattern,
    Subtask,
    Task,
    TaskCategory,
    TaskPriority,
    TaskStatus,
)
from weekflow.models.dependency import DependencyType, TaskDependency
from weekflow.models.recurrence import RecurringTaskTemplate, WeeklyTaskCompletion
from weekflow.models.activity import ActivityType, Attachment, TaskActivity, TaskComment
from weekflow.models.week import WeekCursor

__all__ = [
    "DEFAULT_SORT_ORDER",
    "RecurrencePattern",
    "Subtask",
    "Task",
    "TaskCategory",
    "TaskPriority",
    "TaskStatus",
    "DependencyType",
    "TaskDependency",
    "RecurringTaskTemplate",
    "WeeklyTaskCompletion",
    "ActivityType",
    "Attachment",
    "TaskActivity",
    "TaskComment",
    "WeekCursor",
]
