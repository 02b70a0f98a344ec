from weekflow.schemas.dependency import DependencyCreate, DependencyRead
from weekflow.schemas.task import (
    AttachmentCreate,
    AttachmentRead,
    BulkTaskIds,
    BulkTaskMove,
    BulkTaskUpdate,
    CommentCreate,
    CommentRead,
    DependencyStatusRead,
    ProgressSettingsUpdate,
    ProgressUpdate,
    SubtaskCreate,
    SubtaskRead,
    SubtaskReorder,
    SubtaskUpdate,
    SubtaskWeightUpdate,
    TaskCreate,
    TaskRead,
    TaskReorder,
    TaskUpdate,
    WeeklyStatusUpdate,
)
from weekflow.schemas.recurrence import (
    RecurringTemplateCreate,
    RecurringTemplateRead,
    RecurringTemplateUpdate,
    WeeklyCompletionRead,
    WeeklyCompletionSet,
)
from weekflow.schemas.week import MigrationRead, WeekRead, WeekSet

__all__ = [
    "DependencyCreate",
    "DependencyRead",
    "AttachmentCreate",
    "AttachmentRead",
    "BulkTaskIds",
    "BulkTaskMove",
    "BulkTaskUpdate",
    "CommentCreate",
    "CommentRead",
    "DependencyStatusRead",
    "ProgressSettingsUpdate",
    "ProgressUpdate",
    "SubtaskCreate",
    "SubtaskRead",
    "SubtaskReorder",
    "SubtaskUpdate",
    "SubtaskWeightUpdate",
    "TaskCreate",
    "TaskRead",
    "TaskReorder",
    "TaskUpdate",
    "WeeklyStatusUpdate",
    "RecurringTemplateCreate",
    "RecurringTemplateRead",
    "RecurringTemplateUpdate",
    "WeeklyCompletionRead",
    "WeeklyCompletionSet",
    "MigrationRead",
    "WeekRead",
    "WeekSet",
]
