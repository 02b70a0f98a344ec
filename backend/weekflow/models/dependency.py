import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class DependencyType(str, Enum):
    FINISH_TO_START = "finish_to_start"
    START_TO_START = "start_to_start"
    FINISH_TO_FINISH = "finish_to_finish"
    START_TO_FINISH = "start_to_finish"


class TaskDependency(SQLModel, table=True):
    """
    Directed edge between two tasks.

    task_id -> depends_on_task_id means:
    "task_id (the dependent) waits on depends_on_task_id (the prerequisite)"
    according to dependency_type.
    """

    __tablename__ = "task_dependencies"
    __table_args__ = (
        UniqueConstraint("task_id", "depends_on_task_id", name="uq_task_dependency_pair"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    task_id: uuid.UUID = Field(foreign_key="tasks.id", index=True)
    depends_on_task_id: uuid.UUID = Field(foreign_key="tasks.id", index=True)
    dependency_type: DependencyType = Field(default=DependencyType.FINISH_TO_START)
    created_at: datetime = Field(default_factory=datetime.utcnow)
