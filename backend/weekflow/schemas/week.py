import uuid

from pydantic import BaseModel

from weekflow.schemas.task import TaskRead


class WeekSet(BaseModel):
    week_number: int


class WeekRead(BaseModel):
    """The tasks visible in one week."""
    week_number: int
    tasks: list[TaskRead]


class MigrationRead(BaseModel):
    from_week: int
    to_week: int
    moved_task_ids: list[uuid.UUID]
    forked_task_ids: dict[uuid.UUID, uuid.UUID]

    model_config = {"from_attributes": True}
