import uuid
from datetime import datetime

from pydantic import BaseModel

from weekflow.models import DependencyType


class DependencyCreate(BaseModel):
    """Schema for creating a new dependency."""
    task_id: uuid.UUID  # The dependent task
    depends_on_task_id: uuid.UUID  # The prerequisite
    dependency_type: str = DependencyType.FINISH_TO_START.value  # Checked by the engine


class DependencyRead(BaseModel):
    """Schema for reading a dependency."""
    id: uuid.UUID
    task_id: uuid.UUID
    depends_on_task_id: uuid.UUID
    dependency_type: DependencyType
    created_at: datetime

    model_config = {"from_attributes": True}
