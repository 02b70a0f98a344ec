import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field


class ActivityType(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    STATUS_CHANGED = "status_changed"
    PRIORITY_CHANGED = "priority_changed"
    PROGRESS_UPDATED = "progress_updated"
    DUE_DATE_CHANGED = "due_date_changed"
    MOVED_WEEK = "moved_week"
    MOVED_CATEGORY = "moved_category"
    REORDERED = "reordered"
    SUBTASK_ADDED = "subtask_added"
    SUBTASK_COMPLETED = "subtask_completed"
    SUBTASK_DELETED = "subtask_deleted"
    ATTACHMENT_ADDED = "attachment_added"
    ATTACHMENT_DELETED = "attachment_deleted"
    COMMENT_ADDED = "comment_added"
    DEPENDENCY_ADDED = "dependency_added"
    DEPENDENCY_REMOVED = "dependency_removed"


class TaskActivity(SQLModel, table=True):
    """Audit trail entry. Written best-effort; never blocks the change it records."""

    __tablename__ = "task_activities"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    task_id: uuid.UUID = Field(index=True)
    user_id: str = Field(index=True)
    activity_type: ActivityType
    old_value: str | None = Field(default=None)
    new_value: str | None = Field(default=None)
    details: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)


class Attachment(SQLModel, table=True):
    """
    Metadata for a file held by the external file store.

    Only the reference (file_url) is stored; migrated forks share the rows of
    the task named by their attachment_owner_id.
    """

    __tablename__ = "attachments"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    task_id: uuid.UUID = Field(index=True)
    user_id: str = Field(index=True)
    file_name: str
    file_size: int = Field(default=0, ge=0)
    file_type: str | None = Field(default=None)
    file_url: str
    thumbnail_url: str | None = Field(default=None)
    uploaded_at: datetime = Field(default_factory=datetime.utcnow)


class TaskComment(SQLModel, table=True):
    __tablename__ = "task_comments"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    task_id: uuid.UUID = Field(index=True)
    user_id: str = Field(index=True)
    parent_comment_id: uuid.UUID | None = Field(default=None)
    content: str
    is_edited: bool = Field(default=False)
    edited_at: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
