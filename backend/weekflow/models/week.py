from datetime import datetime

from sqlmodel import SQLModel, Field


class WeekCursor(SQLModel, table=True):
    """The week a user is currently working in (advanced by rollover/migration)."""

    __tablename__ = "week_cursors"

    user_id: str = Field(primary_key=True)
    current_week: int
    updated_at: datetime = Field(default_factory=datetime.utcnow)
