"""
Fire-and-forget activity logging.

Activity records are an audit trail. A sink failure is logged and swallowed
so it never fails the operation being recorded.
"""

import uuid
from typing import Any, Optional

from weekflow.logging_config import get_logger
from weekflow.models import ActivityType, TaskActivity
from weekflow.ports import ActivitySink

logger = get_logger(__name__)


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


class ActivityLogger:
    def __init__(self, sink: Optional[ActivitySink]):
        self._sink = sink

    async def log(
        self,
        user_id: str,
        task_id: uuid.UUID,
        activity_type: ActivityType,
        old_value: Any = None,
        new_value: Any = None,
        details: Optional[dict[str, Any]] = None,
    ) -> Optional[TaskActivity]:
        if self._sink is None:
            return None

        activity = TaskActivity(
            task_id=task_id,
            user_id=user_id,
            activity_type=activity_type,
            old_value=_as_text(old_value),
            new_value=_as_text(new_value),
            details=details,
        )
        try:
            await self._sink.record(activity)
        except Exception:
            logger.warning(
                f"Failed to log activity {activity_type.value} for task {task_id}",
                exc_info=True,
            )
            return None
        return activity
