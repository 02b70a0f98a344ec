"""
Progress aggregation from subtasks.

A task with auto progress enabled derives its progress_current (0-100) from
its subtasks, either by count or by weight.
"""

import math
from typing import Iterable, Optional

from weekflow.models import Subtask, Task

DEFAULT_SUBTASK_WEIGHT = 1


def round_half_up(value: float) -> int:
    """Round x.5 upwards, the way progress percentages are shown."""
    return int(math.floor(value + 0.5))


def subtask_weight(subtask: Subtask) -> int:
    if subtask.weight is None:
        return DEFAULT_SUBTASK_WEIGHT
    return subtask.weight


def unweighted_progress(subtasks: list[Subtask]) -> int:
    completed = sum(1 for s in subtasks if s.is_completed)
    return round_half_up(100 * completed / len(subtasks))


def weighted_progress(subtasks: list[Subtask]) -> int:
    total_weight = sum(subtask_weight(s) for s in subtasks)
    if total_weight == 0:
        return 0
    completed_weight = sum(subtask_weight(s) for s in subtasks if s.is_completed)
    return round_half_up(100 * completed_weight / total_weight)


def calculate_auto_progress(task: Task, subtasks: Iterable[Subtask]) -> Optional[int]:
    """
    Compute the completion percentage of a task from its subtasks.

    Returns None when auto progress is off or there are no subtasks, in which
    case the task's progress must be left as it is.
    """
    subtasks = list(subtasks)
    if not task.auto_progress or not subtasks:
        return None

    if task.weighted_progress:
        return weighted_progress(subtasks)
    return unweighted_progress(subtasks)


def all_subtasks_completed(subtasks: Iterable[Subtask]) -> bool:
    subtasks = list(subtasks)
    return bool(subtasks) and all(s.is_completed for s in subtasks)
