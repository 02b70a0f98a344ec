"""
Weekly recurrence materialization.

A weekly recurring task is one logical row that is visible across a window of
consecutive weeks starting at its origin week. Its status for any particular
week lives in a WeeklyTaskCompletion record, never on the row itself.

This module handles:
- Visibility of a task in a target week
- The effective status/progress of a task for a week
- Which templates still need a row for a week, and building that row
"""

import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from weekflow.exceptions import PreconditionFailedError
from weekflow.models import (
    RecurringTaskTemplate,
    Task,
    TaskStatus,
    WeeklyTaskCompletion,
)
from weekflow.services.weeks import week_start

DEFAULT_RECURRENCE_WEEKS = 1
MIN_RECURRENCE_WEEKS = 1


@dataclass(frozen=True)
class WeekState:
    """Status and progress a task displays for one specific week."""
    status: TaskStatus
    progress_current: int


def origin_week(task: Task) -> int:
    if task.original_week_number is not None:
        return task.original_week_number
    return task.week_number


def span_weeks(task: Task) -> int:
    return task.recurrence_weeks or DEFAULT_RECURRENCE_WEEKS


def is_visible_in_week(task: Task, target_week: int) -> bool:
    """
    Recurring-category tasks show in [origin, origin + span); every other
    task shows only in its own week.
    """
    if not task.in_recurring_category:
        return task.week_number == target_week

    start = origin_week(task)
    return start <= target_week < start + span_weeks(task)


def effective_state_for_week(
    task: Task,
    target_week: int,
    completion_record: Optional[WeeklyTaskCompletion],
    current_week: Optional[int] = None,
) -> WeekState:
    """
    Resolve what a task shows for target_week.

    For recurring-category tasks the completion record of that week is
    authoritative; without one the week starts fresh as todo with no progress,
    whatever other weeks recorded. Other tasks show their own state.

    A dependency block on a recurring-category task applies to current_week
    only: a todo week there shows as blocked.
    """
    if not task.in_recurring_category:
        return WeekState(status=task.effective_status, progress_current=task.progress_current)

    if completion_record is not None and completion_record.week_number == target_week:
        state = WeekState(
            status=completion_record.status,
            progress_current=completion_record.progress_current,
        )
    else:
        state = WeekState(status=TaskStatus.TODO, progress_current=0)

    if task.blocked_by_dependencies and target_week == current_week and state.status == TaskStatus.TODO:
        return WeekState(status=TaskStatus.BLOCKED, progress_current=state.progress_current)
    return state


def validate_recurrence_weeks(recurrence_weeks: int, max_weeks: int) -> int:
    if not MIN_RECURRENCE_WEEKS <= recurrence_weeks <= max_weeks:
        raise PreconditionFailedError(
            f"recurrence_weeks must be between {MIN_RECURRENCE_WEEKS} and {max_weeks}, "
            f"got {recurrence_weeks}",
            details=[{
                "loc": ["body", "recurrence_weeks"],
                "msg": f"out of range 1..{max_weeks}",
                "type": "value_error",
            }],
        )
    return recurrence_weeks


def templates_missing_week(
    templates: Iterable[RecurringTaskTemplate],
    tasks: Iterable[Task],
    target_week: int,
) -> list[RecurringTaskTemplate]:
    """
    Active templates that have no materialized row in target_week yet.

    Duplicated templates in the input are returned once.
    """
    existing = {
        task.recurring_template_id
        for task in tasks
        if task.recurring_template_id is not None and task.week_number == target_week
    }

    missing = []
    for template in templates:
        if not template.is_active or template.id in existing:
            continue
        existing.add(template.id)
        missing.append(template)
    return missing


def materialize_template(template: RecurringTaskTemplate, target_week: int) -> Task:
    """
    Build the task row a template contributes to target_week.

    Each materialized row covers only its own week; the next week gets a row
    of its own.
    """
    return Task(
        id=uuid.uuid4(),
        user_id=template.user_id,
        category=template.category,
        title=template.title,
        description=template.description,
        priority=template.priority,
        status=TaskStatus.TODO,
        week_number=target_week,
        is_recurring=True,
        recurrence_pattern=template.recurrence_pattern,
        original_week_number=target_week,
        recurrence_weeks=DEFAULT_RECURRENCE_WEEKS,
        recurring_template_id=template.id,
        progress_current=0,
    )


def next_creation_date(template: RecurringTaskTemplate, target_week: int, year: int) -> date:
    """
    The day the template's next row should appear: the Monday after
    target_week, brought forward by auto_create_days_before.
    """
    next_monday = week_start(year, target_week + 1)
    return next_monday - timedelta(days=template.auto_create_days_before or 0)


def stamp_template(template: RecurringTaskTemplate, target_week: int, year: int) -> None:
    now = datetime.utcnow()
    template.last_created_at = now
    template.next_creation_date = next_creation_date(template, target_week, year)
    template.updated_at = now
