"""
Rules for carrying unfinished work into a later week.

Two forward motions exist:
- rollover: advance one week, reassigning unfinished non-recurring tasks in place
- migration: catch up to the real calendar week, moving todo tasks and forking
  in-progress tasks so the original keeps its history in its old week

The engine owns the writes; this module only decides what to touch and
builds the forked rows.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from weekflow.models import Subtask, Task, TaskDependency, TaskStatus

FORKED_SORT_ORDER = 0


@dataclass
class MigrationResult:
    """Outcome of a migration run."""
    from_week: int
    to_week: int
    moved_task_ids: list[uuid.UUID] = field(default_factory=list)
    # original task id -> id of the fork created in to_week
    forked_task_ids: dict[uuid.UUID, uuid.UUID] = field(default_factory=dict)


@dataclass
class ForkedTask:
    task: Task
    subtasks: list[Subtask]
    dependencies: list[TaskDependency]


def is_recurring_task(task: Task) -> bool:
    return task.is_recurring or task.in_recurring_category


def rollover_candidates(tasks: Iterable[Task], week: int) -> list[Task]:
    """Non-recurring tasks of `week` that are not done."""
    return [
        task for task in tasks
        if task.week_number == week
        and not is_recurring_task(task)
        and task.effective_status != TaskStatus.DONE
    ]


def partition_for_migration(tasks: Iterable[Task], week: int) -> tuple[list[Task], list[Task]]:
    """
    Split the migratable tasks of `week` into (to_move, to_fork).

    Only tasks outside the weekly recurring category whose effective status is
    todo (moved) or in_progress (forked) take part; done and blocked tasks stay.
    """
    to_move: list[Task] = []
    to_fork: list[Task] = []
    for task in tasks:
        if task.week_number != week or task.in_recurring_category:
            continue
        status = task.effective_status
        if status == TaskStatus.TODO:
            to_move.append(task)
        elif status == TaskStatus.IN_PROGRESS:
            to_fork.append(task)
    return to_move, to_fork


def fork_task(
    task: Task,
    subtasks: Iterable[Subtask],
    dependencies: Iterable[TaskDependency],
    target_week: int,
) -> ForkedTask:
    """
    Copy an in-progress task into target_week.

    Subtasks are deep copied with their completion state, outgoing dependency
    edges are re-pointed from the new task to the same prerequisites, and the
    attachment set is shared by reference rather than duplicated.
    """
    now = datetime.utcnow()
    new_task = Task(
        id=uuid.uuid4(),
        user_id=task.user_id,
        category=task.category,
        title=task.title,
        description=task.description,
        status=TaskStatus.IN_PROGRESS,
        priority=task.priority,
        due_date=task.due_date,
        week_number=target_week,
        sort_order=FORKED_SORT_ORDER,
        progress_current=task.progress_current or 0,
        progress_total=task.progress_total,
        auto_progress=task.auto_progress,
        weighted_progress=task.weighted_progress,
        is_recurring=task.is_recurring,
        recurrence_pattern=task.recurrence_pattern,
        attachment_owner_id=task.attachment_owner_id or task.id,
        created_at=now,
        updated_at=now,
    )

    new_subtasks = [
        Subtask(
            id=uuid.uuid4(),
            task_id=new_task.id,
            title=s.title,
            is_completed=s.is_completed,
            position=s.position,
            weight=s.weight,
            auto_complete_parent=s.auto_complete_parent,
        )
        for s in sorted(subtasks, key=lambda s: s.position)
    ]

    new_dependencies = [
        TaskDependency(
            id=uuid.uuid4(),
            task_id=new_task.id,
            depends_on_task_id=dep.depends_on_task_id,
            dependency_type=dep.dependency_type,
        )
        for dep in dependencies
        if dep.task_id == task.id
    ]

    return ForkedTask(task=new_task, subtasks=new_subtasks, dependencies=new_dependencies)
