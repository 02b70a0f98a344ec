"""
Task routes for the Weekflow API.
"""

import uuid

from fastapi import APIRouter, Depends, Response, status

from weekflow.engine import LifecycleEngine
from weekflow.exceptions import NotFoundError
from weekflow.routes.common import get_engine
from weekflow.schemas import (
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
    WeeklyCompletionRead,
    WeeklyCompletionSet,
    WeeklyStatusUpdate,
)

router = APIRouter()


@router.post("/", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_in: TaskCreate,
    engine: LifecycleEngine = Depends(get_engine),
) -> TaskRead:
    """
    Create a new task.

    If week_number is not provided, the task lands in the current week.
    """
    task = await engine.create_task(task_in)
    return engine.to_view(task)


@router.post("/reorder", response_model=list[TaskRead])
async def reorder_tasks(
    reorder_in: TaskReorder,
    engine: LifecycleEngine = Depends(get_engine),
) -> list[TaskRead]:
    """Place the given tasks into a category, in order."""
    tasks = await engine.reorder_tasks(reorder_in.category, reorder_in.task_ids)
    return [engine.to_view(t) for t in tasks]


@router.post("/bulk/update", response_model=list[TaskRead])
async def bulk_update_tasks(
    bulk_in: BulkTaskUpdate,
    engine: LifecycleEngine = Depends(get_engine),
) -> list[TaskRead]:
    tasks = await engine.bulk_update_tasks(bulk_in.task_ids, bulk_in.changes)
    return [engine.to_view(t) for t in tasks]


@router.post("/bulk/move", response_model=list[TaskRead])
async def bulk_move_tasks(
    bulk_in: BulkTaskMove,
    engine: LifecycleEngine = Depends(get_engine),
) -> list[TaskRead]:
    tasks = await engine.bulk_move_tasks(bulk_in.task_ids, bulk_in.category)
    return [engine.to_view(t) for t in tasks]


@router.post("/bulk/delete", status_code=status.HTTP_204_NO_CONTENT)
async def bulk_delete_tasks(
    bulk_in: BulkTaskIds,
    engine: LifecycleEngine = Depends(get_engine),
) -> Response:
    await engine.bulk_delete_tasks(bulk_in.task_ids)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{task_id}", response_model=TaskRead)
async def get_task(
    task_id: uuid.UUID,
    week_number: int | None = None,
    engine: LifecycleEngine = Depends(get_engine),
) -> TaskRead:
    """Get a task as shown in a week (the current week by default)."""
    task = engine.tasks.get(task_id)
    if task is None:
        raise NotFoundError("Task", str(task_id))
    if week_number is not None:
        await engine.get_weekly_task_completion(task_id, week_number)
    return engine.to_view(task, week_number)


@router.patch("/{task_id}", response_model=TaskRead)
async def update_task(
    task_id: uuid.UUID,
    task_in: TaskUpdate,
    engine: LifecycleEngine = Depends(get_engine),
) -> TaskRead:
    """
    Update a task.

    Changing the status re-evaluates every task that depends on this one.
    A task blocked by dependencies cannot be started or completed.
    Only optional fields such as description or due_date may be set to null.
    """
    task = await engine.update_task(task_id, task_in)
    return engine.to_view(task)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: uuid.UUID,
    engine: LifecycleEngine = Depends(get_engine),
) -> Response:
    """Delete a task with its subtasks and dependency edges."""
    await engine.delete_task(task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{task_id}/dependency-status", response_model=DependencyStatusRead)
async def get_dependency_status(
    task_id: uuid.UUID,
    engine: LifecycleEngine = Depends(get_engine),
) -> DependencyStatusRead:
    return DependencyStatusRead(task_id=task_id, can_start=engine.check_dependency_status(task_id))


# =============================================================================
# Progress
# =============================================================================

@router.put("/{task_id}/progress", response_model=TaskRead)
async def update_progress(
    task_id: uuid.UUID,
    progress_in: ProgressUpdate,
    engine: LifecycleEngine = Depends(get_engine),
) -> TaskRead:
    task = await engine.update_progress(task_id, progress_in.progress_current)
    return engine.to_view(task)


@router.put("/{task_id}/progress-settings", response_model=TaskRead)
async def update_progress_settings(
    task_id: uuid.UUID,
    settings_in: ProgressSettingsUpdate,
    engine: LifecycleEngine = Depends(get_engine),
) -> TaskRead:
    """Switch auto progress on or off; turning it on recomputes from subtasks."""
    task = await engine.update_progress_settings(
        task_id, settings_in.auto_progress, settings_in.weighted_progress,
    )
    return engine.to_view(task)


# =============================================================================
# Weekly completion
# =============================================================================

@router.put("/{task_id}/weekly-status", response_model=TaskRead)
async def update_weekly_status(
    task_id: uuid.UUID,
    status_in: WeeklyStatusUpdate,
    engine: LifecycleEngine = Depends(get_engine),
) -> TaskRead:
    """
    Change status from the current week's board.

    Weekly recurring tasks record the change for the current week only.
    """
    return await engine.update_weekly_recurring_task_status(
        task_id, status_in.status, status_in.progress_current,
    )


@router.get("/{task_id}/weeks/{week_number}", response_model=WeeklyCompletionRead | None)
async def get_weekly_completion(
    task_id: uuid.UUID,
    week_number: int,
    engine: LifecycleEngine = Depends(get_engine),
):
    return await engine.get_weekly_task_completion(task_id, week_number)


@router.put("/{task_id}/weeks/{week_number}", response_model=WeeklyCompletionRead)
async def set_weekly_completion(
    task_id: uuid.UUID,
    week_number: int,
    completion_in: WeeklyCompletionSet,
    engine: LifecycleEngine = Depends(get_engine),
):
    return await engine.set_weekly_task_completion(
        task_id, week_number, completion_in.status, completion_in.progress_current,
    )


# =============================================================================
# Subtasks
# =============================================================================

@router.post("/{task_id}/subtasks", response_model=SubtaskRead, status_code=status.HTTP_201_CREATED)
async def add_subtask(
    task_id: uuid.UUID,
    subtask_in: SubtaskCreate,
    engine: LifecycleEngine = Depends(get_engine),
):
    return await engine.add_subtask(
        task_id, subtask_in.title, subtask_in.weight, subtask_in.auto_complete_parent,
    )


@router.put("/{task_id}/subtasks/order", response_model=list[SubtaskRead])
async def reorder_subtasks(
    task_id: uuid.UUID,
    reorder_in: SubtaskReorder,
    engine: LifecycleEngine = Depends(get_engine),
):
    return await engine.reorder_subtasks(task_id, reorder_in.subtask_ids)


@router.patch("/subtasks/{subtask_id}", response_model=SubtaskRead)
async def update_subtask(
    subtask_id: uuid.UUID,
    subtask_in: SubtaskUpdate,
    engine: LifecycleEngine = Depends(get_engine),
):
    return await engine.update_subtask(subtask_id, subtask_in.title)


@router.post("/subtasks/{subtask_id}/toggle", response_model=SubtaskRead)
async def toggle_subtask(
    subtask_id: uuid.UUID,
    engine: LifecycleEngine = Depends(get_engine),
):
    """Flip completion; may recompute progress and complete the parent."""
    return await engine.toggle_subtask(subtask_id)


@router.put("/subtasks/{subtask_id}/weight", response_model=SubtaskRead)
async def update_subtask_weight(
    subtask_id: uuid.UUID,
    weight_in: SubtaskWeightUpdate,
    engine: LifecycleEngine = Depends(get_engine),
):
    return await engine.update_subtask_weight(subtask_id, weight_in.weight)


@router.delete("/subtasks/{subtask_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_subtask(
    subtask_id: uuid.UUID,
    engine: LifecycleEngine = Depends(get_engine),
) -> Response:
    await engine.delete_subtask(subtask_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Attachments and comments
# =============================================================================

@router.get("/{task_id}/attachments", response_model=list[AttachmentRead])
async def list_attachments(
    task_id: uuid.UUID,
    engine: LifecycleEngine = Depends(get_engine),
):
    """Attachments of a task, including those shared with a migrated fork."""
    return engine.attachments_for(task_id)


@router.post("/{task_id}/attachments", response_model=AttachmentRead, status_code=status.HTTP_201_CREATED)
async def add_attachment(
    task_id: uuid.UUID,
    attachment_in: AttachmentCreate,
    engine: LifecycleEngine = Depends(get_engine),
):
    return await engine.add_attachment(
        task_id,
        attachment_in.file_name,
        attachment_in.file_url,
        attachment_in.file_size,
        attachment_in.file_type,
    )


@router.delete("/attachments/{attachment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_attachment(
    attachment_id: uuid.UUID,
    engine: LifecycleEngine = Depends(get_engine),
) -> Response:
    await engine.delete_attachment(attachment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{task_id}/comments", response_model=CommentRead, status_code=status.HTTP_201_CREATED)
async def add_comment(
    task_id: uuid.UUID,
    comment_in: CommentCreate,
    engine: LifecycleEngine = Depends(get_engine),
):
    return await engine.add_comment(task_id, comment_in.content, comment_in.parent_comment_id)
