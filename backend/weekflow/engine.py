"""
Task lifecycle engine.

One LifecycleEngine instance holds the in-memory task set of one user plus
the week pointer, and is handed its collaborators (storage, identity,
activity log) explicitly.

Every operation follows the same order:
1. Validate locally (Unauthenticated / NotFound / PreconditionFailed), no mutation
2. Apply the change to the in-memory set
3. Write through the repository; on failure the local change stays, the task
   ids are marked unconfirmed and RemoteFailureError is raised
4. Emit activity records (best effort)
"""

import uuid
from datetime import date, datetime
from typing import Callable, Iterable, Optional, Sequence

from sqlmodel import SQLModel

from weekflow.config import Settings, get_settings
from weekflow.exceptions import (
    CycleDetectedError,
    DuplicateDependencyError,
    InvalidDependencyTypeError,
    NotFoundError,
    PreconditionFailedError,
    RemoteFailureError,
    SelfDependencyError,
    UnauthenticatedError,
    WeekflowException,
)
from weekflow.logging_config import get_logger
from weekflow.models import (
    DEFAULT_SORT_ORDER,
    ActivityType,
    Attachment,
    DependencyType,
    RecurringTaskTemplate,
    Subtask,
    Task,
    TaskCategory,
    TaskComment,
    TaskDependency,
    TaskStatus,
    WeekCursor,
    WeeklyTaskCompletion,
)
from weekflow.ports import ActivitySink, IdentityProvider, TaskRepository
from weekflow.schemas import (
    AttachmentRead,
    DependencyRead,
    RecurringTemplateCreate,
    RecurringTemplateUpdate,
    SubtaskRead,
    TaskCreate,
    TaskRead,
    TaskUpdate,
)
from weekflow.services import progress, recurrence, rollover
from weekflow.services.activity import ActivityLogger
from weekflow.services.dependencies import (
    direct_dependents,
    is_eligible_to_start,
    would_create_cycle,
)
from weekflow.services.recurrence import WeekState
from weekflow.services.rollover import MigrationResult
from weekflow.services.weeks import calendar_week

logger = get_logger(__name__)

# Status changes that a dependency block refuses.
STARTED_STATUSES = (TaskStatus.IN_PROGRESS, TaskStatus.DONE)

# Task fields an update may set to null.
CLEARABLE_TASK_FIELDS = frozenset({
    "description",
    "due_date",
    "sort_order",
    "progress_total",
    "recurrence_pattern",
    "recurrence_weeks",
})


class LifecycleEngine:
    def __init__(
        self,
        repository: TaskRepository,
        identity: IdentityProvider,
        activity_sink: Optional[ActivitySink] = None,
        *,
        today: Callable[[], date] = date.today,
        settings: Optional[Settings] = None,
    ):
        self.repository = repository
        self.identity = identity
        self.activity = ActivityLogger(activity_sink)
        self.settings = settings or get_settings()
        self._today = today

        self.tasks: dict[uuid.UUID, Task] = {}
        self.subtasks: dict[uuid.UUID, list[Subtask]] = {}
        self.dependencies: list[TaskDependency] = []
        self.templates: dict[uuid.UUID, RecurringTaskTemplate] = {}
        self.attachments: dict[uuid.UUID, Attachment] = {}
        self.completions: dict[tuple[uuid.UUID, int], WeeklyTaskCompletion] = {}

        self.current_week: int = calendar_week(today())
        self.unconfirmed: set[uuid.UUID] = set()
        self.error: Optional[str] = None

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _require_user(self) -> str:
        user_id = self.identity.current_user_id()
        if not user_id:
            self.error = "User not authenticated"
            raise UnauthenticatedError()
        return user_id

    def _get_task(self, task_id: uuid.UUID) -> Task:
        task = self.tasks.get(task_id)
        if task is None:
            self.error = f"Task {task_id} not found"
            raise NotFoundError("Task", str(task_id))
        return task

    def _find_subtask(self, subtask_id: uuid.UUID) -> tuple[Task, Subtask]:
        for task_id, subtasks in self.subtasks.items():
            for subtask in subtasks:
                if subtask.id == subtask_id:
                    return self.tasks[task_id], subtask
        raise self._fail(NotFoundError("Subtask", str(subtask_id)))

    def _fail(self, exc: WeekflowException) -> WeekflowException:
        self.error = exc.message
        return exc

    def _checked_span(self, weeks: Optional[int]) -> int:
        if weeks is None:
            weeks = recurrence.DEFAULT_RECURRENCE_WEEKS
        try:
            return recurrence.validate_recurrence_weeks(weeks, self.settings.max_recurrence_weeks)
        except PreconditionFailedError as exc:
            raise self._fail(exc)

    async def _write(
        self,
        entities: Sequence[SQLModel],
        task_ids: Iterable[uuid.UUID] = (),
        operation: str = "write",
    ) -> None:
        """Commit entities already applied locally."""
        if not entities:
            return
        try:
            await self.repository.save(*entities)
        except Exception as exc:
            self._mark_unconfirmed(task_ids, exc, operation)
            if isinstance(exc, RemoteFailureError):
                raise
            raise RemoteFailureError(str(exc), operation=operation) from exc
        self.error = None

    async def _remove(
        self,
        entities: Sequence[SQLModel],
        task_ids: Iterable[uuid.UUID] = (),
        operation: str = "delete",
    ) -> None:
        try:
            await self.repository.delete(*entities)
        except Exception as exc:
            self._mark_unconfirmed(task_ids, exc, operation)
            if isinstance(exc, RemoteFailureError):
                raise
            raise RemoteFailureError(str(exc), operation=operation) from exc
        self.error = None

    def _mark_unconfirmed(self, task_ids: Iterable[uuid.UUID], exc: Exception, operation: str) -> None:
        ids = set(task_ids)
        self.unconfirmed.update(ids)
        self.error = str(getattr(exc, "message", exc))
        logger.error(f"{operation} failed, {len(ids)} task(s) left unconfirmed: {self.error}")

    async def _log(self, task_id: uuid.UUID, activity_type: ActivityType, old=None, new=None, details=None):
        await self.activity.log(self._require_user(), task_id, activity_type, old, new, details)

    def _touch(self, *entities) -> None:
        now = datetime.utcnow()
        for entity in entities:
            entity.updated_at = now

    # ------------------------------------------------------------------
    # Loading and views
    # ------------------------------------------------------------------

    async def load(self) -> "LifecycleEngine":
        """Read the user's authoritative state from storage."""
        user_id = self._require_user()

        tasks = await self.repository.fetch_tasks(user_id)
        task_ids = [t.id for t in tasks]
        subtasks = await self.repository.fetch_subtasks(task_ids)
        dependencies = await self.repository.fetch_dependencies(task_ids)
        templates = await self.repository.fetch_templates(user_id)
        attachments = await self.repository.fetch_attachments(task_ids)
        cursor = await self.repository.get_week_cursor(user_id)

        self.tasks = {t.id: t for t in tasks}
        self.subtasks = {t.id: [] for t in tasks}
        for subtask in sorted(subtasks, key=lambda s: s.position):
            self.subtasks.setdefault(subtask.task_id, []).append(subtask)
        self.dependencies = list(dependencies)
        self.templates = {t.id: t for t in templates}
        self.attachments = {a.id: a for a in attachments}
        self.completions = {}
        self.current_week = cursor.current_week if cursor else calendar_week(self._today())
        self.unconfirmed.clear()
        self.error = None

        await self._load_completions(self.current_week)

        logger.debug(
            f"Loaded {len(self.tasks)} tasks, {len(self.dependencies)} dependencies, "
            f"{len(self.templates)} templates for user={user_id} week={self.current_week}"
        )
        return self

    async def refresh(self) -> "LifecycleEngine":
        """Discard local state, including unconfirmed changes, and reload."""
        return await self.load()

    async def _load_completions(self, week_number: int) -> None:
        user_id = self._require_user()
        records = await self.repository.fetch_completions(user_id, week_number)
        for record in records:
            self.completions[(record.task_id, record.week_number)] = record

    def effective_state(self, task: Task, week_number: Optional[int] = None) -> WeekState:
        week = self.current_week if week_number is None else week_number
        return recurrence.effective_state_for_week(
            task, week, self.completions.get((task.id, week)), current_week=self.current_week,
        )

    def _intended_state(self, task: Task) -> WeekState:
        """Current-week state as the user set it, ignoring any dependency block."""
        if not task.in_recurring_category:
            return WeekState(status=task.status, progress_current=task.progress_current)
        week = self.current_week
        return recurrence.effective_state_for_week(task, week, self.completions.get((task.id, week)))

    def attachments_for(self, task_id: uuid.UUID) -> list[Attachment]:
        task = self._get_task(task_id)
        owner_id = task.attachment_owner_id or task.id
        return sorted(
            (a for a in self.attachments.values() if a.task_id == owner_id),
            key=lambda a: a.uploaded_at,
            reverse=True,
        )

    def dependencies_of(self, task_id: uuid.UUID) -> list[TaskDependency]:
        return [d for d in self.dependencies if d.task_id == task_id]

    def dependents_of(self, task_id: uuid.UUID) -> list[TaskDependency]:
        return [d for d in self.dependencies if d.depends_on_task_id == task_id]

    def to_view(self, task: Task, week_number: Optional[int] = None) -> TaskRead:
        state = self.effective_state(task, week_number)
        data = task.model_dump()
        data.update(
            status=state.status,
            progress_current=state.progress_current,
            intended_status=task.status,
            is_blocked=task.blocked_by_dependencies,
            subtasks=[SubtaskRead.model_validate(s) for s in self.subtasks.get(task.id, [])],
            dependencies=[DependencyRead.model_validate(d) for d in self.dependencies_of(task.id)],
            attachments=[AttachmentRead.model_validate(a) for a in self.attachments_for(task.id)],
            unconfirmed=task.id in self.unconfirmed,
        )
        return TaskRead(**data)

    async def tasks_for_week(self, week_number: Optional[int] = None) -> list[TaskRead]:
        """Tasks visible in a week with their effective state for that week."""
        self._require_user()
        week = self.current_week if week_number is None else week_number
        await self._load_completions(week)

        visible = [t for t in self.tasks.values() if recurrence.is_visible_in_week(t, week)]
        visible.sort(key=lambda t: (t.category.value, t.sort_order if t.sort_order is not None else DEFAULT_SORT_ORDER))
        return [self.to_view(t, week) for t in visible]

    async def set_current_week(self, week_number: int) -> int:
        user_id = self._require_user()
        self.current_week = week_number
        await self._write([WeekCursor(user_id=user_id, current_week=week_number)], operation="set_current_week")
        await self._load_completions(week_number)
        return self.current_week

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def create_task(self, task_in: TaskCreate) -> Task:
        user_id = self._require_user()
        week = task_in.week_number if task_in.week_number is not None else self.current_week

        data = task_in.model_dump()
        data["week_number"] = week
        data["sort_order"] = task_in.sort_order if task_in.sort_order is not None else DEFAULT_SORT_ORDER
        if task_in.category == TaskCategory.WEEKLY_RECURRING:
            data["recurrence_weeks"] = self._checked_span(task_in.recurrence_weeks)
            data["original_week_number"] = week
        else:
            data["recurrence_weeks"] = None

        task = Task(user_id=user_id, **data)
        self.tasks[task.id] = task
        self.subtasks[task.id] = []

        await self._write([task], [task.id], operation="create_task")
        logger.info(f"Created task: id={task.id} title='{task.title}' week={task.week_number}")
        await self._log(task.id, ActivityType.CREATED, new=task.title, details={"category": task.category.value})
        return task

    async def update_task(self, task_id: uuid.UUID, task_in: TaskUpdate) -> Task:
        self._require_user()
        task = self._get_task(task_id)
        updates = task_in.model_dump(exclude_unset=True)

        cleared = sorted(f for f, v in updates.items() if v is None and f not in CLEARABLE_TASK_FIELDS)
        if cleared:
            raise self._fail(PreconditionFailedError(
                f"Fields cannot be cleared: {', '.join(cleared)}",
                details=[{"loc": ["body", f], "msg": "may not be null", "type": "value_error"} for f in cleared],
            ))

        new_status = updates.get("status")
        if (
            new_status in STARTED_STATUSES
            and task.blocked_by_dependencies
            and new_status != task.status
        ):
            raise self._fail(PreconditionFailedError(
                f"Task '{task.title}' is blocked by unmet dependencies",
            ))

        category = updates.get("category", task.category)
        if "recurrence_weeks" in updates or (
            category == TaskCategory.WEEKLY_RECURRING and task.category != category
        ):
            span = updates.get("recurrence_weeks")
            updates["recurrence_weeks"] = self._checked_span(span if span is not None else task.recurrence_weeks)
        if category == TaskCategory.WEEKLY_RECURRING and task.original_week_number is None:
            updates["original_week_number"] = updates.get("week_number", task.week_number)

        old = {field: getattr(task, field) for field in updates}
        shown_before = self.effective_state(task).status
        logger.info(f"Updating task {task_id}: {updates}")

        for field, value in updates.items():
            setattr(task, field, value)
        self._touch(task)

        await self._write([task], [task.id], operation="update_task")

        await self._log_changes(task, old, updates)

        status_changed = "status" in updates and old["status"] != task.status
        if status_changed or self.effective_state(task).status != shown_before:
            if self._intended_state(task).status == TaskStatus.TODO:
                await self._reevaluate([task.id])
            await self._prerequisites_changed([task.id])
        if task.auto_progress and ("auto_progress" in updates or "weighted_progress" in updates):
            await self.calculate_auto_progress(task.id)
        return task

    async def _log_changes(self, task: Task, old: dict, updates: dict) -> None:
        tracked = [
            ("status", ActivityType.STATUS_CHANGED),
            ("priority", ActivityType.PRIORITY_CHANGED),
            ("progress_current", ActivityType.PROGRESS_UPDATED),
            ("due_date", ActivityType.DUE_DATE_CHANGED),
            ("week_number", ActivityType.MOVED_WEEK),
            ("category", ActivityType.MOVED_CATEGORY),
        ]
        for field, activity_type in tracked:
            if field in updates and old[field] != updates[field]:
                await self._log(task.id, activity_type, old[field], updates[field])

    async def delete_task(self, task_id: uuid.UUID) -> None:
        self._require_user()
        task = self._get_task(task_id)
        dependent_ids = [d.task_id for d in self.dependents_of(task_id)]

        logger.info(f"Deleting task {task_id}: '{task.title}'")

        del self.tasks[task_id]
        self.subtasks.pop(task_id, None)
        self.dependencies = [
            d for d in self.dependencies
            if d.task_id != task_id and d.depends_on_task_id != task_id
        ]
        self.completions = {k: v for k, v in self.completions.items() if k[0] != task_id}

        await self._remove([task], [task_id], operation="delete_task")

        logger.debug(f"Task {task_id} had {len(dependent_ids)} dependents to re-evaluate")
        await self._reevaluate(dependent_ids)

    async def move_task_to_category(self, task_id: uuid.UUID, category: TaskCategory) -> Task:
        return await self.update_task(task_id, TaskUpdate(category=category))

    async def reorder_tasks(self, category: TaskCategory, task_ids: Sequence[uuid.UUID]) -> list[Task]:
        """Put task_ids into `category` in the given order."""
        self._require_user()
        tasks = [self._get_task(task_id) for task_id in task_ids]

        moved = []
        for index, task in enumerate(tasks):
            if task.category != category:
                moved.append((task, task.category))
                task.category = category
            task.sort_order = index
        self._touch(*tasks)

        await self._write(tasks, task_ids, operation="reorder_tasks")
        for task, old_category in moved:
            await self._log(task.id, ActivityType.MOVED_CATEGORY, old_category, category)
        return tasks

    async def bulk_update_tasks(self, task_ids: Sequence[uuid.UUID], task_in: TaskUpdate) -> list[Task]:
        self._require_user()
        tasks = [self._get_task(task_id) for task_id in task_ids]
        if task_in.status in STARTED_STATUSES:
            blocked = [t for t in tasks if t.blocked_by_dependencies and t.status != task_in.status]
            if blocked:
                raise self._fail(PreconditionFailedError(
                    f"{len(blocked)} of the selected tasks are blocked by unmet dependencies",
                ))
        return [await self.update_task(task_id, task_in) for task_id in task_ids]

    async def bulk_move_tasks(self, task_ids: Sequence[uuid.UUID], category: TaskCategory) -> list[Task]:
        return await self.bulk_update_tasks(task_ids, TaskUpdate(category=category))

    async def bulk_delete_tasks(self, task_ids: Sequence[uuid.UUID]) -> None:
        self._require_user()
        for task_id in task_ids:
            self._get_task(task_id)
        for task_id in task_ids:
            await self.delete_task(task_id)

    # ------------------------------------------------------------------
    # Subtasks and progress
    # ------------------------------------------------------------------

    async def add_subtask(
        self,
        task_id: uuid.UUID,
        title: str,
        weight: Optional[int] = None,
        auto_complete_parent: bool = False,
    ) -> Subtask:
        self._require_user()
        task = self._get_task(task_id)
        subtasks = self.subtasks.setdefault(task_id, [])
        self._check_weight(weight)

        subtask = Subtask(
            task_id=task_id,
            title=title,
            position=len(subtasks) + 1,
            weight=weight,
            auto_complete_parent=auto_complete_parent,
        )
        subtasks.append(subtask)

        await self._write([subtask], [task.id], operation="add_subtask")
        await self._log(task_id, ActivityType.SUBTASK_ADDED, new=title)
        await self.calculate_auto_progress(task_id)
        return subtask

    async def update_subtask(self, subtask_id: uuid.UUID, title: str) -> Subtask:
        self._require_user()
        task, subtask = self._find_subtask(subtask_id)
        subtask.title = title
        await self._write([subtask], [task.id], operation="update_subtask")
        return subtask

    async def toggle_subtask(self, subtask_id: uuid.UUID) -> Subtask:
        self._require_user()
        task, subtask = self._find_subtask(subtask_id)
        subtask.is_completed = not subtask.is_completed

        await self._write([subtask], [task.id], operation="toggle_subtask")
        if subtask.is_completed:
            await self._log(task.id, ActivityType.SUBTASK_COMPLETED, new=subtask.title)

        await self.calculate_auto_progress(task.id)

        if (
            subtask.is_completed
            and subtask.auto_complete_parent
            and progress.all_subtasks_completed(self.subtasks[task.id])
            and task.status != TaskStatus.DONE
            and not task.blocked_by_dependencies
        ):
            await self.update_task(task.id, TaskUpdate(status=TaskStatus.DONE))
        return subtask

    async def update_subtask_weight(self, subtask_id: uuid.UUID, weight: Optional[int]) -> Subtask:
        self._require_user()
        self._check_weight(weight)
        task, subtask = self._find_subtask(subtask_id)
        subtask.weight = weight
        await self._write([subtask], [task.id], operation="update_subtask_weight")
        await self.calculate_auto_progress(task.id)
        return subtask

    async def delete_subtask(self, subtask_id: uuid.UUID) -> None:
        self._require_user()
        task, subtask = self._find_subtask(subtask_id)
        self.subtasks[task.id] = [s for s in self.subtasks[task.id] if s.id != subtask_id]

        await self._remove([subtask], [task.id], operation="delete_subtask")
        await self._log(task.id, ActivityType.SUBTASK_DELETED, old=subtask.title)
        await self.calculate_auto_progress(task.id)

    async def reorder_subtasks(self, task_id: uuid.UUID, subtask_ids: Sequence[uuid.UUID]) -> list[Subtask]:
        self._require_user()
        self._get_task(task_id)
        by_id = {s.id: s for s in self.subtasks.get(task_id, [])}
        for subtask_id in subtask_ids:
            if subtask_id not in by_id:
                raise self._fail(NotFoundError("Subtask", str(subtask_id)))

        ordered = [by_id[i] for i in subtask_ids]
        ordered += [s for s in self.subtasks[task_id] if s.id not in set(subtask_ids)]
        for position, subtask in enumerate(ordered, start=1):
            subtask.position = position
        self.subtasks[task_id] = ordered

        await self._write(ordered, [task_id], operation="reorder_subtasks")
        return ordered

    def _check_weight(self, weight: Optional[int]) -> None:
        if weight is not None and weight < 0:
            raise self._fail(PreconditionFailedError(f"Subtask weight must be >= 0, got {weight}"))

    async def update_progress(self, task_id: uuid.UUID, current: int) -> Task:
        self._require_user()
        task = self._get_task(task_id)
        old = task.progress_current
        task.progress_current = current
        self._touch(task)

        await self._write([task], [task.id], operation="update_progress")
        await self._log(task_id, ActivityType.PROGRESS_UPDATED, old, current)
        return task

    async def update_progress_settings(
        self,
        task_id: uuid.UUID,
        auto_progress: bool,
        weighted_progress: bool = False,
    ) -> Task:
        self._require_user()
        task = self._get_task(task_id)
        task.auto_progress = auto_progress
        task.weighted_progress = weighted_progress
        self._touch(task)

        await self._write([task], [task.id], operation="update_progress_settings")
        if auto_progress:
            await self.calculate_auto_progress(task_id)
        return task

    async def calculate_auto_progress(self, task_id: uuid.UUID) -> Optional[int]:
        """
        Recompute progress from subtasks when auto progress is on.

        Returns the computed percentage, or None when auto progress does not
        apply. A percentage equal to the current one is not written again.
        """
        self._require_user()
        task = self._get_task(task_id)
        value = progress.calculate_auto_progress(task, self.subtasks.get(task_id, []))
        if value is None:
            return None

        if value != task.progress_current:
            await self.update_progress(task_id, value)
        return value

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    def _status_of(self, task_id: uuid.UUID) -> Optional[TaskStatus]:
        task = self.tasks.get(task_id)
        if task is None:
            return None
        return self.effective_state(task).status

    def check_dependency_status(self, task_id: uuid.UUID) -> bool:
        """True when every dependency of the task allows it to start."""
        if task_id not in self.tasks:
            return True
        return is_eligible_to_start(task_id, self.dependencies_of(task_id), self._status_of)

    async def add_dependency(
        self,
        task_id: uuid.UUID,
        depends_on_task_id: uuid.UUID,
        dependency_type: DependencyType | str = DependencyType.FINISH_TO_START,
    ) -> TaskDependency:
        self._require_user()

        try:
            dependency_type = DependencyType(dependency_type)
        except ValueError:
            raise self._fail(InvalidDependencyTypeError(str(dependency_type)))

        task = self._get_task(task_id)
        self._get_task(depends_on_task_id)

        if task_id == depends_on_task_id:
            logger.warning(f"Self-dependency rejected: {task_id}")
            raise self._fail(SelfDependencyError(str(task_id)))

        if any(d.depends_on_task_id == depends_on_task_id for d in self.dependencies_of(task_id)):
            logger.warning(f"Duplicate dependency rejected: {task_id} -> {depends_on_task_id}")
            raise self._fail(DuplicateDependencyError(str(task_id), str(depends_on_task_id)))

        if would_create_cycle(self.dependencies, task_id, depends_on_task_id):
            logger.warning(f"Cycle detected: {task_id} -> {depends_on_task_id} would create a cycle")
            raise self._fail(CycleDetectedError(str(task_id), str(depends_on_task_id)))

        dependency = TaskDependency(
            task_id=task_id,
            depends_on_task_id=depends_on_task_id,
            dependency_type=dependency_type,
        )
        self.dependencies.append(dependency)

        await self._write([dependency], [task_id], operation="add_dependency")
        logger.info(f"Created dependency: {task.title} waits on {depends_on_task_id} ({dependency_type.value})")
        await self._log(task_id, ActivityType.DEPENDENCY_ADDED, new=str(depends_on_task_id),
                        details={"dependency_type": dependency_type.value})

        if self._intended_state(task).status == TaskStatus.TODO and not self.check_dependency_status(task_id):
            await self._reevaluate([task_id])
        return dependency

    async def remove_dependency(self, dependency_id: uuid.UUID) -> None:
        self._require_user()
        dependency = next((d for d in self.dependencies if d.id == dependency_id), None)
        if dependency is None:
            raise self._fail(NotFoundError("Dependency", str(dependency_id)))

        logger.info(f"Deleting dependency: {dependency.task_id} -> {dependency.depends_on_task_id}")
        self.dependencies = [d for d in self.dependencies if d.id != dependency_id]

        await self._remove([dependency], [dependency.task_id], operation="remove_dependency")
        if dependency.task_id in self.tasks:
            await self._log(dependency.task_id, ActivityType.DEPENDENCY_REMOVED,
                            old=str(dependency.depends_on_task_id))
        await self._reevaluate([dependency.task_id])

    async def _prerequisites_changed(self, task_ids: Iterable[uuid.UUID]) -> list[Task]:
        return await self._reevaluate(direct_dependents(self.dependencies, task_ids))

    async def _reevaluate(self, task_ids: Iterable[uuid.UUID]) -> list[Task]:
        """
        Recompute the block override of the given tasks and, transitively, of
        the tasks depending on whatever changed.

        A blocked task that became eligible gets its intended status back; a
        todo task that became ineligible is blocked.
        """
        queue = list(task_ids)
        visited: set[uuid.UUID] = set()
        changed: list[tuple[Task, TaskStatus, TaskStatus]] = []

        while queue:
            task_id = queue.pop(0)
            if task_id in visited or task_id not in self.tasks:
                continue
            visited.add(task_id)
            task = self.tasks[task_id]

            before = self.effective_state(task).status
            eligible = self.check_dependency_status(task_id)
            if task.blocked_by_dependencies and eligible:
                task.blocked_by_dependencies = False
            elif (
                not task.blocked_by_dependencies
                and not eligible
                and self._intended_state(task).status == TaskStatus.TODO
            ):
                task.blocked_by_dependencies = True
            else:
                continue

            self._touch(task)
            changed.append((task, before, self.effective_state(task).status))
            queue.extend(d.task_id for d in self.dependents_of(task_id))

        if not changed:
            return []

        await self._write([t for t, _, _ in changed], [t.id for t, _, _ in changed], operation="reevaluate_dependencies")
        for task, before, after in changed:
            logger.info(f"Task {task.id} status {before.value} -> {after.value} after dependency check")
            await self._log(task.id, ActivityType.STATUS_CHANGED, before, after, details={"reason": "dependencies"})
        return [t for t, _, _ in changed]

    # ------------------------------------------------------------------
    # Weekly recurrence
    # ------------------------------------------------------------------

    async def get_weekly_task_completion(
        self,
        task_id: uuid.UUID,
        week_number: int,
    ) -> Optional[WeeklyTaskCompletion]:
        user_id = self._require_user()
        key = (task_id, week_number)
        if key not in self.completions:
            record = await self.repository.get_completion(user_id, task_id, week_number)
            if record is None:
                return None
            self.completions[key] = record
        return self.completions[key]

    async def set_weekly_task_completion(
        self,
        task_id: uuid.UUID,
        week_number: int,
        status: TaskStatus | str,
        progress_current: int = 0,
    ) -> WeeklyTaskCompletion:
        """
        Upsert the per-week status of a task. The task's own status is untouched.
        """
        user_id = self._require_user()
        task = self._get_task(task_id)
        try:
            status = TaskStatus(status)
        except ValueError:
            raise self._fail(PreconditionFailedError(f"Unknown status '{status}'"))

        record = await self.get_weekly_task_completion(task_id, week_number)
        old_status = record.status if record is not None else None
        if (
            status in STARTED_STATUSES
            and task.blocked_by_dependencies
            and week_number == self.current_week
            and status != old_status
        ):
            raise self._fail(PreconditionFailedError(
                f"Task '{task.title}' is blocked by unmet dependencies",
            ))

        if record is None:
            record = WeeklyTaskCompletion(
                task_id=task_id,
                user_id=user_id,
                week_number=week_number,
            )
        record.status = status
        record.progress_current = progress_current
        self._touch(record)
        self.completions[(task_id, week_number)] = record

        try:
            self.completions[(task_id, week_number)] = await self.repository.upsert_completion(record)
        except Exception as exc:
            self._mark_unconfirmed([task_id], exc, "set_weekly_task_completion")
            if isinstance(exc, RemoteFailureError):
                raise
            raise RemoteFailureError(str(exc), operation="set_weekly_task_completion") from exc

        await self._log(task_id, ActivityType.STATUS_CHANGED, old_status, status,
                        details={"week_number": week_number})

        if week_number == self.current_week:
            if status == TaskStatus.TODO:
                await self._reevaluate([task_id])
            await self._prerequisites_changed([task_id])
        return self.completions[(task_id, week_number)]

    async def update_weekly_recurring_task_status(
        self,
        task_id: uuid.UUID,
        status: Optional[TaskStatus] = None,
        progress_current: Optional[int] = None,
    ) -> TaskRead:
        """
        Status change as issued from the current week's board: recurring
        tasks record it for the current week only, others update the task.
        """
        self._require_user()
        task = self._get_task(task_id)

        if task.in_recurring_category:
            state = self._intended_state(task)
            await self.set_weekly_task_completion(
                task_id,
                self.current_week,
                status or state.status,
                state.progress_current if progress_current is None else progress_current,
            )
        else:
            updates = {}
            if status is not None:
                updates["status"] = status
            if progress_current is not None:
                updates["progress_current"] = progress_current
            await self.update_task(task_id, TaskUpdate(**updates))
        return self.to_view(task)

    async def create_recurring_template(self, template_in: RecurringTemplateCreate) -> RecurringTaskTemplate:
        user_id = self._require_user()
        template = RecurringTaskTemplate(user_id=user_id, is_active=True, **template_in.model_dump())
        self.templates[template.id] = template
        await self._write([template], operation="create_recurring_template")
        logger.info(f"Created recurring template: id={template.id} title='{template.title}'")
        return template

    def _get_template(self, template_id: uuid.UUID) -> RecurringTaskTemplate:
        template = self.templates.get(template_id)
        if template is None:
            raise self._fail(NotFoundError("Recurring template", str(template_id)))
        return template

    async def update_recurring_template(
        self,
        template_id: uuid.UUID,
        template_in: RecurringTemplateUpdate,
    ) -> RecurringTaskTemplate:
        self._require_user()
        template = self._get_template(template_id)
        updates = template_in.model_dump(exclude_unset=True)
        for field, value in updates.items():
            setattr(template, field, value)
        self._touch(template)
        await self._write([template], operation="update_recurring_template")
        return template

    async def delete_recurring_template(self, template_id: uuid.UUID) -> None:
        self._require_user()
        template = self._get_template(template_id)
        del self.templates[template_id]
        await self._remove([template], operation="delete_recurring_template")

    def list_recurring_templates(self, active_only: bool = True) -> list[RecurringTaskTemplate]:
        self._require_user()
        templates = sorted(self.templates.values(), key=lambda t: t.created_at)
        if active_only:
            return [t for t in templates if t.is_active]
        return templates

    async def generate_recurring_tasks(
        self,
        active_templates: Optional[Iterable[RecurringTaskTemplate]] = None,
        target_week: Optional[int] = None,
    ) -> list[Task]:
        """
        Materialize at most one task per (template, week).

        A template that already has a row in the target week is skipped, so
        calling this twice for the same week creates nothing the second time.
        """
        user_id = self._require_user()
        week = self.current_week if target_week is None else target_week
        templates = list(self.templates.values()) if active_templates is None else list(active_templates)

        missing = recurrence.templates_missing_week(templates, self.tasks.values(), week)
        if not missing:
            logger.debug(f"No recurring tasks to generate for week {week}")
            return []

        year = self._today().year
        created = []
        for template in missing:
            task = recurrence.materialize_template(template, week)
            task.user_id = user_id
            self.tasks[task.id] = task
            self.subtasks[task.id] = []
            recurrence.stamp_template(template, week, year)
            created.append(task)

        await self._write(
            [*created, *missing],
            [t.id for t in created],
            operation="generate_recurring_tasks",
        )
        logger.info(f"Generated {len(created)} recurring tasks for week {week}")
        for task in created:
            await self._log(task.id, ActivityType.CREATED, new=task.title,
                            details={"recurring_template_id": str(task.recurring_template_id),
                                     "week_number": week})
        return created

    # ------------------------------------------------------------------
    # Week transitions
    # ------------------------------------------------------------------

    async def rollover_incomplete_tasks(self) -> list[TaskRead]:
        """
        Advance the current week by one, carrying unfinished non-recurring
        tasks along and materializing recurring tasks for the new week.
        """
        user_id = self._require_user()
        old_week = self.current_week
        new_week = old_week + 1

        carried = rollover.rollover_candidates(self.tasks.values(), old_week)
        for task in carried:
            task.week_number = new_week
        self._touch(*carried)
        self.current_week = new_week

        cursor = WeekCursor(user_id=user_id, current_week=new_week)
        await self._write([*carried, cursor], [t.id for t in carried], operation="rollover_incomplete_tasks")
        logger.info(f"Rolled over {len(carried)} tasks from week {old_week} to {new_week}")

        for task in carried:
            await self._log(task.id, ActivityType.MOVED_WEEK, old_week, new_week)

        active = [t for t in self.templates.values() if t.is_active]
        await self.generate_recurring_tasks(active, new_week)
        return await self.tasks_for_week(new_week)

    async def migrate_all_tasks(self) -> MigrationResult:
        """
        Catch up from an older week to the real calendar week.

        Todo tasks move; in-progress tasks are forked into the new week with
        their subtasks, dependency edges and shared attachments, leaving the
        original in its week.
        """
        user_id = self._require_user()
        from_week = self.current_week
        to_week = calendar_week(self._today())

        if from_week >= to_week:
            raise self._fail(PreconditionFailedError(
                "Migration is only available for older weeks",
                details=[{
                    "loc": ["current_week"],
                    "msg": f"current week {from_week} is not behind calendar week {to_week}",
                    "type": "precondition",
                }],
            ))

        to_move, to_fork = rollover.partition_for_migration(self.tasks.values(), from_week)
        result = MigrationResult(from_week=from_week, to_week=to_week)

        for task in to_move:
            task.week_number = to_week
            result.moved_task_ids.append(task.id)
        self._touch(*to_move)

        new_entities: list[SQLModel] = []
        for task in to_fork:
            forked = rollover.fork_task(task, self.subtasks.get(task.id, []), self.dependencies, to_week)
            self.tasks[forked.task.id] = forked.task
            self.subtasks[forked.task.id] = forked.subtasks
            self.dependencies.extend(forked.dependencies)
            result.forked_task_ids[task.id] = forked.task.id
            new_entities.extend([forked.task, *forked.subtasks, *forked.dependencies])

        self.current_week = to_week
        cursor = WeekCursor(user_id=user_id, current_week=to_week)

        await self._write(
            [*to_move, *new_entities, cursor],
            [*result.moved_task_ids, *result.forked_task_ids.values()],
            operation="migrate_all_tasks",
        )
        logger.info(
            f"Migrated week {from_week} -> {to_week}: moved={len(to_move)} forked={len(to_fork)}"
        )

        for task in to_move:
            await self._log(task.id, ActivityType.MOVED_WEEK, from_week, to_week)
        for original_id, new_id in result.forked_task_ids.items():
            await self._log(new_id, ActivityType.CREATED, new=f"Migrated from week {from_week}",
                            details={"original_task_id": str(original_id), "migration": True})

        await self._load_completions(to_week)
        return result

    # ------------------------------------------------------------------
    # Attachments and comments
    # ------------------------------------------------------------------

    async def add_attachment(
        self,
        task_id: uuid.UUID,
        file_name: str,
        file_url: str,
        file_size: int = 0,
        file_type: Optional[str] = None,
    ) -> Attachment:
        """Record a file already held by the file store against a task."""
        user_id = self._require_user()
        task = self._get_task(task_id)

        attachment = Attachment(
            task_id=task.attachment_owner_id or task.id,
            user_id=user_id,
            file_name=file_name,
            file_size=file_size,
            file_type=file_type,
            file_url=file_url,
            thumbnail_url=file_url if file_type and file_type.startswith("image/") else None,
        )
        self.attachments[attachment.id] = attachment

        await self._write([attachment], [task_id], operation="add_attachment")
        await self._log(task_id, ActivityType.ATTACHMENT_ADDED, new=file_name)
        return attachment

    async def delete_attachment(self, attachment_id: uuid.UUID) -> None:
        self._require_user()
        attachment = self.attachments.get(attachment_id)
        if attachment is None:
            raise self._fail(NotFoundError("Attachment", str(attachment_id)))

        del self.attachments[attachment_id]
        await self._remove([attachment], [attachment.task_id], operation="delete_attachment")
        await self._log(attachment.task_id, ActivityType.ATTACHMENT_DELETED, old=attachment.file_name)

    async def add_comment(
        self,
        task_id: uuid.UUID,
        content: str,
        parent_comment_id: Optional[uuid.UUID] = None,
    ) -> TaskComment:
        user_id = self._require_user()
        self._get_task(task_id)
        comment = TaskComment(
            task_id=task_id,
            user_id=user_id,
            content=content,
            parent_comment_id=parent_comment_id,
        )
        await self._write([comment], [task_id], operation="add_comment")
        await self._log(task_id, ActivityType.COMMENT_ADDED, new=content)
        return comment
