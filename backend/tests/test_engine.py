"""
Engine-wide behaviour: identity, storage failures and reconciliation,
best-effort activity logging and the plain task operations.
"""

import uuid

import pytest

from weekflow.exceptions import (
    NotFoundError,
    PreconditionFailedError,
    RemoteFailureError,
    UnauthenticatedError,
)
from weekflow.models import DEFAULT_SORT_ORDER, ActivityType, Task, TaskCategory, TaskStatus
from weekflow.schemas import TaskCreate, TaskUpdate

from tests.conftest import TODAY_WEEK
from tests.fakes import FakeActivitySink

pytestmark = pytest.mark.asyncio


class TestIdentity:
    async def test_every_operation_needs_a_user(self, make_engine, repository):
        engine = make_engine(user_id=None)

        with pytest.raises(UnauthenticatedError):
            await engine.load()
        with pytest.raises(UnauthenticatedError):
            await engine.create_task(TaskCreate(title="x", category=TaskCategory.WORK))
        with pytest.raises(UnauthenticatedError):
            await engine.rollover_incomplete_tasks()
        with pytest.raises(UnauthenticatedError):
            await engine.generate_recurring_tasks()

        assert repository.write_count == 0
        assert engine.tasks == {}
        assert engine.error == "User not authenticated"

    async def test_users_see_only_their_tasks(self, engine, new_task, make_engine):
        await new_task(engine, "Mine")

        other = await make_engine(user_id="user-2").load()

        assert other.tasks == {}


class TestReconciliation:
    """Optimistic writes that fail are kept locally and flagged."""

    async def test_failed_write_keeps_change_and_marks_unconfirmed(self, engine, new_task, repository):
        task = await new_task(engine, "A")
        repository.fail_writes = True

        with pytest.raises(RemoteFailureError):
            await engine.update_task(task.id, TaskUpdate(title="Renamed"))

        assert task.title == "Renamed"
        assert task.id in engine.unconfirmed
        assert engine.to_view(task).unconfirmed
        assert "simulated outage" in engine.error
        assert repository.stored(Task, task.id).title == "A"

    async def test_refresh_restores_storage_state(self, engine, new_task, repository):
        task = await new_task(engine, "A")
        repository.fail_writes = True
        with pytest.raises(RemoteFailureError):
            await engine.update_task(task.id, TaskUpdate(title="Renamed"))

        repository.fail_writes = False
        await engine.refresh()

        assert engine.tasks[task.id].title == "A"
        assert engine.unconfirmed == set()
        assert engine.error is None

    async def test_failed_create_is_visible_locally(self, engine, repository):
        repository.fail_writes = True

        with pytest.raises(RemoteFailureError) as exc_info:
            await engine.create_task(TaskCreate(title="Offline", category=TaskCategory.WORK))

        assert exc_info.value.error_code == "remote_failure"
        assert [t.title for t in engine.tasks.values()] == ["Offline"]
        assert len(engine.unconfirmed) == 1

    async def test_failed_delete_marks_unconfirmed(self, engine, new_task, repository):
        task = await new_task(engine, "A")
        repository.fail_writes = True

        with pytest.raises(RemoteFailureError):
            await engine.delete_task(task.id)

        assert task.id not in engine.tasks
        assert task.id in engine.unconfirmed

    async def test_successful_write_clears_error(self, engine, new_task, repository):
        task = await new_task(engine, "A")
        repository.fail_writes = True
        with pytest.raises(RemoteFailureError):
            await engine.update_progress(task.id, 10)

        repository.fail_writes = False
        await engine.update_progress(task.id, 20)

        assert engine.error is None


class TestActivity:
    async def test_sink_failure_never_fails_the_operation(self, make_engine, repository):
        engine = await make_engine(sink=FakeActivitySink(fail=True)).load()

        task = await engine.create_task(TaskCreate(title="A", category=TaskCategory.WORK))
        await engine.update_task(task.id, TaskUpdate(status=TaskStatus.IN_PROGRESS))

        assert repository.stored(Task, task.id).status == TaskStatus.IN_PROGRESS

    async def test_changes_are_recorded(self, engine, new_task, activity_sink):
        task = await new_task(engine, "A")
        await engine.update_task(task.id, TaskUpdate(status=TaskStatus.IN_PROGRESS, priority="high"))

        types = [r.activity_type for r in activity_sink.records]
        assert types == [ActivityType.CREATED, ActivityType.STATUS_CHANGED, ActivityType.PRIORITY_CHANGED]
        status_change = activity_sink.records[1]
        assert (status_change.old_value, status_change.new_value) == ("todo", "in_progress")
        assert all(r.user_id == "user-1" for r in activity_sink.records)


class TestTasks:
    async def test_create_defaults(self, engine):
        task = await engine.create_task(TaskCreate(title="A", category=TaskCategory.LIFE_ADMIN))

        assert task.week_number == TODAY_WEEK
        assert task.sort_order == DEFAULT_SORT_ORDER
        assert task.status == TaskStatus.TODO
        assert task.recurrence_weeks is None
        assert task.original_week_number is None

    async def test_unknown_task(self, engine):
        with pytest.raises(NotFoundError):
            await engine.update_task(uuid.uuid4(), TaskUpdate(title="x"))
        with pytest.raises(NotFoundError):
            await engine.toggle_subtask(uuid.uuid4())

    async def test_delete_removes_subtasks_and_edges(self, engine, new_task, repository):
        a = await new_task(engine, "A")
        b = await new_task(engine, "B")
        await engine.add_subtask(a.id, "step")
        await engine.add_dependency(a.id, b.id)

        await engine.delete_task(a.id)

        assert a.id not in engine.tasks
        assert a.id not in engine.subtasks
        assert engine.dependencies == []
        assert await repository.fetch_subtasks([a.id]) == []
        assert await repository.fetch_dependencies([b.id]) == []

    async def test_move_task_to_category(self, engine, new_task, activity_sink):
        task = await new_task(engine, "A")

        await engine.move_task_to_category(task.id, TaskCategory.LIFE_ADMIN)

        assert task.category == TaskCategory.LIFE_ADMIN
        assert activity_sink.of_type(ActivityType.MOVED_CATEGORY)

    async def test_moving_into_recurring_category_sets_window(self, engine, new_task):
        task = await new_task(engine, "A")

        await engine.move_task_to_category(task.id, TaskCategory.WEEKLY_RECURRING)

        assert task.original_week_number == TODAY_WEEK
        assert task.recurrence_weeks == 1

    async def test_reorder_tasks(self, engine, new_task):
        a = await new_task(engine, "A")
        b = await new_task(engine, "B")
        c = await new_task(engine, "C", category=TaskCategory.LIFE_ADMIN)

        await engine.reorder_tasks(TaskCategory.WORK, [c.id, b.id, a.id])

        assert [(t.title, t.sort_order) for t in (c, b, a)] == [("C", 0), ("B", 1), ("A", 2)]
        assert c.category == TaskCategory.WORK

    async def test_week_view_sorted_by_category_then_order(self, engine, new_task):
        await new_task(engine, "Work late", sort_order=5)
        await new_task(engine, "Work early", sort_order=1)
        await new_task(engine, "Admin", category=TaskCategory.LIFE_ADMIN)
        await new_task(engine, "Elsewhere", week_number=TODAY_WEEK + 1)

        view = await engine.tasks_for_week()

        assert [t.title for t in view] == ["Admin", "Work early", "Work late"]


class TestBulk:
    async def test_bulk_update(self, engine, new_task):
        a = await new_task(engine, "A")
        b = await new_task(engine, "B")

        await engine.bulk_update_tasks([a.id, b.id], TaskUpdate(priority="urgent"))

        assert a.priority == b.priority == "urgent"

    async def test_bulk_update_checks_everything_first(self, engine, new_task):
        a = await new_task(engine, "A")
        b = await new_task(engine, "B")
        await engine.add_dependency(b.id, a.id)

        with pytest.raises(PreconditionFailedError):
            await engine.bulk_update_tasks([a.id, b.id], TaskUpdate(status=TaskStatus.DONE))
        with pytest.raises(NotFoundError):
            await engine.bulk_update_tasks([a.id, uuid.uuid4()], TaskUpdate(status=TaskStatus.DONE))

        assert a.status == TaskStatus.TODO

    async def test_bulk_move_and_delete(self, engine, new_task):
        a = await new_task(engine, "A")
        b = await new_task(engine, "B")

        await engine.bulk_move_tasks([a.id, b.id], TaskCategory.LIFE_ADMIN)
        assert {a.category, b.category} == {TaskCategory.LIFE_ADMIN}

        await engine.bulk_delete_tasks([a.id, b.id])
        assert engine.tasks == {}


class TestAttachmentsAndComments:
    async def test_attachment_lifecycle(self, engine, new_task, activity_sink):
        task = await new_task(engine, "A")

        image = await engine.add_attachment(task.id, "photo.png", "files/photo.png", 10, "image/png")
        assert image.thumbnail_url == "files/photo.png"
        assert engine.attachments_for(task.id) == [image]

        await engine.delete_attachment(image.id)
        assert engine.attachments_for(task.id) == []
        assert activity_sink.of_type(ActivityType.ATTACHMENT_DELETED)

    async def test_comment(self, engine, new_task, activity_sink):
        task = await new_task(engine, "A")

        comment = await engine.add_comment(task.id, "Looks good")

        assert comment.user_id == "user-1"
        assert activity_sink.of_type(ActivityType.COMMENT_ADDED)[0].new_value == "Looks good"
