"""
SqlTaskRepository against a real PostgreSQL database.

Set WEEKFLOW_TEST_DATABASE_URL (postgresql+asyncpg://...) to run these.
"""

import os

import pytest
import pytest_asyncio

from weekflow.database import create_db_engine, drop_db, init_db, make_session_factory
from weekflow.engine import LifecycleEngine
from weekflow.exceptions import RemoteFailureError
from weekflow.models import Task, TaskCategory, TaskDependency, TaskStatus
from weekflow.ports import StaticIdentity
from weekflow.repository import SqlActivitySink, SqlTaskRepository
from weekflow.schemas import TaskCreate

from tests.conftest import TODAY, TODAY_WEEK

TEST_DATABASE_URL = os.getenv("WEEKFLOW_TEST_DATABASE_URL")

pytestmark = [
    pytest.mark.asyncio,
    pytest.mark.skipif(not TEST_DATABASE_URL, reason="WEEKFLOW_TEST_DATABASE_URL not set"),
]


@pytest_asyncio.fixture
async def test_engine():
    """Create the schema for one test and drop it afterwards."""
    engine = create_db_engine(TEST_DATABASE_URL)
    await init_db(engine)

    yield engine

    await drop_db(engine)

    await engine.dispose()


@pytest_asyncio.fixture
async def session(test_engine):
    async with make_session_factory(test_engine)() as session:
        yield session


def _engine(session, settings):
    return LifecycleEngine(
        SqlTaskRepository(session),
        StaticIdentity("user-1"),
        SqlActivitySink(session),
        today=lambda: TODAY,
        settings=settings,
    )


async def test_round_trip_through_database(session, settings):
    engine = await _engine(session, settings).load()
    a = await engine.create_task(TaskCreate(title="A", category=TaskCategory.WORK))
    b = await engine.create_task(TaskCreate(title="B", category=TaskCategory.WORK))
    await engine.add_subtask(a.id, "step")
    await engine.add_dependency(b.id, a.id)

    reloaded = await _engine(session, settings).load()

    assert reloaded.tasks[b.id].effective_status == TaskStatus.BLOCKED
    assert [s.title for s in reloaded.subtasks[a.id]] == ["step"]
    assert reloaded.current_week == TODAY_WEEK


async def test_completion_upsert_is_unique_per_week(session, settings):
    engine = await _engine(session, settings).load()
    task = await engine.create_task(TaskCreate(title="Gym", category=TaskCategory.WEEKLY_RECURRING))

    await engine.set_weekly_task_completion(task.id, TODAY_WEEK, TaskStatus.IN_PROGRESS, 50)
    await engine.set_weekly_task_completion(task.id, TODAY_WEEK, TaskStatus.DONE, 100)

    records = await SqlTaskRepository(session).fetch_completions("user-1", TODAY_WEEK)
    assert [(r.status, r.progress_current) for r in records] == [(TaskStatus.DONE, 100)]


async def test_delete_task_cascades(session, settings):
    engine = await _engine(session, settings).load()
    a = await engine.create_task(TaskCreate(title="A", category=TaskCategory.WORK))
    b = await engine.create_task(TaskCreate(title="B", category=TaskCategory.WORK))
    await engine.add_dependency(b.id, a.id)
    await engine.add_subtask(a.id, "step")

    await engine.delete_task(a.id)

    repository = SqlTaskRepository(session)
    assert await repository.fetch_subtasks([a.id]) == []
    assert await repository.fetch_dependencies([b.id]) == []


async def test_constraint_violation_becomes_remote_failure(session):
    repository = SqlTaskRepository(session)
    task = Task(user_id="user-1", category=TaskCategory.WORK, title="A", week_number=1)
    await repository.save(task)

    duplicate = [
        TaskDependency(task_id=task.id, depends_on_task_id=task.id),
        TaskDependency(task_id=task.id, depends_on_task_id=task.id),
    ]
    with pytest.raises(RemoteFailureError):
        await repository.save(*duplicate)
