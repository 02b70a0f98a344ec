"""
ARQ worker for background task processing.

This worker handles:
- materialize_recurring_tasks: weekly cron that gives every active recurring
  template its row in the calendar week, for every template owner

Usage:
    arq weekflow.worker.WorkerSettings
"""

from datetime import date
from typing import Callable, Optional

from arq import cron
from arq.connections import RedisSettings

from weekflow.config import get_settings
from weekflow.database import get_session_context
from weekflow.engine import LifecycleEngine
from weekflow.exceptions import WeekflowException
from weekflow.logging_config import setup_logging, get_logger
from weekflow.ports import ActivitySink, StaticIdentity, TaskRepository
from weekflow.repository import SqlActivitySink, SqlTaskRepository
from weekflow.services.weeks import calendar_week

setup_logging()
logger = get_logger(__name__)

settings = get_settings()


def parse_redis_url(url: str) -> RedisSettings:
    """Parse a redis:// URL into RedisSettings."""
    # redis://localhost:6380/2 -> host=localhost, port=6380, database=2
    url = url.replace("redis://", "")
    database = 0
    if "/" in url:
        url, db = url.split("/", 1)
        database = int(db or 0)
    if ":" in url:
        host, port = url.split(":")
        return RedisSettings(host=host, port=int(port), database=database)
    return RedisSettings(host=url, database=database)


async def materialize_for_owners(
    repository: TaskRepository,
    activity_sink: Optional[ActivitySink] = None,
    today: Callable[[], date] = date.today,
) -> dict[str, int]:
    """
    Generate the calendar week's recurring tasks for every template owner.

    A failure for one owner is logged and does not stop the others.

    Returns:
        Number of tasks created per owner
    """
    week = calendar_week(today())
    created: dict[str, int] = {}

    for user_id in await repository.list_template_owners():
        engine = LifecycleEngine(
            repository,
            StaticIdentity(user_id),
            activity_sink,
            today=today,
            settings=settings,
        )
        try:
            await engine.load()
            tasks = await engine.generate_recurring_tasks(target_week=week)
        except WeekflowException as e:
            logger.error(f"Recurring generation failed for user={user_id}: {e.message}")
            continue
        created[user_id] = len(tasks)

    logger.info(f"Materialized recurring tasks for week {week}: {sum(created.values())} across {len(created)} users")
    return created


async def materialize_recurring_tasks(ctx: dict) -> str:
    """ARQ cron job wrapping materialize_for_owners."""
    async with get_session_context() as session:
        created = await materialize_for_owners(SqlTaskRepository(session), SqlActivitySink(session))
    return f"Created {sum(created.values())} recurring tasks for {len(created)} users"


async def startup(ctx: dict) -> None:
    logger.info("ARQ Worker starting up...")
    logger.info(f"Redis: {settings.redis_url}")


async def shutdown(ctx: dict) -> None:
    logger.info("ARQ Worker shutting down...")


class WorkerSettings:
    """ARQ Worker configuration."""

    functions = [materialize_recurring_tasks]
    cron_jobs = [
        # Monday 00:05, right after the ISO week turns over
        cron(materialize_recurring_tasks, weekday=0, hour=0, minute=5),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = parse_redis_url(settings.redis_url)
    max_jobs = 10
    job_timeout = 300
