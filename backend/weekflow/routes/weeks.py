"""
Week routes: the current week pointer and the transitions that move it.
"""

from fastapi import APIRouter, Depends

from weekflow.engine import LifecycleEngine
from weekflow.routes.common import get_engine
from weekflow.schemas import MigrationRead, TaskRead, WeekRead, WeekSet

router = APIRouter()


@router.get("/current", response_model=WeekRead)
async def get_current_week(engine: LifecycleEngine = Depends(get_engine)) -> WeekRead:
    tasks = await engine.tasks_for_week()
    return WeekRead(week_number=engine.current_week, tasks=tasks)


@router.put("/current", response_model=WeekRead)
async def set_current_week(
    week_in: WeekSet,
    engine: LifecycleEngine = Depends(get_engine),
) -> WeekRead:
    """Point the board at another week without moving any task."""
    week = await engine.set_current_week(week_in.week_number)
    return WeekRead(week_number=week, tasks=await engine.tasks_for_week(week))


@router.post("/current/recurring", response_model=list[TaskRead])
async def generate_recurring_tasks(engine: LifecycleEngine = Depends(get_engine)) -> list[TaskRead]:
    """Give every active template its row in the current week, if missing."""
    tasks = await engine.generate_recurring_tasks()
    return [engine.to_view(t) for t in tasks]


@router.post("/rollover", response_model=WeekRead)
async def rollover(engine: LifecycleEngine = Depends(get_engine)) -> WeekRead:
    """
    Advance one week.

    Unfinished non-recurring tasks are carried along and recurring templates
    are materialized for the new week.
    """
    tasks = await engine.rollover_incomplete_tasks()
    return WeekRead(week_number=engine.current_week, tasks=tasks)


@router.post("/migrate", response_model=MigrationRead)
async def migrate(engine: LifecycleEngine = Depends(get_engine)) -> MigrationRead:
    """
    Catch up from an older week to the calendar week.

    Returns 412 when the current week is not behind the calendar.
    """
    result = await engine.migrate_all_tasks()
    return MigrationRead.model_validate(result)


@router.get("/{week_number}", response_model=WeekRead)
async def get_week(
    week_number: int,
    engine: LifecycleEngine = Depends(get_engine),
) -> WeekRead:
    return WeekRead(week_number=week_number, tasks=await engine.tasks_for_week(week_number))
