"""
Shared route dependencies.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from weekflow.auth import AuthenticatedUser, get_current_user
from weekflow.database import get_session
from weekflow.engine import LifecycleEngine
from weekflow.repository import SqlActivitySink, SqlTaskRepository


async def get_engine(
    session: AsyncSession = Depends(get_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> LifecycleEngine:
    """A lifecycle engine loaded with the caller's tasks."""
    engine = LifecycleEngine(SqlTaskRepository(session), user, SqlActivitySink(session))
    return await engine.load()
