"""
Dependency routes for the Weekflow API.
"""

import uuid

from fastapi import APIRouter, Depends, Response, status

from weekflow.engine import LifecycleEngine
from weekflow.logging_config import get_logger
from weekflow.routes.common import get_engine
from weekflow.schemas import DependencyCreate, DependencyRead

logger = get_logger(__name__)

router = APIRouter()


@router.post("/", response_model=DependencyRead, status_code=status.HTTP_201_CREATED)
async def create_dependency(
    dep_in: DependencyCreate,
    engine: LifecycleEngine = Depends(get_engine),
):
    """
    Make task_id wait on depends_on_task_id.

    Rejects self-dependencies, duplicates, unknown types and any edge that
    would close a cycle. A todo task whose new dependency is unmet becomes
    blocked.
    """
    logger.info(f"Creating dependency: {dep_in.task_id} waits on {dep_in.depends_on_task_id}")
    return await engine.add_dependency(dep_in.task_id, dep_in.depends_on_task_id, dep_in.dependency_type)


@router.get("/", response_model=list[DependencyRead])
async def list_dependencies(
    task_id: uuid.UUID | None = None,
    engine: LifecycleEngine = Depends(get_engine),
):
    """
    List dependencies.

    Optionally filter to the edges where task_id is the dependent.
    """
    if task_id:
        return engine.dependencies_of(task_id)
    return engine.dependencies


@router.delete("/{dependency_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_dependency(
    dependency_id: uuid.UUID,
    engine: LifecycleEngine = Depends(get_engine),
) -> Response:
    """Remove a dependency; the former dependent may unblock."""
    await engine.remove_dependency(dependency_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
