"""
Recurring template routes for the Weekflow API.
"""

import uuid

from fastapi import APIRouter, Depends, Response, status

from weekflow.engine import LifecycleEngine
from weekflow.routes.common import get_engine
from weekflow.schemas import (
    RecurringTemplateCreate,
    RecurringTemplateRead,
    RecurringTemplateUpdate,
)

router = APIRouter()


@router.post("/", response_model=RecurringTemplateRead, status_code=status.HTTP_201_CREATED)
async def create_template(
    template_in: RecurringTemplateCreate,
    engine: LifecycleEngine = Depends(get_engine),
):
    return await engine.create_recurring_template(template_in)


@router.get("/", response_model=list[RecurringTemplateRead])
async def list_templates(
    include_inactive: bool = False,
    engine: LifecycleEngine = Depends(get_engine),
):
    return engine.list_recurring_templates(active_only=not include_inactive)


@router.patch("/{template_id}", response_model=RecurringTemplateRead)
async def update_template(
    template_id: uuid.UUID,
    template_in: RecurringTemplateUpdate,
    engine: LifecycleEngine = Depends(get_engine),
):
    """Update a template; is_active=false stops further materialization."""
    return await engine.update_recurring_template(template_id, template_in)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(
    template_id: uuid.UUID,
    engine: LifecycleEngine = Depends(get_engine),
) -> Response:
    """Delete a template. Rows it already produced are kept."""
    await engine.delete_recurring_template(template_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
