"""
Weekflow - week-bucketed task lifecycle engine with dependency blocking,
weekly recurrence and rollover.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from weekflow.database import init_db
from weekflow.exceptions import register_exception_handlers
from weekflow.logging_config import setup_logging, get_logger
from weekflow.routes import dependencies, tasks, templates, weeks

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    logger.info("Starting Weekflow API...")
    await init_db()
    logger.info("Database initialized")
    yield
    logger.info("Shutting down Weekflow API...")


app = FastAPI(
    title="Weekflow",
    description="Week-bucketed task lifecycle engine with dependency blocking and weekly recurrence",
    version="0.1.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

app.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
app.include_router(dependencies.router, prefix="/dependencies", tags=["Dependencies"])
app.include_router(weeks.router, prefix="/weeks", tags=["Weeks"])
app.include_router(templates.router, prefix="/templates", tags=["Recurring templates"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
