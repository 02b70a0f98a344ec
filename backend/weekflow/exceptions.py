"""
Structured exceptions and error responses for Weekflow.

Every lifecycle failure is a WeekflowException subclass carrying an error code
and an HTTP status, so the engine can raise them directly and the HTTP layer
can render them without translation.
"""

from typing import Any, Dict, List, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel


# =============================================================================
# Error Response Schema
# =============================================================================

class ErrorDetail(BaseModel):
    """Detail of a single error."""
    loc: Optional[List[str]] = None
    msg: str
    type: str


class ErrorResponse(BaseModel):
    """Structured error response format."""
    error: str  # Error code (e.g., "not_found", "cycle_detected")
    message: str  # Human-readable message
    details: Optional[List[ErrorDetail]] = None


# =============================================================================
# Custom Exceptions
# =============================================================================

class WeekflowException(Exception):
    """Base exception for all Weekflow errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "internal_error",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[List[Dict[str, Any]]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class UnauthenticatedError(WeekflowException):
    """No acting identity is available."""

    def __init__(self, message: str = "User not authenticated"):
        super().__init__(
            message=message,
            error_code="unauthenticated",
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class NotFoundError(WeekflowException):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            message=f"{resource} with ID {resource_id} not found",
            error_code="not_found",
            status_code=status.HTTP_404_NOT_FOUND,
        )
        self.resource = resource
        self.resource_id = resource_id


class PreconditionFailedError(WeekflowException):
    """The operation is not valid in the current state."""

    def __init__(
        self,
        message: str,
        error_code: str = "precondition_failed",
        status_code: int = status.HTTP_412_PRECONDITION_FAILED,
        details: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status_code,
            details=details,
        )


class SelfDependencyError(PreconditionFailedError):
    """Task cannot depend on itself."""

    def __init__(self, task_id: str):
        super().__init__(
            message="A task cannot depend on itself",
            error_code="self_dependency",
            status_code=status.HTTP_400_BAD_REQUEST,
        )
        self.task_id = task_id


class CycleDetectedError(PreconditionFailedError):
    """Adding a dependency would create a cycle."""

    def __init__(self, task_id: str, depends_on_task_id: str):
        super().__init__(
            message="Adding this dependency would create a cycle between tasks",
            error_code="cycle_detected",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=[{
                "loc": ["body"],
                "msg": f"Dependency {depends_on_task_id} -> {task_id} would create a cycle",
                "type": "cycle_error",
            }],
        )
        self.task_id = task_id
        self.depends_on_task_id = depends_on_task_id


class DuplicateDependencyError(PreconditionFailedError):
    """Dependency already exists."""

    def __init__(self, task_id: str, depends_on_task_id: str):
        super().__init__(
            message="This dependency already exists",
            error_code="duplicate_dependency",
            status_code=status.HTTP_409_CONFLICT,
        )
        self.task_id = task_id
        self.depends_on_task_id = depends_on_task_id


class InvalidDependencyTypeError(PreconditionFailedError):
    """Dependency type is not one of the four temporal relations."""

    def __init__(self, dependency_type: str):
        super().__init__(
            message=f"Unknown dependency type '{dependency_type}'",
            error_code="invalid_dependency_type",
            status_code=status.HTTP_400_BAD_REQUEST,
        )
        self.dependency_type = dependency_type


class RemoteFailureError(WeekflowException):
    """The storage write did not commit."""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(
            message=f"Storage write failed: {message}",
            error_code="remote_failure",
            status_code=status.HTTP_502_BAD_GATEWAY,
        )
        self.operation = operation


# =============================================================================
# Exception Handlers
# =============================================================================

async def weekflow_exception_handler(request: Request, exc: WeekflowException) -> JSONResponse:
    """Handle WeekflowException and return structured response."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error_code,
            "message": exc.message,
            "details": exc.details,
        },
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(WeekflowException, weekflow_exception_handler)
