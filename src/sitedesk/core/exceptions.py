"""Domain exceptions and exception handlers with request_id in responses."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import UUID

from asgi_correlation_id import correlation_id
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.sitedesk.core.logging import get_logger
from src.sitedesk.models.enums import DeletionErrorCategory

if TYPE_CHECKING:
    from src.sitedesk.services.cascade_delete import DeletionReport

logger = get_logger(__name__)

FOREIGN_KEY_VIOLATION = "23503"
CHECK_VIOLATION = "23514"
RAISE_EXCEPTION = "P0001"  # plpgsql RAISE from a guard trigger

DELETION_HINT = (
    "Try refreshing the page and attempting the deletion again, "
    "or contact support if the issue persists."
)


def sqlstate_of(exc: BaseException) -> str | None:
    """Extract the PostgreSQL SQLSTATE from a driver error, if there is one."""
    orig = exc.orig if isinstance(exc, DBAPIError) else exc
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def error_text(exc: BaseException) -> str:
    """Driver message of a database error without SQLAlchemy's statement dump."""
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return str(exc.orig)
    return str(exc)


def classify_sqlstate(code: str | None) -> DeletionErrorCategory:
    """Map a SQLSTATE to the category shown to the operator."""
    if code == FOREIGN_KEY_VIOLATION:
        return DeletionErrorCategory.FOREIGN_KEY_VIOLATION
    if code in (CHECK_VIOLATION, RAISE_EXCEPTION):
        return DeletionErrorCategory.CHECK_VIOLATION
    return DeletionErrorCategory.OTHER


class ProjectNotFoundError(LookupError):
    """The requested project does not exist."""

    def __init__(self, project_id: UUID):
        super().__init__(f"Project {project_id} not found")
        self.project_id = project_id


class ProjectDeletionError(Exception):
    """The project row itself could not be removed after its cascade ran."""

    MESSAGES = {
        DeletionErrorCategory.FOREIGN_KEY_VIOLATION: (
            "Cannot delete project due to foreign key constraints. "
            "Some related data may still exist."
        ),
        DeletionErrorCategory.CHECK_VIOLATION: (
            "Cannot delete project due to database constraint violations."
        ),
        DeletionErrorCategory.OTHER: "Failed to delete project",
    }

    def __init__(
        self,
        category: DeletionErrorCategory,
        details: str,
        code: str | None = None,
        report: DeletionReport | None = None,
    ):
        self.category = category
        self.message = self.MESSAGES[category]
        self.details = details
        self.code = code
        self.hint = DELETION_HINT
        self.report = report
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.message,
            "details": self.details,
            "code": self.code,
            "hint": self.hint,
            "category": self.category.value,
        }


class SnapshotWriteError(Exception):
    """Neither an update strategy nor an insert could persist a financial snapshot."""

    def __init__(self, project_id: UUID, details: str):
        super().__init__(f"Failed to update financial data for project {project_id}")
        self.project_id = project_id
        self.details = details


def setup_exception_handlers(app: FastAPI) -> None:
    """Configure exception handlers that include request_id in responses."""

    @app.exception_handler(StarletteHTTPException)
    async def starlette_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.detail,
                "request_id": correlation_id.get(),
            },
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.detail,
                "request_id": correlation_id.get(),
            },
        )

    @app.exception_handler(ProjectNotFoundError)
    async def project_not_found_handler(
        request: Request, exc: ProjectNotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={
                "detail": str(exc),
                "request_id": correlation_id.get(),
            },
        )

    @app.exception_handler(ProjectDeletionError)
    async def project_deletion_handler(
        request: Request, exc: ProjectDeletionError
    ) -> JSONResponse:
        content = exc.to_dict()
        content["request_id"] = correlation_id.get()
        return JSONResponse(status_code=500, content=content)

    @app.exception_handler(SnapshotWriteError)
    async def snapshot_write_handler(request: Request, exc: SnapshotWriteError) -> JSONResponse:
        return JSONResponse(
            status_code=500,
            content={
                "error": str(exc),
                "details": exc.details,
                "request_id": correlation_id.get(),
            },
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = correlation_id.get()
        logger.exception(
            "Unhandled exception",
            exc_info=exc,
            request_id=request_id,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "request_id": request_id,
            },
        )
