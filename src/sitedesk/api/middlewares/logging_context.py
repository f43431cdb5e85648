"""Request log context and access line for maintenance calls."""

import time

from asgi_correlation_id import correlation_id
from fastapi import Request, Response
from starlette.middleware.base import RequestResponseEndpoint

from src.sitedesk.core.logging import bind_request_context, clear_request_context, get_logger

logger = get_logger(__name__)

MAINTENANCE_PATH_PREFIX = "/api/v1/projects"


async def logging_context_middleware(
    request: Request, call_next: RequestResponseEndpoint
) -> Response:
    """Bind request_id, method and path to the log context.

    Maintenance calls can run for a long time and touch many tables, so each
    one also gets a single access line with its status and duration.
    """
    clear_request_context()
    bind_request_context(correlation_id.get(), method=request.method, path=request.url.path)
    started = time.perf_counter()
    try:
        response = await call_next(request)
        if request.url.path.startswith(MAINTENANCE_PATH_PREFIX):
            logger.info(
                "Maintenance request handled",
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000),
            )
        return response
    finally:
        clear_request_context()
