"""One log line per HTTP request.

Handlers may attach a job id to ``request.state.job_id``; it is added to
the line so a submission can be followed into the scheduler logs.
"""

import logging
import time
from typing import Awaitable, Callable

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


def _request_line(request: Request, status: int, started: float) -> str:
    duration_ms = (time.perf_counter() - started) * 1000.0
    client = request.client.host if request.client else "-"
    line = f"{request.method} {request.url.path} status={status} client={client} duration_ms={duration_ms:.2f}"
    job_id = getattr(request.state, "job_id", None)
    if job_id:
        line += f" job={job_id}"
    return line


class RequestLogMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and duration of every request."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(_request_line(request, 500, started))
            raise

        # Error bodies are logged by the error handlers
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(level, _request_line(request, response.status_code, started))
        return response


def register_request_logging(app: FastAPI) -> None:
    app.add_middleware(RequestLogMiddleware)
