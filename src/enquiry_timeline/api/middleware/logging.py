"""Request logging and structlog setup for the timeline service.

Every request gets a request id, either the caller's ``X-Request-ID`` or a
fresh UUID. The id is bound into structlog's context vars for the duration
of the request so that ``timeline.*`` events logged by the orchestrator can
be tied back to the HTTP call that caused them, and it is echoed on the
response.
"""

from __future__ import annotations

import logging
import time
import uuid

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.enquiry_timeline.config import Environment, get_settings

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def configure_structlog() -> None:
    """JSON output in production, console output elsewhere."""
    settings = get_settings()

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if settings.ENVIRONMENT == Environment.production:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    logging.basicConfig(format="%(message)s", level=settings.LOG_LEVEL.upper())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _elapsed_ms(started: float) -> float:
    return round((time.monotonic() - started) * 1000, 2)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log one ``request_completed`` (or ``request_error``) event per request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        started = time.monotonic()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        try:
            try:
                response = await call_next(request)
            except Exception:
                logger.error("request_error", status_code=500, duration_ms=_elapsed_ms(started))
                raise

            response.headers[REQUEST_ID_HEADER] = request_id
            if response.status_code >= 500:
                log = logger.error
            elif response.status_code >= 400:
                log = logger.warning
            else:
                log = logger.info
            log(
                "request_completed",
                status_code=response.status_code,
                duration_ms=_elapsed_ms(started),
            )
            return response
        finally:
            structlog.contextvars.clear_contextvars()
