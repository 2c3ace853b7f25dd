"""
Request middleware that turns unhandled exceptions into captured errors.
"""

from typing import Callable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from error_tracker.exceptions import UserError
from error_tracker.models.error import ErrorMeta
from error_tracker.services.error_reporter import ErrorReporter, get_error_reporter
from error_tracker.utils.logging import get_logger

logger = get_logger(__name__)


def _route_label(request: Request) -> str:
    route = request.scope.get("route")
    path = getattr(route, "path", None) or request.url.path
    return f"{request.method} {path}"


class CaptureErrorsMiddleware(BaseHTTPMiddleware):
    """
    Capture exceptions escaping route handlers.

    The response carries the error id and the generic user message; the
    exception itself never reaches the client. Exceptions marked
    ``expected`` that no handler caught get a 400 with their own message.
    """

    def __init__(self, app, reporter_provider: Callable[[], ErrorReporter] = get_error_reporter):
        super().__init__(app)
        self._reporter_provider = reporter_provider

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            label = _route_label(request)
            meta = ErrorMeta(
                user_id=request.headers.get("x-user-id"),
                guild_id=request.headers.get("x-guild-id"),
                channel_id=request.headers.get("x-channel-id"),
                command=label,
                options=dict(request.query_params) or None,
            )
            report = await self._reporter_provider().capture(exc, f"route:{label}", meta)
            if report.expected:
                return JSONResponse(status_code=400, content={"detail": report.user_message})

            content = {"error_id": report.id, "detail": report.user_message}
            if report.support_url:
                content["support_url"] = report.support_url
            return JSONResponse(status_code=500, content=content)


async def user_error_handler(request: Request, exc: UserError) -> JSONResponse:
    """Return expected failures to the client verbatim."""
    logger.info(f"User error on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=400, content={"detail": exc.message})


def register_error_handlers(
    app: FastAPI,
    reporter_provider: Callable[[], ErrorReporter] = get_error_reporter
) -> None:
    """
    Install error capture on an application.

    Args:
        app: FastAPI application
        reporter_provider: Callable returning the reporter to capture with
    """
    app.add_exception_handler(UserError, user_error_handler)
    app.add_middleware(CaptureErrorsMiddleware, reporter_provider=reporter_provider)
