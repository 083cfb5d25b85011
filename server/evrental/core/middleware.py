"""Request correlation and access logging middleware."""

import logging
import time
import uuid
from typing import Callable, Iterable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .exceptions import InternalServerError
from .observability import metrics_collector

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Health checks and scrapes are neither logged nor counted
QUIET_PATHS = frozenset({"/health", "/ready", "/metrics", "/favicon.ico"})


def client_address(request: Request) -> str:
    """First hop of X-Forwarded-For when behind a proxy, else the peer address."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def route_template(request: Request) -> str:
    """Matched route path, e.g. /api/bookings/{booking_id}, so metric labels stay bounded."""
    route = request.scope.get("route")
    return getattr(route, "path", "unmatched")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Echo the caller's X-Request-ID, or issue a fresh one, on every response."""

    def __init__(self, app: ASGIApp, header_name: str = REQUEST_ID_HEADER):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(self.header_name) or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers[self.header_name] = request_id
        return response


class AccessLogMiddleware(BaseHTTPMiddleware):
    """
    One structured log line and one metrics sample per request.

    The level follows the outcome: info for 2xx/3xx, warning for rejected
    requests, error for server failures. The user id is the one stored by
    the authentication dependency, if the route required a token.
    """

    def __init__(self, app: ASGIApp, quiet_paths: Optional[Iterable[str]] = None):
        super().__init__(app)
        self.quiet_paths = frozenset(quiet_paths) if quiet_paths is not None else QUIET_PATHS

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.quiet_paths:
            return await call_next(request)

        started = time.perf_counter()
        fields = {
            "request_id": getattr(request.state, "request_id", "unknown"),
            "method": request.method,
            "path": request.url.path,
            "client_ip": client_address(request),
        }

        try:
            response = await call_next(request)
        except Exception as e:
            error = InternalServerError()
            logger.error(
                "Unhandled exception",
                extra={**fields, "error_id": error.error_id, "error": str(e)},
                exc_info=True
            )
            response = JSONResponse(status_code=error.status_code, content=error.to_envelope())

        elapsed = time.perf_counter() - started
        metrics_collector.record_request(
            method=request.method,
            endpoint=route_template(request),
            status_code=response.status_code,
            duration_seconds=elapsed,
        )

        fields["status_code"] = response.status_code
        fields["duration_ms"] = round(elapsed * 1000, 2)
        fields["user_id"] = getattr(request.state, "user_id", None)

        if response.status_code >= 500:
            logger.error("Request failed", extra=fields)
        elif response.status_code >= 400:
            logger.warning("Request rejected", extra=fields)
        else:
            logger.info("Request served", extra=fields)

        return response


def setup_middleware(app, enable_logging: bool = True) -> None:
    """Install the middleware stack. The request id is assigned before the access log runs."""
    # Last added is first executed
    if enable_logging:
        app.add_middleware(AccessLogMiddleware)

    app.add_middleware(RequestIDMiddleware)
