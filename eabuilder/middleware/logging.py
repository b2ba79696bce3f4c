"""
EA Builder Logging Middleware

Access logging, correlation ids for structlog, and last-resort error logging.
"""

import logging
import time
import traceback
import uuid
from typing import Callable, Iterable, Optional

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

logger = logging.getLogger("eabuilder.access")

QUIET_PATHS = ("/health", "/ready", "/live", "/docs", "/redoc", "/openapi.json", "/favicon.ico")


def client_address(request: Request) -> str:
    """Best guess at the caller's address behind a proxy."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",", 1)[0].strip()
    if request.headers.get("X-Real-IP"):
        return request.headers["X-Real-IP"]
    return request.client.host if request.client else "unknown"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    One access-log line per request, tagged with a fresh request id.

    The id is stored on request.state and echoed back in X-Request-ID.
    Paths under exclude_paths are served without logging.
    """

    def __init__(
        self,
        app: ASGIApp,
        exclude_paths: Optional[Iterable[str]] = None,
        log_request_body: bool = False,
        max_body_size: int = 10000,
        slow_request_ms: float = 1000.0,
    ):
        super().__init__(app)
        self.exclude_paths = tuple(exclude_paths) if exclude_paths is not None else QUIET_PATHS
        self.log_request_body = log_request_body
        self.max_body_size = max_body_size
        self.slow_request_ms = slow_request_ms

    async def _body_preview(self, request: Request) -> Optional[str]:
        if not self.log_request_body:
            return None
        raw = await request.body()
        if not raw:
            return None
        if len(raw) > self.max_body_size:
            return f"<{len(raw)} bytes>"
        return raw.decode("utf-8", errors="replace")

    def _level_for(self, status_code: int, duration_ms: float) -> int:
        if status_code >= 500:
            return logging.ERROR
        if status_code >= 400 or duration_ms > self.slow_request_ms:
            return logging.WARNING
        return logging.INFO

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = uuid.uuid4().hex
        request.state.request_id = request_id

        if request.url.path.startswith(self.exclude_paths):
            return await call_next(request)

        body = await self._body_preview(request)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                f"{request.method} {request.url.path} raised {type(e).__name__}",
                extra={"request_id": request_id, "elapsed_ms": round((time.perf_counter() - started) * 1000, 3)},
            )
            raise

        elapsed_ms = round((time.perf_counter() - started) * 1000, 3)
        fields = {
            "request_id": request_id,
            "client_ip": client_address(request),
            "status_code": response.status_code,
            "elapsed_ms": elapsed_ms,
        }
        if request.query_params:
            fields["query"] = str(request.query_params)
        if body:
            fields["body"] = body

        level = self._level_for(response.status_code, elapsed_ms)
        suffix = " (slow)" if elapsed_ms > self.slow_request_ms else ""
        logger.log(
            level,
            f"{request.method} {request.url.path} -> {response.status_code} in {elapsed_ms}ms{suffix}",
            extra=fields,
        )

        response.headers["X-Request-ID"] = request_id
        return response


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Bind a correlation id to structlog's context for the whole request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID") or uuid.uuid4().hex
        request.state.correlation_id = correlation_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            method=request.method,
            path=request.url.path,
        )
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("method", "path")

        response.headers["X-Correlation-ID"] = correlation_id
        return response


class ErrorLoggingMiddleware(BaseHTTPMiddleware):
    """Record anything that escaped the exception handlers, then re-raise."""

    def __init__(self, app: ASGIApp, include_traceback: bool = True):
        super().__init__(app)
        self.include_traceback = include_traceback

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            details = {
                "request_id": getattr(request.state, "request_id", None),
                "error_type": type(e).__name__,
            }
            if self.include_traceback:
                details["traceback"] = traceback.format_exc()
            logger.critical(f"Unhandled {type(e).__name__} on {request.method} {request.url.path}: {e}", extra=details)
            raise


__all__ = [
    "RequestLoggingMiddleware",
    "StructuredLoggingMiddleware",
    "ErrorLoggingMiddleware",
    "client_address",
]
