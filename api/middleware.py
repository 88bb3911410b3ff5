"""
Middleware for HOUSECALL API.

Provides:
- Request ID tracking for log correlation
- Structured JSON request logging (patient data stays out of the logs)
- Response headers for a patient-data API
- Error handling and sanitization
"""
import time
import uuid
import logging
import json
from typing import Callable, Optional
from contextvars import ContextVar
from datetime import datetime, timezone

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response, JSONResponse
from fastapi import FastAPI

request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def get_request_id() -> Optional[str]:
    """Get the current request ID from context."""
    return request_id_ctx.get()


class StructuredLogger:
    """
    Structured JSON logger.

    Every entry carries the service name and the current request ID.
    """

    def __init__(self, name: str, service: str = "housecall-api"):
        self.logger = logging.getLogger(name)
        self.service = service

    def _log(self, level: str, message: str, **kwargs):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "message": message,
            "service": self.service,
            "request_id": get_request_id(),
            **kwargs
        }

        log_entry = {k: v for k, v in log_entry.items() if v is not None}

        getattr(self.logger, level.lower())(json.dumps(log_entry, default=str))

    def info(self, message: str, **kwargs):
        self._log("INFO", message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log("WARNING", message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log("ERROR", message, **kwargs)

    def debug(self, message: str, **kwargs):
        self._log("DEBUG", message, **kwargs)


structured_logger = StructuredLogger("housecall")


class NoStoreHeadersMiddleware(BaseHTTPMiddleware):
    """
    Headers for JSON responses that may carry patient data.

    - X-Content-Type-Options: no MIME sniffing
    - X-Frame-Options: no framing
    - Cache-Control: responses are never cached by intermediaries
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers.setdefault("Cache-Control", "no-store")
        return response


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Adds unique request ID to each request.

    Accepted from X-Request-ID when the client sends one, otherwise a UUID4.
    Echoed back on the response.
    """

    HEADER_NAME = "X-Request-ID"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(self.HEADER_NAME) or str(uuid.uuid4())
        token = request_id_ctx.set(request_id)

        try:
            response = await call_next(request)
            response.headers[self.HEADER_NAME] = request_id
            return response
        finally:
            request_id_ctx.reset(token)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs all requests with timing and metadata.

    Query strings are logged by key only: they can hold addresses and
    coordinates.
    """

    EXCLUDED_PATHS = {"/api/health", "/health"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        query_keys = sorted(request.query_params.keys()) or None

        try:
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start_time) * 1000

            structured_logger.info(
                "Request completed",
                method=request.method,
                path=request.url.path,
                query_keys=query_keys,
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
                client_ip=client_ip,
            )

            return response

        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000

            structured_logger.error(
                "Request failed",
                method=request.method,
                path=request.url.path,
                error_type=type(e).__name__,
                duration_ms=round(duration_ms, 2),
                client_ip=client_ip,
            )
            raise


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Global error handling with sanitized responses.

    Unhandled errors are logged in full and answered with a generic 500
    carrying the request ID. In debug mode the error text is returned.
    """

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            request_id = get_request_id()

            structured_logger.error(
                "Unhandled exception",
                error=str(e),
                error_type=type(e).__name__,
                path=request.url.path,
                method=request.method,
            )

            if self.debug:
                detail = str(e)
            else:
                detail = "An internal error occurred. Please contact support with the request ID."

            return JSONResponse(
                status_code=500,
                content={
                    "error": "Internal Server Error",
                    "detail": detail,
                    "request_id": request_id,
                },
                headers={"X-Request-ID": request_id} if request_id else {},
            )


def setup_middleware(app: FastAPI, debug: bool = False):
    """
    Configure middleware for the application.

    Middleware executes in reverse order of addition.
    """
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(NoStoreHeadersMiddleware)
    app.add_middleware(ErrorHandlingMiddleware, debug=debug)
