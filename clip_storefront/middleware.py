"""FastAPI middleware for request/response logging and correlation."""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from clip_storefront.logging_config import bind_context, clear_context, get_logger
from clip_storefront.utils.token_generator import token_preview

logger = get_logger(__name__)

UNKNOWN_CLIENT = "unknown"


def client_ip(request: Request) -> str:
    """Caller IP: first X-Forwarded-For hop, else the socket peer, else "unknown"."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging HTTP requests and responses with correlation IDs.

    Features:
    - Generates unique request_id for each request
    - Logs request method, path, client IP
    - Logs response status code and duration
    - Binds request_id to all logs within request context
    """

    def __init__(self, app: ASGIApp, include_request_details: bool = True):
        super().__init__(app)
        self.include_request_details = include_request_details

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())
        bind_context(request_id=request_id)

        if self.include_request_details:
            logger.info(
                "request_started",
                method=request.method,
                path=_loggable_path(request.url.path),
                client_host=client_ip(request),
                user_agent=request.headers.get("user-agent"),
            )
        else:
            logger.info(
                "request_started",
                method=request.method,
                path=_loggable_path(request.url.path),
            )

        start_time = time.time()

        try:
            response = await call_next(request)

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "request_completed",
                method=request.method,
                path=_loggable_path(request.url.path),
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )

            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as exc:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "request_failed",
                method=request.method,
                path=_loggable_path(request.url.path),
                duration_ms=round(duration_ms, 2),
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            raise

        finally:
            clear_context()


class ContextMiddleware(BaseHTTPMiddleware):
    """Binds business identifiers found in the URL path to the logging context.

    - /api/clips/{clip_id} -> clip_id
    - /api/download/{token} -> token (preview only)
    - /api/purchases/session/{session_id} -> session_id
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        parts = [part for part in request.url.path.split("/") if part]

        clip_id = _segment_after(parts, "clips")
        if clip_id and clip_id != "search":
            bind_context(clip_id=clip_id)

        token = _segment_after(parts, "download")
        if token:
            bind_context(token=token)

        session_id = _segment_after(parts, "session")
        if session_id:
            bind_context(session_id=session_id)

        return await call_next(request)


def _segment_after(parts: list[str], marker: str) -> str:
    try:
        index = parts.index(marker)
    except ValueError:
        return ""
    if len(parts) > index + 1:
        return parts[index + 1]
    return ""


def _loggable_path(path: str) -> str:
    """Request path with any download token shortened."""
    marker = "/download/"
    if marker not in path:
        return path
    prefix, _, rest = path.partition(marker)
    token, slash, tail = rest.partition("/")
    return f"{prefix}{marker}{token_preview(token)}{slash}{tail}"
