from __future__ import annotations

import contextvars
import logging
import re
import time
import uuid
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "x-request-id"
NO_REQUEST = "-"

_GAME_PATH = re.compile(r"^/api/games/([^/]+)")

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default=NO_REQUEST)


def current_request_id() -> str:
    """Request ID of the HTTP request being served, or ``"-"`` outside one."""
    return request_id_var.get()


def game_id_from_path(path: str) -> Optional[str]:
    m = _GAME_PATH.match(path)
    return m.group(1) if m else None


class RequestIDLogFilter(logging.Filter):
    """Stamp ``request_id`` on every record so engine and session logs
    can be joined with the request that caused them."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get()
        return True


class RequestIDLoggingMiddleware(BaseHTTPMiddleware):
    """Bind a request ID for the duration of a request and log its outcome.

    An incoming ``x-request-id`` header is reused; otherwise a UUID is
    minted. The ID is echoed in the response header, stored on
    ``request.state`` for the error envelope and bound in
    :data:`request_id_var` for :class:`RequestIDLogFilter`.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        start = time.perf_counter()
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        game_id = game_id_from_path(request.url.path)
        try:
            logger.info(
                "request",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "game_id": game_id,
                },
            )
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id

            log = logger.warning if response.status_code >= 500 else logger.info
            log(
                "response",
                extra={
                    "request_id": request_id,
                    "status_code": response.status_code,
                    "game_id": game_id,
                    "duration_ms": int((time.perf_counter() - start) * 1000),
                },
            )
            return response
        finally:
            request_id_var.reset(token)
