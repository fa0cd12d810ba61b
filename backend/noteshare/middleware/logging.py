"""
NoteShare Backend — Access Logging Middleware
===============================================

What:  One access-log line per HTTP request on the `noteshare.access` logger.
How:   Times the request, then logs method, path, status, duration, request
       id and the forwarded caller id at a level chosen by the status code.
When:  Runs inside RequestIDMiddleware, so the request id is already set.

Level by status:
    5xx → ERROR, 4xx → WARNING, everything else → INFO

Request bodies are never logged (uploads, comment text).
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from noteshare.config import settings
from noteshare.middleware.request_id import request_id_var

logger = logging.getLogger("noteshare.access")

# Probes hit these every few seconds
QUIET_PATHS = frozenset({"/health"})


def _level_for(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Access logging with request-id correlation.

    For streamed downloads the duration covers the time until the response
    headers are ready, not the whole transfer.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        rid = request_id_var.get("")
        client_ip = request.client.host if request.client else "unknown"
        caller = request.headers.get(settings.auth_user_header, "-")
        status = response.status_code

        logger.log(
            _level_for(status),
            "%s %s %d %.1fms [%s] caller=%s from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            caller,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "caller": caller,
                "client_ip": client_ip,
            },
        )
        return response
