"""
Spoken Admin API — Request Logging Middleware
===============================================

What:  One access-log line per HTTP request with status and duration.
Why:   Admission rejections (429), auth rejections (401) and validation
       failures (400) all show up here with their client address, which is
       what an operator needs to spot abuse or a broken client.
How:   Measures time around the downstream app; picks the log level from the
       status class.

What we log vs what we DON'T log (privacy):
    ✅ Log: method, path, status, duration, client address, request ID
    ❌ Don't log: request bodies, cookies, Authorization headers
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from spoken_admin.middleware.rate_limit import client_key_from_request
from spoken_admin.middleware.request_id import request_id_var

logger = logging.getLogger("spoken_admin.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log level by status:
        5xx     → ERROR
        4xx     → WARNING
        2xx/3xx → INFO

    /health is skipped: probes every few seconds would drown everything else.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path == "/health":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        rid = request_id_var.get("")
        client = client_key_from_request(request)
        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            client,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client,
            },
        )
        return response
