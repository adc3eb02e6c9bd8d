from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger("onboarding.request")

# Path parameters worth carrying into the request log.
_TRACKED_PARAMS = ("candidate_id", "step_number", "calendar_event_id", "department")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs one line per request with the acting user and the onboarding target it touched."""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = int((time.perf_counter() - start) * 1000)
        path_params = request.scope.get("path_params") or {}
        extra = {
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
            "actor": (request.headers.get("x-user-email") or "").strip().lower() or None,
        }
        for name in _TRACKED_PARAMS:
            if name in path_params:
                extra[name] = path_params[name]
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(level, "request_completed", extra=extra)
        return response
