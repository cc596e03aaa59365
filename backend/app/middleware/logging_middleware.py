"""
Logging Middleware

Binds a request id to the logging context, logs each API call with its
timing, and warns when a call is slower than SLOW_REQUEST_MS.
"""

import os
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..logging_config import request_id_var, user_id_var, get_logger

logger = get_logger(__name__)

QUIET_PATHS = {"/health", "/health/db", "/favicon.ico"}


def _slow_threshold_ms() -> int:
    return int(os.getenv("SLOW_REQUEST_MS", "3000"))


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    user_id is set by the auth dependency on request.state, so it only
    reaches the context once the handler has run.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
        request_id_var.set(request_id)
        started = time.monotonic()
        call = {"method": request.method, "path": request.url.path}
        quiet = call["path"] in QUIET_PATHS

        if not quiet:
            logger.info("Request started", extra={"action": "request_start", "extra_data": call})

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Request failed: {e}",
                extra={
                    "action": "request_error",
                    "extra_data": {**call, "error": str(e), "duration_ms": self._elapsed(started)},
                },
                exc_info=True,
            )
            raise
        else:
            user_id = getattr(request.state, "user_id", None)
            if user_id:
                user_id_var.set(user_id)
            duration_ms = self._elapsed(started)
            if not quiet:
                level = "warning" if duration_ms >= _slow_threshold_ms() else "info"
                getattr(logger, level)(
                    "Request completed",
                    extra={
                        "action": "request_end",
                        "extra_data": {**call, "status_code": response.status_code, "duration_ms": duration_ms},
                    },
                )
            response.headers["x-request-id"] = request_id
            return response
        finally:
            request_id_var.set(None)
            user_id_var.set(None)

    @staticmethod
    def _elapsed(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
