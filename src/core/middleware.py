"""
Request tracing middleware.

Every request gets a request id (the caller's X-Request-ID or a fresh one)
bound to the structlog context together with method, path and, for swipe
session routes, the session id. Unexpected exceptions are logged and turned
into the standard error envelope instead of a bare 500.
"""

import re
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from core.errors import AppError
from core.logging import bind_context, clear_context, get_logger


logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

SESSION_PATH = re.compile(r"^/api/swipe/session/(?P<session_id>[^/]+)")


class RequestTracingMiddleware(BaseHTTPMiddleware):
    """
    Binds per-request log context and logs one line per request with timing.

    Usage:
        app = FastAPI()
        app.add_middleware(RequestTracingMiddleware)
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        path = request.url.path

        clear_context()
        bind_context(request_id=request_id, method=request.method, path=path)
        match = SESSION_PATH.match(path)
        if match:
            bind_context(session_id=match.group("session_id"))

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                "Unhandled error",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=_elapsed_ms(start_time),
            )
            response = JSONResponse(
                status_code=500,
                content=AppError("Internal server error").to_dict(),
            )
        else:
            log = logger.warning if response.status_code >= 500 else logger.info
            log(
                "Request completed",
                status_code=response.status_code,
                duration_ms=_elapsed_ms(start_time),
            )
        finally:
            clear_context()

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def _elapsed_ms(start_time: float) -> float:
    return round((time.perf_counter() - start_time) * 1000, 2)
