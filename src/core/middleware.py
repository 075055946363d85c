"""
Request tracing middleware.

Each request gets a request id (taken from ``X-Request-ID`` when the client
sends one) and, when known, the calling device. Both are bound to the log
context for the duration of the request, so engine and store log lines can
be correlated without passing ids around.
"""

import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from core.logging import bind_context, clear_context, get_logger


logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
DEVICE_HEADER = "X-Device-Install-ID"


def _device_install_id(request: Request) -> Optional[str]:
    # GET /api/events carries it in the query; clients may also send a header
    return request.headers.get(DEVICE_HEADER) or request.query_params.get("device_install_id")


class RequestTracingMiddleware(BaseHTTPMiddleware):
    """
    Binds request context and logs one line per request.

    Refusals (4xx) log at warning so rejected and denied events stand out
    from normal traffic; everything else logs at info.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        bind_context(request_id=request_id, method=request.method, path=request.url.path)

        device_install_id = _device_install_id(request)
        if device_install_id:
            bind_context(device_install_id=device_install_id)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            raise
        else:
            duration_ms = round((time.perf_counter() - started) * 1000, 2)
            log = logger.warning if 400 <= response.status_code < 500 else logger.info
            log("Request completed", status_code=response.status_code, duration_ms=duration_ms)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_context()
