"""
Correlation ids for HTTP requests.

A caller-supplied X-Request-ID is reused, otherwise a uuid4 is minted. The id
is echoed in the response, stored on request.state for the error handlers and
bound to the logging context for the duration of the request.
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from identity_api.logging_config import get_logger, request_id_var

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Password hashing makes auth requests slow on purpose; only flag outliers
SLOW_REQUEST_MS = 2000


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Assign a correlation ID to each request and log slow ones."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_var.set(request_id)

        try:
            start = time.perf_counter()
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - start) * 1000
            response.headers[REQUEST_ID_HEADER] = request_id

            if elapsed_ms > SLOW_REQUEST_MS:
                logger.warning(
                    "Slow request",
                    extra={
                        "path": request.url.path,
                        "method": request.method,
                        "duration_ms": round(elapsed_ms, 1),
                    },
                )
            return response
        finally:
            request_id_var.reset(token)
