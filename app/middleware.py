"""FastAPI middleware for request tracking, logging and rate limiting."""

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import settings

logger = logging.getLogger(__name__)


def rate_limit_string() -> str:
    """Per-IP limit applied to generation endpoints."""
    return f"{settings.rate_limit_per_minute}/minute"


limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a request ID to each request and log it with the response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request.state.request_id = request_id

        logger.info(
            f"Request [{request_id}]: {request.method} {request.url.path}",
            extra={"request_id": request_id, "method": request.method, "path": request.url.path},
        )

        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{process_time:.4f}"

        logger.info(
            f"Response [{request_id}]: {response.status_code} in {process_time * 1000:.0f}ms",
            extra={"request_id": request_id, "status_code": response.status_code},
        )
        return response
