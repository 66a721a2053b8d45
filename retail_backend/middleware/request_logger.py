# retail_backend/middleware/request_logger.py
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from retail_backend.core.logging_config import get_logger

logger = get_logger("http")


class RequestLoggerMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - started) * 1000, 2)

        # Set by get_current_user once the token is accepted
        user = getattr(request.state, "user", None)

        logger.info(
            "request_completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "user_id": getattr(user, "id", None),
            },
        )
        return response
