import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from storefront.core.logging import BusinessLogger

logger = BusinessLogger("http")


class LoggingMiddleware(BaseHTTPMiddleware):
    """Request logging middleware"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.log_error(
                "REQUEST",
                None,
                exc,
                method=request.method,
                path=request.url.path,
                duration=round(time.time() - start_time, 4),
            )
            raise

        process_time = time.time() - start_time
        logger.log_operation(
            "REQUEST",
            None,
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration=round(process_time, 4),
        )
        response.headers["X-Process-Time"] = str(process_time)
        return response
