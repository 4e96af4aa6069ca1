import os
import time

from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware

from ..core.logging import logger


class RequestLoggerMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        request_id = os.urandom(8).hex()
        request.state.request_id = request_id

        logger.request(
            operation="Incoming Request",
            request_id=request_id,
            method=request.method,
            path=request.url.path
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Unexpected error: {str(e)}",
                request_id=request_id,
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
            )
            raise

        logger.performance(
            operation=f"{request.method} {request.url.path}",
            start_time=start_time,
            request_id=request_id,
            status_code=response.status_code
        )
        response.headers["X-Request-ID"] = request_id
        return response
