import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from clinica.core.logger import logger

SLOW_REQUEST_SECONDS = 2.0

class LogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()

        response = await call_next(request)

        duration = time.perf_counter() - start_time
        response.headers["X-Process-Time"] = f"{duration:.4f}"

        message = f"{request.method} {request.url.path} -> {response.status_code} ({duration:.4f}s)"
        if response.status_code >= 500:
            logger.error(message)
        elif duration > SLOW_REQUEST_SECONDS:
            logger.warning(f"Solicitud lenta: {message}")
        else:
            logger.info(message)

        return response
