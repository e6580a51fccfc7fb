import logging
import random
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .config import HTTP_LOG_SAMPLE_RATE
from .logging_config import trace_id_var

logger = logging.getLogger("tcup.http")


class TracingMiddleware(BaseHTTPMiddleware):
    """Request tracing and structured request logging"""

    def __init__(self, app: ASGIApp, sample_rate: float = HTTP_LOG_SAMPLE_RATE):
        super().__init__(app)
        self.sample_rate = sample_rate

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Generate or reuse trace ID
        trace_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = trace_id_var.set(trace_id)

        client_ip = request.client.host if request.client else "unknown"
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            latency_ms = round((time.perf_counter() - start_time) * 1000, 3)
            response.headers["X-Request-ID"] = trace_id
            self._log_request(
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                latency_ms=latency_ms,
                client_ip=client_ip,
            )
            return response
        finally:
            trace_id_var.reset(token)

    def _log_request(self, method: str, path: str, status: int, latency_ms: float, client_ip: str):
        extra = {
            "method": method,
            "path": path,
            "status": status,
            "latency_ms": latency_ms,
            "client_ip": client_ip,
            "component": "http"
        }

        # Always log failures
        if status >= 400:
            log_level = logging.ERROR if status >= 500 else logging.WARNING
            logger.log(log_level, "%s %s -> %d (%.3fms)", method, path, status, latency_ms, extra=extra)
            return

        # Sample successful requests
        if self.sample_rate <= 0 or random.random() > self.sample_rate:
            return

        logger.info("%s %s -> %d (%.3fms)", method, path, status, latency_ms, extra=extra)
