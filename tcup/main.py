import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from . import __version__
from .api.relay import router as relay_router
from .config import RelayConfig, load_config
from .errors import RelayError
from .middleware import TracingMiddleware
from .services.prometheus_metrics import prometheus_metrics
from .session import RelaySession

logger = logging.getLogger("tcup")


@asynccontextmanager
async def lifespan(application: FastAPI):
    session: RelaySession = application.state.session
    config = session.config

    # Startup; a dial failure propagates and aborts the server
    session.open()
    session.start_ticker()
    if config.metrics_port:
        prometheus_metrics.start_exporter(config.metrics_port)

    logger.info("tcup ready", extra={
        "component": "relay",
        "listen": config.listen,
        "out": config.out,
        "forward_mode": config.forward_mode,
        "empty_body": config.empty_body,
        "stats_interval": config.stats_interval
    })

    try:
        yield
    finally:
        await session.close()
        logger.info("tcup shut down", extra={"component": "relay"})


async def relay_error_handler(request: Request, exc: RelayError) -> PlainTextResponse:
    prometheus_metrics.increment_rejected(exc.reason)
    client_ip = request.client.host if request.client else "unknown"
    log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(log_level, "request from %s failed: %s", client_ip, exc.detail, extra={
        "component": "relay",
        "reason": exc.reason,
        "status": exc.status_code
    })
    return PlainTextResponse(exc.detail, status_code=exc.status_code)


def create_app(config: Optional[RelayConfig] = None) -> FastAPI:
    """Build a relay application bound to its own session"""
    if config is None:
        config = load_config()

    # The relay route claims every path, so no docs or schema routes
    application = FastAPI(
        title="tcup",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    application.state.session = RelaySession(config)
    application.add_middleware(TracingMiddleware)
    application.add_exception_handler(RelayError, relay_error_handler)
    application.include_router(relay_router)
    return application
