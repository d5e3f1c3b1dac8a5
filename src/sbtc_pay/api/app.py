"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest
from starlette.responses import Response

from sbtc_pay import __version__
from sbtc_pay.api.v1 import chainhooks_router, v1_router
from sbtc_pay.config.settings import AppConfig
from sbtc_pay.engine.client import PayEngine
from sbtc_pay.errors.pay_errors import PayError
from sbtc_pay.metrics.collector import EngineMetrics
from sbtc_pay.metrics.middleware import PrometheusMiddleware

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialise the engine on startup and shut it down on exit."""
    config: AppConfig = app.state.config
    engine = PayEngine(config, metrics=getattr(app.state, "metrics", None))
    try:
        await engine.initialize()
        app.state.engine = engine
        logger.info("sBTC pay engine initialized")
        yield
    finally:
        await engine.close()
        logger.info("sBTC pay engine shut down")


def create_app(*, config: AppConfig | None = None) -> FastAPI:
    """Build and return the FastAPI application.

    Args:
        config: Optional AppConfig. If *None*, one is loaded from the
            environment (and ``SBTCPAY_CONFIG_PATH``).
    """
    if config is None:
        config = AppConfig()

    app = FastAPI(
        title="py-sbtc-pay",
        version=__version__,
        description="sBTC payment reconciliation and webhook delivery",
        lifespan=_lifespan,
        debug=config.debug,
    )
    app.state.config = config

    if config.metrics.enabled:
        app.state.metrics = EngineMetrics()

    # -- Error handlers --
    @app.exception_handler(PayError)
    async def _pay_error_handler(request: Request, exc: PayError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(Exception)
    async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"code": "internal-error", "message": "internal server error"},
        )

    # -- Base routes --
    @app.get("/health", tags=["base"])
    async def health(request: Request) -> dict[str, object]:
        engine: PayEngine | None = getattr(request.app.state, "engine", None)
        components = await engine.health_check() if engine is not None else {}
        return {"status": "ok", "components": components}

    @app.get("/metrics", tags=["base"], include_in_schema=False)
    async def metrics_endpoint() -> Response:
        """Prometheus metrics endpoint."""
        metrics = getattr(app.state, "metrics", None)
        body = generate_latest(metrics.registry) if metrics is not None else b""
        return Response(
            content=body,
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    # -- Prometheus request metrics middleware --
    if config.metrics.enabled:
        app.add_middleware(PrometheusMiddleware, registry=app.state.metrics.registry)

    app.include_router(chainhooks_router)
    app.include_router(v1_router)

    return app
