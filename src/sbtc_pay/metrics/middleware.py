"""Prometheus HTTP request metrics middleware for FastAPI.

Tracks:
- ``http_request_total`` (counter) by method, route, status
- ``http_request_duration_seconds`` (histogram) by method, route

Requests are labelled with the matched route template
(``/api/v1/merchants/{merchant_id}/webhook-events``) rather than the raw
path, so merchant and event ids do not become label values.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware

if TYPE_CHECKING:
    from collections.abc import Callable

    from prometheus_client import CollectorRegistry
    from starlette.requests import Request
    from starlette.responses import Response

_APP_LABEL = "sbtc-pay"
_UNMATCHED = "<unmatched>"

_LABELS = ("method", "route", "status_code", "app")
_DURATION_LABELS = ("method", "route", "app")


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path if isinstance(path, str) else _UNMATCHED


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Starlette middleware that records request count and duration."""

    def __init__(self, app: object, *, registry: CollectorRegistry) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._request_count = Counter(
            "http_request_total",
            "Total HTTP requests",
            _LABELS,
            registry=registry,
        )
        self._request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            _DURATION_LABELS,
            registry=registry,
        )

    async def dispatch(
        self, request: Request, call_next: Callable  # type: ignore[type-arg]
    ) -> Response:
        start = time.monotonic()
        response: Response = await call_next(request)
        duration = time.monotonic() - start

        # The router fills in scope["route"] while handling the request
        route = _route_template(request)
        self._request_count.labels(
            method=request.method,
            route=route,
            status_code=str(response.status_code),
            app=_APP_LABEL,
        ).inc()
        self._request_duration.labels(
            method=request.method,
            route=route,
            app=_APP_LABEL,
        ).observe(duration)
        return response
