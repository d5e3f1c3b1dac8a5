"""Tests for the Prometheus request middleware."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from prometheus_client import CollectorRegistry

from sbtc_pay.metrics.middleware import PrometheusMiddleware


@pytest.fixture
def _app_with_metrics() -> tuple[FastAPI, CollectorRegistry]:
    registry = CollectorRegistry()
    app = FastAPI()
    app.add_middleware(PrometheusMiddleware, registry=registry)

    @app.get("/merchants/{merchant_id}/ping")
    async def ping(merchant_id: str) -> dict[str, str]:
        return {"merchant": merchant_id}

    return app, registry


class TestPrometheusMiddleware:
    def test_labels_by_route_template(self, _app_with_metrics: tuple) -> None:
        app, registry = _app_with_metrics
        client = TestClient(app)
        client.get("/merchants/mch_1/ping")
        client.get("/merchants/mch_2/ping")
        labels = {
            "method": "GET",
            "route": "/merchants/{merchant_id}/ping",
            "status_code": "200",
            "app": "sbtc-pay",
        }
        assert registry.get_sample_value("http_request_total", labels) == 2.0

    def test_unmatched_route(self, _app_with_metrics: tuple) -> None:
        app, registry = _app_with_metrics
        TestClient(app).get("/nope")
        labels = {"method": "GET", "route": "<unmatched>", "status_code": "404", "app": "sbtc-pay"}
        assert registry.get_sample_value("http_request_total", labels) == 1.0

    def test_records_duration(self, _app_with_metrics: tuple) -> None:
        app, registry = _app_with_metrics
        TestClient(app).get("/merchants/mch_1/ping")
        labels = {"method": "GET", "route": "/merchants/{merchant_id}/ping", "app": "sbtc-pay"}
        assert registry.get_sample_value("http_request_duration_seconds_count", labels) == 1.0
