"""V1 REST API routes.

Merchant management routes live under ``/api/v1``; chainhook intake keeps
the feed's own ``/api/chainhooks`` path.
"""

from fastapi import APIRouter

from sbtc_pay.api.v1.chainhooks import router as chainhooks_router
from sbtc_pay.api.v1.webhooks import router as webhooks_router

v1_router = APIRouter(prefix="/api/v1")

v1_router.include_router(webhooks_router)

__all__ = ["chainhooks_router", "v1_router"]
