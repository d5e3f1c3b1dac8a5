"""Chainhook intake — confirmed-block batches from the chain event feed."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request

from sbtc_pay.api.dependencies import get_engine
from sbtc_pay.api.v1.schemas import ChainhookAck
from sbtc_pay.engine.client import PayEngine  # noqa: TC001
from sbtc_pay.utils.clock import utcnow

router = APIRouter(prefix="/api/chainhooks", tags=["chainhooks"])


@router.post("/payments/hook", response_model=ChainhookAck)
async def receive_payment_events(
    request: Request,
    engine: Annotated[PayEngine, Depends(get_engine)],
    authorization: Annotated[str | None, Header()] = None,
) -> ChainhookAck:
    """Apply a chainhook batch.

    401 on a bad bearer token, 400 on a malformed batch. Per-transaction
    failures are counted in the acknowledgement and do not fail the request.
    """
    receiver = engine.receiver
    receiver.authenticate(authorization)
    body = await request.body()
    result = await receiver.process(receiver.parse(body))
    return ChainhookAck(**result.to_dict())


@router.get("/payments/hook")
async def chainhook_status() -> dict[str, str]:
    return {
        "message": "sBTC payment chainhook endpoint is active",
        "timestamp": utcnow().isoformat(),
    }
