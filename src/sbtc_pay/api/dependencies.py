"""FastAPI dependency injection helpers.

Usage in a route::

    @router.get("/webhook-endpoints")
    async def list_endpoints(
        _: Annotated[None, Depends(require_admin)],
        engine: Annotated[PayEngine, Depends(get_engine)],
    ) -> ...:
        ...
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, Request

from sbtc_pay.api.middleware.auth import require_admin_token
from sbtc_pay.engine.client import PayEngine  # noqa: TC001
from sbtc_pay.errors.pay_errors import PayError


def get_engine(request: Request) -> PayEngine:
    """Retrieve the engine from ``app.state`` (set during lifespan startup)."""
    engine: PayEngine | None = getattr(request.app.state, "engine", None)
    if engine is None:
        raise PayError("engine not ready", status_code=503, code="engine-unavailable")
    return engine


def require_admin(
    engine: Annotated[PayEngine, Depends(get_engine)],
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """Dependency that requires the admin bearer token."""
    require_admin_token(authorization, engine.config.admin_token)
