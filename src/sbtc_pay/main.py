"""Application entry point for the sBTC payment server."""

from __future__ import annotations

import logging
import os

import uvicorn

from sbtc_pay.config.settings import AppConfig


def main() -> None:
    """Start the sBTC payment server."""
    config = AppConfig()
    reload = os.getenv("SBTCPAY_RELOAD", "false").lower() in ("1", "true", "yes")
    log_level = "debug" if config.debug else "info"
    logging.basicConfig(
        level=logging.DEBUG if config.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "sbtc_pay.api.app:create_app",
        factory=True,
        host=config.server.host,
        port=config.server.port,
        reload=reload,
        log_level=log_level,
    )


if __name__ == "__main__":
    main()
