"""HTTP API — FastAPI application, chainhook intake and merchant webhook routes."""
