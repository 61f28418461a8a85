"""Uvicorn launcher for the skillsync API."""

from __future__ import annotations

import logging

from skillsync.config import EngineConfig

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 41777


def run_server(
    config: EngineConfig | None = None,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> None:
    """Start the HTTP API server with uvicorn."""
    import uvicorn

    from skillsync.server.app import create_app

    logger.info("Serving skillsync API on http://%s:%d", host, port)
    uvicorn.run(create_app(config), host=host, port=port)
