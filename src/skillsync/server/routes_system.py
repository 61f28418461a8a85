"""System routes: health, version, stats, legacy migration."""

from __future__ import annotations

import asyncio

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from skillsync import __version__ as VERSION


async def health(request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "version": VERSION})


async def stats(request: Request) -> JSONResponse:
    manager = request.app.state.manager
    return JSONResponse(await asyncio.to_thread(manager.stats))


async def migrate(request: Request) -> JSONResponse:
    """POST /api/migrate: copy skills from the legacy repository location."""
    manager = request.app.state.manager
    result = await asyncio.to_thread(manager.migrate_legacy)
    return JSONResponse(result.model_dump())


routes = [
    Route("/api/health", health),
    Route("/api/stats", stats),
    Route("/api/migrate", migrate, methods=["POST"]),
]
