"""Target and sync routes: list/add/remove targets, toggles, overrides, sync, status."""

from __future__ import annotations

import asyncio
from pathlib import Path

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from skillsync.server.routes_skills import json_body


async def list_targets(request: Request) -> JSONResponse:
    manager = request.app.state.manager
    targets = manager.list_targets()
    return JSONResponse(
        {"targets": [t.model_dump() for t in targets], "count": len(targets)}
    )


async def add_target(request: Request) -> JSONResponse:
    """POST /api/targets: body {path, name?}; registers a custom folder."""
    body = await json_body(request)
    if body is None or not isinstance(body.get("path"), str) or not body["path"]:
        return JSONResponse({"error": "path is required"}, status_code=400)
    name = body.get("name") if isinstance(body.get("name"), str) else None
    manager = request.app.state.manager
    target = await asyncio.to_thread(manager.add_custom_target, Path(body["path"]), name)
    return JSONResponse(target.model_dump(), status_code=201)


async def remove_target(request: Request) -> JSONResponse:
    manager = request.app.state.manager
    target = await asyncio.to_thread(manager.remove_custom_target, request.path_params["id"])
    return JSONResponse({"removed": target.id})


async def toggle_target(request: Request) -> JSONResponse:
    manager = request.app.state.manager
    target = await asyncio.to_thread(manager.toggle_target, request.path_params["id"])
    return JSONResponse(target.model_dump())


async def set_override(request: Request) -> JSONResponse:
    """PUT /api/targets/{id}/overrides/{skill}: body {enabled}."""
    body = await json_body(request)
    if body is None or not isinstance(body.get("enabled"), bool):
        return JSONResponse({"error": "enabled must be a boolean"}, status_code=400)
    manager = request.app.state.manager
    target = await asyncio.to_thread(
        manager.set_skill_override,
        request.path_params["id"],
        request.path_params["skill"],
        body["enabled"],
    )
    return JSONResponse(target.model_dump())


def _dry_run(request: Request) -> bool:
    return request.query_params.get("dry_run", "").lower() in ("true", "1", "yes")


async def sync_all(request: Request) -> JSONResponse:
    """POST /api/sync: reconcile every enabled target."""
    manager = request.app.state.manager
    results = await asyncio.to_thread(manager.sync_all, _dry_run(request))
    return JSONResponse(
        {
            "results": [r.model_dump() for r in results],
            "created": sum(len(r.created) for r in results),
            "removed": sum(len(r.removed) for r in results),
            "errors": sum(len(r.errors) for r in results),
        }
    )


async def sync_target(request: Request) -> JSONResponse:
    manager = request.app.state.manager
    result = await asyncio.to_thread(
        manager.sync_target, request.path_params["id"], _dry_run(request)
    )
    return JSONResponse(result.model_dump())


async def target_status(request: Request) -> JSONResponse:
    manager = request.app.state.manager
    status = await asyncio.to_thread(manager.target_status, request.path_params["id"])
    return JSONResponse(status.model_dump())


routes = [
    Route("/api/targets", list_targets),
    Route("/api/targets", add_target, methods=["POST"]),
    Route("/api/targets/{id}", remove_target, methods=["DELETE"]),
    Route("/api/targets/{id}/toggle", toggle_target, methods=["POST"]),
    Route("/api/targets/{id}/overrides/{skill}", set_override, methods=["PUT"]),
    Route("/api/targets/{id}/status", target_status),
    Route("/api/sync", sync_all, methods=["POST"]),
    Route("/api/sync/{id}", sync_target, methods=["POST"]),
]
