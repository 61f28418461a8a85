"""Import routes: scan targets and folders for external skills, apply selections."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from skillsync.importer.importer import DEFAULT_SCAN_DEPTH
from skillsync.importer.models import DiscoveredSkill, ImportSelection
from skillsync.server.routes_skills import json_body


def candidate_json(candidate: DiscoveredSkill) -> dict[str, Any]:
    data = candidate.model_dump()
    data["has_conflict"] = candidate.has_conflict
    data["default_resolution"] = str(candidate.default_resolution)
    return data


def _candidates_response(candidates: list[DiscoveredSkill]) -> JSONResponse:
    return JSONResponse(
        {
            "candidates": [candidate_json(c) for c in candidates],
            "count": len(candidates),
            "conflicts": sum(c.has_conflict for c in candidates),
        }
    )


async def list_candidates(request: Request) -> JSONResponse:
    """GET /api/import/candidates: unmanaged skills found in target directories."""
    manager = request.app.state.manager
    candidates = await asyncio.to_thread(manager.scan_importable)
    return _candidates_response(candidates)


async def scan_folder(request: Request) -> JSONResponse:
    """POST /api/import/scan-folder: body {path, depth?}."""
    body = await json_body(request)
    if body is None or not isinstance(body.get("path"), str) or not body["path"]:
        return JSONResponse({"error": "path is required"}, status_code=400)
    depth = body.get("depth", DEFAULT_SCAN_DEPTH)
    if not isinstance(depth, int) or isinstance(depth, bool) or depth < 0:
        return JSONResponse({"error": "depth must be a non-negative integer"}, status_code=400)
    path = Path(body["path"]).expanduser()
    if not path.is_dir():
        return JSONResponse({"error": f"Not a directory: {path}"}, status_code=400)
    manager = request.app.state.manager
    candidates = await asyncio.to_thread(manager.scan_folder, path, depth)
    return _candidates_response(candidates)


async def apply_import(request: Request) -> JSONResponse:
    """POST /api/import: body {selections: [{source_path, resolution, apply_fixes, name?}]}."""
    body = await json_body(request)
    if body is None or not isinstance(body.get("selections"), list):
        return JSONResponse({"error": "selections must be a list"}, status_code=400)
    try:
        selections = [ImportSelection.model_validate(s) for s in body["selections"]]
    except ValidationError as e:
        return JSONResponse({"error": f"Invalid selection: {e}"}, status_code=422)
    manager = request.app.state.manager
    result = await asyncio.to_thread(manager.import_selections, selections)
    return JSONResponse(
        {
            **result.model_dump(),
            "imported_count": result.imported_count,
            "skipped_count": result.skipped_count,
            "error_count": result.error_count,
        }
    )


routes = [
    Route("/api/import/candidates", list_candidates),
    Route("/api/import/scan-folder", scan_folder, methods=["POST"]),
    Route("/api/import", apply_import, methods=["POST"]),
]
