"""Skill routes: list, inspect, create, edit, rename, delete, validate."""

from __future__ import annotations

import asyncio
from typing import Any

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from skillsync.skills.models import Skill

_STATUS_FILTERS = {"valid": ("valid", "warning"), "invalid": ("invalid",)}


async def json_body(request: Request) -> dict[str, Any] | None:
    """Decoded JSON object body, or None when absent or not an object."""
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def skill_json(skill: Skill) -> dict[str, Any]:
    data = skill.model_dump(mode="json")
    data["is_syncable"] = skill.is_syncable
    return data


async def list_skills(request: Request) -> JSONResponse:
    """GET /api/skills: list skills, optionally ?status=valid|invalid."""
    manager = request.app.state.manager
    skills = manager.list_skills()
    status = request.query_params.get("status")
    if status is not None:
        if status not in _STATUS_FILTERS:
            return JSONResponse({"error": "status must be 'valid' or 'invalid'"}, status_code=400)
        states = _STATUS_FILTERS[status]
        skills = [s for s in skills if s.validation_status.state in states]
    return JSONResponse(
        {
            "skills": [skill_json(s) for s in skills],
            "count": len(skills),
            "load_errors": [
                {"folder_name": f.folder_name, "message": f.message} for f in manager.load_errors
            ],
        }
    )


async def get_skill(request: Request) -> JSONResponse:
    """GET /api/skills/{name}: one skill with its SKILL.md content."""
    name = request.path_params["name"]
    manager = request.app.state.manager
    skill = manager.get_skill(name)
    data = skill_json(skill)
    data["content"] = await asyncio.to_thread(manager.read_document, name)
    return JSONResponse(data)


async def create_skill(request: Request) -> JSONResponse:
    """POST /api/skills: body {name, description?}."""
    body = await json_body(request)
    if body is None or not isinstance(body.get("name"), str) or not body["name"].strip():
        return JSONResponse({"error": "name is required"}, status_code=400)
    manager = request.app.state.manager
    skill = await asyncio.to_thread(
        manager.create_skill, body["name"], str(body.get("description") or "")
    )
    return JSONResponse(skill_json(skill), status_code=201)


async def delete_skill(request: Request) -> JSONResponse:
    name = request.path_params["name"]
    manager = request.app.state.manager
    await asyncio.to_thread(manager.delete_skill, name)
    return JSONResponse({"deleted": name})


async def rename_skill(request: Request) -> JSONResponse:
    """POST /api/skills/{name}/rename: body {new_name}."""
    body = await json_body(request)
    if body is None or not isinstance(body.get("new_name"), str):
        return JSONResponse({"error": "new_name is required"}, status_code=400)
    manager = request.app.state.manager
    skill = await asyncio.to_thread(
        manager.rename_skill, request.path_params["name"], body["new_name"]
    )
    return JSONResponse(skill_json(skill))


async def save_document(request: Request) -> JSONResponse:
    """PUT /api/skills/{name}/document: body {content}."""
    body = await json_body(request)
    if body is None or not isinstance(body.get("content"), str):
        return JSONResponse({"error": "content is required"}, status_code=400)
    manager = request.app.state.manager
    skill = await asyncio.to_thread(
        manager.save_document, request.path_params["name"], body["content"]
    )
    return JSONResponse(skill_json(skill))


async def fix_skill(request: Request) -> JSONResponse:
    name = request.path_params["name"]
    manager = request.app.state.manager
    fixes = await asyncio.to_thread(manager.fix_skill, name)
    return JSONResponse({"name": name, "fixes": fixes, "fixed": bool(fixes)})


async def set_enabled(request: Request) -> JSONResponse:
    """PUT /api/skills/{name}/enabled: body {enabled}."""
    body = await json_body(request)
    if body is None or not isinstance(body.get("enabled"), bool):
        return JSONResponse({"error": "enabled must be a boolean"}, status_code=400)
    manager = request.app.state.manager
    skill = await asyncio.to_thread(
        manager.set_skill_enabled, request.path_params["name"], body["enabled"]
    )
    return JSONResponse(skill_json(skill))


async def validate_skills(request: Request) -> JSONResponse:
    """POST /api/skills/validate: body {name?, strict?}; validates one or all."""
    body = await json_body(request) or {}
    strict = body.get("strict")
    if strict is not None and not isinstance(strict, bool):
        return JSONResponse({"error": "strict must be a boolean"}, status_code=400)
    manager = request.app.state.manager
    name = body.get("name")
    if isinstance(name, str):
        skills = [await asyncio.to_thread(manager.validate_skill, name, strict)]
    else:
        skills = await asyncio.to_thread(manager.validate_all, strict)
    invalid = [s for s in skills if s.validation_status.state == "invalid"]
    return JSONResponse(
        {
            "valid": not invalid,
            "count": len(skills),
            "invalid_count": len(invalid),
            "skills": [skill_json(s) for s in skills],
        }
    )


routes = [
    Route("/api/skills", list_skills),
    Route("/api/skills", create_skill, methods=["POST"]),
    Route("/api/skills/validate", validate_skills, methods=["POST"]),
    Route("/api/skills/{name}", get_skill),
    Route("/api/skills/{name}", delete_skill, methods=["DELETE"]),
    Route("/api/skills/{name}/rename", rename_skill, methods=["POST"]),
    Route("/api/skills/{name}/document", save_document, methods=["PUT"]),
    Route("/api/skills/{name}/fix", fix_skill, methods=["POST"]),
    Route("/api/skills/{name}/enabled", set_enabled, methods=["PUT"]),
]
