"""Starlette app factory with lifespan that loads the skill repository."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse

from skillsync.config import EngineConfig, load_config
from skillsync.errors import (
    SkillExistsError,
    SkillNotFoundError,
    SkillSyncError,
    TargetExistsError,
    TargetNotFoundError,
)
from skillsync.manager import SkillManager
from skillsync.server.routes_import import routes as import_routes
from skillsync.server.routes_skills import routes as skills_routes
from skillsync.server.routes_system import routes as system_routes
from skillsync.server.routes_targets import routes as targets_routes


def resolve_home() -> Path:
    """Home directory for the entry points; SKILLSYNC_HOME overrides the user's home."""
    if env_home := os.environ.get("SKILLSYNC_HOME"):
        return Path(env_home).expanduser()
    return Path.home()


async def skillsync_error(request: Request, exc: Exception) -> JSONResponse:
    if isinstance(exc, SkillNotFoundError | TargetNotFoundError):
        status = 404
    elif isinstance(exc, SkillExistsError | TargetExistsError):
        status = 409
    else:
        status = 400
    return JSONResponse({"error": str(exc)}, status_code=status)


def create_app(config: EngineConfig | None = None) -> Starlette:
    """Create the API app. Without a config, load one from the resolved home."""

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncGenerator[None, None]:
        engine_config = config if config is not None else load_config(resolve_home())
        manager = SkillManager(engine_config)
        manager.refresh()
        app.state.manager = manager
        yield

    return Starlette(
        routes=system_routes + skills_routes + targets_routes + import_routes,
        lifespan=lifespan,
        exception_handlers={SkillSyncError: skillsync_error},
    )
