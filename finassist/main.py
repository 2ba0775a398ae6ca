"""finassist admin FastAPI application."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from finassist import __version__
from finassist.api.routes import skills as skills_routes
from finassist.config.settings import settings
from finassist.skills.engine import SkillEngine
from finassist.skills.packs import register_builtin_skills
from finassist.skills.registry import SkillRegistry

logger = logging.getLogger(__name__)


def build_engine() -> SkillEngine:
    """A fresh engine with the bundled skill packs registered."""
    registry = SkillRegistry()
    added = register_builtin_skills(registry)
    logger.info("Registered skills: %s", ", ".join(added))
    return SkillEngine(registry)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logging.basicConfig(level=settings.LOG_LEVEL)
    if getattr(app.state, "engine", None) is None:
        app.state.engine = build_engine()
    yield
    app.state.engine.clear_execution_cache()


app = FastAPI(
    title="finassist skill engine",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(skills_routes.router)


@app.get("/api/health")
async def health_check() -> dict:
    return {"status": "ok", "version": __version__}


# --- Exception handlers ---

@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(KeyError)
async def key_error_handler(request: Request, exc: KeyError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
