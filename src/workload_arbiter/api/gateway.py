"""
API Gateway -- FastAPI application factory.

Thin presentation layer over a WorkloadEngine. Entry point for uvicorn:

    uvicorn workload_arbiter.api.gateway:create_app --factory --host 127.0.0.1 --port 8000

Security:
  - CORS restricted to configured origins (default: localhost only)
  - Production auth check on startup
  - Mutating routes require the API key and are rate limited
  - All external input validated at boundary

Startup failures (corrupt catalog or knowledge store) propagate out of
create_app so the server never comes up on untrusted state.
"""

import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import ENV_PREFIX, EngineConfig
from ..engine import WorkloadEngine, build_engine
from .middleware.auth import check_production_auth
from .middleware.rate_limit import SlidingWindowLimiter
from .routes import agents, control, feedback, health, recipes

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8000",
    "http://127.0.0.1:8000",
]


def _get_cors_origins() -> list[str]:
    origins_env = os.environ.get(f"{ENV_PREFIX}CORS_ORIGINS", "")
    if origins_env.strip():
        return [o.strip() for o in origins_env.split(",") if o.strip()]
    return DEFAULT_CORS_ORIGINS


def create_app(engine: WorkloadEngine | None = None) -> FastAPI:
    """
    Application factory.

    Args:
        engine: Pre-built engine (tests pass one wired to an in-memory
                actuator). Built from the environment when None.
    """
    check_production_auth()

    if engine is None:
        engine = build_engine(EngineConfig.from_env())

    @asynccontextmanager
    async def lifespan(application: FastAPI):
        await engine.start()
        logger.info("[Gateway] Engine started")
        try:
            yield
        finally:
            await engine.shutdown()

    application = FastAPI(
        title="Workload Arbiter API",
        description="Recipe matching, agent arbitration and revertible configuration",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=_get_cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Authorization", "Content-Type"],
    )

    application.state.engine = engine
    application.state.rate_limiter = SlidingWindowLimiter.from_env()
    application.state.start_time = time.time()

    application.include_router(health.router, tags=["Health"])
    application.include_router(recipes.router, prefix="/api/v1", tags=["Recipes"])
    application.include_router(agents.router, prefix="/api/v1", tags=["Agents"])
    application.include_router(control.router, prefix="/api/v1", tags=["Control"])
    application.include_router(feedback.router, prefix="/api/v1", tags=["Learning - Feedback"])

    logger.info("[Gateway] API gateway initialized")
    return application
