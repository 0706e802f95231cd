"""
Liveness endpoint.

  GET /health -- 200 while the process is alive, with a short status summary
"""

import logging
import time

from fastapi import APIRouter, Request

from ..models.responses import HealthResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def liveness(request: Request) -> HealthResponse:
    engine = request.app.state.engine
    start_time = getattr(request.app.state, "start_time", time.time())
    available = engine.ready_count()
    registered = len(engine.orchestrator.agents)
    return HealthResponse(
        status="healthy" if available == registered else "degraded",
        agents_registered=registered,
        agents_available=available,
        recipes=len(engine.catalog),
        active_recipe=engine.active_recipe,
        has_focus=engine.has_focus,
        uptime_seconds=round(time.time() - start_time, 1),
    )
