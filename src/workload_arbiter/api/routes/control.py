"""
Control loop entry points.

  POST /api/v1/snapshots  -- Push one sensor reading and run a cycle
  POST /api/v1/focus      -- Host focus signal (changes the polling interval)
  GET  /api/v1/results    -- Recent apply/revert results, newest last

Security:
  - Mutations require the API key and are rate limited
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from ...security import ValidationError, validate_list_size
from ...snapshot import Snapshot
from ..middleware.auth import verify_api_key
from ..middleware.rate_limit import check_rate_limit
from ..models.requests import FocusRequest, SnapshotRequest
from ..models.responses import (
    ConfigurationResultResponse,
    CycleResponse,
    FocusResponse,
    ResultListResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()

MAX_PROCESSES = 2000


@router.post("/snapshots", response_model=CycleResponse)
async def push_snapshot(
    body: SnapshotRequest,
    request: Request,
    _auth=Depends(verify_api_key),
    _rate: None = Depends(check_rate_limit),
) -> CycleResponse:
    try:
        validate_list_size(body.running_processes, "running_processes", max_items=MAX_PROCESSES)
        snapshot = Snapshot.from_dict(body.model_dump())
    except (ValidationError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    report = await request.app.state.engine.process_snapshot(snapshot)
    return CycleResponse(**report.to_dict())


@router.post("/focus", response_model=FocusResponse)
async def set_focus(
    body: FocusRequest,
    request: Request,
    _auth=Depends(verify_api_key),
) -> FocusResponse:
    engine = request.app.state.engine
    engine.set_focus(body.focused)
    return FocusResponse(focused=body.focused)


@router.get("/results", response_model=ResultListResponse)
async def recent_results(request: Request, limit: int = 20) -> ResultListResponse:
    results = request.app.state.engine.recent_results()[-max(1, min(limit, 50)):]
    return ResultListResponse(
        results=[ConfigurationResultResponse(**r.to_dict()) for r in results],
        total=len(results),
    )
