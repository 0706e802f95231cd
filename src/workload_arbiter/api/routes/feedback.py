"""
Feedback API -- explicit feedback on recommended actions.

  POST /api/v1/feedback -- Record feedback; folds into the agent's knowledge

A feedback id is consumed at most once. Replaying it returns consumed=false
and changes nothing.

Security:
  - Input validation on all fields
  - Auth required, rate limited
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from ...learning.models import AgentFeedback
from ...security import ValidationError, validate_identifier, validate_length
from ..middleware.auth import verify_api_key
from ..middleware.rate_limit import check_rate_limit
from ..models.requests import FeedbackRequest
from ..models.responses import FeedbackResponse

logger = logging.getLogger(__name__)
router = APIRouter()

MAX_ACTION_LENGTH = 512
MAX_COMMENT_LENGTH = 2_000


@router.post("/feedback", response_model=FeedbackResponse)
async def record_feedback(
    fb: FeedbackRequest,
    request: Request,
    _auth=Depends(verify_api_key),
    _rate: None = Depends(check_rate_limit),
) -> FeedbackResponse:
    try:
        validate_identifier(fb.agent_type, "agent_type")
        validate_length(fb.action, "action", min_length=1, max_length=MAX_ACTION_LENGTH)
        validate_length(fb.comment, "comment", max_length=MAX_COMMENT_LENGTH)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    fields = fb.model_dump(exclude_none=True)
    feedback = AgentFeedback(**fields)
    try:
        rate = request.app.state.engine.submit_feedback(feedback)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Agent '{fb.agent_type}' not found")

    return FeedbackResponse(
        id=feedback.id,
        agent_type=feedback.agent_type,
        action=feedback.action,
        consumed=rate is not None,
        success_rate=rate,
    )
