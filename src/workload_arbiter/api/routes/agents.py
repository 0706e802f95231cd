"""
Agent status and recommendations (read-only).

  GET /api/v1/agents           -- Every agent with state, confidence, allocation
  GET /api/v1/recommendations  -- Latest recommendation per agent
"""

import logging

from fastapi import APIRouter, Request

from ..models.responses import (
    AgentInfo,
    AgentListResponse,
    RecommendationInfo,
    RecommendationListResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/agents", response_model=AgentListResponse)
async def list_agents(request: Request) -> AgentListResponse:
    engine = request.app.state.engine
    timeouts = engine.orchestrator.timeout_counts()
    allocations = engine.ledger_allocations()
    agents = [
        AgentInfo(
            agent_id=agent.agent_id,
            agent_type=agent.agent_type,
            name=agent.name,
            state=agent.state.value,
            confidence=agent.confidence,
            consecutive_timeouts=timeouts.get(agent.agent_type, 0),
            allocation=allocations.get(agent.agent_type, {}),
        )
        for agent in engine.orchestrator.agents
    ]
    return AgentListResponse(agents=agents, total=len(agents))


@router.get("/recommendations", response_model=RecommendationListResponse)
async def list_recommendations(
    request: Request, include_empty: bool = False
) -> RecommendationListResponse:
    latest = request.app.state.engine.latest_recommendations()
    recommendations = [
        RecommendationInfo(**rec.to_dict())
        for rec in latest.values()
        if include_empty or not rec.is_empty
    ]
    return RecommendationListResponse(
        recommendations=recommendations, total=len(recommendations)
    )
