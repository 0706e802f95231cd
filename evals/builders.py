"""Builders for eval inputs that don't need a live agent or a real catalog file."""

from types import SimpleNamespace

from workload_arbiter.agents.base import (
    AgentContribution,
    AgentRecommendation,
    AgentResourceRequirements,
)
from workload_arbiter.configuration.changes import AllocateResource, ResourceType


def contribution(
    agent_type: str,
    *,
    priority: float = 0.5,
    confidence: float = 0.8,
    requests: dict | None = None,
    non_negotiable: bool = False,
    conflicts_with: frozenset = frozenset(),
    scenario: str = "eval",
) -> AgentContribution:
    recommendation = AgentRecommendation(
        agent_type=agent_type,
        title=f"{agent_type} tuning",
        actions=(AllocateResource(ResourceType.CPU, 0.5),),
        confidence=confidence,
        auto_apply=True,
        scenario=scenario,
    )
    requirements = AgentResourceRequirements(
        agent_type=agent_type,
        requests=dict(requests or {}),
        priority=priority,
        non_negotiable=non_negotiable,
        conflicts_with=frozenset(conflicts_with),
    )
    return AgentContribution(
        SimpleNamespace(agent_type=agent_type), recommendation, requirements
    )
