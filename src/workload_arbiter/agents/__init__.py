"""
Agent implementations.

- base.py: AgentState machine, TaskAgent protocol, BaseTaskAgent
- domains.py: RuleBasedAgent and the built-in gaming, streaming,
  development, media, productivity and content creation agents
- registry.py: AgentRegistry for registering agent types
"""
from .base import (
    AgentActionResult,
    AgentContribution,
    AgentRecommendation,
    AgentResourceRequirements,
    AgentState,
    BaseTaskAgent,
    TaskAgent,
)
from .domains import RuleBasedAgent
from .registry import AgentRegistry, default_registry
