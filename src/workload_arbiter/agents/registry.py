"""
AgentRegistry -- registry-based agent types instead of string dispatch.

Agent classes register under their agent_type. The orchestrator receives
instances built by the registry, in registration order, and never compares
type strings to decide behavior.

Usage:
    registry = default_registry()
    registry.register_type(BackupAgent)

    # One instance per registered type, with persisted knowledge
    agents = registry.create_all(knowledge_loader=store.load)
    orchestrator = Orchestrator(agents, config.orchestrator)
"""

import logging
from typing import Callable

from workload_arbiter.learning.models import AgentKnowledge

from .base import BaseTaskAgent
from .domains import BUILTIN_AGENTS

logger = logging.getLogger(__name__)


class AgentRegistry:
    """Maps agent_type -> agent class, keeping registration order."""

    def __init__(self):
        self._types: dict[str, type[BaseTaskAgent]] = {}

    def register_type(self, agent_cls: type[BaseTaskAgent]) -> None:
        agent_type = getattr(agent_cls, "agent_type", "")
        if not agent_type or agent_type == BaseTaskAgent.agent_type:
            raise ValueError(f"{agent_cls.__name__} must define its own agent_type")
        if agent_type in self._types:
            logger.warning(f"[AgentRegistry] Replacing agent type '{agent_type}'")
        self._types[agent_type] = agent_cls
        logger.info(f"[AgentRegistry] Registered agent type: {agent_type}")

    def unregister(self, agent_type: str) -> bool:
        if agent_type not in self._types:
            return False
        del self._types[agent_type]
        logger.info(f"[AgentRegistry] Unregistered agent type: {agent_type}")
        return True

    def get(self, agent_type: str) -> type[BaseTaskAgent]:
        """Agent class for a type. Raises KeyError for unknown types."""
        return self._types[agent_type]

    def create(
        self,
        agent_type: str,
        knowledge: AgentKnowledge | None = None,
        logger: logging.Logger | None = None,
    ) -> BaseTaskAgent:
        return self._types[agent_type](knowledge=knowledge, logger=logger)

    def create_all(
        self,
        knowledge_loader: Callable[[str], AgentKnowledge] | None = None,
        logger: logging.Logger | None = None,
    ) -> list[BaseTaskAgent]:
        """One instance per registered type, in registration order."""
        agents = []
        for agent_type in self._types:
            knowledge = knowledge_loader(agent_type) if knowledge_loader else None
            agents.append(self.create(agent_type, knowledge=knowledge, logger=logger))
        return agents

    def list_types(self) -> list[str]:
        return list(self._types)

    def __contains__(self, agent_type: object) -> bool:
        return agent_type in self._types

    @property
    def count(self) -> int:
        return len(self._types)


def default_registry() -> AgentRegistry:
    registry = AgentRegistry()
    for agent_cls in BUILTIN_AGENTS:
        registry.register_type(agent_cls)
    return registry
