"""Shared fixtures -- temp database, in-memory actuator, contribution builder."""

from types import SimpleNamespace

import pytest

from workload_arbiter.agents.base import (
    AgentContribution,
    AgentRecommendation,
    AgentResourceRequirements,
)
from workload_arbiter.config import EngineConfig, OrchestratorConfig
from workload_arbiter.configuration.actuator import InMemoryActuator
from workload_arbiter.configuration.changes import AllocateResource, ResourceType
from workload_arbiter.engine import build_engine
from workload_arbiter.recipes import default_catalog
from workload_arbiter.storage import ApplyLog


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "arbiter.db"


@pytest.fixture
def actuator():
    return InMemoryActuator()


@pytest.fixture
def apply_log(db_path):
    return ApplyLog(db_path)


@pytest.fixture
def catalog():
    return default_catalog()


@pytest.fixture
def engine_config(db_path):
    return EngineConfig(
        orchestrator=OrchestratorConfig(per_agent_timeout=1.0, max_consecutive_timeouts=3),
        db_path=db_path,
    )


@pytest.fixture
def engine(engine_config, actuator):
    return build_engine(engine_config, actuator=actuator)


@pytest.fixture
def make_contribution():
    """Build an AgentContribution without a live agent behind it."""

    def _make(
        agent_type,
        *,
        priority=0.5,
        confidence=0.8,
        requests=None,
        actions=None,
        conflicts_with=(),
        auto_apply=True,
        non_negotiable=False,
        requires_elevation=False,
        scenario="test",
    ):
        if actions is None:
            actions = (AllocateResource(ResourceType.CPU, 0.5),)
        recommendation = AgentRecommendation(
            agent_type=agent_type,
            title=f"{agent_type} tuning",
            actions=tuple(actions),
            confidence=confidence,
            auto_apply=auto_apply,
            scenario=scenario,
        )
        requirements = AgentResourceRequirements(
            agent_type=agent_type,
            requests=dict(requests or {}),
            priority=priority,
            requires_elevation=requires_elevation,
            non_negotiable=non_negotiable,
            conflicts_with=frozenset(conflicts_with),
        )
        return AgentContribution(
            SimpleNamespace(agent_type=agent_type), recommendation, requirements
        )

    return _make
