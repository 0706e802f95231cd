"""Eval fixtures -- temp database, in-memory actuator, applier, running engine."""

import pytest
import pytest_asyncio

from workload_arbiter.config import ApplierConfig, EngineConfig, OrchestratorConfig
from workload_arbiter.configuration.actuator import InMemoryActuator
from workload_arbiter.configuration.applier import ConfigurationApplier
from workload_arbiter.engine import build_engine
from workload_arbiter.storage import ApplyLog


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "evals.db"


@pytest.fixture
def actuator():
    return InMemoryActuator()


@pytest.fixture
def applier(actuator, db_path):
    return ConfigurationApplier(
        actuator, ApplyLog(db_path), ApplierConfig(actuator_timeout=1.0)
    )


@pytest_asyncio.fixture
async def engine(db_path, actuator):
    """A started engine over the default catalog and the built-in agents."""
    config = EngineConfig(
        orchestrator=OrchestratorConfig(per_agent_timeout=1.0),
        db_path=db_path,
    )
    engine = build_engine(config, actuator=actuator)
    await engine.start()
    yield engine
    await engine.shutdown()
