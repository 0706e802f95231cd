"""Tests for the Orchestrator reasoning round."""

import asyncio
import time

import pytest

from workload_arbiter.agents import AgentState
from workload_arbiter.agents.domains import GamingAgent, MediaAgent, StreamingAgent
from workload_arbiter.config import OrchestratorConfig
from workload_arbiter.orchestration import Orchestrator
from workload_arbiter.snapshot import Snapshot

GAME = Snapshot(running_processes=("cs2.exe", "obs64.exe"))


class SlowAgent(GamingAgent):
    agent_type = "slow"
    display_name = "Slow Agent"
    delay = 0.5

    async def reason(self, scenario, snapshot):
        await asyncio.sleep(self.delay)
        return await super().reason(scenario, snapshot)


class FaultyAgent(GamingAgent):
    agent_type = "faulty"
    display_name = "Faulty Agent"

    def _evaluate(self, scenario, snapshot):
        raise RuntimeError("bad rule")


class FailingInitAgent(MediaAgent):
    agent_type = "failing-init"
    display_name = "Failing Init Agent"

    async def initialize(self, snapshot):
        raise RuntimeError("driver missing")


def _orchestrator(*agents, timeout=0.1, max_timeouts=3):
    return Orchestrator(
        list(agents),
        OrchestratorConfig(per_agent_timeout=timeout, max_consecutive_timeouts=max_timeouts),
    )


class TestConstruction:
    def test_rejects_non_agents(self):
        with pytest.raises(TypeError):
            Orchestrator([object()])

    def test_rejects_duplicate_types(self):
        with pytest.raises(ValueError):
            Orchestrator([GamingAgent(), GamingAgent()])


class TestStart:
    @pytest.mark.asyncio
    async def test_start_initializes_every_agent(self):
        orch = _orchestrator(GamingAgent(), StreamingAgent())
        await orch.start(GAME)
        assert set(orch.agent_states().values()) == {AgentState.READY}

    @pytest.mark.asyncio
    async def test_failed_initialize_only_affects_that_agent(self):
        orch = _orchestrator(GamingAgent(), FailingInitAgent())
        await orch.start(GAME)
        states = orch.agent_states()
        assert states["gaming"] is AgentState.READY
        assert states["failing-init"] is AgentState.ERROR


class TestReasonRound:
    @pytest.mark.asyncio
    async def test_contributions_in_registration_order(self):
        orch = _orchestrator(StreamingAgent(), GamingAgent(), MediaAgent())
        await orch.start(GAME)
        contributions = await orch.reason_round(GAME, "gaming + streaming")
        assert [c.agent_type for c in contributions] == ["streaming", "gaming", "media"]
        assert orch.latest_recommendations()["gaming"].confidence > 0
        assert orch.agent_states()["media"] is AgentState.MONITORING

    @pytest.mark.asyncio
    async def test_agents_reason_in_parallel(self):
        agents = []
        for i in range(4):
            cls = type(f"Slow{i}", (SlowAgent,), {"agent_type": f"slow{i}", "delay": 0.2})
            agents.append(cls())
        orch = _orchestrator(*agents, timeout=1.0)
        await orch.start(GAME)
        started = time.monotonic()
        contributions = await orch.reason_round(GAME, "cs2")
        assert len(contributions) == 4
        assert time.monotonic() - started < 0.6

    @pytest.mark.asyncio
    async def test_slow_agent_is_dropped_not_waited_for(self):
        orch = _orchestrator(GamingAgent(), SlowAgent(), timeout=0.1)
        await orch.start(GAME)
        contributions = await orch.reason_round(GAME, "cs2")
        assert [c.agent_type for c in contributions] == ["gaming"]
        assert orch.timeout_counts()["slow"] == 1

    @pytest.mark.asyncio
    async def test_consecutive_timeouts_push_agent_to_error(self):
        slow = SlowAgent()
        orch = _orchestrator(slow, timeout=0.05, max_timeouts=2)
        await orch.start(GAME)
        await orch.reason_round(GAME, "cs2")
        assert slow.state is not AgentState.ERROR
        await orch.reason_round(GAME, "cs2")
        assert slow.state is AgentState.ERROR
        assert orch.timeout_counts()["slow"] == 2

    @pytest.mark.asyncio
    async def test_success_resets_timeout_count(self):
        slow = SlowAgent()
        orch = _orchestrator(slow, timeout=0.05, max_timeouts=3)
        await orch.start(GAME)
        await orch.reason_round(GAME, "cs2")
        slow.delay = 0.0
        await orch.reason_round(GAME, "cs2")
        assert orch.timeout_counts()["slow"] == 0

    @pytest.mark.asyncio
    async def test_fault_is_dropped_and_round_continues(self):
        orch = _orchestrator(FaultyAgent(), GamingAgent())
        await orch.start(GAME)
        contributions = await orch.reason_round(GAME, "cs2")
        assert [c.agent_type for c in contributions] == ["gaming"]
        assert orch.agent_states()["faulty"] is AgentState.ERROR

    @pytest.mark.asyncio
    async def test_non_runnable_agents_are_skipped(self):
        paused = StreamingAgent()
        orch = _orchestrator(GamingAgent(), paused)
        await orch.start(GAME)
        paused.pause()
        contributions = await orch.reason_round(GAME, "gaming + streaming")
        assert [c.agent_type for c in contributions] == ["gaming"]
        assert paused.state is AgentState.PAUSED

    @pytest.mark.asyncio
    async def test_uninitialized_agents_are_skipped(self):
        orch = _orchestrator(GamingAgent())
        assert await orch.reason_round(GAME, "cs2") == []

    @pytest.mark.asyncio
    async def test_cancel_before_start_skips_the_round(self):
        orch = _orchestrator(GamingAgent())
        await orch.start(GAME)
        cancel = asyncio.Event()
        cancel.set()
        assert await orch.reason_round(GAME, "cs2", cancel=cancel) == []
        assert orch.agent_states()["gaming"] is AgentState.READY
        assert orch.latest_recommendations() == {}

    @pytest.mark.asyncio
    async def test_cancel_abandons_a_running_round(self):
        orch = _orchestrator(GamingAgent(), SlowAgent(), timeout=1.0)
        await orch.start(GAME)
        cancel = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, cancel.set)
        started = time.monotonic()
        contributions = await orch.reason_round(GAME, "cs2", cancel=cancel)
        assert contributions == []
        assert time.monotonic() - started < 0.4
        assert orch.timeout_counts() == {"gaming": 0, "slow": 0}
        assert orch.latest_recommendations() == {}

    @pytest.mark.asyncio
    async def test_unset_cancel_event_changes_nothing(self):
        orch = _orchestrator(GamingAgent())
        await orch.start(GAME)
        contributions = await orch.reason_round(GAME, "cs2", cancel=asyncio.Event())
        assert [c.agent_type for c in contributions] == ["gaming"]


class TestViews:
    @pytest.mark.asyncio
    async def test_reserving_types_follow_state(self):
        orch = _orchestrator(GamingAgent(), MediaAgent())
        await orch.start(GAME)
        await orch.reason_round(GAME, "cs2")
        assert orch.reserving_types() == ["gaming"]

    @pytest.mark.asyncio
    async def test_shutdown_is_idempotent(self):
        orch = _orchestrator(GamingAgent())
        await orch.start(GAME)
        orch.shutdown()
        orch.shutdown()
        assert orch.agent_states()["gaming"] is AgentState.SHUTDOWN
