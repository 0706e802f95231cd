"""
Orchestrator -- owns the live agents and drives each reasoning round.

Round protocol:
  - Skip agents that are not runnable (logged, not a failure)
  - Fan out reason() to every runnable agent IN PARALLEL, each call bounded
    by its own timeout, so a slow agent never holds up the round
  - A timed-out agent contributes nothing this round. N consecutive
    timeouts push it into ERROR; any success resets its count
  - Faults are logged and dropped

Key design principles:
- Hub-and-spoke: agents report to the orchestrator, never to each other
- The orchestrator observes agent state and never forces a transition;
  only the agent (or mark_error after repeated timeouts) changes it
- Contributions come back in registration order, which the Arbiter relies
  on for deterministic tie-breaks

Usage:
    orchestrator = Orchestrator(registry.create_all(), config.orchestrator)
    await orchestrator.start(snapshot)
    contributions = await orchestrator.reason_round(snapshot, "gaming")
"""

import asyncio
import logging
from typing import Iterable

from workload_arbiter.agents.base import (
    AgentContribution,
    AgentRecommendation,
    AgentState,
    RESERVING_STATES,
    TaskAgent,
)
from workload_arbiter.config import OrchestratorConfig
from workload_arbiter.errors import AgentNotReady, AgentTimeout
from workload_arbiter.snapshot import Snapshot

logger = logging.getLogger(__name__)


class Orchestrator:
    def __init__(
        self,
        agents: Iterable[TaskAgent],
        config: OrchestratorConfig | None = None,
        logger: logging.Logger | None = None,
    ):
        self.config = config or OrchestratorConfig()
        self._log = logger or logging.getLogger(__name__)
        self._agents: list[TaskAgent] = []
        for agent in agents:
            if not isinstance(agent, TaskAgent):
                raise TypeError(f"{agent!r} does not implement TaskAgent")
            if any(a.agent_type == agent.agent_type for a in self._agents):
                raise ValueError(f"Duplicate agent type '{agent.agent_type}'")
            self._agents.append(agent)
        self._timeouts: dict[str, int] = {a.agent_type: 0 for a in self._agents}
        self._latest: dict[str, AgentRecommendation] = {}
        self._log.info(f"[Orchestrator] Initialized with {len(self._agents)} agents")

    @property
    def agents(self) -> list[TaskAgent]:
        return list(self._agents)

    def get(self, agent_type: str) -> TaskAgent | None:
        return next((a for a in self._agents if a.agent_type == agent_type), None)

    async def start(self, snapshot: Snapshot) -> None:
        """Initialize every agent. A failing initialize only affects that agent."""
        pending = [a for a in self._agents if a.state is AgentState.UNINITIALIZED]
        results = await asyncio.gather(
            *[self._bounded(agent.initialize(snapshot)) for agent in pending],
            return_exceptions=True,
        )
        for agent, r in zip(pending, results):
            if isinstance(r, Exception):
                self._log.error(f"[Orchestrator] {agent.agent_type} failed to initialize: {r}")
                agent.mark_error(str(r))
        ready = sum(1 for a in self._agents if a.state is AgentState.READY)
        self._log.info(f"[Orchestrator] Started: {ready}/{len(self._agents)} agents ready")

    async def reason_round(
        self,
        snapshot: Snapshot,
        scenario: str = "",
        cancel: asyncio.Event | None = None,
    ) -> list[AgentContribution]:
        """
        All runnable agents reason in PARALLEL; results in registration order.

        Setting `cancel` abandons the round: outstanding reason() calls are
        cancelled, nothing is recorded and an empty list is returned.
        Cancelling the calling task cancels the outstanding calls as well.
        """
        if cancel is not None and cancel.is_set():
            self._log.info("[Orchestrator] Round cancelled before start")
            return []
        runnable = []
        for agent in self._agents:
            if agent.state in (AgentState.READY, AgentState.ACTIVE,
                               AgentState.MONITORING, AgentState.OPTIMIZING):
                runnable.append(agent)
            else:
                self._log.info(
                    f"[Orchestrator] Skipping {agent.agent_type} ({agent.state.value})"
                )

        gathered = asyncio.gather(
            *[self._bounded(agent.reason(scenario, snapshot)) for agent in runnable],
            return_exceptions=True,
        )
        results = await _until_cancelled(gathered, cancel)
        if results is None:
            self._log.info(
                f"[Orchestrator] Round cancelled with {len(runnable)} agents reasoning"
            )
            return []

        contributions = []
        for agent, r in zip(runnable, results):
            if isinstance(r, AgentTimeout):
                self._record_timeout(agent)
                continue
            if isinstance(r, AgentNotReady):
                self._log.info(f"[Orchestrator] {agent.agent_type} not ready: {r}")
                continue
            if isinstance(r, BaseException):
                self._log.error(f"[Orchestrator] {agent.agent_type} failed: {r}")
                continue
            self._timeouts[agent.agent_type] = 0
            self._latest[agent.agent_type] = r
            contributions.append(
                AgentContribution(agent, r, agent.get_resource_requirements())
            )
        return contributions

    async def _bounded(self, coro):
        try:
            return await asyncio.wait_for(coro, timeout=self.config.per_agent_timeout)
        except asyncio.TimeoutError as e:
            raise AgentTimeout(
                f"no answer within {self.config.per_agent_timeout:.1f}s"
            ) from e

    def _record_timeout(self, agent: TaskAgent) -> None:
        count = self._timeouts.get(agent.agent_type, 0) + 1
        self._timeouts[agent.agent_type] = count
        self._log.warning(
            f"[Orchestrator] {agent.agent_type} timed out "
            f"({count}/{self.config.max_consecutive_timeouts})"
        )
        if count >= self.config.max_consecutive_timeouts:
            agent.mark_error(f"{count} consecutive timeouts")

    def shutdown(self) -> None:
        for agent in self._agents:
            if agent.state is not AgentState.SHUTDOWN:
                agent.shutdown()
        self._log.info("[Orchestrator] All agents shut down")

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    def agent_states(self) -> dict[str, AgentState]:
        return {a.agent_type: a.state for a in self._agents}

    def latest_recommendations(self) -> dict[str, AgentRecommendation]:
        return dict(self._latest)

    def timeout_counts(self) -> dict[str, int]:
        return dict(self._timeouts)

    def reserving_types(self) -> list[str]:
        """Agent types whose ledger reservations should stay committed."""
        return [a.agent_type for a in self._agents if a.state in RESERVING_STATES]


async def _until_cancelled(
    gathered: asyncio.Future, cancel: asyncio.Event | None
) -> list | None:
    """Result of the gathered round, or None once `cancel` is set first."""
    if cancel is None:
        return await gathered
    waiter = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({gathered, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        gathered.cancel()
        raise
    finally:
        waiter.cancel()
    if gathered.done():
        return gathered.result()
    gathered.cancel()
    await asyncio.wait({gathered})
    return None
