"""
TaskAgent -- protocol, state machine and shared behavior for domain agents.

Lifecycle:
  UNINITIALIZED -> READY (initialize), or ERROR if initialize faults
  READY -> ACTIVE | MONITORING | OPTIMIZING (given reasoning or execution work)
  active states interchange freely, and go to PAUSED | ERROR | SHUTDOWN
  PAUSED -> READY (resume)
  ERROR -> READY (recover)
  SHUTDOWN is terminal

Transitions are agent-internal. The orchestrator only observes `state`; a
call that needs a runnable agent raises AgentNotReady instead of forcing a
transition.

Capabilities {initialize, reason, execute_action, learn} are the common
interface. New agent types subclass BaseTaskAgent (or RuleBasedAgent) and
register with the AgentRegistry rather than being special-cased by name.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Mapping, Protocol, runtime_checkable

from workload_arbiter.configuration.actuator import Actuator, write_change
from workload_arbiter.configuration.changes import Action, ConfigChange, ResourceType
from workload_arbiter.errors import AgentFault, AgentNotReady, IllegalTransition
from workload_arbiter.learning.feedback_learner import LearningRule
from workload_arbiter.learning.models import (
    DEFAULT_SUCCESS_RATE,
    AgentFeedback,
    AgentKnowledge,
)
from workload_arbiter.snapshot import Snapshot

logger = logging.getLogger(__name__)


# =============================================================================
# STATE MACHINE
# =============================================================================


class AgentState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    ACTIVE = "active"
    MONITORING = "monitoring"
    OPTIMIZING = "optimizing"
    PAUSED = "paused"
    ERROR = "error"
    SHUTDOWN = "shutdown"


WORKING_STATES = frozenset({AgentState.ACTIVE, AgentState.MONITORING, AgentState.OPTIMIZING})
RUNNABLE_STATES = WORKING_STATES | {AgentState.READY}
# Agents whose ledger reservations stay committed between rounds
RESERVING_STATES = frozenset({AgentState.ACTIVE, AgentState.OPTIMIZING})

_EXITS = frozenset({AgentState.PAUSED, AgentState.ERROR, AgentState.SHUTDOWN})

TRANSITIONS: dict[AgentState, frozenset[AgentState]] = {
    AgentState.UNINITIALIZED: frozenset(
        {AgentState.READY, AgentState.ERROR, AgentState.SHUTDOWN}
    ),
    AgentState.READY: WORKING_STATES | _EXITS,
    AgentState.ACTIVE: WORKING_STATES | _EXITS,
    AgentState.MONITORING: WORKING_STATES | _EXITS,
    AgentState.OPTIMIZING: WORKING_STATES | _EXITS,
    AgentState.PAUSED: frozenset({AgentState.READY, AgentState.ERROR, AgentState.SHUTDOWN}),
    AgentState.ERROR: frozenset({AgentState.READY, AgentState.SHUTDOWN}),
    AgentState.SHUTDOWN: frozenset(),
}


def can_transition(current: AgentState, target: AgentState) -> bool:
    return target in TRANSITIONS[current]


# =============================================================================
# DATA MODELS
# =============================================================================


@dataclass(frozen=True)
class AgentRecommendation:
    """
    Produced fresh by reason(); never edited. A superseded recommendation is
    discarded, not mutated. Confidence 0 means "nothing to recommend".
    """

    agent_type: str
    title: str
    reasoning: str = ""
    actions: tuple[Action, ...] = ()
    confidence: float = 0.0
    expected_improvement: float = 0.0
    target_metric: str = ""
    auto_apply: bool = False
    scenario: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:12])
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def primary_action(self) -> str | None:
        return self.actions[0].name if self.actions else None

    @property
    def is_empty(self) -> bool:
        return self.confidence <= 0.0 or not self.actions

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "agent_type": self.agent_type,
            "title": self.title,
            "reasoning": self.reasoning,
            "actions": [a.name for a in self.actions],
            "confidence": self.confidence,
            "expected_improvement": self.expected_improvement,
            "target_metric": self.target_metric,
            "auto_apply": self.auto_apply,
            "scenario": self.scenario,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class AgentResourceRequirements:
    """
    requests: resource -> percentage (0-100) wanted for this round.
    priority: 0-1, the first arbitration sort key.
    non_negotiable / requires_elevation: the request is all-or-nothing.
    """

    agent_type: str
    requests: Mapping[ResourceType, float] = field(default_factory=dict)
    priority: float = 0.5
    requires_elevation: bool = False
    non_negotiable: bool = False
    conflicts_with: frozenset[str] = frozenset()

    @property
    def all_or_nothing(self) -> bool:
        return self.requires_elevation or self.non_negotiable

    def to_dict(self) -> dict:
        return {
            "agent_type": self.agent_type,
            "requests": {r.value: pct for r, pct in self.requests.items()},
            "priority": self.priority,
            "requires_elevation": self.requires_elevation,
            "non_negotiable": self.non_negotiable,
            "conflicts_with": sorted(self.conflicts_with),
        }


@dataclass(frozen=True)
class AgentActionResult:
    ok: bool
    prior_value: Any = None
    message: str = ""


@dataclass(frozen=True)
class AgentContribution:
    """One agent's output for a reasoning round."""

    agent: "TaskAgent"
    recommendation: AgentRecommendation
    requirements: AgentResourceRequirements

    @property
    def agent_type(self) -> str:
        return self.agent.agent_type


# =============================================================================
# PROTOCOL
# =============================================================================


@runtime_checkable
class TaskAgent(Protocol):
    """Common capability interface every domain agent implements."""

    agent_type: str

    @property
    def agent_id(self) -> str: ...

    @property
    def name(self) -> str: ...

    @property
    def state(self) -> AgentState: ...

    @property
    def confidence(self) -> float: ...

    @property
    def knowledge(self) -> AgentKnowledge: ...

    async def initialize(self, snapshot: Snapshot) -> None: ...

    async def reason(self, scenario: str, snapshot: Snapshot) -> AgentRecommendation: ...

    async def execute_action(
        self, change: ConfigChange, actuator: Actuator, timeout: float
    ) -> AgentActionResult: ...

    def learn(self, scenario: str, feedback: AgentFeedback, rule: LearningRule) -> None: ...

    def get_resource_requirements(self) -> AgentResourceRequirements: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...

    def mark_error(self, reason: str = "") -> None: ...

    def shutdown(self) -> None: ...


# =============================================================================
# BASE IMPLEMENTATION
# =============================================================================


class BaseTaskAgent:
    """
    State machine, knowledge and capability wrappers.

    Subclasses implement _evaluate() (pure: no actuator access) and
    _requirements(); everything else is shared.
    """

    agent_type: ClassVar[str] = "base"
    display_name: ClassVar[str] = "Base Agent"

    def __init__(
        self,
        knowledge: AgentKnowledge | None = None,
        agent_id: str | None = None,
        logger: logging.Logger | None = None,
    ):
        self._agent_id = agent_id or f"{self.agent_type}-{str(uuid.uuid4())[:8]}"
        self._knowledge = knowledge or AgentKnowledge()
        self._state = AgentState.UNINITIALIZED
        self._confidence = 0.0
        self._last_error = ""
        self._snapshot: Snapshot | None = None
        self._log = logger or logging.getLogger(__name__)

    # -------------------------------------------------------------------------
    # Identity and observation
    # -------------------------------------------------------------------------

    @property
    def agent_id(self) -> str:
        return self._agent_id

    @property
    def name(self) -> str:
        return self.display_name

    @property
    def state(self) -> AgentState:
        return self._state

    @property
    def confidence(self) -> float:
        return self._confidence

    @property
    def knowledge(self) -> AgentKnowledge:
        return self._knowledge

    @property
    def last_error(self) -> str:
        return self._last_error

    @property
    def is_runnable(self) -> bool:
        return self._state in RUNNABLE_STATES

    def _transition(self, target: AgentState) -> None:
        if target is self._state:
            return
        if not can_transition(self._state, target):
            raise IllegalTransition(self._agent_id, self._state.value, target.value)
        self._log.debug(
            f"[{self.display_name}] {self._state.value} -> {target.value}"
        )
        self._state = target

    def _require_runnable(self, operation: str) -> None:
        if not self.is_runnable:
            raise AgentNotReady(self._agent_id, self._state.value, operation)

    # -------------------------------------------------------------------------
    # Capabilities
    # -------------------------------------------------------------------------

    async def initialize(self, snapshot: Snapshot) -> None:
        if self._state is not AgentState.UNINITIALIZED:
            raise AgentNotReady(self._agent_id, self._state.value, "initialize")
        self._snapshot = snapshot
        self._transition(AgentState.READY)

    async def reason(self, scenario: str, snapshot: Snapshot) -> AgentRecommendation:
        """Evaluate the snapshot. Never touches the actuator."""
        self._require_runnable("reason")
        self._snapshot = snapshot
        try:
            recommendation = self._evaluate(scenario, snapshot)
        except Exception as e:
            self.mark_error(str(e))
            raise AgentFault(f"{self.agent_type} failed while reasoning: {e}") from e

        if recommendation is None:
            recommendation = AgentRecommendation(
                agent_type=self.agent_type,
                title="No applicable pattern",
                scenario=scenario,
            )
        self._confidence = recommendation.confidence
        self._transition(
            AgentState.MONITORING if recommendation.is_empty else AgentState.ACTIVE
        )
        return recommendation

    async def execute_action(
        self, change: ConfigChange, actuator: Actuator, timeout: float
    ) -> AgentActionResult:
        """Perform one approved change. Only called after arbitration."""
        self._require_runnable("execute an action")
        self._transition(AgentState.OPTIMIZING)
        try:
            result = await asyncio.wait_for(write_change(actuator, change), timeout=timeout)
        except asyncio.TimeoutError:
            return AgentActionResult(ok=False, message=f"timed out after {timeout:.1f}s")
        finally:
            if self._state is AgentState.OPTIMIZING:
                self._transition(AgentState.ACTIVE)
        if not result.ok:
            return AgentActionResult(ok=False, message=result.error)
        return AgentActionResult(ok=True, prior_value=result.value, message="applied")

    def learn(self, scenario: str, feedback: AgentFeedback, rule: LearningRule) -> None:
        """Fold feedback into knowledge. Patterns are re-weighted, never dropped."""
        if self._state is AgentState.SHUTDOWN:
            raise AgentNotReady(self._agent_id, self._state.value, "learn")
        action = feedback.action
        knowledge = self._knowledge
        knowledge.success_rates[action] = rule.next_rate(
            knowledge.success_rate(action), feedback.kind
        )
        knowledge.sample_counts[action] = knowledge.sample_counts.get(action, 0) + 1
        if scenario:
            patterns = knowledge.learned_patterns.setdefault(scenario, {})
            patterns[action] = rule.next_rate(
                patterns.get(action, DEFAULT_SUCCESS_RATE), feedback.kind
            )

    def get_resource_requirements(self) -> AgentResourceRequirements:
        requirements = self._requirements()
        if self._state is AgentState.PAUSED:
            return AgentResourceRequirements(
                agent_type=self.agent_type,
                requests=requirements.requests,
                priority=0.0,
                requires_elevation=requirements.requires_elevation,
                non_negotiable=requirements.non_negotiable,
                conflicts_with=requirements.conflicts_with,
            )
        return requirements

    def pause(self) -> None:
        self._transition(AgentState.PAUSED)
        self._log.info(f"[{self.display_name}] Paused")

    def resume(self) -> None:
        self._transition(AgentState.READY)

    def mark_error(self, reason: str = "") -> None:
        if self._state in (AgentState.ERROR, AgentState.SHUTDOWN):
            return
        self._last_error = reason
        self._transition(AgentState.ERROR)
        self._log.warning(f"[{self.display_name}] Entered error state: {reason}")

    def recover(self) -> None:
        self._last_error = ""
        self._transition(AgentState.READY)

    def shutdown(self) -> None:
        self._transition(AgentState.SHUTDOWN)

    # -------------------------------------------------------------------------
    # Subclass hooks
    # -------------------------------------------------------------------------

    def _evaluate(self, scenario: str, snapshot: Snapshot) -> AgentRecommendation | None:
        raise NotImplementedError

    def _requirements(self) -> AgentResourceRequirements:
        return AgentResourceRequirements(agent_type=self.agent_type)

    def to_dict(self) -> dict:
        return {
            "agent_id": self._agent_id,
            "agent_type": self.agent_type,
            "name": self.display_name,
            "state": self._state.value,
            "confidence": self._confidence,
            "last_error": self._last_error,
        }
