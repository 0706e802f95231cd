"""
FeedbackLearner -- EMA success-rate updates from explicit feedback.

Each feedback kind maps to a signed step applied to the current rate:
  - success          +delta
  - partial_success  +delta/2
  - failure          -delta
  - user_rejected    -delta

signal = clamp(old + step, 0, 1)
new    = old * (1 - alpha) + signal * alpha

With the default delta of 1.0, repeated success walks the rate toward 1.0
and repeated failure toward 0.0, strictly, until it snaps onto the bound.

Usage:
    learner = FeedbackLearner(knowledge_store)
    new_rate = learner.update(agent, feedback)
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .models import AgentFeedback, FeedbackKind

if TYPE_CHECKING:
    from workload_arbiter.agents.base import TaskAgent
    from .knowledge_store import KnowledgeStore

logger = logging.getLogger(__name__)

EMA_ALPHA = 0.15
DEFAULT_DELTA = 1.0
SNAP_EPSILON = 1e-9

FEEDBACK_SIGNS = {
    FeedbackKind.SUCCESS: 1.0,
    FeedbackKind.PARTIAL_SUCCESS: 0.5,
    FeedbackKind.FAILURE: -1.0,
    FeedbackKind.USER_REJECTED: -1.0,
}


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


@dataclass(frozen=True)
class LearningRule:
    """EMA parameters. alpha in (0, 1], delta > 0."""

    alpha: float = EMA_ALPHA
    delta: float = DEFAULT_DELTA

    def __post_init__(self) -> None:
        if not 0.0 < self.alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1] (got {self.alpha})")
        if self.delta <= 0:
            raise ValueError(f"delta must be positive (got {self.delta})")

    def next_rate(self, old: float, kind: FeedbackKind) -> float:
        signal = _clamp(old + FEEDBACK_SIGNS[kind] * self.delta)
        new = _clamp(old * (1 - self.alpha) + signal * self.alpha)
        if new > 1.0 - SNAP_EPSILON:
            return 1.0
        if new < SNAP_EPSILON:
            return 0.0
        return new


class FeedbackLearner:
    """
    Folds feedback into an agent's knowledge and persists it.

    A feedback id is consumed at most once; a replay is logged and ignored.
    """

    def __init__(
        self,
        store: "KnowledgeStore",
        rule: LearningRule | None = None,
        logger: logging.Logger | None = None,
    ):
        self._store = store
        self.rule = rule or LearningRule()
        self._log = logger or logging.getLogger(__name__)

    def update(self, agent: "TaskAgent", feedback: AgentFeedback) -> float | None:
        """
        Apply one feedback record. Returns the new success rate for the
        action, or None if the record was already consumed.
        """
        if self._store.is_consumed(feedback.id):
            self._log.info(f"[FeedbackLearner] Ignoring replayed feedback {feedback.id}")
            return None

        old = agent.knowledge.success_rate(feedback.action)
        agent.learn(feedback.scenario, feedback, self.rule)
        new = agent.knowledge.success_rate(feedback.action)

        self._store.save(agent.agent_type, agent.knowledge)
        self._store.archive(feedback)
        self._log.debug(
            f"[FeedbackLearner] {agent.agent_type}/{feedback.action}: "
            f"{old:.3f} -> {new:.3f} ({feedback.kind.value})"
        )
        return new
