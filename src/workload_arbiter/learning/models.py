"""
Learning data models -- feedback records and per-agent knowledge.

Learning here is bounded: success-rate counters and pattern weights updated
from explicit feedback. There is no model training.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

DEFAULT_SUCCESS_RATE = 0.5


# =============================================================================
# FEEDBACK
# =============================================================================


class FeedbackKind(str, Enum):
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILURE = "failure"
    USER_REJECTED = "user_rejected"


@dataclass(frozen=True)
class AgentFeedback:
    """
    Explicit feedback on one action an agent recommended.

    Consumed exactly once by the FeedbackLearner (keyed by id), then archived.
    expected/measured improvement are percentages as reported by the caller.
    """

    agent_type: str
    action: str
    kind: FeedbackKind
    scenario: str = ""
    expected_improvement: float = 0.0
    measured_improvement: float = 0.0
    comment: str = ""
    recommendation_id: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:12])
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "agent_type": self.agent_type,
            "scenario": self.scenario,
            "action": self.action,
            "kind": self.kind.value,
            "expected_improvement": self.expected_improvement,
            "measured_improvement": self.measured_improvement,
            "comment": self.comment,
            "recommendation_id": self.recommendation_id,
            "timestamp": self.timestamp,
        }


# =============================================================================
# AGENT KNOWLEDGE
# =============================================================================


@dataclass
class AgentKnowledge:
    """
    Per-agent learned state.

    success_rates: action name -> rate in [0, 1]. Unknown actions read as 0.5.
    sample_counts: action name -> number of feedback records folded in.
    learned_patterns: scenario -> action name -> weight. Weights are only
                      ever adjusted; no feedback removes a pattern.
    user_preferences: free-form key-value pairs.
    """

    success_rates: dict[str, float] = field(default_factory=dict)
    sample_counts: dict[str, int] = field(default_factory=dict)
    learned_patterns: dict[str, dict[str, float]] = field(default_factory=dict)
    user_preferences: dict[str, str] = field(default_factory=dict)

    def success_rate(self, action: str) -> float:
        return self.success_rates.get(action, DEFAULT_SUCCESS_RATE)

    def pattern_weight(self, scenario: str, action: str) -> float:
        return self.learned_patterns.get(scenario, {}).get(action, DEFAULT_SUCCESS_RATE)

    @property
    def is_empty(self) -> bool:
        return not (self.success_rates or self.learned_patterns or self.user_preferences)

    def copy(self) -> "AgentKnowledge":
        return AgentKnowledge(
            success_rates=dict(self.success_rates),
            sample_counts=dict(self.sample_counts),
            learned_patterns={s: dict(p) for s, p in self.learned_patterns.items()},
            user_preferences=dict(self.user_preferences),
        )

    def merge(self, other: "AgentKnowledge") -> "AgentKnowledge":
        """
        Combine two stores. Rates are averaged weighted by sample count,
        patterns are unioned (shared weights averaged), and preferences
        already present here are kept.
        """
        merged = self.copy()
        for action, rate in other.success_rates.items():
            if action not in merged.success_rates:
                merged.success_rates[action] = rate
                merged.sample_counts[action] = other.sample_counts.get(action, 0)
                continue
            mine = self.sample_counts.get(action, 0)
            theirs = other.sample_counts.get(action, 0)
            if mine + theirs == 0:
                merged.success_rates[action] = (merged.success_rates[action] + rate) / 2
            else:
                merged.success_rates[action] = (
                    merged.success_rates[action] * mine + rate * theirs
                ) / (mine + theirs)
            merged.sample_counts[action] = mine + theirs

        for scenario, patterns in other.learned_patterns.items():
            target = merged.learned_patterns.setdefault(scenario, {})
            for action, weight in patterns.items():
                target[action] = (target[action] + weight) / 2 if action in target else weight

        for key, value in other.user_preferences.items():
            merged.user_preferences.setdefault(key, value)
        return merged

    def to_dict(self) -> dict[str, Any]:
        return {
            "success_rates": dict(self.success_rates),
            "sample_counts": dict(self.sample_counts),
            "learned_patterns": {s: dict(p) for s, p in self.learned_patterns.items()},
            "user_preferences": dict(self.user_preferences),
        }
