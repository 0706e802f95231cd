"""
Plan and result models -- what the Arbiter emits and the Applier returns.

Both are plain dataclasses with to_dict() for the presentation layer.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from workload_arbiter.configuration.changes import ConfigChange
from workload_arbiter.errors import ErrorKind


# =============================================================================
# CONFIGURATION PLAN
# =============================================================================


@dataclass(frozen=True)
class PlanRejection:
    """A contribution the Arbiter dropped, with the reason code."""

    agent_type: str
    kind: ErrorKind
    message: str

    def to_dict(self) -> dict:
        return {"agent_type": self.agent_type, "kind": self.kind.value, "message": self.message}


@dataclass
class ConfigurationPlan:
    """
    Ordered, de-duplicated list of approved changes.

    name: recipe name, or "agents:<scenario>" for an agent-only plan.
    grants: agent_type -> resource -> granted percentage.
    superseded: lower-priority changes that targeted an already-claimed
                key with a different value. Reported, never applied.
    """

    name: str
    changes: list[ConfigChange] = field(default_factory=list)
    rejections: list[PlanRejection] = field(default_factory=list)
    grants: dict[str, dict[str, float]] = field(default_factory=dict)
    superseded: list[ConfigChange] = field(default_factory=list)
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def is_empty(self) -> bool:
        return not self.changes

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "changes": [c.to_dict() for c in self.changes],
            "rejections": [r.to_dict() for r in self.rejections],
            "grants": self.grants,
            "superseded": [c.to_dict() for c in self.superseded],
            "created_at": self.created_at,
        }


# =============================================================================
# CONFIGURATION RESULT
# =============================================================================


class ChangeStatus(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"
    REVERTED = "reverted"


@dataclass(frozen=True)
class ChangeOutcome:
    change: ConfigChange
    status: ChangeStatus
    reason: str = ""
    prior_value: Any = None
    error_kind: ErrorKind | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is not ChangeStatus.FAILED

    def to_dict(self) -> dict:
        return {
            "change": self.change.to_dict(),
            "status": self.status.value,
            "reason": self.reason,
            "prior_value": self.prior_value,
            "error_kind": self.error_kind.value if self.error_kind else None,
        }


@dataclass
class ConfigurationResult:
    """
    Outcome of one apply or revert call. One entry per change in the plan,
    so nothing is ever silently dropped.
    """

    success: bool
    message: str
    recipe_name: str
    changes: list[ChangeOutcome] = field(default_factory=list)
    error_kind: ErrorKind | None = None
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def applied_count(self) -> int:
        return sum(
            1 for o in self.changes
            if o.status in (ChangeStatus.APPLIED, ChangeStatus.REVERTED)
        )

    @property
    def failed_count(self) -> int:
        return sum(1 for o in self.changes if o.status is ChangeStatus.FAILED)

    @property
    def skipped_count(self) -> int:
        return sum(1 for o in self.changes if o.status is ChangeStatus.SKIPPED)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "recipe_name": self.recipe_name,
            "changes": [o.to_dict() for o in self.changes],
            "applied_count": self.applied_count,
            "failed_count": self.failed_count,
            "skipped_count": self.skipped_count,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "timestamp": self.timestamp,
        }
