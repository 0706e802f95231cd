"""
Arbiter -- turns competing agent contributions into one ConfigurationPlan.

Resolution order:
  1. Drop recommendations below min_confidence          -> LowConfidence
  2. Validate every typed action                         -> InvalidAction
  3. Release every contributor's reservation from the previous round, then
     stable sort by (priority desc, confidence desc); equal keys keep the
     orchestrator's registration order. Agents the matched recipe requires
     have their priority raised by required_agent_boost
  4. Walk the sorted list holding the ledger:
       - conflicts with an already-accepted agent (either side naming
         the other) are rejected before any reservation  -> AgentConflict
       - otherwise reserve, scaled proportionally         -> ResourceExhausted
                                                             when it cannot fit
  5. Merge actions in priority order. Recipe changes go first. A scaled
     agent's resource allocations are scaled by the same factor as its
     grant. Identical changes are de-duplicated keeping the first source;
     a later change to the same target with a different value is
     superseded, not applied.

Rejected and deferred contributions release their ledger reservation, so
the ledger only ever reflects accepted work.
"""

import dataclasses
import logging
from typing import Iterable

from workload_arbiter.agents.base import AgentContribution
from workload_arbiter.config import ArbiterConfig
from workload_arbiter.configuration.changes import AllocateResource, ConfigChange
from workload_arbiter.configuration.models import ConfigurationPlan, PlanRejection
from workload_arbiter.errors import ErrorKind
from workload_arbiter.recipes.models import AutomationRecipe
from workload_arbiter.security.validators import ValidationError

from .ledger import Reservation, ResourceExhausted, ResourceLedger

logger = logging.getLogger(__name__)


class Arbiter:
    def __init__(
        self,
        config: ArbiterConfig | None = None,
        logger: logging.Logger | None = None,
    ):
        self.config = config or ArbiterConfig()
        self._log = logger or logging.getLogger(__name__)

    def resolve(
        self,
        contributions: Iterable[AgentContribution],
        ledger: ResourceLedger,
        *,
        recipe: AutomationRecipe | None = None,
        auto_apply_only: bool = False,
        scenario: str = "",
    ) -> ConfigurationPlan:
        contributions = list(contributions)
        if not scenario and contributions:
            scenario = contributions[0].recommendation.scenario
        plan = ConfigurationPlan(name=recipe.name if recipe else f"agents:{scenario}")
        required = recipe.required_agents if recipe else frozenset()

        with ledger.transaction():
            # Last round's grants must not shadow this round's priority order
            for contribution in contributions:
                ledger.release(contribution.agent_type)
            candidates = self._screen(contributions, plan, ledger)
            ordered = sorted(
                candidates,
                key=lambda c: (-self.effective_priority(c, required),
                               -c.recommendation.confidence),
            )
            accepted = self._allocate(ordered, plan, ledger, auto_apply_only)

        self._merge(plan, accepted, recipe)
        self._log.info(
            f"[Arbiter] Plan '{plan.name}': {len(plan.changes)} changes, "
            f"{len(accepted)} accepted, {len(plan.rejections)} rejected, "
            f"{len(plan.superseded)} superseded"
        )
        return plan

    def effective_priority(
        self, contribution: AgentContribution, required: frozenset[str] = frozenset()
    ) -> float:
        """Requirement priority, raised for agents the matched recipe names."""
        priority = contribution.requirements.priority
        if contribution.agent_type in required:
            priority = min(1.0, priority + self.config.required_agent_boost)
        return round(priority, 6)

    # -------------------------------------------------------------------------
    # Steps 1-2: confidence and validation
    # -------------------------------------------------------------------------

    def _screen(
        self,
        contributions: list[AgentContribution],
        plan: ConfigurationPlan,
        ledger: ResourceLedger,
    ) -> list[AgentContribution]:
        candidates = []
        for contribution in contributions:
            rec = contribution.recommendation
            if rec.is_empty:
                continue
            if rec.confidence < self.config.min_confidence:
                self._reject(
                    plan, ledger, contribution, ErrorKind.LOW_CONFIDENCE,
                    f"confidence {rec.confidence:.2f} below "
                    f"{self.config.min_confidence:.2f}",
                )
                continue
            try:
                for action in rec.actions:
                    action.validate()
            except ValidationError as e:
                self._reject(plan, ledger, contribution, ErrorKind.INVALID_ACTION, str(e))
                continue
            candidates.append(contribution)
        return candidates

    # -------------------------------------------------------------------------
    # Steps 3-4: conflicts and reservations
    # -------------------------------------------------------------------------

    def _allocate(
        self,
        ordered: list[AgentContribution],
        plan: ConfigurationPlan,
        ledger: ResourceLedger,
        auto_apply_only: bool,
    ) -> list[tuple[AgentContribution, Reservation]]:
        accepted: list[tuple[AgentContribution, Reservation]] = []
        for contribution in ordered:
            rival = _find_conflict(contribution, [c for c, _ in accepted])
            if rival is not None:
                self._reject(
                    plan, ledger, contribution, ErrorKind.AGENT_CONFLICT,
                    f"conflicts with higher-priority {rival.agent_type}",
                )
                continue

            requirements = contribution.requirements
            try:
                reservation = ledger.reserve(
                    contribution.agent_type,
                    requirements.requests,
                    non_negotiable=requirements.all_or_nothing,
                )
            except ResourceExhausted as e:
                self._reject(plan, ledger, contribution, ErrorKind.RESOURCE_EXHAUSTED, str(e))
                continue

            if auto_apply_only and not contribution.recommendation.auto_apply:
                self._reject(
                    plan, ledger, contribution, ErrorKind.DEFERRED,
                    "awaiting user approval",
                )
                continue

            plan.grants[contribution.agent_type] = {
                r.value: pct for r, pct in reservation.granted.items()
            }
            accepted.append((contribution, reservation))
        return accepted

    # -------------------------------------------------------------------------
    # Step 5: merge
    # -------------------------------------------------------------------------

    def _merge(
        self,
        plan: ConfigurationPlan,
        accepted: list[tuple[AgentContribution, Reservation]],
        recipe: AutomationRecipe | None,
    ) -> None:
        claimed: dict[tuple, ConfigChange] = {}

        def add(change: ConfigChange) -> None:
            existing = claimed.get(change.identity)
            if existing is None:
                claimed[change.identity] = change
                plan.changes.append(change)
            elif existing.is_identical(change):
                self._log.debug(
                    f"[Arbiter] Dropped duplicate {change.action_name} from {change.source}"
                )
            else:
                plan.superseded.append(change)

        if recipe is not None:
            for change in recipe.to_changes():
                add(change)

        for contribution, reservation in accepted:
            requirements = contribution.requirements
            for action in contribution.recommendation.actions:
                if reservation.scaled and isinstance(action, AllocateResource):
                    action = dataclasses.replace(
                        action, fraction=round(action.fraction * reservation.factor, 6)
                    )
                change = action.to_change(
                    source=contribution.agent_type, agent_type=contribution.agent_type
                )
                if requirements.requires_elevation and not change.requires_elevation:
                    change = dataclasses.replace(change, requires_elevation=True)
                add(change)

    def _reject(
        self,
        plan: ConfigurationPlan,
        ledger: ResourceLedger,
        contribution: AgentContribution,
        kind: ErrorKind,
        message: str,
    ) -> None:
        ledger.release(contribution.agent_type)
        plan.rejections.append(PlanRejection(contribution.agent_type, kind, message))
        self._log.info(f"[Arbiter] Rejected {contribution.agent_type}: {kind.value} ({message})")


def _find_conflict(
    contribution: AgentContribution, accepted: list[AgentContribution]
) -> AgentContribution | None:
    for other in accepted:
        if (
            other.agent_type in contribution.requirements.conflicts_with
            or contribution.agent_type in other.requirements.conflicts_with
        ):
            return other
    return None
