"""
Property Evals -- invariants that must hold across inputs, not just examples.

Best-match determinism, the ledger bound and priority order across rounds
are checked with hypothesis; the apply/revert properties run over every
recipe in the default catalog.
"""

import asyncio

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from evals.builders import contribution
from evals.graders import CodeGrader, configuration_result_grader
from workload_arbiter.configuration.actuator import (
    REGISTRY_DOMAIN,
    RESOURCE_DOMAIN,
    InMemoryActuator,
    read_current,
)
from workload_arbiter.configuration.applier import ConfigurationApplier
from workload_arbiter.configuration.changes import ChangeKind, ResourceType
from workload_arbiter.configuration.models import ChangeStatus, ConfigurationPlan
from workload_arbiter.learning import AgentFeedback, FeedbackKind
from workload_arbiter.orchestration import Arbiter, ResourceLedger
from workload_arbiter.recipes import AutomationRecipe, RecipeCatalog, default_catalog
from workload_arbiter.recipes.defaults import PRIORITY_SEPARATION
from workload_arbiter.storage import ApplyLog

RECIPE_NAMES = [r.name for r in default_catalog()]
PROCESSES = ["a.exe", "b.exe", "c.exe", "d.exe"]


def _recipe_plan(name: str) -> ConfigurationPlan:
    recipe = default_catalog().get(name)
    return ConfigurationPlan(name=recipe.name, changes=recipe.to_changes())


def _seed_priors(actuator: InMemoryActuator, plan: ConfigurationPlan) -> None:
    """Give every other target a pre-existing value that differs from the plan's."""
    for change in plan.changes[::2]:
        if change.kind is ChangeKind.REGISTRY:
            actuator.config.setdefault(REGISTRY_DOMAIN, {})[change.target] = 1
        elif change.kind is ChangeKind.RESOURCE_ALLOCATION:
            actuator.config.setdefault(RESOURCE_DOMAIN, {})[change.target] = 0.05
        elif change.kind is ChangeKind.SERVICE:
            actuator.services[change.target] = not change.value
        else:
            actuator.companions.add(change.target)


async def _observe(actuator: InMemoryActuator, plan: ConfigurationPlan) -> list:
    return [(await read_current(actuator, c)).value for c in plan.changes]


# =============================================================================
# RECIPE MATCHING
# =============================================================================


trigger_sets = st.lists(
    st.frozensets(st.sampled_from(PROCESSES), max_size=len(PROCESSES)),
    min_size=1,
    max_size=8,
)


@settings(max_examples=150, deadline=None)
@given(triggers=trigger_sets, running=st.sets(st.sampled_from(PROCESSES), min_size=1))
def test_best_match_is_most_specific_then_first_registered(triggers, running):
    catalog = RecipeCatalog(
        AutomationRecipe(name=f"r{i}", triggers=t) for i, t in enumerate(triggers)
    )
    matching = [i for i, t in enumerate(triggers) if t <= running]
    best = catalog.best_match(running)

    if not matching:
        assert best is None
        return
    size = max(len(triggers[i]) for i in matching)
    expected = next(i for i in matching if len(triggers[i]) == size)
    assert best.name == f"r{expected}"
    assert catalog.select_best(reversed(catalog.match(running))).name == best.name


# =============================================================================
# LEDGER BOUND
# =============================================================================


request = st.fixed_dictionaries({
    "priority": st.floats(min_value=0.0, max_value=1.0),
    "confidence": st.floats(min_value=0.0, max_value=1.0),
    "gpu": st.floats(min_value=0.0, max_value=100.0),
    "cpu": st.floats(min_value=0.0, max_value=100.0),
    "non_negotiable": st.booleans(),
})
rounds = st.lists(st.lists(request, min_size=1, max_size=5), min_size=1, max_size=6)
# the same agents come back every round with new requests
same_agent_rounds = st.integers(min_value=1, max_value=4).flatmap(
    lambda n: st.lists(st.lists(request, min_size=n, max_size=n), min_size=2, max_size=5)
)


def _contributions(round_requests: list[dict]) -> list:
    return [
        contribution(
            f"agent{i}",
            priority=r["priority"],
            confidence=r["confidence"],
            requests={ResourceType.GPU: r["gpu"], ResourceType.CPU: r["cpu"]},
            non_negotiable=r["non_negotiable"],
        )
        for i, r in enumerate(round_requests)
    ]


@settings(max_examples=100, deadline=None)
@given(rounds=rounds)
def test_committed_share_never_exceeds_100(rounds):
    arbiter = Arbiter()
    ledger = ResourceLedger()
    for round_requests in rounds:
        arbiter.resolve(_contributions(round_requests), ledger)
        for resource, total in ledger.totals().items():
            assert total <= 100.0 + 1e-6, f"{resource} committed {total}"


@settings(max_examples=100, deadline=None)
@given(rounds=same_agent_rounds)
def test_earlier_rounds_never_shrink_a_grant(rounds):
    arbiter = Arbiter()
    ledger = ResourceLedger()
    for round_requests in rounds:
        plan = arbiter.resolve(_contributions(round_requests), ledger)
        fresh = arbiter.resolve(_contributions(round_requests), ResourceLedger())

        for agent_type, granted in fresh.grants.items():
            for resource, pct in granted.items():
                got = plan.grants.get(agent_type, {}).get(resource, 0.0)
                assert got >= pct - 1e-9, f"{agent_type} {resource}: {got} < {pct}"
        assert plan.grants == fresh.grants
        assert [(r.agent_type, r.kind) for r in plan.rejections] == [
            (r.agent_type, r.kind) for r in fresh.rejections
        ]


# =============================================================================
# APPLY / REVERT
# =============================================================================


class TestApplyProperties:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["CS2", "Streaming", "Development"])
    async def test_concurrent_applies_never_overlap(self, db_path, name):
        actuator = InMemoryActuator(delay=0.01)
        applier = ConfigurationApplier(actuator, ApplyLog(db_path))
        plan = _recipe_plan(name)
        results = await asyncio.gather(*(applier.apply(plan) for _ in range(3)))

        result = (
            CodeGrader("at_most_one_in_flight")
            .add_check("one_shared_result", lambda rs: all(r is rs[0] for r in rs))
            .add_check("single_writer", lambda _: actuator.max_in_flight == 1)
            .add_check(
                "writes_once_per_applied_change",
                lambda rs: len(actuator.writes) == rs[0].applied_count,
            )
            .grade(results)
        )
        assert result.passed, result.summary()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", RECIPE_NAMES)
    async def test_reapply_changes_nothing(self, applier, actuator, name):
        plan = _recipe_plan(name)
        await applier.apply(plan)
        writes = len(actuator.writes)
        second = await applier.apply(plan)
        third = await applier.apply(plan)

        shape = configuration_result_grader("reapply_shape", len(plan.changes)).grade(second)
        assert shape.passed, shape.summary()
        result = (
            CodeGrader("idempotent_apply")
            .add_check("successful", lambda r: r.success)
            .add_check("no_new_changes", lambda r: r.applied_count == 0)
            .add_check(
                "all_reported_skipped",
                lambda r: all(o.status is ChangeStatus.SKIPPED for o in r.changes),
            )
            .add_check("no_new_writes", lambda _: len(actuator.writes) == writes)
            .add_check(
                "stable_across_repeats",
                lambda r: [o.to_dict() for o in r.changes] == [o.to_dict() for o in third.changes]
                and r.message == third.message,
            )
            .grade(second)
        )
        assert result.passed, result.summary()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", RECIPE_NAMES)
    async def test_revert_restores_captured_values(self, applier, actuator, name):
        plan = _recipe_plan(name)
        _seed_priors(actuator, plan)
        before = await _observe(actuator, plan)

        applied = await applier.apply(plan)
        assert applied.success, applied.message
        assert await _observe(actuator, plan) == [c.value for c in plan.changes]

        reverted = await applier.revert(name)
        shape = configuration_result_grader("revert_shape", applied.applied_count).grade(reverted)
        assert shape.passed, shape.summary()
        assert reverted.success
        assert await _observe(actuator, plan) == before

    @pytest.mark.asyncio
    async def test_revert_of_never_applied_recipe_is_empty_success(self, applier, actuator):
        result = await applier.revert("CS2")
        assert result.success
        assert result.changes == []
        assert actuator.writes == []

    @pytest.mark.asyncio
    async def test_revert_is_not_repeated(self, applier, actuator):
        actuator.config[REGISTRY_DOMAIN] = {PRIORITY_SEPARATION: 2}
        await applier.apply(_recipe_plan("CS2"))
        await applier.revert("CS2")
        again = await applier.revert("CS2")
        assert again.success
        assert again.changes == []
        assert actuator.config[REGISTRY_DOMAIN][PRIORITY_SEPARATION] == 2


# =============================================================================
# LEARNING
# =============================================================================


class TestLearningMonotonicity:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind,direction", [
        (FeedbackKind.SUCCESS, 1),
        (FeedbackKind.FAILURE, -1),
    ])
    async def test_repeated_feedback_moves_one_way(self, engine, kind, direction):
        action = f"registry:{PRIORITY_SEPARATION}"
        rates = [
            engine.submit_feedback(AgentFeedback("gaming", action, kind))
            for _ in range(40)
        ]
        bound = 1.0 if direction > 0 else 0.0
        for old, new in zip(rates, rates[1:]):
            if old == bound:
                assert new == bound
            else:
                assert (new - old) * direction > 0
        assert all(0.0 <= r <= 1.0 for r in rates)
