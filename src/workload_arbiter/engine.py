"""
WorkloadEngine -- one control loop from snapshot to applied configuration.

Cycle:
  1. Best-matching recipe for the running processes
  2. Scenario = recipe name (lower-cased), or "idle" without a match
  3. Orchestrator reasoning round over every runnable agent
  4. Arbiter resolution (auto-apply contributions only)
  5. On a scenario change the previous agent plan is reverted, then the
     recipe plan is applied only when the best match CHANGES; the previous
     recipe is reverted first when revert_on_switch is set
  6. Agent plan applied when it carries changes
  7. Ledger reservations of agents no longer active are released

Cycles are serialized: a snapshot pushed through the API and one from the
poller never interleave.

Usage:
    engine = build_engine(EngineConfig.from_env())
    await engine.start()
    report = await engine.process_snapshot(Snapshot(running_processes=("cs2.exe",)))
    await engine.shutdown()
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from workload_arbiter.agents import AgentRecommendation, AgentState, default_registry
from workload_arbiter.config import EngineConfig
from workload_arbiter.configuration.actuator import Actuator, InMemoryActuator
from workload_arbiter.configuration.applier import ConfigurationApplier
from workload_arbiter.configuration.models import ConfigurationPlan, ConfigurationResult
from workload_arbiter.errors import ErrorKind
from workload_arbiter.learning import AgentFeedback, FeedbackLearner, KnowledgeStore, LearningRule
from workload_arbiter.orchestration import Arbiter, Orchestrator, ResourceLedger
from workload_arbiter.recipes import AutomationRecipe, RecipeCatalog, default_catalog, load_catalog
from workload_arbiter.snapshot import Snapshot, SnapshotPoller
from workload_arbiter.storage import ApplyLog

logger = logging.getLogger(__name__)

IDLE_SCENARIO = "idle"


@dataclass
class CycleReport:
    """What one process_snapshot call decided and did."""

    scenario: str
    recipe_name: str | None = None
    recipe_switched: bool = False
    reverted: ConfigurationResult | None = None
    recipe_result: ConfigurationResult | None = None
    agent_plan: ConfigurationPlan | None = None
    agent_result: ConfigurationResult | None = None
    contributions: int = 0
    released: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "scenario": self.scenario,
            "recipe_name": self.recipe_name,
            "recipe_switched": self.recipe_switched,
            "reverted": self.reverted.to_dict() if self.reverted else None,
            "recipe_result": self.recipe_result.to_dict() if self.recipe_result else None,
            "agent_plan": self.agent_plan.to_dict() if self.agent_plan else None,
            "agent_result": self.agent_result.to_dict() if self.agent_result else None,
            "contributions": self.contributions,
            "released": self.released,
        }


class WorkloadEngine:
    def __init__(
        self,
        catalog: RecipeCatalog,
        orchestrator: Orchestrator,
        arbiter: Arbiter,
        applier: ConfigurationApplier,
        learner: FeedbackLearner,
        ledger: ResourceLedger | None = None,
        config: EngineConfig | None = None,
        logger: logging.Logger | None = None,
    ):
        self.catalog = catalog
        self.orchestrator = orchestrator
        self.arbiter = arbiter
        self.applier = applier
        self.learner = learner
        self.ledger = ledger or ResourceLedger(logger=logger)
        self.config = config or EngineConfig()
        self._log = logger or logging.getLogger(__name__)
        self._cycle_lock = asyncio.Lock()
        self._active_recipe: str | None = None
        self._active_agent_plan: str | None = None
        self._poller: SnapshotPoller | None = None
        self._last_report: CycleReport | None = None

    @property
    def active_recipe(self) -> str | None:
        return self._active_recipe

    @property
    def last_report(self) -> CycleReport | None:
        return self._last_report

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(
        self,
        snapshot: Snapshot | None = None,
        collect: Callable[[], Snapshot | Awaitable[Snapshot]] | None = None,
    ) -> None:
        """Initialize agents; with a collector, also start the adaptive poller."""
        await self.orchestrator.start(snapshot or Snapshot())
        if collect is not None:
            self._poller = SnapshotPoller(
                collect,
                self.process_snapshot,
                active_interval=self.config.poller.active_interval,
                background_interval=self.config.poller.background_interval,
                logger=self._log,
            )
            await self._poller.start()
        self._log.info(f"[Engine] Started with {len(self.catalog)} recipes")

    async def shutdown(self) -> None:
        if self._poller is not None:
            await self._poller.stop()
        self.orchestrator.shutdown()
        self.ledger.clear()
        self._log.info("[Engine] Shut down")

    def set_focus(self, focused: bool) -> None:
        """Host focus signal. Only changes the polling interval."""
        if self._poller is not None:
            self._poller.set_focus(focused)

    @property
    def has_focus(self) -> bool:
        return self._poller.has_focus if self._poller else True

    # =========================================================================
    # CONTROL LOOP
    # =========================================================================

    async def process_snapshot(self, snapshot: Snapshot) -> CycleReport:
        async with self._cycle_lock:
            recipe = self.catalog.best_match(snapshot.running_processes)
            scenario = recipe.name.lower() if recipe else IDLE_SCENARIO
            report = CycleReport(scenario=scenario, recipe_name=recipe.name if recipe else None)

            contributions = await self.orchestrator.reason_round(snapshot, scenario)
            report.contributions = len(contributions)
            plan = self.arbiter.resolve(
                contributions, self.ledger,
                recipe=recipe, auto_apply_only=True, scenario=scenario,
            )
            recipe_plan, agent_plan = _split_plan(plan, recipe, scenario)
            report.agent_plan = agent_plan

            # Agent changes went on top of the recipe, so they come off first
            if self._active_agent_plan and self._active_agent_plan != agent_plan.name:
                if self.config.revert_on_switch:
                    await self.applier.revert(self._active_agent_plan)
                self._active_agent_plan = None

            new_name = recipe.name if recipe else None
            if new_name != self._active_recipe:
                report.recipe_switched = True
                report.reverted = await self._leave_recipe()
                if recipe_plan is not None:
                    report.recipe_result = await self.applier.apply(recipe_plan)
                self._active_recipe = new_name
                self._log.info(f"[Engine] Active recipe now {new_name or 'none'}")

            if not agent_plan.is_empty:
                report.agent_result = await self.applier.apply(agent_plan)
                self._active_agent_plan = agent_plan.name

            report.released = self.ledger.release_inactive(self.orchestrator.reserving_types())
            self._last_report = report
            return report

    async def _leave_recipe(self) -> ConfigurationResult | None:
        if self._active_recipe is None or not self.config.revert_on_switch:
            return None
        return await self.applier.revert(self._active_recipe)

    # =========================================================================
    # MANUAL OVERRIDE
    # =========================================================================

    async def apply_recipe_by_name(self, name: str) -> ConfigurationResult:
        recipe = self.catalog.get(name)
        if recipe is None:
            self._log.debug(f"[Engine] No recipe named '{name}'")
            return ConfigurationResult(
                success=False,
                message=f"No recipe named '{name}'",
                recipe_name=name,
                error_kind=ErrorKind.NO_MATCHING_RECIPE,
            )
        async with self._cycle_lock:
            if self._active_recipe != recipe.name:
                await self._leave_recipe()
            plan = ConfigurationPlan(name=recipe.name, changes=recipe.to_changes())
            result = await self.applier.apply(plan)
            self._active_recipe = recipe.name
            return result

    async def revert(self, name: str) -> ConfigurationResult:
        """Revert everything still pending under `name`. Nothing pending is a success."""
        result = await self.applier.revert(name)
        if result.success:
            if name == self._active_recipe:
                self._active_recipe = None
            if name == self._active_agent_plan:
                self._active_agent_plan = None
        return result

    def submit_feedback(self, feedback: AgentFeedback) -> float | None:
        """
        Route explicit feedback to the owning agent's learner.

        Returns the new success rate, or None for a replayed feedback id.
        Raises KeyError for an unknown agent type.
        """
        agent = self.orchestrator.get(feedback.agent_type)
        if agent is None:
            raise KeyError(f"Unknown agent type '{feedback.agent_type}'")
        return self.learner.update(agent, feedback)

    # =========================================================================
    # READ-ONLY VIEWS
    # =========================================================================

    def agent_states(self) -> dict[str, str]:
        return {t: s.value for t, s in self.orchestrator.agent_states().items()}

    def latest_recommendations(self) -> dict[str, AgentRecommendation]:
        return self.orchestrator.latest_recommendations()

    def recent_results(self) -> list[ConfigurationResult]:
        return self.applier.recent_results()

    def ledger_allocations(self) -> dict[str, dict[str, float]]:
        return self.ledger.allocations()

    def ready_count(self) -> int:
        return sum(
            1 for s in self.orchestrator.agent_states().values()
            if s is not AgentState.ERROR and s is not AgentState.SHUTDOWN
        )


def _split_plan(
    plan: ConfigurationPlan, recipe: AutomationRecipe | None, scenario: str
) -> tuple[ConfigurationPlan | None, ConfigurationPlan]:
    """Recipe changes carry no agent_type; everything else belongs to the agents."""
    agent_plan = ConfigurationPlan(
        name=f"agents:{scenario}",
        changes=[c for c in plan.changes if c.agent_type is not None],
        rejections=plan.rejections,
        grants=plan.grants,
        superseded=plan.superseded,
    )
    if recipe is None:
        return None, agent_plan
    recipe_plan = ConfigurationPlan(
        name=recipe.name,
        changes=[c for c in plan.changes if c.agent_type is None],
    )
    return recipe_plan, agent_plan


def build_engine(
    config: EngineConfig | None = None,
    actuator: Actuator | None = None,
    logger: logging.Logger | None = None,
) -> WorkloadEngine:
    """
    Wire every component from config.

    Raises CatalogCorrupt or KnowledgeCorrupt when durable state cannot be
    trusted; both are fatal at startup.
    """
    config = config or EngineConfig.from_env()
    log = logger or logging.getLogger(__name__)

    if config.catalog_path is not None:
        catalog = load_catalog(config.catalog_path, logger=logger)
    else:
        catalog = default_catalog()

    store = KnowledgeStore(config.db_path)
    agents = default_registry().create_all(knowledge_loader=store.load, logger=logger)
    orchestrator = Orchestrator(agents, config.orchestrator, logger=logger)
    applier = ConfigurationApplier(
        actuator or InMemoryActuator(),
        ApplyLog(config.db_path),
        config.applier,
        agents=agents,
        logger=logger,
    )
    learner = FeedbackLearner(
        store, LearningRule(alpha=config.learning.alpha, delta=config.learning.delta),
        logger=logger,
    )
    log.info(
        f"[Engine] Built: {len(catalog)} recipes, {len(agents)} agents, db={config.db_path}"
    )
    return WorkloadEngine(
        catalog, orchestrator, Arbiter(config.arbiter, logger=logger), applier, learner,
        ResourceLedger(logger=logger), config, logger=logger,
    )
