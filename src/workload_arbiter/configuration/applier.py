"""
ConfigurationApplier -- best-effort, revertible application of a plan.

Guarantees:
  - At most one apply in flight per plan name. A second caller for the same
    name awaits the SAME task and gets the identical result; it never
    causes a second round of actuator writes.
  - apply and revert for one name share a lock, so they never interleave.
  - Capture-before-write: the current value is read before every write. A
    change whose target already holds the desired value is SKIPPED
    ("already applied"), which makes a repeated apply a no-op.
  - Best effort: a failed change never stops the ones after it. The result
    has one outcome per change and success only when nothing failed.
  - Cancellation (event or task cancel) stops before the next change.
    Completed work stays logged; undoing it takes an explicit revert().

Usage:
    applier = ConfigurationApplier(actuator, ApplyLog(db_path), config.applier)
    result = await applier.apply(plan)
    undo = await applier.revert(plan.name)
"""

import asyncio
import logging
import math
from collections import deque
from typing import Any, Iterable

from workload_arbiter.config import ApplierConfig
from workload_arbiter.errors import AgentNotReady, ErrorKind
from workload_arbiter.storage.apply_log import ApplyLog

from .actuator import (
    Actuator,
    ActuatorResult,
    read_current,
    restore_change,
    write_change,
)
from .changes import ConfigChange
from .models import ChangeOutcome, ChangeStatus, ConfigurationPlan, ConfigurationResult

logger = logging.getLogger(__name__)

RECENT_RESULTS = 50
ALREADY_APPLIED = "already applied"
CANCELLED = "cancelled"


def _same_value(current: Any, desired: Any) -> bool:
    if isinstance(current, float) or isinstance(desired, float):
        try:
            return math.isclose(float(current), float(desired), abs_tol=1e-9)
        except (TypeError, ValueError):
            return False
    return current == desired


class ConfigurationApplier:
    def __init__(
        self,
        actuator: Actuator,
        apply_log: ApplyLog,
        config: ApplierConfig | None = None,
        agents: Iterable[Any] | None = None,
        logger: logging.Logger | None = None,
    ):
        self._actuator = actuator
        self._apply_log = apply_log
        self.config = config or ApplierConfig()
        self._log = logger or logging.getLogger(__name__)
        self._agents: dict[str, Any] = {}
        for agent in agents or ():
            self.register_agent(agent)
        self._locks: dict[str, asyncio.Lock] = {}
        self._in_flight: dict[str, asyncio.Task] = {}
        self._cancelled_results: dict[str, ConfigurationResult] = {}
        self._recent: deque[ConfigurationResult] = deque(maxlen=RECENT_RESULTS)

    def register_agent(self, agent: Any) -> None:
        """Changes owned by this agent type go through its execute_action."""
        self._agents[agent.agent_type] = agent

    def is_applying(self, name: str) -> bool:
        task = self._in_flight.get(name)
        return task is not None and not task.done()

    def recent_results(self) -> list[ConfigurationResult]:
        return list(self._recent)

    def _lock_for(self, name: str) -> asyncio.Lock:
        if name not in self._locks:
            self._locks[name] = asyncio.Lock()
        return self._locks[name]

    # =========================================================================
    # APPLY
    # =========================================================================

    async def apply(
        self, plan: ConfigurationPlan, cancel: asyncio.Event | None = None
    ) -> ConfigurationResult:
        running = self._in_flight.get(plan.name)
        if running is not None and not running.done():
            self._log.info(f"[Applier] Coalescing apply of '{plan.name}' with the one in flight")
            return await self._join(plan.name, running)

        task = asyncio.create_task(self._apply_locked(plan, cancel))
        self._in_flight[plan.name] = task
        task.add_done_callback(lambda t, name=plan.name: self._forget(name, t))
        return await task

    async def _join(self, name: str, task: asyncio.Task) -> ConfigurationResult:
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled() and name in self._cancelled_results:
                return self._cancelled_results[name]
            raise

    def _forget(self, name: str, task: asyncio.Task) -> None:
        if self._in_flight.get(name) is task:
            del self._in_flight[name]

    async def _apply_locked(
        self, plan: ConfigurationPlan, cancel: asyncio.Event | None
    ) -> ConfigurationResult:
        async with self._lock_for(plan.name):
            self._cancelled_results.pop(plan.name, None)
            outcomes: list[ChangeOutcome] = []
            cancelled = False
            try:
                for change in plan.changes:
                    if cancel is not None and cancel.is_set():
                        cancelled = True
                        break
                    outcomes.append(await self._apply_change(plan.name, change))
            except asyncio.CancelledError:
                outcomes.extend(_cancelled(plan.changes[len(outcomes):]))
                result = self._finish(plan.name, outcomes, cancelled=True)
                self._cancelled_results[plan.name] = result
                raise
            if cancelled:
                outcomes.extend(_cancelled(plan.changes[len(outcomes):]))
            return self._finish(plan.name, outcomes, cancelled=cancelled)

    async def _apply_change(self, plan_name: str, change: ConfigChange) -> ChangeOutcome:
        timeout = self.config.actuator_timeout
        current = await self._call(read_current(self._actuator, change), timeout)
        if not current.ok:
            outcome = ChangeOutcome(
                change, ChangeStatus.FAILED,
                f"cannot capture prior value: {current.error}",
                error_kind=ErrorKind.ACTUATOR_FAILURE,
            )
            self._record(plan_name, outcome, had_prior=False)
            return outcome

        prior = current.value
        if _same_value(prior, change.value):
            outcome = ChangeOutcome(change, ChangeStatus.SKIPPED, ALREADY_APPLIED, prior)
            self._record(plan_name, outcome, had_prior=prior is not None)
            return outcome

        agent = self._agents.get(change.agent_type) if change.agent_type else None
        if agent is not None:
            outcome = await self._apply_via_agent(agent, change, prior, timeout)
        else:
            written = await self._call(write_change(self._actuator, change), timeout)
            if written.ok:
                outcome = ChangeOutcome(change, ChangeStatus.APPLIED, "", prior)
            else:
                outcome = ChangeOutcome(
                    change, ChangeStatus.FAILED, written.error, prior,
                    ErrorKind.ACTUATOR_FAILURE,
                )

        if outcome.status is ChangeStatus.FAILED:
            self._log.warning(
                f"[Applier] {plan_name}: {change.action_name} failed: {outcome.reason}"
            )
        self._record(plan_name, outcome, had_prior=prior is not None)
        return outcome

    async def _apply_via_agent(
        self, agent: Any, change: ConfigChange, prior: Any, timeout: float
    ) -> ChangeOutcome:
        try:
            result = await asyncio.wait_for(
                agent.execute_action(change, self._actuator, timeout), timeout=timeout
            )
        except AgentNotReady as e:
            return ChangeOutcome(
                change, ChangeStatus.FAILED, str(e), prior, ErrorKind.AGENT_NOT_READY
            )
        except asyncio.TimeoutError:
            return ChangeOutcome(
                change, ChangeStatus.FAILED, f"timed out after {timeout:.1f}s", prior,
                ErrorKind.AGENT_TIMEOUT,
            )
        if result.ok:
            return ChangeOutcome(change, ChangeStatus.APPLIED, "", prior)
        return ChangeOutcome(
            change, ChangeStatus.FAILED, result.message, prior, ErrorKind.ACTUATOR_FAILURE
        )

    async def _call(self, coro, timeout: float) -> ActuatorResult:
        try:
            return await asyncio.wait_for(coro, timeout=timeout)
        except asyncio.TimeoutError:
            return ActuatorResult.failure(f"timed out after {timeout:.1f}s")

    def _record(self, plan_name: str, outcome: ChangeOutcome, had_prior: bool) -> None:
        self._apply_log.append(plan_name, outcome, had_prior=had_prior)

    def _finish(
        self, name: str, outcomes: list[ChangeOutcome], cancelled: bool
    ) -> ConfigurationResult:
        result = ConfigurationResult(
            success=False, message="", recipe_name=name, changes=outcomes
        )
        result.success = result.failed_count == 0 and not cancelled
        if cancelled:
            result.message = (
                f"Cancelled after {len(outcomes) - _count_cancelled(outcomes)} "
                f"of {len(outcomes)} changes"
            )
        elif result.failed_count:
            result.message = (
                f"{result.failed_count} of {len(outcomes)} changes failed"
            )
        elif result.applied_count == 0 and outcomes:
            result.message = "Already applied, nothing to change"
        else:
            result.message = f"Applied {result.applied_count} changes"
        self._recent.append(result)
        self._log.info(
            f"[Applier] '{name}': {result.message} "
            f"(applied={result.applied_count}, skipped={result.skipped_count}, "
            f"failed={result.failed_count})"
        )
        return result

    # =========================================================================
    # REVERT
    # =========================================================================

    async def revert(self, name: str) -> ConfigurationResult:
        """
        Restore every pending change of `name`, newest first.

        A name with nothing pending reverts to success with an empty list.
        A failed restore stays pending so the next revert retries it.
        """
        async with self._lock_for(name):
            entries = self._apply_log.pending(name)
            if not entries:
                return ConfigurationResult(
                    success=True, message="Nothing to revert", recipe_name=name
                )

            outcomes = []
            timeout = self.config.actuator_timeout
            for entry in entries:
                restored = await self._call(
                    restore_change(
                        self._actuator, entry.change, entry.prior_value, entry.had_prior
                    ),
                    timeout,
                )
                self._apply_log.record_revert(entry, restored.ok, restored.error)
                if restored.ok:
                    outcomes.append(ChangeOutcome(
                        entry.change, ChangeStatus.REVERTED, "", entry.prior_value
                    ))
                else:
                    outcomes.append(ChangeOutcome(
                        entry.change, ChangeStatus.FAILED, restored.error,
                        entry.prior_value, ErrorKind.REVERT_FAILURE,
                    ))

            result = ConfigurationResult(
                success=False, message="", recipe_name=name, changes=outcomes
            )
            result.success = result.failed_count == 0
            result.message = (
                f"Reverted {result.applied_count} changes"
                if result.success
                else f"Partial revert: {result.failed_count} of {len(outcomes)} failed"
            )
            self._recent.append(result)
            self._log.info(f"[Applier] Revert '{name}': {result.message}")
            return result


def _cancelled(changes: list[ConfigChange]) -> list[ChangeOutcome]:
    return [
        ChangeOutcome(c, ChangeStatus.SKIPPED, CANCELLED, error_kind=ErrorKind.CANCELLED)
        for c in changes
    ]


def _count_cancelled(outcomes: list[ChangeOutcome]) -> int:
    return sum(1 for o in outcomes if o.error_kind is ErrorKind.CANCELLED)
