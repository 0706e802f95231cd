"""
ResourceLedger -- committed percentage per resource type, never above 100.

The one piece of shared mutable state in the loop. Every reserve/release
goes through a re-entrant lock; an arbitration round holds the lock for its
whole walk through transaction(), so concurrent rounds cannot interleave
reservations.

Usage:
    ledger = ResourceLedger()
    with ledger.transaction():
        granted = ledger.reserve("gaming", {ResourceType.GPU: 70.0})
    ledger.headroom(ResourceType.GPU)   # 30.0
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, Iterator, Mapping

from workload_arbiter.configuration.changes import ResourceType
from workload_arbiter.errors import ErrorKind, WorkloadArbiterError

logger = logging.getLogger(__name__)

CAPACITY = 100.0
EPSILON = 1e-9


class ResourceExhausted(WorkloadArbiterError):
    """A request that cannot be granted, or only partially for a non-negotiable agent."""

    kind = ErrorKind.RESOURCE_EXHAUSTED

    def __init__(self, agent_type: str, factor: float, reason: str):
        self.agent_type = agent_type
        self.factor = factor
        super().__init__(f"{agent_type}: {reason}")


@dataclass(frozen=True)
class Reservation:
    agent_type: str
    requested: Mapping[ResourceType, float]
    granted: Mapping[ResourceType, float]
    factor: float

    @property
    def scaled(self) -> bool:
        return self.factor < 1.0


class ResourceLedger:
    """Per-agent reservations whose per-resource totals stay within CAPACITY."""

    def __init__(self, logger: logging.Logger | None = None):
        self._log = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()
        self._reservations: dict[str, dict[ResourceType, float]] = {}

    @contextmanager
    def transaction(self) -> Iterator["ResourceLedger"]:
        """Hold the ledger for a whole arbitration round."""
        with self._lock:
            yield self

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def committed(self, resource: ResourceType) -> float:
        with self._lock:
            total = sum(r.get(resource, 0.0) for r in self._reservations.values())
            return min(CAPACITY, total)

    def headroom(self, resource: ResourceType) -> float:
        return max(0.0, CAPACITY - self.committed(resource))

    def reservation(self, agent_type: str) -> dict[ResourceType, float]:
        with self._lock:
            return dict(self._reservations.get(agent_type, {}))

    def allocations(self) -> dict[str, dict[str, float]]:
        """Read-only copy: agent_type -> resource name -> percentage."""
        with self._lock:
            return {
                agent: {r.value: pct for r, pct in grants.items()}
                for agent, grants in self._reservations.items()
            }

    def totals(self) -> dict[str, float]:
        return {r.value: self.committed(r) for r in ResourceType}

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def reserve(
        self,
        agent_type: str,
        request: Mapping[ResourceType, float],
        *,
        non_negotiable: bool = False,
    ) -> Reservation:
        """
        Reserve a request, scaled down proportionally to fit the headroom.

        factor = min(1, min over requested r of headroom_r / request_r).
        Every requested resource is granted request_r * factor, so the shape
        of the request is preserved.

        Raises:
            ResourceExhausted: factor is 0, or below 1 for a non-negotiable
                request. Nothing is reserved in either case.
        """
        wanted = {r: float(pct) for r, pct in request.items() if pct > 0}
        with self._lock:
            if agent_type in self._reservations:
                self.release(agent_type)
            if not wanted:
                return Reservation(agent_type, {}, {}, 1.0)

            factor = 1.0
            for resource, pct in wanted.items():
                factor = min(factor, self.headroom(resource) / pct)
            if factor <= EPSILON:
                raise ResourceExhausted(agent_type, 0.0, "no headroom left")
            if factor < 1.0 - EPSILON and non_negotiable:
                raise ResourceExhausted(
                    agent_type,
                    factor,
                    f"only {factor:.0%} of a non-negotiable request fits",
                )
            if factor > 1.0 - EPSILON:
                factor = 1.0

            granted = {
                r: min(pct * factor, self.headroom(r)) for r, pct in wanted.items()
            }
            self._reservations[agent_type] = granted
            if factor < 1.0:
                self._log.info(
                    f"[ResourceLedger] Scaled {agent_type} to {factor:.0%} of request"
                )
            return Reservation(agent_type, wanted, dict(granted), factor)

    def release(self, agent_type: str) -> bool:
        with self._lock:
            return self._reservations.pop(agent_type, None) is not None

    def release_inactive(self, active_types: Iterable[str]) -> list[str]:
        """Drop reservations of agents that are no longer ACTIVE or OPTIMIZING."""
        keep = set(active_types)
        with self._lock:
            dropped = [a for a in self._reservations if a not in keep]
            for agent_type in dropped:
                del self._reservations[agent_type]
        if dropped:
            self._log.debug(f"[ResourceLedger] Released inactive: {', '.join(dropped)}")
        return dropped

    def clear(self) -> None:
        with self._lock:
            self._reservations.clear()
