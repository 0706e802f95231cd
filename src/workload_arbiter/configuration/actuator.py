"""
Actuator -- the narrow contract to whatever actually touches the system.

Every call returns an ActuatorResult instead of raising, so a failed write
is data the applier can record per change. Writes return the prior value,
which makes capture-before-write possible for the revert log.

Domains for write_config_value:
  - "registry": key is the full key path, value None deletes it
  - "resource": key is a ResourceType value, value is a fraction 0.0-1.0

InMemoryActuator is the reference implementation used for dry runs, the
CLI and tests.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol, runtime_checkable

from .changes import ChangeKind, ConfigChange

logger = logging.getLogger(__name__)

REGISTRY_DOMAIN = "registry"
RESOURCE_DOMAIN = "resource"

_DOMAINS = {
    ChangeKind.REGISTRY: REGISTRY_DOMAIN,
    ChangeKind.RESOURCE_ALLOCATION: RESOURCE_DOMAIN,
}


@dataclass(frozen=True)
class ActuatorResult:
    ok: bool
    value: Any = None
    error: str = ""

    @classmethod
    def failure(cls, error: str) -> "ActuatorResult":
        return cls(ok=False, error=error)


@runtime_checkable
class Actuator(Protocol):
    async def read_config_value(self, domain: str, key: str) -> ActuatorResult: ...

    async def write_config_value(self, domain: str, key: str, value: Any) -> ActuatorResult: ...

    async def get_service_state(self, name: str) -> ActuatorResult: ...

    async def set_service_state(self, name: str, enabled: bool) -> ActuatorResult: ...

    async def companion_running(self, app: str) -> ActuatorResult: ...

    async def launch_companion(self, app: str) -> ActuatorResult: ...

    async def stop_companion(self, app: str) -> ActuatorResult: ...


# =============================================================================
# CHANGE DISPATCH
# =============================================================================


async def read_current(actuator: Actuator, change: ConfigChange) -> ActuatorResult:
    """Current value of the change's target, for capture-before-write."""
    if change.kind in _DOMAINS:
        return await actuator.read_config_value(_DOMAINS[change.kind], change.target)
    if change.kind is ChangeKind.SERVICE:
        return await actuator.get_service_state(change.target)
    return await actuator.companion_running(change.target)


async def write_change(actuator: Actuator, change: ConfigChange) -> ActuatorResult:
    if change.kind in _DOMAINS:
        return await actuator.write_config_value(
            _DOMAINS[change.kind], change.target, change.value
        )
    if change.kind is ChangeKind.SERVICE:
        return await actuator.set_service_state(change.target, bool(change.value))
    if change.value:
        return await actuator.launch_companion(change.target)
    return await actuator.stop_companion(change.target)


async def restore_change(
    actuator: Actuator, change: ConfigChange, prior: Any, had_prior: bool
) -> ActuatorResult:
    """Put a target back the way it was before the change was applied."""
    if change.kind in _DOMAINS:
        return await actuator.write_config_value(
            _DOMAINS[change.kind], change.target, prior if had_prior else None
        )
    if change.kind is ChangeKind.SERVICE:
        return await actuator.set_service_state(change.target, bool(prior))
    if prior:
        return await actuator.launch_companion(change.target)
    return await actuator.stop_companion(change.target)


# =============================================================================
# IN-MEMORY REFERENCE ACTUATOR
# =============================================================================


@dataclass
class InMemoryActuator:
    """
    Dictionary-backed actuator.

    fail_targets: writes/launches against these targets fail.
    delay: seconds each write sleeps, to exercise timeouts and coalescing.
    Services default to enabled; companions default to not running.
    """

    config: dict[str, dict[str, Any]] = field(default_factory=dict)
    services: dict[str, bool] = field(default_factory=dict)
    companions: set[str] = field(default_factory=set)
    fail_targets: set[str] = field(default_factory=set)
    delay: float = 0.0
    writes: list[tuple[str, str, Any]] = field(default_factory=list)
    in_flight: int = 0
    max_in_flight: int = 0

    @classmethod
    def with_failures(cls, targets: Iterable[str], **kwargs) -> "InMemoryActuator":
        return cls(fail_targets=set(targets), **kwargs)

    async def _write(self, kind: str, target: str, value: Any) -> str | None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            self.writes.append((kind, target, value))
            if target in self.fail_targets:
                return f"simulated failure writing {target}"
            return None
        finally:
            self.in_flight -= 1

    async def read_config_value(self, domain: str, key: str) -> ActuatorResult:
        return ActuatorResult(ok=True, value=self.config.get(domain, {}).get(key))

    async def write_config_value(self, domain: str, key: str, value: Any) -> ActuatorResult:
        error = await self._write(domain, key, value)
        if error:
            return ActuatorResult.failure(error)
        values = self.config.setdefault(domain, {})
        prior = values.get(key)
        if value is None:
            values.pop(key, None)
        else:
            values[key] = value
        return ActuatorResult(ok=True, value=prior)

    async def get_service_state(self, name: str) -> ActuatorResult:
        return ActuatorResult(ok=True, value=self.services.get(name, True))

    async def set_service_state(self, name: str, enabled: bool) -> ActuatorResult:
        error = await self._write("service", name, enabled)
        if error:
            return ActuatorResult.failure(error)
        prior = self.services.get(name, True)
        self.services[name] = enabled
        return ActuatorResult(ok=True, value=prior)

    async def companion_running(self, app: str) -> ActuatorResult:
        return ActuatorResult(ok=True, value=app in self.companions)

    async def launch_companion(self, app: str) -> ActuatorResult:
        error = await self._write("companion", app, True)
        if error:
            return ActuatorResult.failure(error)
        prior = app in self.companions
        self.companions.add(app)
        return ActuatorResult(ok=True, value=prior)

    async def stop_companion(self, app: str) -> ActuatorResult:
        error = await self._write("companion", app, False)
        if error:
            return ActuatorResult.failure(error)
        prior = app in self.companions
        self.companions.discard(app)
        return ActuatorResult(ok=True, value=prior)
