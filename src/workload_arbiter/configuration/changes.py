"""
Typed actions and configuration changes.

Agents never hand loose dicts of parameters to the applier. Each action kind
is a frozen dataclass with its own validation, and every approved action is
lowered to a ConfigChange before it enters a ConfigurationPlan.

    action = SetRegistryValue(key_path=r"SYSTEM\\...\\Win32PrioritySeparation", value=0x26)
    action.validate()                      # raises ValidationError
    change = action.to_change(source="gaming")
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Union

from workload_arbiter.security.validators import (
    ValidationError,
    validate_fraction,
    validate_key_path,
    validate_process_name,
)


class ResourceType(str, Enum):
    """Resource kinds tracked by the ledger."""

    CPU = "cpu"
    GPU = "gpu"
    RAM = "ram"
    NETWORK = "network"
    STORAGE_IO = "storage_io"


class ChangeKind(str, Enum):
    REGISTRY = "registry"
    SERVICE = "service"
    RESOURCE_ALLOCATION = "resource_allocation"
    COMPANION_APP = "companion_app"


# =============================================================================
# CONFIG CHANGE
# =============================================================================


@dataclass(frozen=True)
class ConfigChange:
    """
    One desired change to system configuration.

    value semantics per kind:
      registry:            int | str | None (None deletes the value)
      service:             bool (True = enabled)
      resource_allocation: float fraction 0.0-1.0
      companion_app:       bool (True = running)

    source is the recipe name or agent type that asked for the change.
    agent_type is set only when a live agent owns the change and should
    execute it through its own execute_action.
    """

    kind: ChangeKind
    target: str
    value: Any
    source: str = ""
    requires_elevation: bool = False
    agent_type: str | None = None

    @property
    def identity(self) -> tuple[ChangeKind, str]:
        return (self.kind, self.target)

    @property
    def action_name(self) -> str:
        return f"{self.kind.value}:{self.target}"

    def is_identical(self, other: "ConfigChange") -> bool:
        """Same target and same value. Source and ownership do not matter."""
        return self.identity == other.identity and self.value == other.value

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "target": self.target,
            "value": self.value,
            "source": self.source,
            "requires_elevation": self.requires_elevation,
            "agent_type": self.agent_type,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ConfigChange":
        return cls(
            kind=ChangeKind(data["kind"]),
            target=data["target"],
            value=data.get("value"),
            source=data.get("source", ""),
            requires_elevation=bool(data.get("requires_elevation", False)),
            agent_type=data.get("agent_type"),
        )


# =============================================================================
# TYPED ACTIONS
# =============================================================================


@dataclass(frozen=True)
class SetRegistryValue:
    """Write (or delete, with value=None) one registry value."""

    key_path: str
    value: int | str | None
    kind: ClassVar[ChangeKind] = ChangeKind.REGISTRY

    @property
    def name(self) -> str:
        return f"{self.kind.value}:{self.key_path}"

    def validate(self) -> None:
        validate_key_path(self.key_path)
        if self.value is not None and (
            isinstance(self.value, bool) or not isinstance(self.value, (int, str))
        ):
            raise ValidationError(
                f"registry value for {self.key_path} must be int, str or None"
            )

    def to_change(
        self, source: str, requires_elevation: bool = True, agent_type: str | None = None
    ) -> ConfigChange:
        return ConfigChange(
            ChangeKind.REGISTRY, self.key_path, self.value, source,
            requires_elevation, agent_type,
        )


@dataclass(frozen=True)
class SetServiceState:
    """Enable or disable a system service."""

    service: str
    enabled: bool
    kind: ClassVar[ChangeKind] = ChangeKind.SERVICE

    @property
    def name(self) -> str:
        return f"{self.kind.value}:{self.service}"

    def validate(self) -> None:
        validate_process_name(self.service, "service")
        if not isinstance(self.enabled, bool):
            raise ValidationError(f"service state for {self.service} must be a bool")

    def to_change(
        self, source: str, requires_elevation: bool = True, agent_type: str | None = None
    ) -> ConfigChange:
        return ConfigChange(
            ChangeKind.SERVICE, self.service, self.enabled, source,
            requires_elevation, agent_type,
        )


@dataclass(frozen=True)
class AllocateResource:
    """Dedicate a fraction of one resource type to the foreground workload."""

    resource: ResourceType
    fraction: float
    kind: ClassVar[ChangeKind] = ChangeKind.RESOURCE_ALLOCATION

    @property
    def name(self) -> str:
        return f"{self.kind.value}:{self.resource.value}"

    def validate(self) -> None:
        if not isinstance(self.resource, ResourceType):
            raise ValidationError(f"unknown resource type {self.resource!r}")
        validate_fraction(self.fraction, f"{self.resource.value} allocation")

    def to_change(
        self, source: str, requires_elevation: bool = False, agent_type: str | None = None
    ) -> ConfigChange:
        return ConfigChange(
            ChangeKind.RESOURCE_ALLOCATION, self.resource.value, float(self.fraction),
            source, requires_elevation, agent_type,
        )


@dataclass(frozen=True)
class LaunchCompanion:
    """Start a companion application alongside the workload."""

    app: str
    kind: ClassVar[ChangeKind] = ChangeKind.COMPANION_APP

    @property
    def name(self) -> str:
        return f"{self.kind.value}:{self.app}"

    def validate(self) -> None:
        validate_process_name(self.app, "companion app")

    def to_change(
        self, source: str, requires_elevation: bool = False, agent_type: str | None = None
    ) -> ConfigChange:
        return ConfigChange(
            ChangeKind.COMPANION_APP, self.app, True, source,
            requires_elevation, agent_type,
        )


Action = Union[SetRegistryValue, SetServiceState, AllocateResource, LaunchCompanion]


def action_from_change(change: ConfigChange) -> Action:
    """Rebuild the typed action a change was lowered from."""
    if change.kind is ChangeKind.REGISTRY:
        return SetRegistryValue(change.target, change.value)
    if change.kind is ChangeKind.SERVICE:
        return SetServiceState(change.target, bool(change.value))
    if change.kind is ChangeKind.RESOURCE_ALLOCATION:
        return AllocateResource(ResourceType(change.target), float(change.value))
    return LaunchCompanion(change.target)
