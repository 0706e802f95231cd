"""
AutomationRecipe -- a named bundle of changes triggered by a process set.

Recipes are created at catalog load time and never mutated afterwards.
An edit builds a new recipe and replaces the catalog entry.
"""

import uuid
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from workload_arbiter.configuration.changes import (
    AllocateResource,
    ConfigChange,
    LaunchCompanion,
    ResourceType,
    SetRegistryValue,
    SetServiceState,
)


@dataclass(frozen=True, eq=False)
class AutomationRecipe:
    """
    triggers: process names that must all be running (lower-cased).
    registry_changes: key path -> value.
    service_states: service name -> desired enabled flag.
    resource_allocations: resource type -> fraction 0.0-1.0.
    companion_apps: applications launched alongside the workload.
    category: workload family used for browsing (Gaming, Streaming, ...).
    required_agents: agent types that should weigh in while the recipe is
        active; the arbiter raises their priority.
    """

    name: str
    triggers: frozenset[str] = frozenset()
    registry_changes: Mapping[str, Any] = field(default_factory=dict)
    service_states: Mapping[str, bool] = field(default_factory=dict)
    resource_allocations: Mapping[ResourceType, float] = field(default_factory=dict)
    companion_apps: tuple[str, ...] = ()
    description: str = ""
    category: str = ""
    required_agents: frozenset[str] = frozenset()
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:12])

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "triggers", frozenset(t.strip().lower() for t in self.triggers)
        )
        object.__setattr__(
            self, "registry_changes", MappingProxyType(dict(self.registry_changes))
        )
        object.__setattr__(
            self, "service_states", MappingProxyType(dict(self.service_states))
        )
        object.__setattr__(
            self,
            "resource_allocations",
            MappingProxyType(
                {ResourceType(k): float(v) for k, v in self.resource_allocations.items()}
            ),
        )
        object.__setattr__(self, "companion_apps", tuple(self.companion_apps))
        object.__setattr__(
            self, "required_agents", frozenset(a.strip().lower() for a in self.required_agents)
        )

    @property
    def specificity(self) -> int:
        return len(self.triggers)

    def actions(self) -> list:
        """Typed actions in apply order: registry, services, resources, companions."""
        return (
            [SetRegistryValue(k, v) for k, v in self.registry_changes.items()]
            + [SetServiceState(k, v) for k, v in self.service_states.items()]
            + [AllocateResource(k, v) for k, v in self.resource_allocations.items()]
            + [LaunchCompanion(app) for app in self.companion_apps]
        )

    def to_changes(self) -> list[ConfigChange]:
        return [action.to_change(source=self.name) for action in self.actions()]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "required_agents": sorted(self.required_agents),
            "triggers": sorted(self.triggers),
            "specificity": self.specificity,
            "registry_changes": dict(self.registry_changes),
            "service_states": dict(self.service_states),
            "resource_allocations": {
                k.value: v for k, v in self.resource_allocations.items()
            },
            "companion_apps": list(self.companion_apps),
        }
