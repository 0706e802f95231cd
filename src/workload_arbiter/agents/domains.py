"""
Built-in domain agents.

Each agent is a RuleBasedAgent: class-level rule data (trigger processes,
scenario keywords, utilization thresholds, typed actions, resource request)
drives a shared _evaluate(). Confidence is base_confidence times the learned
success rate of the recommendation's primary action, so feedback changes
what the agent says next time.

Example:
    class BackupAgent(RuleBasedAgent):
        agent_type = "backup"
        display_name = "Backup Agent"
        trigger_processes = frozenset({"veeam.exe"})
        actions = (AllocateResource(ResourceType.STORAGE_IO, 0.5),)
        resource_requests = {ResourceType.STORAGE_IO: 50.0}
"""

from typing import ClassVar, Mapping

from workload_arbiter.configuration.changes import (
    Action,
    AllocateResource,
    ResourceType,
    SetRegistryValue,
    SetServiceState,
)
from workload_arbiter.recipes.defaults import (
    GAMES_GPU_PRIORITY,
    GAMES_PRIORITY,
    LARGE_SYSTEM_CACHE,
    PRIORITY_SEPARATION,
    SYSTEM_RESPONSIVENESS,
    TCP_1323_OPTS,
    TCP_WINDOW_SIZE,
)
from workload_arbiter.snapshot import Snapshot

from .base import AgentRecommendation, AgentResourceRequirements, BaseTaskAgent


class RuleBasedAgent(BaseTaskAgent):
    """Agent whose reasoning is fully described by its class attributes."""

    trigger_processes: ClassVar[frozenset[str]] = frozenset()
    scenario_keywords: ClassVar[tuple[str, ...]] = ()
    # resource name (Snapshot.utilization key) -> percent at which the agent
    # reports the workload as under load
    load_thresholds: ClassVar[Mapping[str, float]] = {}
    actions: ClassVar[tuple[Action, ...]] = ()
    resource_requests: ClassVar[Mapping[ResourceType, float]] = {}
    priority: ClassVar[float] = 0.5
    requires_elevation: ClassVar[bool] = False
    non_negotiable: ClassVar[bool] = False
    conflicts_with: ClassVar[frozenset[str]] = frozenset()
    base_confidence: ClassVar[float] = 0.8
    auto_apply: ClassVar[bool] = True
    target_metric: ClassVar[str] = ""
    expected_improvement: ClassVar[float] = 0.0
    title: ClassVar[str] = ""

    def matched_processes(self, snapshot: Snapshot) -> list[str]:
        return [p for p in snapshot.running_processes if p in self.trigger_processes]

    def loaded_resources(self, snapshot: Snapshot) -> list[str]:
        usage = snapshot.utilization()
        return [
            name for name, limit in self.load_thresholds.items()
            if usage.get(name, 0.0) >= limit
        ]

    def _evaluate(self, scenario: str, snapshot: Snapshot) -> AgentRecommendation | None:
        matched = self.matched_processes(snapshot)
        lowered = scenario.lower()
        keyword_hit = any(k in lowered for k in self.scenario_keywords)
        if not (matched or keyword_hit) or not self.actions:
            return None

        primary = self.actions[0].name
        confidence = self.base_confidence * self._knowledge.success_rate(primary)
        loaded = self.loaded_resources(snapshot)

        evidence = []
        if matched:
            evidence.append(f"running: {', '.join(matched)}")
        if keyword_hit:
            evidence.append(f"scenario '{scenario}'")
        if loaded:
            evidence.append(f"under load: {', '.join(loaded)}")

        return AgentRecommendation(
            agent_type=self.agent_type,
            title=self.title or f"{self.display_name} tuning",
            reasoning="; ".join(evidence),
            actions=self.actions,
            confidence=round(min(1.0, max(0.0, confidence)), 6),
            expected_improvement=self.expected_improvement * (1.5 if loaded else 1.0),
            target_metric=self.target_metric,
            auto_apply=self.auto_apply,
            scenario=scenario,
        )

    def _requirements(self) -> AgentResourceRequirements:
        return AgentResourceRequirements(
            agent_type=self.agent_type,
            requests=dict(self.resource_requests),
            priority=self.priority,
            requires_elevation=self.requires_elevation,
            non_negotiable=self.non_negotiable,
            conflicts_with=self.conflicts_with,
        )


# =============================================================================
# DOMAIN AGENTS
# =============================================================================


class GamingAgent(RuleBasedAgent):
    agent_type = "gaming"
    display_name = "Gaming Agent"
    title = "Prioritize the foreground game"
    trigger_processes = frozenset({
        "valorant-win64-shipping.exe",
        "cs2.exe",
        "r5apex.exe",
        "fortniteclient-win64-shipping.exe",
        "cod.exe",
    })
    scenario_keywords = ("gaming", "game")
    load_thresholds = {"gpu": 80.0, "cpu": 85.0}
    actions = (
        SetRegistryValue(PRIORITY_SEPARATION, 0x26),
        SetRegistryValue(GAMES_GPU_PRIORITY, 8),
        SetRegistryValue(GAMES_PRIORITY, 6),
        SetServiceState("SysMain", False),
        AllocateResource(ResourceType.GPU, 0.7),
    )
    resource_requests = {ResourceType.GPU: 70.0, ResourceType.CPU: 40.0}
    priority = 0.9
    conflicts_with = frozenset({"productivity"})
    base_confidence = 0.9
    target_metric = "fps"
    expected_improvement = 15.0


class StreamingAgent(RuleBasedAgent):
    agent_type = "streaming"
    display_name = "Streaming Agent"
    title = "Keep the stream encoder and uplink fed"
    trigger_processes = frozenset({"obs64.exe", "streamlabs obs.exe"})
    scenario_keywords = ("stream",)
    load_thresholds = {"network": 70.0, "gpu": 85.0}
    actions = (
        SetRegistryValue(TCP_WINDOW_SIZE, 64240),
        SetRegistryValue(TCP_1323_OPTS, 3),
        AllocateResource(ResourceType.NETWORK, 0.6),
    )
    resource_requests = {
        ResourceType.NETWORK: 60.0,
        ResourceType.GPU: 25.0,
        ResourceType.CPU: 30.0,
    }
    priority = 0.8
    base_confidence = 0.85
    target_metric = "dropped_frames"
    expected_improvement = 20.0


class DevelopmentAgent(RuleBasedAgent):
    agent_type = "development"
    display_name = "Development Agent"
    title = "Speed up builds and indexing"
    trigger_processes = frozenset({"code.exe", "devenv.exe", "rider64.exe", "node.exe"})
    scenario_keywords = ("develop", "build", "compile")
    load_thresholds = {"cpu": 75.0, "storage_io": 60.0}
    actions = (
        SetServiceState("WSearch", False),
        AllocateResource(ResourceType.CPU, 0.6),
        AllocateResource(ResourceType.STORAGE_IO, 0.5),
    )
    resource_requests = {
        ResourceType.CPU: 60.0,
        ResourceType.RAM: 50.0,
        ResourceType.STORAGE_IO: 50.0,
    }
    priority = 0.7
    base_confidence = 0.8
    target_metric = "build_seconds"
    expected_improvement = 25.0


class MediaAgent(RuleBasedAgent):
    agent_type = "media"
    display_name = "Media Agent"
    title = "Protect audio and video playback"
    trigger_processes = frozenset({"spotify.exe", "vlc.exe"})
    scenario_keywords = ("media", "music")
    load_thresholds = {"cpu": 70.0}
    actions = (
        SetRegistryValue(SYSTEM_RESPONSIVENESS, 10),
        AllocateResource(ResourceType.CPU, 0.15),
    )
    resource_requests = {ResourceType.CPU: 15.0, ResourceType.NETWORK: 20.0}
    priority = 0.5
    base_confidence = 0.7
    target_metric = "audio_dropouts"
    expected_improvement = 10.0


class ProductivityAgent(RuleBasedAgent):
    agent_type = "productivity"
    display_name = "Productivity Agent"
    title = "Quiet background work for office apps"
    trigger_processes = frozenset({"excel.exe", "winword.exe", "powerpnt.exe", "outlook.exe"})
    scenario_keywords = ("office", "productivity", "document")
    load_thresholds = {"ram": 80.0}
    actions = (
        SetServiceState("DiagTrack", False),
        AllocateResource(ResourceType.RAM, 0.3),
    )
    resource_requests = {ResourceType.CPU: 20.0, ResourceType.RAM: 30.0}
    priority = 0.4
    conflicts_with = frozenset({"gaming"})
    base_confidence = 0.7
    auto_apply = False
    target_metric = "responsiveness"
    expected_improvement = 5.0


class ContentCreationAgent(RuleBasedAgent):
    agent_type = "content_creation"
    display_name = "Content Creation Agent"
    title = "Shorten renders and keep previews smooth"
    trigger_processes = frozenset({
        "premiere.exe",
        "afterfx.exe",
        "blender.exe",
        "resolve.exe",
    })
    scenario_keywords = ("video editing", "render", "content")
    load_thresholds = {"gpu": 75.0, "storage_io": 80.0}
    actions = (
        SetRegistryValue(LARGE_SYSTEM_CACHE, 1),
        AllocateResource(ResourceType.GPU, 0.7),
        AllocateResource(ResourceType.STORAGE_IO, 0.6),
    )
    resource_requests = {
        ResourceType.CPU: 60.0,
        ResourceType.GPU: 70.0,
        ResourceType.RAM: 50.0,
        ResourceType.NETWORK: 10.0,
        ResourceType.STORAGE_IO: 60.0,
    }
    priority = 0.75
    conflicts_with = frozenset({"gaming"})
    base_confidence = 0.85
    target_metric = "render_seconds"
    expected_improvement = 45.0


BUILTIN_AGENTS: tuple[type[RuleBasedAgent], ...] = (
    GamingAgent,
    StreamingAgent,
    DevelopmentAgent,
    MediaAgent,
    ProductivityAgent,
    ContentCreationAgent,
)
