"""
Built-in recipe catalog.

Single-workload recipes trigger on one process; compound recipes trigger on
two, so they win on specificity when both workloads are running. "Universal"
has an empty trigger set and matches any non-empty process list, which makes
it the baseline when nothing more specific is running.
"""

from workload_arbiter.configuration.changes import ResourceType
from workload_arbiter.recipes.catalog import RecipeCatalog
from workload_arbiter.recipes.models import AutomationRecipe

CPU, GPU, RAM, NET, IO = (
    ResourceType.CPU,
    ResourceType.GPU,
    ResourceType.RAM,
    ResourceType.NETWORK,
    ResourceType.STORAGE_IO,
)

# =============================================================================
# REGISTRY KEYS
# =============================================================================

PRIORITY_SEPARATION = (
    r"HKLM\SYSTEM\CurrentControlSet\Control\PriorityControl\Win32PrioritySeparation"
)
_SYSTEM_PROFILE = r"HKLM\SOFTWARE\Microsoft\Windows NT\CurrentVersion\Multimedia\SystemProfile"
SYSTEM_RESPONSIVENESS = _SYSTEM_PROFILE + r"\SystemResponsiveness"
NETWORK_THROTTLING = _SYSTEM_PROFILE + r"\NetworkThrottlingIndex"
GAMES_GPU_PRIORITY = _SYSTEM_PROFILE + r"\Tasks\Games\GPU Priority"
GAMES_PRIORITY = _SYSTEM_PROFILE + r"\Tasks\Games\Priority"
GAMES_SCHEDULING = _SYSTEM_PROFILE + r"\Tasks\Games\Scheduling Category"
_TCPIP = r"HKLM\SYSTEM\CurrentControlSet\Services\Tcpip\Parameters"
TCP_NO_DELAY = _TCPIP + r"\TCPNoDelay"
TCP_WINDOW_SIZE = _TCPIP + r"\TcpWindowSize"
TCP_1323_OPTS = _TCPIP + r"\Tcp1323Opts"
LARGE_SYSTEM_CACHE = (
    r"HKLM\SYSTEM\CurrentControlSet\Control\Session Manager\Memory Management\LargeSystemCache"
)

_GAME_TWEAKS = {
    PRIORITY_SEPARATION: 0x26,
    SYSTEM_RESPONSIVENESS: 0,
    NETWORK_THROTTLING: 10,
    GAMES_GPU_PRIORITY: 8,
    GAMES_PRIORITY: 6,
    GAMES_SCHEDULING: "High",
}
_GAME_SERVICES = {"DiagTrack": False, "SysMain": False, "WSearch": False}


def _game(name: str, process: str, description: str, **overrides) -> AutomationRecipe:
    registry = dict(_GAME_TWEAKS)
    registry.update(overrides.pop("registry_changes", {}))
    return AutomationRecipe(
        name=name,
        triggers=frozenset({process}),
        registry_changes=registry,
        service_states=overrides.pop("service_states", _GAME_SERVICES),
        resource_allocations=overrides.pop(
            "resource_allocations", {GPU: 0.95, CPU: 0.85, RAM: 0.5, NET: 1.0}
        ),
        description=description,
        category="Gaming",
        required_agents=frozenset({"gaming"}),
        **overrides,
    )


def default_recipes() -> list[AutomationRecipe]:
    return [
        # ---- Games ----
        _game(
            "VALORANT",
            "valorant-win64-shipping.exe",
            "Maximum performance for Valorant, ultra low latency",
            registry_changes={TCP_NO_DELAY: 1},
        ),
        _game("CS2", "cs2.exe", "Optimized for Counter-Strike 2",
              registry_changes={TCP_NO_DELAY: 1}),
        _game("Apex Legends", "r5apex.exe", "Apex Legends optimization"),
        _game("Fortnite", "fortniteclient-win64-shipping.exe", "Fortnite optimization"),
        _game(
            "Warzone",
            "cod.exe",
            "Call of Duty Warzone optimization",
            resource_allocations={GPU: 0.95, CPU: 0.7, RAM: 0.8, IO: 0.85},
        ),
        # ---- Streaming ----
        AutomationRecipe(
            name="Streaming",
            triggers=frozenset({"obs64.exe"}),
            registry_changes={
                SYSTEM_RESPONSIVENESS: 10,
                TCP_WINDOW_SIZE: 64240,
                TCP_1323_OPTS: 3,
            },
            resource_allocations={GPU: 0.3, CPU: 0.3, NET: 0.8, RAM: 0.2},
            companion_apps=("Discord",),
            description="Stable encoding and upload for live streaming",
            category="Streaming",
            required_agents=frozenset({"streaming"}),
        ),
        # ---- Development ----
        AutomationRecipe(
            name="Development",
            triggers=frozenset({"code.exe"}),
            service_states={"DiagTrack": False, "WSearch": False},
            resource_allocations={CPU: 0.9, RAM: 0.85, IO: 0.8},
            description="Faster builds and a responsive editor",
            category="Development",
            required_agents=frozenset({"development"}),
        ),
        # ---- Media and content creation ----
        AutomationRecipe(
            name="Media",
            triggers=frozenset({"spotify.exe"}),
            registry_changes={SYSTEM_RESPONSIVENESS: 10},
            resource_allocations={CPU: 0.2, NET: 0.3},
            description="Glitch-free audio and video playback",
            category="Media",
            required_agents=frozenset({"media"}),
        ),
        AutomationRecipe(
            name="Video Editing",
            triggers=frozenset({"premiere.exe"}),
            registry_changes={LARGE_SYSTEM_CACHE: 1},
            resource_allocations={GPU: 0.95, RAM: 0.95, IO: 0.9, CPU: 0.8},
            description="Real-time preview and faster renders",
            category="ContentCreation",
            required_agents=frozenset({"content_creation"}),
        ),
        # ---- Compound ----
        AutomationRecipe(
            name="Gaming + Streaming",
            triggers=frozenset({"valorant-win64-shipping.exe", "obs64.exe"}),
            registry_changes={
                PRIORITY_SEPARATION: 0x26,
                SYSTEM_RESPONSIVENESS: 10,
                GAMES_GPU_PRIORITY: 8,
                TCP_WINDOW_SIZE: 64240,
            },
            service_states=_GAME_SERVICES,
            resource_allocations={GPU: 0.95, CPU: 0.6, NET: 0.85},
            description="Hold frame rate while encoding a live stream",
            category="Compound",
            required_agents=frozenset({"gaming", "streaming"}),
        ),
        AutomationRecipe(
            name="Development + Streaming",
            triggers=frozenset({"code.exe", "obs64.exe"}),
            resource_allocations={GPU: 0.6, CPU: 0.7, RAM: 0.8, NET: 0.8},
            description="Compile and stream at the same time",
            category="Compound",
            required_agents=frozenset({"development", "streaming"}),
        ),
        # ---- Baseline ----
        AutomationRecipe(
            name="Universal",
            triggers=frozenset(),
            service_states={"DiagTrack": False},
            description="Baseline tuning applied when nothing more specific runs",
            category="General",
        ),
    ]


def default_catalog() -> RecipeCatalog:
    return RecipeCatalog(default_recipes())
