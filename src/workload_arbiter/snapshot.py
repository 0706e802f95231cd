"""
Snapshot -- immutable point-in-time system state, plus the adaptive poller.

The sensor layer (CPU/GPU readers, process and window enumerators) is an
external collaborator. This module only defines the value it must produce
and the timer that pulls it:

    poller = SnapshotPoller(collect=sensor.capture, on_snapshot=engine.process_snapshot)
    await poller.start()
    poller.set_focus(False)   # host window lost focus -> background interval

Interval policy: 2s while the host window has focus, 10s in the background.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

USER_ACTIVITY_THRESHOLD = 5.0
DEFAULT_ACTIVE_INTERVAL = 2.0
DEFAULT_BACKGROUND_INTERVAL = 10.0
MIN_INTERVAL = 0.1

_PERCENT_FIELDS = (
    "cpu_percent",
    "gpu_percent",
    "ram_percent",
    "disk_percent",
    "network_percent",
    "keyboard_activity",
    "mouse_activity",
)


def _normalize_processes(names: Any) -> tuple[str, ...]:
    """Lower-case and de-duplicate process names, keeping first-seen order."""
    seen: dict[str, None] = {}
    for name in names or ():
        cleaned = str(name).strip().lower()
        if cleaned:
            seen.setdefault(cleaned, None)
    return tuple(seen)


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Immutable snapshot of host activity, created once per collection tick."""

    timestamp: datetime = field(default_factory=datetime.now)
    cpu_percent: float = 0.0
    gpu_percent: float = 0.0
    ram_percent: float = 0.0
    disk_percent: float = 0.0
    network_percent: float = 0.0
    cpu_temp: float | None = None
    gpu_temp: float | None = None
    running_processes: tuple[str, ...] = ()
    active_window: str | None = None
    active_process: str | None = None
    keyboard_activity: float = 0.0
    mouse_activity: float = 0.0
    current_profile: str = ""
    active_optimizations: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        for name in _PERCENT_FIELDS:
            value = getattr(self, name)
            if not 0.0 <= value <= 100.0:
                raise ValueError(f"{name} must be within 0-100 (got {value})")
        object.__setattr__(
            self, "running_processes", _normalize_processes(self.running_processes)
        )
        object.__setattr__(
            self, "active_optimizations", tuple(self.active_optimizations)
        )
        if self.active_process:
            object.__setattr__(self, "active_process", self.active_process.strip().lower())

    @property
    def is_user_active(self) -> bool:
        return (
            self.keyboard_activity >= USER_ACTIVITY_THRESHOLD
            or self.mouse_activity >= USER_ACTIVITY_THRESHOLD
        )

    @property
    def process_set(self) -> frozenset[str]:
        return frozenset(self.running_processes)

    def utilization(self) -> dict[str, float]:
        """Utilization by resource name, for agents comparing against thresholds."""
        return {
            "cpu": self.cpu_percent,
            "gpu": self.gpu_percent,
            "ram": self.ram_percent,
            "storage_io": self.disk_percent,
            "network": self.network_percent,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Snapshot":
        """Build a snapshot from a sensor payload. Unknown keys are ignored."""
        timestamp = data.get("timestamp")
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        return cls(
            timestamp=timestamp or datetime.now(),
            cpu_percent=float(data.get("cpu_percent", 0.0)),
            gpu_percent=float(data.get("gpu_percent", 0.0)),
            ram_percent=float(data.get("ram_percent", 0.0)),
            disk_percent=float(data.get("disk_percent", 0.0)),
            network_percent=float(data.get("network_percent", 0.0)),
            cpu_temp=data.get("cpu_temp"),
            gpu_temp=data.get("gpu_temp"),
            running_processes=tuple(data.get("running_processes", ())),
            active_window=data.get("active_window"),
            active_process=data.get("active_process"),
            keyboard_activity=float(data.get("keyboard_activity", 0.0)),
            mouse_activity=float(data.get("mouse_activity", 0.0)),
            current_profile=data.get("current_profile", ""),
            active_optimizations=tuple(data.get("active_optimizations", ())),
        )


# =============================================================================
# ADAPTIVE POLLER
# =============================================================================


class SnapshotPoller:
    """
    Periodic snapshot collection with a focus-dependent interval.

    The focus signal comes from outside (the host window); the poller never
    computes it. A failed tick is logged and the loop keeps running.
    """

    def __init__(
        self,
        collect: Callable[[], Snapshot | Awaitable[Snapshot]],
        on_snapshot: Callable[[Snapshot], Awaitable[Any]],
        active_interval: float = DEFAULT_ACTIVE_INTERVAL,
        background_interval: float = DEFAULT_BACKGROUND_INTERVAL,
        logger: logging.Logger | None = None,
    ):
        self._collect = collect
        self._on_snapshot = on_snapshot
        self._active_interval = max(MIN_INTERVAL, active_interval)
        self._background_interval = max(MIN_INTERVAL, background_interval)
        self._log = logger or logging.getLogger(__name__)
        self._focused = True
        self._wake = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._ticks = 0

    @property
    def interval(self) -> float:
        return self._active_interval if self._focused else self._background_interval

    @property
    def has_focus(self) -> bool:
        return self._focused

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def ticks(self) -> int:
        return self._ticks

    def set_focus(self, focused: bool) -> None:
        """Receive the host focus signal. Wakes the loop so the new interval applies now."""
        if focused == self._focused:
            return
        self._focused = focused
        self._log.info(
            f"[SnapshotPoller] Focus {'gained' if focused else 'lost'}, "
            f"interval now {self.interval:.1f}s"
        )
        self._wake.set()

    async def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._poll_loop(), name="SnapshotPoller")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def tick(self) -> Snapshot | None:
        """Collect and dispatch one snapshot. Returns None if the tick failed."""
        try:
            snapshot = self._collect()
            if inspect.isawaitable(snapshot):
                snapshot = await snapshot
            await self._on_snapshot(snapshot)
            self._ticks += 1
            return snapshot
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._log.warning(f"[SnapshotPoller] Tick failed: {e}")
            return None

    async def _poll_loop(self) -> None:
        while True:
            # A focus change during the tick must still cut the next wait short
            self._wake.clear()
            await self.tick()
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
