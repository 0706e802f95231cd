"""Tests for Snapshot and the adaptive SnapshotPoller."""

import asyncio
from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from workload_arbiter.snapshot import Snapshot, SnapshotPoller


class TestSnapshot:
    def test_processes_are_lowercased_and_deduplicated(self):
        snap = Snapshot(running_processes=("CS2.exe", " cs2.exe", "", "Discord.exe"))
        assert snap.running_processes == ("cs2.exe", "discord.exe")
        assert snap.process_set == frozenset({"cs2.exe", "discord.exe"})

    @pytest.mark.parametrize("field", ["cpu_percent", "gpu_percent", "network_percent"])
    def test_rejects_out_of_range_percentages(self, field):
        with pytest.raises(ValueError):
            Snapshot(**{field: 101.0})
        with pytest.raises(ValueError):
            Snapshot(**{field: -1.0})

    def test_is_frozen(self):
        snap = Snapshot()
        with pytest.raises(AttributeError):
            snap.cpu_percent = 50.0

    def test_user_activity_threshold(self):
        assert Snapshot(keyboard_activity=5.0).is_user_active
        assert Snapshot(mouse_activity=12.0).is_user_active
        assert not Snapshot(keyboard_activity=4.9, mouse_activity=0.0).is_user_active

    def test_utilization_maps_resource_names(self):
        snap = Snapshot(cpu_percent=10, gpu_percent=20, ram_percent=30,
                        disk_percent=40, network_percent=50)
        assert snap.utilization() == {
            "cpu": 10, "gpu": 20, "ram": 30, "storage_io": 40, "network": 50,
        }

    def test_from_dict_parses_timestamp_and_ignores_unknown_keys(self):
        snap = Snapshot.from_dict({
            "timestamp": "2026-01-02T03:04:05",
            "cpu_percent": 42,
            "running_processes": ["OBS64.exe"],
            "unexpected": "ignored",
        })
        assert snap.timestamp == datetime(2026, 1, 2, 3, 4, 5)
        assert snap.cpu_percent == 42.0
        assert snap.running_processes == ("obs64.exe",)


class TestSnapshotPoller:
    def _poller(self, collect=None, on_snapshot=None, **kwargs):
        seen = []

        async def record(snapshot):
            seen.append(snapshot)

        poller = SnapshotPoller(
            collect or (lambda: Snapshot()),
            on_snapshot or record,
            **kwargs,
        )
        return poller, seen

    def test_interval_follows_focus(self):
        poller, _ = self._poller(active_interval=2.0, background_interval=10.0)
        assert poller.has_focus
        assert poller.interval == 2.0
        poller.set_focus(False)
        assert poller.interval == 10.0
        poller.set_focus(True)
        assert poller.interval == 2.0

    @pytest.mark.asyncio
    async def test_tick_dispatches_snapshot(self):
        poller, seen = self._poller()
        snapshot = await poller.tick()
        assert seen == [snapshot]
        assert poller.ticks == 1

    @pytest.mark.asyncio
    async def test_tick_accepts_async_collector(self):
        collect = AsyncMock(return_value=Snapshot(running_processes=("code.exe",)))
        poller, seen = self._poller(collect=collect)
        await poller.tick()
        collect.assert_awaited_once()
        assert seen[0].running_processes == ("code.exe",)

    @pytest.mark.asyncio
    async def test_failed_tick_returns_none_and_does_not_raise(self):
        def broken():
            raise RuntimeError("sensor offline")

        poller, seen = self._poller(collect=broken)
        assert await poller.tick() is None
        assert seen == []
        assert poller.ticks == 0

    @pytest.mark.asyncio
    async def test_loop_keeps_running_after_failures(self):
        calls = 0

        def flaky():
            nonlocal calls
            calls += 1
            if calls % 2:
                raise RuntimeError("intermittent")
            return Snapshot()

        poller, seen = self._poller(
            collect=flaky, active_interval=0.1, background_interval=0.1
        )
        await poller.start()
        assert poller.is_running
        await asyncio.sleep(0.45)
        await poller.stop()
        assert not poller.is_running
        assert calls >= 3
        assert len(seen) >= 1

    @pytest.mark.asyncio
    async def test_focus_change_wakes_the_loop(self):
        poller, seen = self._poller(active_interval=5.0, background_interval=5.0)
        await poller.start()
        await asyncio.sleep(0.05)
        assert len(seen) == 1
        poller.set_focus(False)
        await asyncio.sleep(0.05)
        await poller.stop()
        assert len(seen) == 2

    @pytest.mark.asyncio
    async def test_focus_change_during_a_tick_is_not_lost(self):
        seen = []

        async def record(snapshot):
            seen.append(snapshot)
            if len(seen) == 1:
                poller.set_focus(False)

        poller = SnapshotPoller(
            lambda: Snapshot(), record, active_interval=5.0, background_interval=5.0
        )
        await poller.start()
        await asyncio.sleep(0.1)
        await poller.stop()
        assert len(seen) == 2
        assert not poller.has_focus
