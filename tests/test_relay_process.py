"""
Tests for the relay poller process loop.
"""

import pytest

import bridge_relay.main as relay_main


class ScriptedCoordinator:
    """Returns queued cycle counts, then requests shutdown."""

    def __init__(self, counts):
        self.counts = list(counts)
        self.cycles = 0

    async def run_cycle(self) -> int:
        self.cycles += 1
        if len(self.counts) == 1:
            relay_main.shutdown_requested = True
        result = self.counts.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def sleeps(monkeypatch):
    delays: list[float] = []

    async def fake_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr(relay_main, "shutdown_requested", False)
    monkeypatch.setattr(relay_main.asyncio, "sleep", fake_sleep)
    return delays


class TestIdleDelay:
    """Tests for the idle backoff."""

    def test_grows_with_empty_cycles(self):
        assert relay_main.idle_delay(10.0, 0) == 10.0
        assert relay_main.idle_delay(10.0, 1) == 15.0
        assert relay_main.idle_delay(10.0, 2) == 22.5

    def test_capped(self):
        assert relay_main.idle_delay(10.0, 50) == relay_main.POLL_INTERVAL_MAX


class TestRunLoop:
    """Tests for the polling loop."""

    @pytest.mark.asyncio
    async def test_busy_then_idle(self, sleeps):
        coordinator = ScriptedCoordinator([3, 0])

        await relay_main.run_loop(coordinator, poll_interval=10.0)

        assert coordinator.cycles == 2
        assert sleeps == [relay_main.POLL_INTERVAL_BUSY, 15.0]

    @pytest.mark.asyncio
    async def test_cycle_error_does_not_stop_loop(self, sleeps):
        coordinator = ScriptedCoordinator([RuntimeError("boom"), 0])

        await relay_main.run_loop(coordinator, poll_interval=5.0)

        assert coordinator.cycles == 2
        assert sleeps[0] == 5.0

    @pytest.mark.asyncio
    async def test_stops_when_shutdown_requested(self, sleeps, monkeypatch):
        monkeypatch.setattr(relay_main, "shutdown_requested", True)
        coordinator = ScriptedCoordinator([1])

        await relay_main.run_loop(coordinator, poll_interval=5.0)

        assert coordinator.cycles == 0
