"""
Unit tests for the debounce scheduler.
"""

import asyncio

import pytest

from formguard.business.scheduler import DebounceScheduler


class TestDebounceScheduler:
    """Tests for per-key debouncing and generation tokens."""

    @pytest.mark.asyncio
    async def test_rapid_requests_collapse_into_one_run(self):
        superseded = []
        fired = []
        scheduler = DebounceScheduler(delay_ms=10, on_superseded=superseded.append)

        async def callback(generation):
            fired.append(generation)

        for _ in range(3):
            scheduler.schedule('email', callback)
        await scheduler.wait_idle()

        assert fired == [3]
        assert superseded == ['email', 'email']

    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        fired = []
        scheduler = DebounceScheduler(delay_ms=5)

        async def callback(generation):
            fired.append(generation)

        scheduler.schedule('name', callback)
        scheduler.schedule('sku', callback)
        await scheduler.wait_idle()

        assert sorted(fired) == [1, 1]

    @pytest.mark.asyncio
    async def test_generation_tracking(self):
        scheduler = DebounceScheduler()

        first = scheduler.next_generation('price')
        second = scheduler.next_generation('price')

        assert scheduler.is_current('price', second) is True
        assert scheduler.is_current('price', first) is False
        assert scheduler.current_generation('unknown') == 0

    @pytest.mark.asyncio
    async def test_cancel_pending_timer(self):
        fired = []
        scheduler = DebounceScheduler(delay_ms=50)

        async def callback(generation):
            fired.append(generation)

        scheduler.schedule('name', callback)
        assert scheduler.is_pending('name') is True
        assert scheduler.pending_count == 1

        assert scheduler.cancel('name') is True
        assert scheduler.cancel('name') is False
        await scheduler.wait_idle()

        assert fired == []
        assert scheduler.is_pending('name') is False

    @pytest.mark.asyncio
    async def test_shutdown_cancels_runs_in_flight(self):
        started = asyncio.Event()
        finished = []
        scheduler = DebounceScheduler(delay_ms=0)

        async def callback(generation):
            started.set()
            await asyncio.sleep(10)
            finished.append(generation)

        scheduler.schedule('name', callback)
        await started.wait()
        await scheduler.shutdown()

        assert finished == []
        await scheduler.wait_idle()

    def test_schedule_requires_running_loop(self):
        scheduler = DebounceScheduler()

        async def callback(generation):
            return None

        with pytest.raises(RuntimeError):
            scheduler.schedule('name', callback)
