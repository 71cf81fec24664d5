"""Tests for the periodic pass scheduler."""

import asyncio
import threading

import pytest

from infrastructure.scheduler import PeriodicPass, RankedScheduler


class TestRunPendingOnce:
    """Tests for synchronous single runs."""

    def test_runs_every_pass_in_order(self):
        calls = []
        scheduler = RankedScheduler(
            [
                PeriodicPass("first", 1.0, lambda: calls.append("first") or 1),
                PeriodicPass("second", 1.0, lambda: calls.append("second") or 2),
            ]
        )

        results = scheduler.run_pending_once()

        assert calls == ["first", "second"]
        assert results == {"first": 1, "second": 2}

    def test_failing_pass_does_not_stop_others(self):
        def broken():
            raise RuntimeError("db locked")

        scheduler = RankedScheduler([PeriodicPass("broken", 1.0, broken), PeriodicPass("ok", 1.0, lambda: "done")])

        results = scheduler.run_pending_once()

        assert isinstance(results["broken"], RuntimeError)
        assert results["ok"] == "done"
        assert scheduler.passes[0].failures == 1
        assert scheduler.passes[0].runs == 1


class TestAsyncLoops:
    """Tests for the asyncio loops."""

    @pytest.mark.asyncio
    async def test_start_runs_passes_until_stopped(self):
        ran = threading.Event()
        scheduler = RankedScheduler()
        scheduler.add_pass("tick", 0.01, ran.set)

        await scheduler.start()
        assert scheduler.is_running
        for _ in range(100):
            if ran.is_set():
                break
            await asyncio.sleep(0.01)
        await scheduler.stop()

        assert ran.is_set()
        assert not scheduler.is_running
        assert scheduler.passes[0].runs >= 1

    @pytest.mark.asyncio
    async def test_loop_survives_failures(self):
        attempts = []

        def flaky():
            attempts.append(1)
            raise ValueError("boom")

        scheduler = RankedScheduler([PeriodicPass("flaky", 0.01, flaky)])
        await scheduler.start()
        for _ in range(100):
            if len(attempts) >= 2:
                break
            await asyncio.sleep(0.01)
        await scheduler.stop()

        assert len(attempts) >= 2
        assert scheduler.passes[0].failures == len(attempts)

    @pytest.mark.asyncio
    async def test_add_pass_while_running_rejected(self):
        scheduler = RankedScheduler([PeriodicPass("idle", 10.0, lambda: None)])
        await scheduler.start()
        try:
            with pytest.raises(RuntimeError):
                scheduler.add_pass("late", 1.0, lambda: None)
        finally:
            await scheduler.stop()

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        scheduler = RankedScheduler()
        await scheduler.stop()
        assert not scheduler.is_running
