"""
Periodic engine passes on the asyncio event loop.

Each pass is a synchronous service call run in a worker thread, so SQLite
work never blocks the loop. A failing pass is logged and retried on its next
tick; it never stops the scheduler.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger("ranked_engine.scheduler")


@dataclass
class PeriodicPass:
    name: str
    interval_seconds: float
    run: Callable[[], Any]
    runs: int = 0
    failures: int = 0


class RankedScheduler:
    """
    Owns the periodic loops: matchmaking, queue sweep, deadline sweep,
    reminder sweep and dispute expiry.

    Usage:
        scheduler = RankedScheduler.from_container(container)
        await scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(self, passes: list[PeriodicPass] | None = None):
        self.passes: list[PeriodicPass] = list(passes or [])
        self._tasks: list[asyncio.Task] = []
        self._stopping: asyncio.Event | None = None

    @classmethod
    def from_container(cls, container) -> "RankedScheduler":
        config = container.config
        return cls(
            [
                PeriodicPass(
                    "deadline_sweep",
                    config.deadline_sweep_interval_seconds,
                    container.match_phase_service.sweep_deadlines,
                ),
                PeriodicPass(
                    "matchmaking",
                    config.matchmaking_interval_seconds,
                    container.matchmaking_service.run_matchmaking_pass,
                ),
                PeriodicPass(
                    "queue_sweep",
                    config.queue_sweep_interval_seconds,
                    container.queue_service.sweep_queue,
                ),
                PeriodicPass(
                    "reminders",
                    config.reminder_sweep_interval_seconds,
                    container.outcome_service.send_due_reminders,
                ),
                PeriodicPass(
                    "dispute_expiry",
                    config.dispute_sweep_interval_seconds,
                    container.dispute_service.expire_disputes,
                ),
            ]
        )

    def add_pass(self, name: str, interval_seconds: float, run: Callable[[], Any]) -> None:
        if self.is_running:
            raise RuntimeError("Cannot add a pass while the scheduler is running")
        self.passes.append(PeriodicPass(name, interval_seconds, run))

    @property
    def is_running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def start(self) -> None:
        """Start one loop task per pass. Calling start twice is a no-op."""
        if self.is_running:
            return
        self._stopping = asyncio.Event()
        self._tasks = [
            asyncio.create_task(self._loop(p), name=f"ranked:{p.name}") for p in self.passes
        ]
        logger.info(f"Scheduler started with passes: {', '.join(p.name for p in self.passes)}")

    async def stop(self) -> None:
        """Signal every loop to stop and wait for in-flight passes to finish."""
        if self._stopping is None:
            return
        self._stopping.set()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Scheduler stopped")

    def run_pending_once(self) -> dict[str, Any]:
        """
        Run every pass once, synchronously, in registration order.

        Returns:
            Pass name -> pass return value (or the exception it raised)
        """
        results: dict[str, Any] = {}
        for periodic in self.passes:
            results[periodic.name] = self._run_pass(periodic)
        return results

    async def _loop(self, periodic: PeriodicPass) -> None:
        while not self._stopping.is_set():
            await asyncio.to_thread(self._run_pass, periodic)
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=periodic.interval_seconds)
            except asyncio.TimeoutError:
                continue

    def _run_pass(self, periodic: PeriodicPass) -> Any:
        periodic.runs += 1
        try:
            return periodic.run()
        except Exception as exc:
            periodic.failures += 1
            logger.exception(f"Scheduled pass {periodic.name} failed")
            return exc
