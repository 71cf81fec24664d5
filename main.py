"""
Entry point for the ranked matchmaking engine.

Builds the service container and runs the scheduler until interrupted.
The command layer talks to the services on container; this process only
drives the periodic passes and logs notifications it cannot deliver.
"""

import asyncio
import logging

import config

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    force=True,
)
logger = logging.getLogger("ranked_engine")

from infrastructure.scheduler import RankedScheduler  # noqa: E402
from infrastructure.service_container import ServiceConfig, ServiceContainer  # noqa: E402


def _log_notifications(container: ServiceContainer) -> int:
    drained = container.notification_service.drain()
    for n in drained:
        logger.info(f"[notify {n.recipient_id}] {n.kind} {n.payload}")
    return len(drained)


async def run() -> None:
    container = ServiceContainer(ServiceConfig())
    await container.initialize()

    scheduler = RankedScheduler.from_container(container)
    # Without a presentation layer attached, notifications are only logged
    scheduler.add_pass("notifications", 1.0, lambda: _log_notifications(container))
    await scheduler.start()
    logger.info(f"Ranked engine running on {container.config.db_path}")
    try:
        await asyncio.Event().wait()
    finally:
        await scheduler.stop()


def main():
    """Run the engine."""
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Ranked engine stopped by user (Ctrl+C)")
    except Exception as exc:
        logger.error(f"Ranked engine crashed: {exc}", exc_info=True)


if __name__ == "__main__":
    main()
