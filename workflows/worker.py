"""
Temporal Worker

Registers the pipeline workflow and every step activity on one task
queue and processes work until interrupted.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from concurrent.futures import ThreadPoolExecutor

from temporalio.client import Client
from temporalio.worker import Worker

from core.config import RuntimeConfig
from steps.activities import PipelineActivities

from workflows.client import connect
from workflows.pipeline import PipelineWorkflow


logger = logging.getLogger(__name__)


def build_worker(
    client: Client,
    queue: str,
    activities: PipelineActivities,
    executor: ThreadPoolExecutor,
    *,
    max_concurrent_activities: int = 10,
) -> Worker:
    """Create a worker for ``queue`` running the given step handlers."""
    return Worker(
        client,
        task_queue=queue,
        workflows=[PipelineWorkflow],
        activities=activities.activities(),
        activity_executor=executor,
        max_concurrent_activities=max_concurrent_activities,
    )


async def run_worker(config: RuntimeConfig) -> None:
    """
    Run a worker until SIGINT/SIGTERM.

    Raises:
        ConfigurationException: When Temporal settings are missing
    """
    temporal = config.require_temporal()
    logger.info(f"Temporal worker options: server={config.temporal} worker={config.worker}")

    client = await connect(temporal)
    activities = PipelineActivities(config.steps)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Not supported on this platform; KeyboardInterrupt still ends the process.
            pass

    max_workers = config.worker.max_concurrent_activities
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        worker = build_worker(
            client,
            temporal.queue,
            activities,
            executor,
            max_concurrent_activities=max_workers,
        )
        async with worker:
            logger.info(f"Worker polling task queue {temporal.queue}")
            await stop.wait()
            logger.info("Interrupt received, shutting down worker")
