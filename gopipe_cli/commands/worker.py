"""
CLI Worker Command

Run a Temporal worker hosting the pipeline workflow and its steps.

Usage:
    gopipe worker
"""

from __future__ import annotations

import asyncio
import logging
import sys
from argparse import Namespace

from core.config import RuntimeConfig
from core.schemas.errors import ConfigurationException

from gopipe_cli.commands import EXIT_RUNTIME_ERROR, EXIT_SUCCESS


logger = logging.getLogger(__name__)


def worker_cmd(args: Namespace) -> int:
    """Execute the worker command; returns once the worker is interrupted."""
    from workflows.worker import run_worker

    config: RuntimeConfig = getattr(args, "runtime_config", None) or RuntimeConfig.from_env()
    if args.max_concurrent_activities is not None:
        config.worker.max_concurrent_activities = args.max_concurrent_activities

    try:
        asyncio.run(run_worker(config))
    except ConfigurationException as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    logger.info("Worker stopped")
    return EXIT_SUCCESS
