"""
CLI Run Command

Execute a pipeline in-process, without a Temporal server. Steps run on
worker threads with the same timeout and retry bounds a worker applies.

Usage:
    gopipe run --input pipeline.yaml
    gopipe run --input pipeline.yaml --json
"""

from __future__ import annotations

import asyncio
import logging
import sys
from argparse import Namespace
from datetime import timedelta

from core.config import RuntimeConfig, StepsConfig
from core.schemas.errors import PipelineException, SpecValidationException
from core.schemas.pipeline import PipelineReport, PipelineSpec, workflow_id_for
from orchestrator import LocalStepInvoker, OrderedMultiplexer, PipelineOrchestrator, StepPolicy
from steps import PipelineActivities

from gopipe_cli.commands import EXIT_INVALID_INPUT, EXIT_RUNTIME_ERROR, EXIT_SUCCESS
from gopipe_cli.commands.report import build_summary, error_summary, print_summary
from gopipe_cli.commands.validate import load_spec


logger = logging.getLogger(__name__)


def policy_from_config(steps: StepsConfig) -> StepPolicy:
    """Step policy for local execution."""
    return StepPolicy(
        start_to_close_timeout=steps.step_timeout,
        maximum_attempts=steps.max_attempts,
        initial_interval=timedelta(seconds=steps.retry_initial_interval_s),
    )


def run_local(
    spec: PipelineSpec,
    config: RuntimeConfig,
    activities: PipelineActivities | None = None,
) -> PipelineReport:
    """
    Run one pipeline to completion in this process.

    Args:
        spec: Pipeline input
        config: Runtime configuration (step settings)
        activities: Step handlers (built from config when omitted)

    Raises:
        PipelineException: On invalid input or a fatal step error
    """
    activities = activities or PipelineActivities(config.steps)
    invoker = LocalStepInvoker(activities.handlers(), policy=policy_from_config(config.steps))
    orchestrator = PipelineOrchestrator(invoker, OrderedMultiplexer())
    return asyncio.run(orchestrator.run(spec, run_id=workflow_id_for(spec)))


def run_cmd(args: Namespace) -> int:
    """
    Execute the run command.

    Returns:
        Exit code (0=report produced, 1=fatal error, 2=invalid input)
    """
    config: RuntimeConfig = getattr(args, "runtime_config", None) or RuntimeConfig.from_env()

    try:
        spec = load_spec(args.input, config)
    except SpecValidationException as e:
        print(f"Invalid pipeline input: {e.message}", file=sys.stderr)
        return EXIT_INVALID_INPUT

    logger.info(f"Running pipeline locally for {spec.git_url}")
    try:
        report = run_local(spec, config)
    except SpecValidationException as e:
        print(f"Invalid pipeline input: {e.message}", file=sys.stderr)
        return EXIT_INVALID_INPUT
    except PipelineException as e:
        logger.error(f"Pipeline failed: {e.message}")
        print_summary(error_summary(spec, e, "local"), args.json)
        return EXIT_RUNTIME_ERROR

    print_summary(build_summary(spec, report, "local"), args.json)
    return EXIT_SUCCESS
