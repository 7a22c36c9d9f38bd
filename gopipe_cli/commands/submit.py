"""
CLI Pipeline Command

Submit a pipeline run to Temporal and wait for its report.

Usage:
    gopipe pipeline --input pipeline.yaml
    WORKFLOW_INPUT=pipeline.yaml gopipe pipeline --json
"""

from __future__ import annotations

import asyncio
import logging
import sys
from argparse import Namespace

from temporalio.client import WorkflowFailureError
from temporalio.exceptions import ApplicationError

from core.config import RuntimeConfig
from core.schemas.errors import ConfigurationException, SpecValidationException, describe_error
from core.schemas.pipeline import PipelineReport, PipelineSpec

from gopipe_cli.commands import EXIT_INVALID_INPUT, EXIT_RUNTIME_ERROR, EXIT_SUCCESS
from gopipe_cli.commands.report import RunSummary, build_summary, error_summary, print_summary
from gopipe_cli.commands.validate import load_spec


logger = logging.getLogger(__name__)


async def submit(spec: PipelineSpec, config: RuntimeConfig) -> PipelineReport:
    """Connect, execute the workflow and wait for the report."""
    from workflows.client import connect, submit_pipeline

    temporal = config.require_temporal()
    client = await connect(temporal)
    return await submit_pipeline(client, spec, temporal.queue)


def _failure_summary(spec: PipelineSpec, error: WorkflowFailureError) -> RunSummary:
    summary = error_summary(spec, error, "temporal")
    cause = error.cause
    if isinstance(cause, ApplicationError):
        summary.error = {
            "code": cause.type or "ApplicationError",
            "message": cause.message,
            "details": list(cause.details),
        }
    else:
        summary.error = {"code": type(error).__name__, "message": describe_error(error)}
    return summary


def pipeline_cmd(args: Namespace) -> int:
    """
    Execute the pipeline command.

    Returns:
        Exit code (0=report produced, 1=fatal error, 2=invalid input)
    """
    config: RuntimeConfig = getattr(args, "runtime_config", None) or RuntimeConfig.from_env()

    try:
        spec = load_spec(args.input, config)
    except SpecValidationException as e:
        print(f"Invalid pipeline input: {e.message}", file=sys.stderr)
        return EXIT_INVALID_INPUT

    try:
        report = asyncio.run(submit(spec, config))
    except ConfigurationException as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except WorkflowFailureError as e:
        logger.error(f"Workflow failed: {describe_error(e)}")
        print_summary(_failure_summary(spec, e), args.json)
        return EXIT_RUNTIME_ERROR

    print_summary(build_summary(spec, report, "temporal"), args.json)
    return EXIT_SUCCESS
