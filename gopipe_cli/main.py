"""
gopipe CLI Main Entry Point

Parses command-line arguments and dispatches to subcommands.

Usage:
    python -m gopipe_cli worker [--max-concurrent-activities N]
    python -m gopipe_cli pipeline [--input PATH] [--json]
    python -m gopipe_cli run [--input PATH] [--json]
    python -m gopipe_cli validate PATH [--json]
    python -m gopipe_cli config --show

Environment Variables:
    TEMPORAL_HOSTPORT           Temporal server address (worker, pipeline)
    TEMPORAL_NAMESPACE          Temporal namespace (worker, pipeline)
    TEMPORAL_QUEUE              Task queue (worker, pipeline)
    TEMPORAL_MAX_CONCURRENT_ACTIVITIES  Worker activity slots (default: 10)
    WORKFLOW_INPUT              Pipeline input YAML when --input is omitted
    GOPIPE_LOG_LEVEL            Log level (default: INFO)
    GOPIPE_LOG_FILE             Also write logs to this file
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import traceback
from typing import Sequence

from core.config import RuntimeConfig
from core.schemas.errors import ConfigurationException

from gopipe_cli import __version__
from gopipe_cli.commands import EXIT_RUNTIME_ERROR, EXIT_SUCCESS
from gopipe_cli.commands import run, submit, validate, worker


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Configure logging for the CLI."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="gopipe",
        description="gopipe - Durable CI pipeline for Go repositories.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (overrides GOPIPE_LOG_LEVEL)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Print tracebacks for unexpected errors",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- worker command ---
    worker_parser = subparsers.add_parser(
        "worker",
        help="Run a Temporal worker",
        description="Host the pipeline workflow and all step activities until interrupted.",
    )
    worker_parser.add_argument(
        "--max-concurrent-activities",
        type=int,
        default=None,
        help="Activity slots (overrides TEMPORAL_MAX_CONCURRENT_ACTIVITIES)",
    )
    worker_parser.set_defaults(func=worker.worker_cmd)

    # --- pipeline command ---
    pipeline_parser = subparsers.add_parser(
        "pipeline",
        help="Submit a pipeline run to Temporal and wait for the report",
        description="Execute PipelineWorkflow for the given input and print its report.",
    )
    pipeline_parser.add_argument(
        "--input", "-i",
        type=str,
        default=None,
        help="Pipeline input YAML (default: $WORKFLOW_INPUT)",
    )
    pipeline_parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Output machine-readable JSON report",
    )
    pipeline_parser.set_defaults(func=submit.pipeline_cmd)

    # --- run command ---
    run_parser = subparsers.add_parser(
        "run",
        help="Run a pipeline in-process",
        description="Execute the pipeline locally without a Temporal server.",
    )
    run_parser.add_argument(
        "--input", "-i",
        type=str,
        default=None,
        help="Pipeline input YAML (default: $WORKFLOW_INPUT)",
    )
    run_parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Output machine-readable JSON report",
    )
    run_parser.set_defaults(func=run.run_cmd)

    # --- validate command ---
    validate_parser = subparsers.add_parser(
        "validate",
        help="Validate a pipeline input file",
        description="Load and validate a pipeline input file without running it.",
    )
    validate_parser.add_argument(
        "path",
        type=str,
        help="Pipeline input YAML",
    )
    validate_parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Output machine-readable JSON result",
    )
    validate_parser.set_defaults(func=validate.validate_cmd)

    # --- config command ---
    config_parser = subparsers.add_parser(
        "config",
        help="Show resolved configuration",
        description="Display the configuration resolved from the environment.",
    )
    config_parser.add_argument(
        "--show",
        action="store_true",
        default=False,
        help="Show current configuration",
    )
    config_parser.set_defaults(func=config_cmd)

    return parser


def config_cmd(args: argparse.Namespace) -> int:
    """Handle config command."""
    if args.show:
        config: RuntimeConfig = args.runtime_config
        print(json.dumps(config.to_dict(), indent=2))
        return EXIT_SUCCESS

    # Default: show help
    print("Usage: gopipe config --show")
    print("  --show  Show current configuration")
    return EXIT_SUCCESS


def main(argv: Sequence[str] | None = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0=success, 1=error, 2=invalid input)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_RUNTIME_ERROR

    # Load configuration
    try:
        config = RuntimeConfig.from_env()
    except ConfigurationException as e:
        print(f"Error loading configuration: {e.message}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    # Setup logging
    log_level = args.log_level or config.log_level
    setup_logging(level=log_level, log_file=config.log_file)

    # Attach config to args for commands to use
    args.runtime_config = config

    try:
        return args.func(args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except Exception as e:
        if args.debug:
            traceback.print_exc()
        else:
            print(f"Error: {e}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR


if __name__ == "__main__":
    sys.exit(main())
