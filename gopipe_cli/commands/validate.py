"""
CLI Validate Command

Load and validate a pipeline input file without running anything.

Usage:
    gopipe validate pipeline.yaml
"""

from __future__ import annotations

import json
import logging
import sys
from argparse import Namespace
from typing import Optional

from core.config import RuntimeConfig
from core.schemas.errors import SpecValidationException
from core.schemas.pipeline import PipelineSpec, workflow_id_for

from gopipe_cli.commands import EXIT_INVALID_INPUT, EXIT_SUCCESS


logger = logging.getLogger(__name__)


def resolve_input(explicit: Optional[str], config: RuntimeConfig) -> str:
    """
    Pick the input path: the command-line flag wins over WORKFLOW_INPUT.

    Raises:
        SpecValidationException: If neither is set
    """
    path = explicit or config.workflow.input
    if not path:
        raise SpecValidationException(
            "No pipeline input given (use --input or set WORKFLOW_INPUT)",
            field_path="input",
        )
    return path


def load_spec(explicit: Optional[str], config: RuntimeConfig) -> PipelineSpec:
    """Resolve, read and validate the pipeline input."""
    path = resolve_input(explicit, config)
    logger.info(f"Loading pipeline input from {path}")
    return PipelineSpec.from_yaml(path)


def validate_cmd(args: Namespace) -> int:
    """
    Execute the validate command.

    Returns:
        Exit code (0=valid, 2=invalid)
    """
    try:
        spec = PipelineSpec.from_yaml(args.path)
    except SpecValidationException as e:
        if args.json:
            print(json.dumps({"valid": False, "error": e.to_error_model().model_dump()}, indent=2))
        else:
            print(f"Invalid pipeline input: {e.message}", file=sys.stderr)
        return EXIT_INVALID_INPUT

    if args.json:
        print(json.dumps({
            "valid": True,
            "workflow_id": workflow_id_for(spec),
            "spec": spec.model_dump(),
        }, indent=2))
    else:
        print(f"valid: {args.path}")
        print(f"workflow_id: {workflow_id_for(spec)}")
    return EXIT_SUCCESS
