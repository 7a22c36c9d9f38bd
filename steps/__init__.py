"""
Step Handlers

External-command adapters for every pipeline step (git, go toolchain,
golangci-lint, simulated deploy, workdir removal).

Public API:
- PipelineActivities: Constructed set of step handlers / Temporal activities
- CommandResult, run_command: Subprocess wrapper used by the handlers
"""

from steps.activities import DEPLOY_STAGES, PipelineActivities
from steps.commands import CommandResult, CommandRunner, run_command

__all__ = [
    "PipelineActivities",
    "DEPLOY_STAGES",
    "CommandResult",
    "CommandRunner",
    "run_command",
]
