"""
Temporal Bindings

Runs the pipeline orchestrator on Temporal.

Public API:
- PipelineWorkflow: The workflow definition
- TemporalStepInvoker / TemporalMultiplexer: Orchestrator seams backed by Temporal

Client and worker helpers live in ``workflows.client`` and
``workflows.worker``.
"""

from workflows.pipeline import PipelineWorkflow, TemporalMultiplexer, TemporalStepInvoker

__all__ = [
    "PipelineWorkflow",
    "TemporalStepInvoker",
    "TemporalMultiplexer",
]
