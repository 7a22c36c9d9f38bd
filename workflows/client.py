"""
Temporal Client Helpers

Connecting to the server and submitting pipeline runs.
"""

from __future__ import annotations

import logging

from temporalio.client import Client
from temporalio.contrib.pydantic import pydantic_data_converter

from core.config import TemporalConfig
from core.schemas.pipeline import PipelineReport, PipelineSpec, workflow_id_for

from workflows.pipeline import PipelineWorkflow


logger = logging.getLogger(__name__)


async def connect(config: TemporalConfig) -> Client:
    """Connect to Temporal with the pydantic-aware data converter."""
    logger.info(f"Connecting to Temporal at {config.host_port} (namespace={config.namespace})")
    return await Client.connect(
        config.host_port,
        namespace=config.namespace,
        data_converter=pydantic_data_converter,
    )


async def submit_pipeline(client: Client, spec: PipelineSpec, queue: str) -> PipelineReport:
    """
    Start one pipeline run and wait for its terminal state.

    The workflow id is derived from the repository URL, so resubmitting
    the same repository while a run is in flight is rejected by the server.

    Raises:
        temporalio.client.WorkflowFailureError: When the run fails fatally
    """
    spec.ensure_valid()
    workflow_id = workflow_id_for(spec)
    handle = await client.start_workflow(
        PipelineWorkflow.run,
        spec,
        id=workflow_id,
        task_queue=queue,
    )
    logger.info(f"Started PipelineWorkflow workflow_id={handle.id} run_id={handle.result_run_id}")
    return await handle.result()
