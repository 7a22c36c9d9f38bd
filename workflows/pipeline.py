"""
Temporal Pipeline Workflow

Binds the substrate-independent PipelineOrchestrator to Temporal:
- TemporalStepInvoker starts each step as an activity with the step
  policy's timeout and retry bounds
- TemporalMultiplexer joins handles with ``workflow.wait``, whose
  resolution order is reproduced on replay
- PipelineWorkflow runs the orchestrator and turns fatal pipeline
  errors into non-retryable workflow failures

Everything here runs inside the workflow sandbox, so project imports
are passed through.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional, Sequence

from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ApplicationError

with workflow.unsafe.imports_passed_through():
    from pydantic import BaseModel

    from core.schemas.errors import PipelineException
    from core.schemas.pipeline import WORKFLOW_ID_PREFIX, PipelineReport, PipelineSpec
    from core.schemas.steps import StepKind
    from orchestrator.invoker import DEFAULT_STEP_POLICY, StepPolicy
    from orchestrator.pipeline import PipelineOrchestrator, RunPhase


class TemporalStepInvoker:
    """Starts steps as Temporal activities."""

    def __init__(self, policy: StepPolicy = DEFAULT_STEP_POLICY) -> None:
        self._policy = policy
        self._retry_policy = RetryPolicy(
            initial_interval=policy.initial_interval,
            backoff_coefficient=policy.backoff_coefficient,
            maximum_attempts=policy.maximum_attempts,
        )

    def start(
        self,
        kind: StepKind,
        params: BaseModel,
        result_type: Optional[type] = None,
    ) -> "asyncio.Future[Any]":
        return workflow.start_activity(
            kind.value,
            params,
            start_to_close_timeout=self._policy.start_to_close_timeout,
            retry_policy=self._retry_policy,
            result_type=result_type,
        )


class TemporalMultiplexer:
    """Joins handles through Temporal's deterministic ``workflow.wait``."""

    async def wait_all(self, handles: Sequence["asyncio.Future[Any]"]) -> None:
        if handles:
            await workflow.wait(list(handles), return_when=asyncio.ALL_COMPLETED)


@workflow.defn(name=WORKFLOW_ID_PREFIX)
class PipelineWorkflow:
    """Durable pipeline run: clone, checks, gated deploy, cleanup."""

    def __init__(self) -> None:
        self._orchestrator: Optional[PipelineOrchestrator] = None

    @workflow.run
    async def run(self, spec: PipelineSpec) -> PipelineReport:
        self._orchestrator = PipelineOrchestrator(
            TemporalStepInvoker(),
            TemporalMultiplexer(),
            logger=workflow.logger,
        )
        try:
            return await self._orchestrator.run(spec, run_id=workflow.info().workflow_id)
        except PipelineException as e:
            # Any other exception would only fail the workflow task and be retried.
            raise ApplicationError(
                e.message,
                e.details,
                type=e.code,
                non_retryable=True,
            ) from e

    @workflow.query
    def phase(self) -> str:
        """Current phase of the run."""
        if self._orchestrator is None:
            return RunPhase.PENDING.value
        return self._orchestrator.phase.value
