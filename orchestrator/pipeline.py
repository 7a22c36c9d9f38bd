"""
Pipeline Orchestration

Drives one pipeline run: clone, fan out the independent checks, gate
deployment on their aggregate outcome, then remove the workdir.

The orchestrator is a single coroutine. It never starts threads or
waits on handles in completion order; all concurrency is expressed as
outstanding handles from a StepInvoker, joined through a Multiplexer.
Between suspension points it performs no I/O and reads no clock, so
replaying the same recorded step results reproduces the same report.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel

from core.schemas.errors import StepInfraException, describe_error
from core.schemas.pipeline import PipelineFailure, PipelineReport, PipelineSpec
from core.schemas.steps import (
    BuildResult,
    CloneParams,
    CloneResult,
    DeployResult,
    FlaggedStepParams,
    FormatResult,
    GenerateResult,
    LintResult,
    ModTidyResult,
    StepKind,
    StepMetadata,
    StepParams,
    StepResult,
    TestResult,
)

from orchestrator.aggregator import IssuedStep, aggregate, should_deploy
from orchestrator.invoker import Multiplexer, StepInvoker


class RunPhase(str, Enum):
    """Phases of a run, in order."""
    PENDING = "pending"
    CLONING = "cloning"
    FAN_OUT = "fan_out"
    GATING = "gating"
    DEPLOYING = "deploying"
    CLEANING_UP = "cleaning_up"
    DONE = "done"
    FAILED = "failed"


# =============================================================================
# Fan-out table
# =============================================================================

@dataclass(frozen=True)
class FanOutStep:
    """One independent check: what to start and how to decode its result."""
    kind: StepKind
    result_type: type[StepResult]
    build_params: Callable[[PipelineSpec, StepMetadata], BaseModel]


def _plain(spec: PipelineSpec, metadata: StepMetadata) -> StepParams:
    return StepParams(metadata=metadata)


# Issue order. Reports list failures in exactly this order.
FAN_OUT_STEPS: tuple[FanOutStep, ...] = (
    FanOutStep(
        StepKind.GO_TEST, TestResult,
        lambda spec, md: FlaggedStepParams(metadata=md, flags=list(spec.test_flags)),
    ),
    FanOutStep(StepKind.GO_FMT, FormatResult, _plain),
    FanOutStep(StepKind.GO_MOD_TIDY, ModTidyResult, _plain),
    FanOutStep(
        StepKind.GO_BUILD, BuildResult,
        lambda spec, md: FlaggedStepParams(metadata=md, flags=list(spec.build_flags)),
    ),
    FanOutStep(
        StepKind.GO_GENERATE, GenerateResult,
        lambda spec, md: FlaggedStepParams(metadata=md, flags=list(spec.generate_flags)),
    ),
    FanOutStep(StepKind.GOLANGCI_LINT, LintResult, _plain),
)


# =============================================================================
# Orchestrator
# =============================================================================

class PipelineOrchestrator:
    """
    Runs Clone -> fan-out checks -> (Deploy) -> Cleanup.

    Failure semantics:
    - Business failures of the checks are recorded and never abort the run.
    - A check whose handle raises is recorded as an infra failure.
    - Clone, Deploy and Cleanup handles that raise are fatal and surface
      as StepInfraException.
    - Once Clone has produced a workdir, Cleanup is attempted on every
      exit path.
    """

    def __init__(
        self,
        invoker: StepInvoker,
        multiplexer: Multiplexer,
        *,
        logger: Optional[Any] = None,
    ) -> None:
        """
        Args:
            invoker: Starts steps and returns handles
            multiplexer: Joins the fan-out handles
            logger: Logger to use (the workflow passes a replay-aware one)
        """
        self._invoker = invoker
        self._multiplexer = multiplexer
        self._log = logger if logger is not None else logging.getLogger(__name__)
        self.phase = RunPhase.PENDING

    async def run(self, spec: PipelineSpec, *, run_id: str = "") -> PipelineReport:
        """
        Execute one pipeline run.

        Args:
            spec: Validated-or-not pipeline input
            run_id: Identifier of the run (names the workdir)

        Returns:
            PipelineReport with failures in issue order

        Raises:
            SpecValidationException: Before any step when ``spec`` is invalid
            StepInfraException: When Clone, Deploy or Cleanup cannot run
        """
        try:
            spec.ensure_valid()

            self.phase = RunPhase.CLONING
            metadata = await self._clone(spec, run_id)
        except Exception:
            self.phase = RunPhase.FAILED
            raise

        try:
            self.phase = RunPhase.FAN_OUT
            report = await self._fan_out(spec, metadata)

            self.phase = RunPhase.GATING
            if should_deploy(report):
                self.phase = RunPhase.DEPLOYING
                await self._deploy(metadata, report)
            else:
                self._log.info(
                    f"Skipping deploy, failing steps: {', '.join(f.step for f in report.blocking_failures)}"
                )
        except Exception:
            self.phase = RunPhase.FAILED
            await self._cleanup_after_failure(metadata)
            raise

        self.phase = RunPhase.CLEANING_UP
        try:
            await self._cleanup(metadata)
        except Exception:
            self.phase = RunPhase.FAILED
            raise

        self.phase = RunPhase.DONE
        self._log.info(f"Pipeline finished with {len(report.failures)} failure(s)")
        return report

    async def _await_fatal(self, kind: StepKind, handle: Any) -> Any:
        """Resolve a handle whose failure aborts the run."""
        try:
            return await handle
        except Exception as e:
            self._log.error(f"{kind.value} failed: {describe_error(e)}")
            raise StepInfraException(kind.value, describe_error(e)) from e

    async def _clone(self, spec: PipelineSpec, run_id: str) -> StepMetadata:
        self._log.info(f"Cloning {spec.git_url}")
        handle = self._invoker.start(
            StepKind.GIT_CLONE,
            CloneParams(remote=spec.git_url, run_id=run_id),
            CloneResult,
        )
        result: CloneResult = await self._await_fatal(StepKind.GIT_CLONE, handle)
        self._log.info(f"Cloned into {result.metadata.workdir}")
        return result.metadata

    async def _fan_out(self, spec: PipelineSpec, metadata: StepMetadata) -> PipelineReport:
        # Start everything before waiting on anything.
        issued = [
            IssuedStep(
                kind=step.kind,
                handle=self._invoker.start(
                    step.kind,
                    step.build_params(spec, metadata),
                    step.result_type,
                ),
            )
            for step in FAN_OUT_STEPS
        ]
        self._log.info(f"Started {len(issued)} checks: {', '.join(s.kind.value for s in issued)}")

        await self._multiplexer.wait_all([s.handle for s in issued])

        report = aggregate(issued)
        for failure in report.failures:
            kind = "infra error" if failure.infra else "failure"
            self._log.info(f"{failure.step} reported {kind}: {failure.details}")
        return report

    async def _deploy(self, metadata: StepMetadata, report: PipelineReport) -> None:
        self._log.info("All checks passed, deploying")
        report.deploy_attempted = True
        handle = self._invoker.start(
            StepKind.GO_DEPLOY,
            StepParams(metadata=metadata),
            DeployResult,
        )
        result: DeployResult = await self._await_fatal(StepKind.GO_DEPLOY, handle)
        outcome = result.outcome()
        if outcome.is_failed:
            self._log.warning(f"Deploy reported failure: {outcome.details}")
            report.add_failure(PipelineFailure(step=StepKind.GO_DEPLOY.value, details=outcome.details))

    async def _cleanup(self, metadata: StepMetadata) -> None:
        self._log.info(f"Removing workdir {metadata.workdir}")
        handle = self._invoker.start(
            StepKind.DELETE_WORKDIR,
            StepParams(metadata=metadata),
            None,
        )
        await self._await_fatal(StepKind.DELETE_WORKDIR, handle)

    async def _cleanup_after_failure(self, metadata: StepMetadata) -> None:
        """Best-effort cleanup while a fatal error is propagating."""
        try:
            await self._cleanup(metadata)
        except StepInfraException as e:
            self._log.warning(f"Workdir cleanup after fatal error failed: {e.message}")
