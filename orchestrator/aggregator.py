"""
Result Aggregation

Folds the resolved handles of the fan-out group into a PipelineReport and
decides whether deployment may proceed.

Both functions only read already-resolved handles; they never wait.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Sequence

from core.schemas.errors import describe_error
from core.schemas.pipeline import PipelineFailure, PipelineReport
from core.schemas.steps import StepKind


@dataclass(frozen=True)
class IssuedStep:
    """A started step together with its handle, in issue order."""
    kind: StepKind
    handle: "asyncio.Future[Any]"


def classify(issued: IssuedStep) -> PipelineFailure | None:
    """
    Classify one resolved handle.

    Returns:
        A PipelineFailure for an infra error or a failed outcome,
        None when the step passed
    """
    try:
        result = issued.handle.result()
    except Exception as e:
        return PipelineFailure(step=issued.kind.value, details=describe_error(e), infra=True)

    outcome = result.outcome()
    if outcome.is_failed:
        return PipelineFailure(step=issued.kind.value, details=outcome.details)
    return None


def aggregate(issued: Sequence[IssuedStep], report: PipelineReport | None = None) -> PipelineReport:
    """
    Record every failing step into a report, in issue order.

    Args:
        issued: Resolved steps in the order they were started
        report: Report to extend (a new one when omitted)
    """
    report = report if report is not None else PipelineReport()
    for step in issued:
        failure = classify(step)
        if failure is not None:
            report.add_failure(failure)
    return report


def should_deploy(report: PipelineReport) -> bool:
    """
    Deploy only when no recorded failure carries details.

    A failure whose details are an empty string or empty list stays in
    the report but does not block deployment.
    """
    return not report.blocking_failures
