"""
CLI Report Output

Human-readable and JSON rendering of a finished (or failed) run.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from core.schemas.errors import PipelineException
from core.schemas.pipeline import PipelineReport, PipelineSpec, workflow_id_for


@dataclass
class RunSummary:
    """Summary of a pipeline run for CLI output."""
    workflow_id: str = ""
    git_url: str = ""
    mode: str = ""
    ok: bool = True
    deploy_attempted: bool = False
    failures: list[dict[str, Any]] = field(default_factory=list)
    error: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        if d["error"] is None:
            del d["error"]
        return d


def build_summary(spec: PipelineSpec, report: PipelineReport, mode: str) -> RunSummary:
    """Build a RunSummary from a finished run."""
    return RunSummary(
        workflow_id=workflow_id_for(spec),
        git_url=spec.git_url,
        mode=mode,
        ok=report.ok,
        deploy_attempted=report.deploy_attempted,
        failures=[f.model_dump() for f in report.failures],
    )


def error_summary(spec: Optional[PipelineSpec], error: Exception, mode: str) -> RunSummary:
    """Build a RunSummary for a run that ended with a fatal error."""
    if isinstance(error, PipelineException):
        payload = error.to_error_model().model_dump()
    else:
        payload = {"code": type(error).__name__, "message": str(error)}
    return RunSummary(
        workflow_id=workflow_id_for(spec) if spec is not None else "",
        git_url=spec.git_url if spec is not None else "",
        mode=mode,
        ok=False,
        error=payload,
    )


def print_summary_human(summary: RunSummary) -> None:
    """Print summary in human-readable format."""
    print(f"workflow_id: {summary.workflow_id}")
    print(f"git_url: {summary.git_url}")
    print(f"mode: {summary.mode}")
    print(f"ok: {str(summary.ok).lower()}")
    print(f"deploy_attempted: {str(summary.deploy_attempted).lower()}")

    if summary.error:
        print(f"\nerror: [{summary.error.get('code')}] {summary.error.get('message')}")

    if summary.failures:
        print(f"\nfailures ({len(summary.failures)}):")
        for failure in summary.failures:
            marker = " [infra]" if failure.get("infra") else ""
            details = failure.get("details")
            if isinstance(details, list):
                print(f"  - {failure['step']}{marker}:")
                for item in details[:20]:
                    print(f"      {item}")
                if len(details) > 20:
                    print(f"      ... {len(details) - 20} more")
            else:
                print(f"  - {failure['step']}{marker}: {details}")


def print_summary_json(summary: RunSummary) -> None:
    """Print summary as JSON."""
    print(json.dumps(summary.to_dict(), indent=2))


def print_summary(summary: RunSummary, output_json: bool) -> None:
    if output_json:
        print_summary_json(summary)
    else:
        print_summary_human(summary)
