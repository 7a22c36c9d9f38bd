"""
Schemas
File: pipeline.py

Purpose: Pipeline run input (PipelineSpec) and output (PipelineReport).
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import SpecValidationException
from .steps import FailureDetails, has_details


WORKFLOW_ID_PREFIX = "PipelineWorkflow"


class PipelineSpec(BaseModel):
    """
    Input of a pipeline run.

    Loaded from a YAML mapping with keys ``git_url``, ``test_flags``,
    ``build_flags`` and ``generate_flags``. Immutable for the run.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    git_url: str = Field(default="", description="Repository to clone")
    test_flags: list[str] = Field(default_factory=list)
    build_flags: list[str] = Field(default_factory=list)
    generate_flags: list[str] = Field(default_factory=list)

    @field_validator("test_flags", "build_flags", "generate_flags", mode="before")
    @classmethod
    def _blank_flags_as_empty(cls, value: Any) -> Any:
        # A key left blank in YAML parses as None.
        return [] if value is None else value

    def ensure_valid(self) -> None:
        """
        Check that a run can start from this input.

        Raises:
            SpecValidationException: If no run can start from it
        """
        if not self.git_url.strip():
            raise SpecValidationException("git_url is required", field_path="git_url")

    @classmethod
    def from_dict(cls, data: Any) -> "PipelineSpec":
        """Build and validate a spec from parsed input data."""
        if data is None:
            raise SpecValidationException("Pipeline input is empty")
        if not isinstance(data, dict):
            raise SpecValidationException(
                f"Pipeline input must be a mapping, got {type(data).__name__}"
            )
        try:
            spec = cls.model_validate(data)
        except PydanticValidationError as e:
            first = e.errors()[0]
            field_path = ".".join(str(p) for p in first.get("loc", ()))
            raise SpecValidationException(
                f"Invalid pipeline input: {first.get('msg', str(e))}",
                field_path=field_path or None,
                details={"errors": e.error_count()},
            ) from e
        spec.ensure_valid()
        return spec

    @classmethod
    def from_yaml(cls, path: str | Path) -> "PipelineSpec":
        """Load and validate a spec from a YAML file."""
        path = Path(path)
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise SpecValidationException(
                f"Failed to read input file {str(path)!r}: {e}",
                details={"path": str(path)},
            ) from e
        except yaml.YAMLError as e:
            raise SpecValidationException(
                f"Failed to parse input file {str(path)!r}: {e}",
                details={"path": str(path)},
            ) from e
        return cls.from_dict(data)


class PipelineFailure(BaseModel):
    """One step that failed, either with a business result or an infra error."""

    step: str = Field(..., description="Name of the failing step")
    details: FailureDetails = Field(default_factory=list)
    infra: bool = Field(
        default=False,
        description="True when the step could not be executed at all",
    )

    @property
    def blocks_deploy(self) -> bool:
        # Empty details are reported but never gate deployment.
        return has_details(self.details)


class PipelineReport(BaseModel):
    """
    Ordered failures of one run.

    Failures appear in the order the steps were issued, never in the
    order they completed.
    """

    failures: list[PipelineFailure] = Field(default_factory=list)
    deploy_attempted: bool = False

    def add_failure(self, failure: PipelineFailure) -> None:
        self.failures.append(failure)

    @property
    def blocking_failures(self) -> list[PipelineFailure]:
        return [f for f in self.failures if f.blocks_deploy]

    @property
    def ok(self) -> bool:
        return not self.failures

    def steps(self) -> list[str]:
        return [f.step for f in self.failures]


def slugify(value: str, max_length: int = 100) -> str:
    """Lowercase, URL/filesystem-safe slug of ``value``."""
    clean = re.sub(r"^[a-zA-Z][a-zA-Z0-9+.-]*://", "", value.strip())
    clean = re.sub(r"[^a-zA-Z0-9]+", "-", clean).strip("-").lower()
    return clean[:max_length].rstrip("-")


def workflow_id_for(spec: PipelineSpec) -> str:
    """Deterministic run identifier derived from the repository URL."""
    return f"{WORKFLOW_ID_PREFIX}-{slugify(spec.git_url)}"
