"""
Schemas
File: steps.py

Purpose: Input/output contracts for every pipeline step.

Each step is a function of (shared metadata, step-specific flags) to a
typed result. Results reduce to an explicit two-case StepOutcome
(passed / failed with details) so nothing downstream has to inspect
the shape of a payload to decide whether a step failed.
"""

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# Details carried by a failed outcome: a list of names (tests, files,
# lint findings) or a single message.
FailureDetails = Union[str, list[str]]


def has_details(details: FailureDetails) -> bool:
    """True when details is a non-empty message or a non-empty list."""
    return len(details) > 0


class StepKind(str, Enum):
    """Step kinds; values double as the registered activity names."""
    GIT_CLONE = "GitClone"
    GO_TEST = "GoTest"
    GO_FMT = "GoFmt"
    GO_MOD_TIDY = "GoModTidy"
    GO_BUILD = "GoBuild"
    GO_GENERATE = "GoGenerate"
    GOLANGCI_LINT = "GolangCILint"
    GO_DEPLOY = "GoDeploy"
    DELETE_WORKDIR = "DeleteWorkdir"


class OutcomeStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"


class StepOutcome(BaseModel):
    """Business outcome of a single step."""

    model_config = ConfigDict(frozen=True)

    status: OutcomeStatus
    details: FailureDetails = Field(default_factory=list)

    @classmethod
    def passed(cls) -> "StepOutcome":
        return cls(status=OutcomeStatus.PASSED)

    @classmethod
    def failed(cls, details: FailureDetails) -> "StepOutcome":
        return cls(status=OutcomeStatus.FAILED, details=details)

    @property
    def is_failed(self) -> bool:
        return self.status == OutcomeStatus.FAILED

    @property
    def has_details(self) -> bool:
        return has_details(self.details)


# =============================================================================
# Shared metadata
# =============================================================================

class StepMetadata(BaseModel):
    """
    Metadata created by the clone step and shared, read-only, by every
    later step of the same run.
    """

    model_config = ConfigDict(frozen=True)

    workdir: str = Field(
        default="",
        description="Working directory holding the cloned repository",
    )


# =============================================================================
# Step parameters
# =============================================================================

class StepParams(BaseModel):
    """Parameters for steps that only need the shared metadata."""
    metadata: StepMetadata = Field(default_factory=StepMetadata)


class FlaggedStepParams(StepParams):
    """Parameters for steps that accept extra command-line flags."""
    flags: list[str] = Field(default_factory=list)


class CloneParams(StepParams):
    remote: str = Field(..., description="Repository URL to clone")
    run_id: str = Field(
        default="",
        description="Identifier of the run, used to name a fresh workdir",
    )


# =============================================================================
# Step results
# =============================================================================

class CloneResult(BaseModel):
    metadata: StepMetadata


class TestEvent(BaseModel):
    """One event of ``go test -json`` output."""

    # Not a pytest test class.
    __test__ = False

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    action: str = Field(default="", alias="Action")
    package: str = Field(default="", alias="Package")
    test: str = Field(default="", alias="Test")
    elapsed: float = Field(default=0.0, alias="Elapsed")

    @property
    def qualified_name(self) -> str:
        if self.package:
            return f"{self.package}.{self.test}"
        return self.test


class TestResult(BaseModel):
    __test__ = False

    metadata: StepMetadata = Field(default_factory=StepMetadata)
    failed_tests: list[TestEvent] = Field(default_factory=list)

    def outcome(self) -> StepOutcome:
        if not self.failed_tests:
            return StepOutcome.passed()
        return StepOutcome.failed([t.qualified_name for t in self.failed_tests])


class FileCheckResult(BaseModel):
    """Result of a step that reports offending files."""

    metadata: StepMetadata = Field(default_factory=StepMetadata)
    failed_files: list[str] = Field(default_factory=list)

    def outcome(self) -> StepOutcome:
        if not self.failed_files:
            return StepOutcome.passed()
        return StepOutcome.failed(list(self.failed_files))


class FormatResult(FileCheckResult):
    pass


class ModTidyResult(FileCheckResult):
    pass


class BuildResult(FileCheckResult):
    pass


class GenerateResult(FileCheckResult):
    pass


class LintResult(BaseModel):
    issues: list[str] = Field(default_factory=list)

    def outcome(self) -> StepOutcome:
        if not self.issues:
            return StepOutcome.passed()
        return StepOutcome.failed(list(self.issues))


class DeployResult(BaseModel):
    success: bool = True
    error: Optional[str] = None

    def outcome(self) -> StepOutcome:
        if self.error is not None:
            return StepOutcome.failed(self.error)
        if not self.success:
            return StepOutcome.failed("deployment reported failure")
        return StepOutcome.passed()


# Union of every result type that reduces to a StepOutcome.
StepResult = Union[
    TestResult,
    FormatResult,
    ModTidyResult,
    BuildResult,
    GenerateResult,
    LintResult,
    DeployResult,
]
