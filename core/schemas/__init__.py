"""
Schemas
File: __init__.py

Purpose: Export the public API for the schemas module.
This is the main entry point for other modules to import schema definitions.
"""

# Error models and exceptions
from .errors import (
    ConfigurationException,
    ErrorCodes,
    PipelineError,
    PipelineException,
    SpecValidationException,
    StepCommandException,
    StepInfraException,
    describe_error,
)

# Step contracts
from .steps import (
    BuildResult,
    CloneParams,
    CloneResult,
    DeployResult,
    FailureDetails,
    FileCheckResult,
    FlaggedStepParams,
    FormatResult,
    GenerateResult,
    LintResult,
    ModTidyResult,
    OutcomeStatus,
    StepKind,
    StepMetadata,
    StepOutcome,
    StepParams,
    StepResult,
    TestEvent,
    TestResult,
)

# Pipeline input/output
from .pipeline import (
    WORKFLOW_ID_PREFIX,
    PipelineFailure,
    PipelineReport,
    PipelineSpec,
    slugify,
    workflow_id_for,
)


__all__ = [
    # Errors
    "ErrorCodes",
    "PipelineError",
    "PipelineException",
    "SpecValidationException",
    "ConfigurationException",
    "StepInfraException",
    "StepCommandException",
    "describe_error",
    # Step contracts
    "StepKind",
    "StepMetadata",
    "StepOutcome",
    "OutcomeStatus",
    "FailureDetails",
    "StepParams",
    "FlaggedStepParams",
    "CloneParams",
    "CloneResult",
    "TestEvent",
    "TestResult",
    "FileCheckResult",
    "FormatResult",
    "ModTidyResult",
    "BuildResult",
    "GenerateResult",
    "LintResult",
    "DeployResult",
    "StepResult",
    # Pipeline
    "PipelineSpec",
    "PipelineFailure",
    "PipelineReport",
    "WORKFLOW_ID_PREFIX",
    "slugify",
    "workflow_id_for",
]
