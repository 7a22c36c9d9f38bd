"""
Schemas
File: errors.py

Purpose: Standard error taxonomy across the gopipe pipeline.
Defines a Pydantic model for structured error reporting and
Python exceptions for control flow.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Error Codes (Machine-Readable Constants)
# =============================================================================

class ErrorCodes:
    """Stable machine-readable error codes used across the pipeline."""

    # Input & configuration
    SPEC_VALIDATION_ERROR = "SPEC_VALIDATION_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

    # Step execution
    STEP_INFRA_ERROR = "STEP_INFRA_ERROR"
    STEP_COMMAND_ERROR = "STEP_COMMAND_ERROR"


# =============================================================================
# Pydantic Error Model (Structured Communication)
# =============================================================================

class PipelineError(BaseModel):
    """
    Structured form of a fatal pipeline error.

    Used for machine-readable CLI output; exceptions convert to it
    via ``PipelineException.to_error_model``.
    """

    model_config = ConfigDict(extra="forbid")

    code: str = Field(
        ...,
        description="Stable machine-readable error code",
        examples=[ErrorCodes.STEP_INFRA_ERROR],
    )
    message: str = Field(
        ...,
        description="Human-readable error message",
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional structured details about the error",
    )
    retryable: bool = Field(
        default=False,
        description="Whether the operation can be retried",
    )


# =============================================================================
# Python Exceptions (Control Flow)
# =============================================================================

class PipelineException(Exception):
    """
    Base exception for all gopipe errors.

    Carries structured error information and converts to a
    PipelineError model.
    """

    def __init__(
        self,
        message: str,
        code: str = "PIPELINE_ERROR",
        details: dict[str, Any] | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}
        self.retryable = retryable

    def to_error_model(self) -> PipelineError:
        """Convert this exception to a PipelineError model."""
        return PipelineError(
            code=self.code,
            message=self.message,
            details=self.details,
            retryable=self.retryable,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class SpecValidationException(PipelineException):
    """Raised when a PipelineSpec (or the file holding it) is invalid."""

    def __init__(
        self,
        message: str,
        field_path: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        full_details = details or {}
        if field_path:
            full_details["field_path"] = field_path
        super().__init__(
            message=message,
            code=ErrorCodes.SPEC_VALIDATION_ERROR,
            details=full_details,
            retryable=False,
        )


class ConfigurationException(PipelineException):
    """Raised when required runtime settings are missing or malformed."""

    def __init__(
        self,
        message: str,
        missing: list[str] | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if missing:
            details["missing"] = list(missing)
        super().__init__(
            message=message,
            code=ErrorCodes.CONFIGURATION_ERROR,
            details=details,
            retryable=False,
        )


class StepInfraException(PipelineException):
    """
    Raised when a step whose failure is fatal to the run (clone, deploy,
    cleanup) could not be executed at all.
    """

    def __init__(
        self,
        step: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        full_details = details or {}
        full_details["step"] = step
        super().__init__(
            message=f"{step} step failed: {message}",
            code=ErrorCodes.STEP_INFRA_ERROR,
            details=full_details,
            retryable=False,
        )
        self.step = step


class StepCommandException(PipelineException):
    """
    Raised inside a step handler when its external command cannot be run
    or its output cannot be evaluated. Retryable by the substrate.
    """

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        returncode: int | None = None,
        stderr: str | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if command:
            details["command"] = list(command)
        if returncode is not None:
            details["returncode"] = returncode
        if stderr:
            details["stderr"] = stderr
        super().__init__(
            message=message,
            code=ErrorCodes.STEP_COMMAND_ERROR,
            details=details,
            retryable=True,
        )


def describe_error(exc: BaseException, max_depth: int = 5) -> str:
    """
    Render an exception and its cause chain as one non-empty line.

    Substrate errors usually wrap the interesting message (an activity
    error wraps the application error raised by the step), so the chain
    is walked through ``__cause__``.
    """
    parts: list[str] = []
    current: BaseException | None = exc
    while current is not None and len(parts) < max_depth:
        text = str(current) or type(current).__name__
        if text not in parts:
            parts.append(text)
        current = current.__cause__
    return ": ".join(parts)
