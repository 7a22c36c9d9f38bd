"""
Runtime Configuration

Central configuration for the worker, run submission and step execution.
All values come from the environment (optionally seeded from a .env file).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Optional

from dotenv import load_dotenv

from core.schemas.errors import ConfigurationException

load_dotenv()


@dataclass
class TemporalConfig:
    """Connection settings for the Temporal server."""
    host_port: str = ""
    namespace: str = ""
    queue: str = ""

    def missing(self) -> list[str]:
        """Names of the required environment variables that are unset."""
        names = []
        if not self.host_port:
            names.append("TEMPORAL_HOSTPORT")
        if not self.namespace:
            names.append("TEMPORAL_NAMESPACE")
        if not self.queue:
            names.append("TEMPORAL_QUEUE")
        return names


@dataclass
class WorkerConfig:
    """Settings for the long-lived worker process."""
    max_concurrent_activities: int = 10


@dataclass
class WorkflowConfig:
    """Settings for run submission."""
    input: Optional[str] = None  # Path to the PipelineSpec YAML file


@dataclass
class StepsConfig:
    """Settings for step execution (both Temporal and local mode)."""
    step_timeout_s: float = 10.0
    max_attempts: int = 3
    retry_initial_interval_s: float = 1.0
    workdir_root: Optional[str] = None  # None = system temp dir
    go_binary: str = "go"
    git_binary: str = "git"
    lint_binary: str = "golangci-lint"
    deploy_stage_delay_s: float = 2.0

    @property
    def step_timeout(self) -> timedelta:
        return timedelta(seconds=self.step_timeout_s)


@dataclass
class RuntimeConfig:
    """
    Complete runtime configuration for gopipe.

    Can be loaded from:
    - Environment variables
    - A dictionary (tests, programmatic construction)
    """
    temporal: TemporalConfig = field(default_factory=TemporalConfig)
    worker: WorkerConfig = field(default_factory=WorkerConfig)
    workflow: WorkflowConfig = field(default_factory=WorkflowConfig)
    steps: StepsConfig = field(default_factory=StepsConfig)
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @staticmethod
    def _get_env_overrides() -> dict[str, Any]:
        """
        Get configuration overrides from environment variables.

        Supported variables:
        - TEMPORAL_HOSTPORT, TEMPORAL_NAMESPACE, TEMPORAL_QUEUE
        - TEMPORAL_MAX_CONCURRENT_ACTIVITIES
        - WORKFLOW_INPUT: Path to the pipeline input file
        - GOPIPE_STEP_TIMEOUT, GOPIPE_STEP_MAX_ATTEMPTS, GOPIPE_STEP_RETRY_INTERVAL
        - GOPIPE_WORKDIR_ROOT
        - GOPIPE_GO_BINARY, GOPIPE_GIT_BINARY, GOPIPE_LINT_BINARY
        - GOPIPE_DEPLOY_STAGE_DELAY
        - GOPIPE_LOG_LEVEL, GOPIPE_LOG_FILE
        """
        overrides: dict[str, Any] = {}

        # Temporal connection
        if os.getenv("TEMPORAL_HOSTPORT"):
            overrides.setdefault("temporal", {})["host_port"] = os.getenv("TEMPORAL_HOSTPORT")
        if os.getenv("TEMPORAL_NAMESPACE"):
            overrides.setdefault("temporal", {})["namespace"] = os.getenv("TEMPORAL_NAMESPACE")
        if os.getenv("TEMPORAL_QUEUE"):
            overrides.setdefault("temporal", {})["queue"] = os.getenv("TEMPORAL_QUEUE")

        # Worker
        if os.getenv("TEMPORAL_MAX_CONCURRENT_ACTIVITIES"):
            overrides.setdefault("worker", {})["max_concurrent_activities"] = _env_int(
                "TEMPORAL_MAX_CONCURRENT_ACTIVITIES"
            )

        # Workflow input
        if os.getenv("WORKFLOW_INPUT"):
            overrides.setdefault("workflow", {})["input"] = os.getenv("WORKFLOW_INPUT")

        # Steps
        if os.getenv("GOPIPE_STEP_TIMEOUT"):
            overrides.setdefault("steps", {})["step_timeout_s"] = _env_float("GOPIPE_STEP_TIMEOUT")
        if os.getenv("GOPIPE_STEP_MAX_ATTEMPTS"):
            overrides.setdefault("steps", {})["max_attempts"] = _env_int("GOPIPE_STEP_MAX_ATTEMPTS")
        if os.getenv("GOPIPE_STEP_RETRY_INTERVAL"):
            overrides.setdefault("steps", {})["retry_initial_interval_s"] = _env_float(
                "GOPIPE_STEP_RETRY_INTERVAL"
            )
        if os.getenv("GOPIPE_WORKDIR_ROOT"):
            overrides.setdefault("steps", {})["workdir_root"] = os.getenv("GOPIPE_WORKDIR_ROOT")
        if os.getenv("GOPIPE_GO_BINARY"):
            overrides.setdefault("steps", {})["go_binary"] = os.getenv("GOPIPE_GO_BINARY")
        if os.getenv("GOPIPE_GIT_BINARY"):
            overrides.setdefault("steps", {})["git_binary"] = os.getenv("GOPIPE_GIT_BINARY")
        if os.getenv("GOPIPE_LINT_BINARY"):
            overrides.setdefault("steps", {})["lint_binary"] = os.getenv("GOPIPE_LINT_BINARY")
        if os.getenv("GOPIPE_DEPLOY_STAGE_DELAY"):
            overrides.setdefault("steps", {})["deploy_stage_delay_s"] = _env_float(
                "GOPIPE_DEPLOY_STAGE_DELAY"
            )

        # Logging
        if os.getenv("GOPIPE_LOG_LEVEL"):
            overrides["log_level"] = os.getenv("GOPIPE_LOG_LEVEL")
        if os.getenv("GOPIPE_LOG_FILE"):
            overrides["log_file"] = os.getenv("GOPIPE_LOG_FILE")

        return overrides

    @classmethod
    def from_env(cls) -> "RuntimeConfig":
        """
        Load configuration purely from environment variables.

        Uses defaults for any values not specified in env vars.
        """
        return cls.from_dict(cls._get_env_overrides())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RuntimeConfig":
        """Load configuration from a dictionary (supports partial data)."""
        temporal_data = data.get("temporal", {})
        worker_data = data.get("worker", {})
        workflow_data = data.get("workflow", {})
        steps_data = data.get("steps", {})

        try:
            return cls(
                temporal=TemporalConfig(**temporal_data),
                worker=WorkerConfig(**worker_data),
                workflow=WorkflowConfig(**workflow_data),
                steps=StepsConfig(**steps_data),
                log_level=data.get("log_level", "INFO"),
                log_file=data.get("log_file"),
            )
        except TypeError as e:
            raise ConfigurationException(f"Unknown configuration key: {e}") from e

    def require_temporal(self) -> TemporalConfig:
        """
        Return the Temporal settings, failing if any required one is unset.

        Raises:
            ConfigurationException: Naming every missing variable
        """
        missing = self.temporal.missing()
        if missing:
            raise ConfigurationException(
                f"Missing required environment variables: {', '.join(missing)}",
                missing=missing,
            )
        return self.temporal

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to a dictionary."""
        return {
            "temporal": {
                "host_port": self.temporal.host_port,
                "namespace": self.temporal.namespace,
                "queue": self.temporal.queue,
            },
            "worker": {
                "max_concurrent_activities": self.worker.max_concurrent_activities,
            },
            "workflow": {
                "input": self.workflow.input,
            },
            "steps": {
                "step_timeout_s": self.steps.step_timeout_s,
                "max_attempts": self.steps.max_attempts,
                "retry_initial_interval_s": self.steps.retry_initial_interval_s,
                "workdir_root": self.steps.workdir_root,
                "go_binary": self.steps.go_binary,
                "git_binary": self.steps.git_binary,
                "lint_binary": self.steps.lint_binary,
                "deploy_stage_delay_s": self.steps.deploy_stage_delay_s,
            },
            "log_level": self.log_level,
            "log_file": self.log_file,
        }


def _env_int(name: str) -> int:
    value = os.getenv(name, "")
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationException(f"{name} must be an integer, got {value!r}") from e


def _env_float(name: str) -> float:
    value = os.getenv(name, "")
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationException(f"{name} must be a number, got {value!r}") from e
