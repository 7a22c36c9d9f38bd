"""
Runtime Configuration Module

Provides configuration loading for gopipe.
"""

from .runtime import (
    RuntimeConfig,
    StepsConfig,
    TemporalConfig,
    WorkerConfig,
    WorkflowConfig,
)

__all__ = [
    "RuntimeConfig",
    "StepsConfig",
    "TemporalConfig",
    "WorkerConfig",
    "WorkflowConfig",
]
