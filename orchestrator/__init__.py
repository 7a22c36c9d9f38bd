"""
Pipeline Orchestration (Substrate-Independent Core)

Deterministic fan-out/fan-in orchestration of a CI pipeline run.

Key features:
- Fixed issue order for the independent checks
- Joins through an injected multiplexer instead of native concurrency
- Infra failures and business failures kept on separate channels
- Deploy gated on the aggregate outcome; workdir cleanup guaranteed
  once the clone succeeded

Public API:
- PipelineOrchestrator: Runs one pipeline
- RunPhase: Observable phase of a run
- FAN_OUT_STEPS: The fixed table of independent checks
- StepInvoker / Multiplexer: Protocols implemented by a substrate
- LocalStepInvoker / OrderedMultiplexer: In-process implementations
- StepPolicy: Timeout and retry bounds per step
- aggregate / should_deploy: Report building and deploy gating
"""

from orchestrator.aggregator import (
    IssuedStep,
    aggregate,
    classify,
    should_deploy,
)
from orchestrator.invoker import (
    DEFAULT_STEP_POLICY,
    LocalStepInvoker,
    Multiplexer,
    OrderedMultiplexer,
    StepInvoker,
    StepPolicy,
)
from orchestrator.pipeline import (
    FAN_OUT_STEPS,
    FanOutStep,
    PipelineOrchestrator,
    RunPhase,
)


__all__ = [
    # Orchestrator
    "PipelineOrchestrator",
    "RunPhase",
    "FAN_OUT_STEPS",
    "FanOutStep",
    # Invocation seams
    "StepInvoker",
    "Multiplexer",
    "StepPolicy",
    "DEFAULT_STEP_POLICY",
    "LocalStepInvoker",
    "OrderedMultiplexer",
    # Aggregation
    "IssuedStep",
    "classify",
    "aggregate",
    "should_deploy",
]
