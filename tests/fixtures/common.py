"""
Common test fixtures shared by all modules.

Provides:
- make_spec: PipelineSpec factory
- passing_results: One passing result per step kind
- ScriptedInvoker: A StepInvoker whose handles resolve to scripted
  values in a chosen completion order
"""

import asyncio
from typing import Any, Optional, Sequence

from pydantic import BaseModel

from core.schemas.pipeline import PipelineSpec
from core.schemas.steps import (
    BuildResult,
    CloneResult,
    DeployResult,
    FormatResult,
    GenerateResult,
    LintResult,
    ModTidyResult,
    StepKind,
    StepMetadata,
    TestResult,
)


WORKDIR = "/tmp/gopipe-test-workdir"


# =============================================================================
# Spec Factory
# =============================================================================

def make_spec(
    git_url: str = "https://github.com/example/service.git",
    test_flags: Optional[list[str]] = None,
    build_flags: Optional[list[str]] = None,
    generate_flags: Optional[list[str]] = None,
) -> PipelineSpec:
    """Create a PipelineSpec for testing."""
    return PipelineSpec(
        git_url=git_url,
        test_flags=test_flags if test_flags is not None else ["-json"],
        build_flags=build_flags if build_flags is not None else ["-v"],
        generate_flags=generate_flags if generate_flags is not None else [],
    )


def passing_results(workdir: str = WORKDIR) -> dict[StepKind, Any]:
    """One passing result for every step kind."""
    metadata = StepMetadata(workdir=workdir)
    return {
        StepKind.GIT_CLONE: CloneResult(metadata=metadata),
        StepKind.GO_TEST: TestResult(metadata=metadata),
        StepKind.GO_FMT: FormatResult(metadata=metadata),
        StepKind.GO_MOD_TIDY: ModTidyResult(metadata=metadata),
        StepKind.GO_BUILD: BuildResult(metadata=metadata),
        StepKind.GO_GENERATE: GenerateResult(metadata=metadata),
        StepKind.GOLANGCI_LINT: LintResult(),
        StepKind.GO_DEPLOY: DeployResult(success=True),
        StepKind.DELETE_WORKDIR: None,
    }


# =============================================================================
# Scripted Invoker
# =============================================================================

class ScriptedInvoker:
    """
    StepInvoker returning handles that resolve to scripted values.

    A scripted value that is an exception resolves the handle with that
    exception. ``completion_order`` controls which handles resolve first:
    a kind at position N resolves after N + 1 event-loop ticks, kinds not
    listed resolve after one tick.

    Every start and every resolution is appended to ``events`` as
    ``("start", kind)`` / ``("done", kind)``.
    """

    def __init__(
        self,
        overrides: Optional[dict[StepKind, Any]] = None,
        completion_order: Sequence[StepKind] = (),
    ) -> None:
        self.results = passing_results()
        self.results.update(overrides or {})
        self.completion_order = list(completion_order)
        self.events: list[tuple[str, StepKind]] = []
        self.params: dict[StepKind, list[BaseModel]] = {}
        self.result_types: dict[StepKind, Optional[type]] = {}
        self._tasks: list[asyncio.Task] = []

    def start(self, kind: StepKind, params: BaseModel, result_type: Optional[type] = None):
        self.events.append(("start", kind))
        self.params.setdefault(kind, []).append(params)
        self.result_types[kind] = result_type
        future = asyncio.get_running_loop().create_future()
        self._tasks.append(asyncio.ensure_future(self._resolve(kind, future)))
        return future

    async def _resolve(self, kind: StepKind, future: asyncio.Future) -> None:
        ticks = 1
        if kind in self.completion_order:
            ticks += self.completion_order.index(kind)
        for _ in range(ticks):
            await asyncio.sleep(0)

        self.events.append(("done", kind))
        value = self.results[kind]
        if isinstance(value, BaseException):
            future.set_exception(value)
        else:
            future.set_result(value)

    # -------------------------------------------------------------------------
    # Inspection helpers
    # -------------------------------------------------------------------------

    def started(self) -> list[StepKind]:
        return [kind for event, kind in self.events if event == "start"]

    def completed(self) -> list[StepKind]:
        return [kind for event, kind in self.events if event == "done"]

    def count(self, kind: StepKind) -> int:
        return self.started().count(kind)
