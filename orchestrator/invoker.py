"""
Step Invocation

Purpose: The narrow seams between the orchestrator and whatever executes
steps.

Provides:
- StepPolicy: Timeout and retry bounds applied to every invocation
- StepInvoker: Protocol for starting a step and getting a handle back
- Multiplexer: Protocol for waiting on a fixed list of handles
- LocalStepInvoker / OrderedMultiplexer: In-process implementations used
  when no durable substrate is available (and in tests)

A handle is an ``asyncio.Future``. Resolving it either yields the step's
typed result or raises; raising is the infrastructure-failure channel and
is never used for business failures.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Mapping, Optional, Protocol, Sequence

from pydantic import BaseModel
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from core.schemas.errors import describe_error
from core.schemas.steps import StepKind


logger = logging.getLogger(__name__)


StepHandler = Callable[[Any], Any]


@dataclass(frozen=True)
class StepPolicy:
    """Timeout and retry bounds for a single step invocation."""
    start_to_close_timeout: timedelta = timedelta(seconds=10)
    maximum_attempts: int = 3
    initial_interval: timedelta = timedelta(seconds=1)
    backoff_coefficient: float = 2.0


DEFAULT_STEP_POLICY = StepPolicy()


class StepInvoker(Protocol):
    """Starts steps without blocking."""

    def start(
        self,
        kind: StepKind,
        params: BaseModel,
        result_type: Optional[type] = None,
    ) -> "asyncio.Future[Any]":
        """
        Start a step and return a handle to its eventual result.

        Args:
            kind: The step to run
            params: Step parameters
            result_type: Type the raw result is decoded into (None for
                steps without a result)
        """
        ...


class Multiplexer(Protocol):
    """Waits for a fixed list of handles in a replay-stable way."""

    async def wait_all(self, handles: Sequence["asyncio.Future[Any]"]) -> None:
        """
        Return once every handle has resolved.

        Must not raise on behalf of a handle; callers read each handle's
        result afterwards.
        """
        ...


class OrderedMultiplexer:
    """
    Polls a fixed-order list of handles one after another.

    Completion may happen in any order; this only ever waits on the
    first unresolved handle in list order, so the sequence of suspension
    points is the same on every run.
    """

    async def wait_all(self, handles: Sequence["asyncio.Future[Any]"]) -> None:
        for handle in handles:
            if not handle.done():
                await asyncio.wait([handle])


def _decode(raw: Any, result_type: Optional[type]) -> Any:
    if result_type is None or raw is None:
        return raw
    if isinstance(raw, result_type):
        return raw
    if issubclass(result_type, BaseModel):
        if isinstance(raw, BaseModel):
            raw = raw.model_dump()
        return result_type.model_validate(raw)
    return raw


class LocalStepInvoker:
    """
    Runs step handlers in-process.

    Each invocation runs its (blocking) handler on a worker thread,
    bounded by the policy's timeout, and is retried with exponential
    backoff up to ``maximum_attempts``. The last error is re-raised
    once attempts are exhausted.
    """

    def __init__(
        self,
        handlers: Mapping[StepKind, StepHandler],
        *,
        policy: StepPolicy = DEFAULT_STEP_POLICY,
    ) -> None:
        """
        Args:
            handlers: One handler per step kind
            policy: Timeout and retry bounds
        """
        self._handlers = dict(handlers)
        self._policy = policy

    @property
    def policy(self) -> StepPolicy:
        return self._policy

    def start(
        self,
        kind: StepKind,
        params: BaseModel,
        result_type: Optional[type] = None,
    ) -> "asyncio.Future[Any]":
        if kind not in self._handlers:
            raise KeyError(f"No handler registered for step {kind.value}")
        return asyncio.ensure_future(self._invoke(kind, params, result_type))

    async def _invoke(
        self,
        kind: StepKind,
        params: BaseModel,
        result_type: Optional[type],
    ) -> Any:
        handler = self._handlers[kind]
        timeout = self._policy.start_to_close_timeout.total_seconds()
        initial = self._policy.initial_interval.total_seconds()

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, self._policy.maximum_attempts)),
            wait=wait_exponential(
                multiplier=initial,
                exp_base=self._policy.backoff_coefficient,
                min=initial,
            ),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                number = attempt.retry_state.attempt_number
                if number > 1:
                    logger.info(f"Retrying {kind.value} (attempt {number})")
                try:
                    raw = await self._attempt(kind, handler, params, timeout)
                except Exception as e:
                    logger.warning(f"{kind.value} attempt {number} failed: {describe_error(e)}")
                    raise
        return _decode(raw, result_type)

    async def _attempt(
        self,
        kind: StepKind,
        handler: StepHandler,
        params: BaseModel,
        timeout: float,
    ) -> Any:
        """
        Run one attempt on a worker thread, bounded by ``timeout``.

        A thread cannot be cancelled, so a timed-out attempt is drained
        before the error is raised; attempts of one step never overlap in
        the shared workdir. Handlers bound their own commands with the
        same timeout, so draining ends shortly after the deadline.
        """
        work = asyncio.ensure_future(asyncio.to_thread(handler, params))
        done, _ = await asyncio.wait([work], timeout=timeout)
        if work in done:
            return work.result()

        logger.warning(f"{kind.value} exceeded {timeout:g}s, waiting for the attempt to stop")
        await asyncio.wait([work])
        if not work.cancelled() and work.exception() is not None:
            logger.info(f"Timed-out {kind.value} attempt ended with: {describe_error(work.exception())}")
        raise TimeoutError(f"{kind.value} timed out after {timeout:g}s")
