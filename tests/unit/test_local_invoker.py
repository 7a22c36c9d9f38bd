"""
Local Invocation Tests

Tests LocalStepInvoker retry/timeout behaviour and the ordered
multiplexer used for in-process runs.
"""

import asyncio
import threading
import time
from datetime import timedelta

import pytest

from core.schemas.errors import StepCommandException
from core.schemas.steps import StepKind, StepMetadata, StepParams, TestResult
from orchestrator import LocalStepInvoker, OrderedMultiplexer, StepPolicy


FAST_POLICY = StepPolicy(
    start_to_close_timeout=timedelta(seconds=2),
    maximum_attempts=3,
    initial_interval=timedelta(0),
)


def _params():
    return StepParams(metadata=StepMetadata(workdir="/work"))


class FlakyHandler:
    """Fails a given number of times, then returns ``value``."""

    def __init__(self, failures, value=None):
        self.failures = failures
        self.value = value
        self.calls = 0

    def __call__(self, params):
        self.calls += 1
        if self.calls <= self.failures:
            raise StepCommandException(f"attempt {self.calls} failed")
        return self.value


class TestLocalStepInvoker:

    def test_returns_decoded_result(self):
        handler = FlakyHandler(0, {"failed_tests": [{"Action": "fail", "Test": "TestA"}]})
        invoker = LocalStepInvoker({StepKind.GO_TEST: handler}, policy=FAST_POLICY)

        async def scenario():
            return await invoker.start(StepKind.GO_TEST, _params(), TestResult)

        result = asyncio.run(scenario())
        assert isinstance(result, TestResult)
        assert result.outcome().details == ["TestA"]

    def test_retries_until_success(self):
        handler = FlakyHandler(2, TestResult())
        invoker = LocalStepInvoker({StepKind.GO_TEST: handler}, policy=FAST_POLICY)

        async def scenario():
            return await invoker.start(StepKind.GO_TEST, _params(), TestResult)

        result = asyncio.run(scenario())
        assert handler.calls == 3
        assert not result.outcome().is_failed

    def test_exhausted_attempts_reraise_last_error(self):
        handler = FlakyHandler(10)
        invoker = LocalStepInvoker({StepKind.GO_FMT: handler}, policy=FAST_POLICY)

        async def scenario():
            return await invoker.start(StepKind.GO_FMT, _params())

        with pytest.raises(StepCommandException, match="attempt 3 failed"):
            asyncio.run(scenario())
        assert handler.calls == 3

    def test_timeout_is_an_error(self):
        def slow(params):
            time.sleep(0.3)

        policy = StepPolicy(
            start_to_close_timeout=timedelta(milliseconds=50),
            maximum_attempts=1,
            initial_interval=timedelta(0),
        )
        invoker = LocalStepInvoker({StepKind.GO_BUILD: slow}, policy=policy)

        async def scenario():
            return await invoker.start(StepKind.GO_BUILD, _params())

        with pytest.raises(TimeoutError, match="GoBuild timed out"):
            asyncio.run(scenario())

    def test_timed_out_attempt_finishes_before_retry(self):
        """Attempts of one step never run at the same time."""
        lock = threading.Lock()
        running = [0]
        peak = [0]
        calls = [0]

        def slow(params):
            with lock:
                calls[0] += 1
                running[0] += 1
                peak[0] = max(peak[0], running[0])
            time.sleep(0.2)
            with lock:
                running[0] -= 1

        policy = StepPolicy(
            start_to_close_timeout=timedelta(milliseconds=50),
            maximum_attempts=3,
            initial_interval=timedelta(0),
        )
        invoker = LocalStepInvoker({StepKind.GO_MOD_TIDY: slow}, policy=policy)

        async def scenario():
            return await invoker.start(StepKind.GO_MOD_TIDY, _params())

        with pytest.raises(TimeoutError, match="GoModTidy timed out"):
            asyncio.run(scenario())
        assert calls[0] == 3
        assert peak[0] == 1
        assert running[0] == 0

    def test_none_result_passes_through(self):
        invoker = LocalStepInvoker({StepKind.DELETE_WORKDIR: FlakyHandler(0)}, policy=FAST_POLICY)

        async def scenario():
            return await invoker.start(StepKind.DELETE_WORKDIR, _params(), None)

        assert asyncio.run(scenario()) is None

    def test_unknown_step_rejected(self):
        invoker = LocalStepInvoker({}, policy=FAST_POLICY)

        async def scenario():
            invoker.start(StepKind.GO_DEPLOY, _params())

        with pytest.raises(KeyError):
            asyncio.run(scenario())

    def test_handlers_run_concurrently(self):
        def wait(params):
            time.sleep(0.2)

        handlers = {kind: wait for kind in (StepKind.GO_FMT, StepKind.GO_BUILD, StepKind.GO_GENERATE)}
        invoker = LocalStepInvoker(handlers, policy=FAST_POLICY)

        async def scenario():
            handles = [invoker.start(kind, _params()) for kind in handlers]
            await OrderedMultiplexer().wait_all(handles)
            return handles

        started = time.monotonic()
        handles = asyncio.run(scenario())
        assert all(h.done() for h in handles)
        assert time.monotonic() - started < 0.5


class TestOrderedMultiplexer:

    def test_waits_for_all_in_any_completion_order(self):
        async def scenario():
            loop = asyncio.get_running_loop()
            handles = [loop.create_future() for _ in range(3)]
            for delay, (handle, value) in zip((0.03, 0.02, 0.01), zip(handles, "abc")):
                loop.call_later(delay, handle.set_result, value)
            await OrderedMultiplexer().wait_all(handles)
            return handles

        handles = asyncio.run(scenario())
        assert [h.result() for h in handles] == ["a", "b", "c"]

    def test_does_not_raise_for_failed_handles(self):
        async def scenario():
            loop = asyncio.get_running_loop()
            ok, bad = loop.create_future(), loop.create_future()
            loop.call_soon(bad.set_exception, RuntimeError("boom"))
            loop.call_soon(ok.set_result, 1)
            await OrderedMultiplexer().wait_all([bad, ok])
            return ok, bad

        ok, bad = asyncio.run(scenario())
        assert ok.result() == 1
        with pytest.raises(RuntimeError):
            bad.result()

    def test_already_resolved_handles(self):
        async def scenario():
            handle = asyncio.get_running_loop().create_future()
            handle.set_result("done")
            await OrderedMultiplexer().wait_all([handle])
            return handle

        assert asyncio.run(scenario()).result() == "done"
