"""Tests for fail-fast scenario execution and result persistence."""

from __future__ import annotations

import unittest
from contextlib import asynccontextmanager

from scenably.browser.execution_engine import ExecutionEngine
from scenably.errors import InfrastructureError
from scenably.models import ExecutionStatus, ExecutionTrigger, Scenario
from scenably.recorder.script import Action, ActionScript, Selector


class _MemoryStore:
    """Execution persistence stub keeping created and completed results."""

    def __init__(self):
        self.created = []
        self.completed = []
        self.rejected_writes = 0

    async def create_execution(self, result) -> None:
        self.created.append(result)

    async def complete_execution(self, result) -> bool:
        if self.rejected_writes:
            self.rejected_writes -= 1
            raise OSError("disk I/O error")
        self.completed.append(result)
        return True


class _FakeExecutor:
    """Browser executor stub tracking context lifetimes."""

    def __init__(self, fail_open: bool = False):
        self.fail_open = fail_open
        self.opened = 0
        self.closed = 0
        self.debug_flags: list[bool] = []

    @asynccontextmanager
    async def open_context(self, *, debug: bool = False):
        self.debug_flags.append(debug)
        if self.fail_open:
            raise InfrastructureError("failed to launch chromium: executable missing")
        self.opened += 1
        try:
            yield object()
        finally:
            self.closed += 1


class _RouterStub:
    """Action router stub failing at a chosen 1-based step."""

    def __init__(self, failing_step: int | None = None, error: Exception | None = None):
        self.failing_step = failing_step
        self.error = error or RuntimeError("intentional failure")
        self.calls: list[Action] = []

    async def execute(self, action: Action) -> None:
        self.calls.append(action)
        if self.failing_step is not None and len(self.calls) == self.failing_step:
            raise self.error


def _scenario() -> Scenario:
    return Scenario(
        id="scn-1",
        name="checkout",
        target_url="https://example.com",
        script=ActionScript(
            actions=(
                Action(operation="click", selector=Selector("locator", "#a")),
                Action(operation="fill", selector=Selector("locator", "#b"), value="x"),
                Action(operation="click", selector=Selector("locator", "#c")),
            )
        ),
    )


class ExecutionEngineTests(unittest.IsolatedAsyncioTestCase):
    """Validate fail-fast replay, context teardown and result recording."""

    def _engine(self, router: _RouterStub, executor: _FakeExecutor | None = None):
        store = _MemoryStore()
        executor = executor or _FakeExecutor()
        engine = ExecutionEngine(store, executor, router_factory=lambda page: router)
        return engine, store, executor

    async def test_successful_run_marks_success_and_closes_context(self) -> None:
        router = _RouterStub()
        engine, store, executor = self._engine(router)

        result = await engine.execute(_scenario())

        self.assertEqual(result.status, ExecutionStatus.SUCCESS)
        self.assertIsNotNone(result.completed_at)
        self.assertIsNone(result.error_message)
        self.assertEqual(len(router.calls), 3)
        self.assertEqual((executor.opened, executor.closed), (1, 1))

    async def test_first_failure_aborts_remaining_actions(self) -> None:
        router = _RouterStub(failing_step=2, error=RuntimeError("Timeout 10000ms exceeded."))
        engine, store, executor = self._engine(router)

        result = await engine.execute(_scenario())

        self.assertEqual(result.status, ExecutionStatus.FAILED)
        self.assertEqual([action.selector.value for action in router.calls], ["#a", "#b"])
        self.assertIn("Step 2", result.error_message)
        self.assertEqual(result.failure["error_code"], "TIMEOUT_OPERATION")
        self.assertEqual(result.failure["step_id"], "2")
        self.assertEqual(executor.closed, 1)

    async def test_running_result_is_persisted_before_replay(self) -> None:
        engine, store, _ = self._engine(_RouterStub())

        result = await engine.execute(_scenario())

        self.assertEqual(store.created[0].status, ExecutionStatus.RUNNING)
        self.assertIsNone(store.created[0].completed_at)
        self.assertEqual(store.completed[0].execution_id, result.execution_id)

    async def test_context_failure_is_reported_as_infrastructure_error(self) -> None:
        router = _RouterStub()
        engine, store, executor = self._engine(router, _FakeExecutor(fail_open=True))

        result = await engine.execute(_scenario())

        self.assertEqual(result.status, ExecutionStatus.FAILED)
        self.assertTrue(result.error_message.startswith("Infrastructure error"))
        self.assertEqual(result.failure["error_class"], "infrastructure")
        self.assertEqual(router.calls, [])

    async def test_browser_closed_mid_run_is_infrastructure_failure(self) -> None:
        router = _RouterStub(failing_step=1, error=RuntimeError("Target page, context or browser has been closed"))
        engine, _, executor = self._engine(router)

        result = await engine.execute(_scenario())

        self.assertEqual(result.status, ExecutionStatus.FAILED)
        self.assertTrue(result.error_message.startswith("Infrastructure error"))
        self.assertEqual(result.failure["error_code"], "INFRA_BROWSER_CLOSED")
        self.assertEqual(executor.closed, 1)

    async def test_debug_execution_uses_debug_browser(self) -> None:
        engine, _, executor = self._engine(_RouterStub())

        result = await engine.execute(_scenario(), debug=True)

        self.assertEqual(result.trigger, ExecutionTrigger.DEBUG)
        self.assertEqual(executor.debug_flags, [True])

    async def test_submit_returns_running_and_completes_in_background(self) -> None:
        engine, store, _ = self._engine(_RouterStub())

        result = await engine.submit(_scenario())
        self.assertEqual(result.status, ExecutionStatus.RUNNING)

        await engine.drain()
        self.assertEqual(len(store.completed), 1)
        self.assertEqual(store.completed[0].status, ExecutionStatus.SUCCESS)

    async def test_submit_records_failure_when_completion_write_fails(self) -> None:
        engine, store, _ = self._engine(_RouterStub())
        store.rejected_writes = 1

        result = await engine.submit(_scenario())
        await engine.drain()

        self.assertEqual(len(store.completed), 1)
        self.assertEqual(store.completed[0].execution_id, result.execution_id)
        self.assertEqual(store.completed[0].status, ExecutionStatus.FAILED)
        self.assertIn("disk I/O error", store.completed[0].error_message)

    async def test_abandon_returns_failed_result_when_store_rejects_it(self) -> None:
        engine, store, _ = self._engine(_RouterStub())
        running = await engine.begin(_scenario())
        store.rejected_writes = 1

        failed = await engine.abandon(running, RuntimeError("browser vanished"))

        self.assertEqual(failed.status, ExecutionStatus.FAILED)
        self.assertEqual(failed.error_message, "Infrastructure error: browser vanished")
        self.assertEqual(store.completed, [])

    async def test_empty_script_succeeds(self) -> None:
        engine, _, _ = self._engine(_RouterStub())
        scenario = _scenario()
        scenario.script = ActionScript()

        result = await engine.execute(scenario)

        self.assertEqual(result.status, ExecutionStatus.SUCCESS)


if __name__ == "__main__":
    unittest.main()
