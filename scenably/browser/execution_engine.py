"""Fail-fast replay of a scenario's ActionScript into a persisted ExecutionResult."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Callable, Optional

from scenably.errors import InfrastructureError
from scenably.failures import build_failure, classify_failure
from scenably.models import (
    ExecutionResult,
    ExecutionStatus,
    ExecutionTrigger,
    Scenario,
    new_id,
    utc_now,
)

from .actions import BrowserActions
from .command_router import CommandRouter

logger = logging.getLogger("scenably.browser.execution_engine")

ReplayOutcome = tuple[ExecutionStatus, Optional[str], Optional[dict[str, str]]]


class ExecutionEngine:
    """
    Run scenarios against isolated browser contexts and record their results.

    ``execute`` never raises because the scenario failed; action and
    infrastructure errors end up in the returned FAILED result.
    """

    def __init__(
        self,
        store,
        executor,
        *,
        router_factory: Optional[Callable[[Any], CommandRouter]] = None,
    ):
        self._store = store
        self._executor = executor
        self._router_factory = router_factory or self._default_router
        self._background: set[asyncio.Task] = set()

    def _default_router(self, page: Any) -> CommandRouter:
        return CommandRouter(
            BrowserActions(
                page,
                action_timeout_ms=self._executor.action_timeout_ms,
                navigation_timeout_ms=self._executor.navigation_timeout_ms,
            )
        )

    async def begin(
        self,
        scenario: Scenario,
        *,
        trigger: ExecutionTrigger = ExecutionTrigger.MANUAL,
    ) -> ExecutionResult:
        """Persist and return a RUNNING result so pollers can observe progress."""
        result = ExecutionResult(
            execution_id=new_id(),
            scenario_id=scenario.id,
            status=ExecutionStatus.RUNNING,
            started_at=utc_now(),
            trigger=trigger,
        )
        await self._store.create_execution(result)
        logger.info(
            "Execution %s started for scenario %s (trigger=%s, actions=%d)",
            result.execution_id,
            scenario.id,
            trigger.value,
            len(scenario.script),
        )
        return result

    async def complete(self, scenario: Scenario, result: ExecutionResult, *, debug: bool = False) -> ExecutionResult:
        """Replay the scenario for a begun result and persist its terminal state."""
        status, error_message, failure = await self._replay(scenario, debug=debug)
        completed = replace(
            result,
            status=status,
            completed_at=utc_now(),
            error_message=error_message,
            failure=failure,
        )
        await self._store.complete_execution(completed)
        logger.info("Execution %s finished status=%s", completed.execution_id, status.value)
        return completed

    async def abandon(self, result: ExecutionResult, exc: BaseException) -> ExecutionResult:
        """Mark an execution FAILED after its normal completion path raised.

        The write is best effort; the FAILED result is returned even when the
        store rejects it, and startup reconciliation catches what is left.
        """
        failed = replace(
            result,
            status=ExecutionStatus.FAILED,
            completed_at=utc_now(),
            error_message=f"Infrastructure error: {exc}",
        )
        try:
            await self._store.complete_execution(failed)
        except Exception as write_exc:
            logger.error("Could not record failure of execution %s: %s", result.execution_id, write_exc)
        return failed

    async def execute(self, scenario: Scenario, debug: bool = False) -> ExecutionResult:
        trigger = ExecutionTrigger.DEBUG if debug else ExecutionTrigger.MANUAL
        result = await self.begin(scenario, trigger=trigger)
        return await self.complete(scenario, result, debug=debug)

    async def submit(self, scenario: Scenario, debug: bool = False) -> ExecutionResult:
        """Begin an execution, finish it in the background and return the RUNNING result."""
        trigger = ExecutionTrigger.DEBUG if debug else ExecutionTrigger.MANUAL
        result = await self.begin(scenario, trigger=trigger)
        self.spawn(self._complete_logged(scenario, result, debug))
        return result

    def spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def drain(self) -> None:
        """Wait for every background execution to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def _complete_logged(self, scenario: Scenario, result: ExecutionResult, debug: bool) -> None:
        try:
            await self.complete(scenario, result, debug=debug)
        except Exception as exc:
            logger.error("Background execution %s failed to complete: %s", result.execution_id, exc)
            await self.abandon(result, exc)

    async def _replay(self, scenario: Scenario, *, debug: bool) -> ReplayOutcome:
        step_id = "context"
        try:
            async with self._executor.open_context(debug=debug) as page:
                router = self._router_factory(page)
                for index, action in enumerate(scenario.script, start=1):
                    step_id = str(index)
                    try:
                        await router.execute(action)
                    except Exception as exc:
                        return self._action_failed(scenario, index, action, exc)
        except InfrastructureError as exc:
            return self._infrastructure_failed(scenario, step_id, exc)
        except Exception as exc:
            logger.exception("Unexpected browser error in scenario %s", scenario.id)
            return self._infrastructure_failed(scenario, step_id, exc)
        return ExecutionStatus.SUCCESS, None, None

    def _action_failed(self, scenario: Scenario, index: int, action, exc: Exception) -> ReplayOutcome:
        failure = classify_failure(
            error=exc,
            step_id=str(index),
            operation=action.operation,
            selector=action.selector.describe() if action.selector is not None else "",
            url=action.url or scenario.target_url,
        )
        if failure["error_class"] == "infrastructure":
            message = f"Infrastructure error at step {index} ({action.describe()}): {exc}"
        else:
            message = f"Step {index} ({action.describe()}) failed: {exc}"
        logger.warning("Scenario %s aborted: %s", scenario.id, message)
        return ExecutionStatus.FAILED, message, failure

    def _infrastructure_failed(self, scenario: Scenario, step_id: str, exc: Exception) -> ReplayOutcome:
        message = f"Infrastructure error: {exc}"
        failure = build_failure(
            error_class="infrastructure",
            error_code="INFRA_BROWSER_UNAVAILABLE",
            step_id=step_id,
            url=scenario.target_url,
            message=str(exc),
        )
        logger.error("Scenario %s failed: %s", scenario.id, message)
        return ExecutionStatus.FAILED, message, failure
