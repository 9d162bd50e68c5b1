"""Recurring scenario triggers and the append-only schedule run log."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from scenably.errors import ScenarioNotFound, ScheduleNotFound
from scenably.models import (
    ExecutionResult,
    ExecutionStatus,
    ExecutionTrigger,
    Scenario,
    ScheduleRun,
    ScheduleTrigger,
    new_id,
    utc_now,
)

from .scheduling import due_instant, localize, validate_trigger

logger = logging.getLogger("scenably.supervisor.scheduler")


class Scheduler:
    """Dispatch due triggers to the execution engine, at most one run per scenario at a time."""

    def __init__(
        self,
        store,
        engine,
        *,
        timezone: str = "UTC",
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._engine = engine
        self.tz = ZoneInfo(timezone)
        self._clock = clock
        self._lock = asyncio.Lock()
        self._inflight: set[asyncio.Task] = set()

    def _now(self, now: Optional[datetime]) -> datetime:
        return localize(now or self._clock(), self.tz)

    async def save(self, trigger: ScheduleTrigger, now: Optional[datetime] = None) -> ScheduleTrigger:
        """Validate and upsert the trigger for its scenario."""
        validated = validate_trigger(trigger)
        await self._store.load_scenario(validated.scenario_id)
        stamp = self._now(now)
        existing = await self._store.load_trigger(validated.scenario_id)
        if existing is not None:
            validated = replace(validated, id=existing.id, created_at=existing.created_at, updated_at=stamp)
        else:
            validated = replace(validated, created_at=stamp, updated_at=stamp)
        saved = await self._store.upsert_trigger(validated)
        logger.info(
            "Saved %s trigger %s for scenario %s at %s",
            saved.frequency.value,
            saved.id,
            saved.scenario_id,
            saved.time,
        )
        return saved

    async def get(self, scenario_id: str) -> ScheduleTrigger:
        trigger = await self._store.load_trigger(scenario_id)
        if trigger is None:
            raise ScheduleNotFound(scenario_id)
        return trigger

    async def list_triggers(self) -> list[ScheduleTrigger]:
        return await self._store.list_triggers()

    async def toggle(self, scenario_id: str, enabled: bool, now: Optional[datetime] = None) -> ScheduleTrigger:
        trigger = await self.get(scenario_id)
        updated = await self._store.upsert_trigger(replace(trigger, enabled=enabled, updated_at=self._now(now)))
        logger.info("Trigger for scenario %s %s", scenario_id, "enabled" if enabled else "disabled")
        return updated

    async def delete(self, scenario_id: str) -> None:
        """Delete the trigger; its run history stays in the log."""
        if not await self._store.delete_trigger(scenario_id):
            raise ScheduleNotFound(scenario_id)
        logger.info("Deleted trigger for scenario %s", scenario_id)

    async def list_runs(self, scenario_id: str, limit: Optional[int] = None) -> list[ScheduleRun]:
        trigger = await self.get(scenario_id)
        return await self._store.list_runs(trigger.id, limit=limit)

    async def tick(self, now: Optional[datetime] = None) -> list[ScheduleRun]:
        """Dispatch every enabled trigger that is due at ``now``; returns the appended runs."""
        async with self._lock:
            current = self._now(now)
            appended: list[ScheduleRun] = []
            for trigger in await self._store.list_triggers(enabled_only=True):
                try:
                    run = await self._tick_trigger(trigger, current)
                except Exception as exc:
                    logger.error("Scheduler failed to process trigger %s: %s", trigger.id, exc)
                    continue
                if run is not None:
                    appended.append(run)
            return appended

    async def _tick_trigger(self, trigger: ScheduleTrigger, now: datetime) -> Optional[ScheduleRun]:
        latest = await self._store.latest_run(trigger.id)
        if latest is not None and latest.status == ExecutionStatus.RUNNING:
            logger.info("Skipping trigger %s: run %s still RUNNING", trigger.id, latest.id)
            return None

        anchor = latest.due_at if latest is not None else trigger.created_at
        due_at = due_instant(trigger, anchor, now, self.tz)
        if due_at is None:
            return None

        try:
            scenario = await self._store.load_scenario(trigger.scenario_id)
        except ScenarioNotFound:
            logger.warning("Trigger %s references missing scenario %s", trigger.id, trigger.scenario_id)
            return None

        result = await self._engine.begin(scenario, trigger=ExecutionTrigger.SCHEDULE)
        run = ScheduleRun(
            id=new_id(),
            schedule_id=trigger.id,
            scenario_id=scenario.id,
            execution_id=result.execution_id,
            due_at=due_at,
            status=ExecutionStatus.RUNNING,
            started_at=result.started_at,
        )
        await self._store.append_run(run)
        logger.info("Dispatched scenario %s for due instant %s (run %s)", scenario.id, due_at.isoformat(), run.id)

        task = asyncio.create_task(self._finish(scenario, result, run))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return run

    async def _finish(self, scenario: Scenario, result: ExecutionResult, run: ScheduleRun) -> None:
        try:
            completed = await self._engine.complete(scenario, result)
        except Exception as exc:
            logger.error("Scheduled execution %s crashed: %s", result.execution_id, exc)
            completed = await self._engine.abandon(result, exc)
        terminal = replace(
            run,
            status=completed.status,
            completed_at=completed.completed_at,
            error_message=completed.error_message,
        )
        try:
            await self._store.update_run(terminal)
        except Exception as exc:
            logger.error("Could not record outcome of schedule run %s: %s", run.id, exc)

    async def drain(self) -> None:
        """Wait for dispatched executions to finish."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def run_forever(self, interval_seconds: float, *, registry=None) -> None:
        """Periodic driver: tick the scheduler and reap stale recording sessions."""
        while True:
            try:
                await self.tick()
            except Exception as exc:
                logger.error("Scheduler tick error: %s", exc)
            if registry is not None:
                try:
                    registry.reap_stale()
                except Exception as exc:
                    logger.error("Session reaping error: %s", exc)
            await asyncio.sleep(interval_seconds)
