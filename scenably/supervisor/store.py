"""SQLite-backed keyed store for scenarios, executions, triggers and run history."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from scenably.errors import ExecutionNotFound, ScenarioNotFound, ScheduleNotFound
from scenably.models import (
    ExecutionResult,
    ExecutionStatus,
    ExecutionTrigger,
    Frequency,
    Scenario,
    ScheduleRun,
    ScheduleTrigger,
    utc_now,
)
from scenably.recorder.script import ActionScript

from .database import get_db, init_db

logger = logging.getLogger("scenably.supervisor.store")

INTERRUPTED_MESSAGE = "Infrastructure error: service stopped before execution completed"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _scenario_from_row(row: Any) -> Scenario:
    return Scenario(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        target_url=row["target_url"],
        script=ActionScript.from_dict(json.loads(row["script"])),
        created_at=_parse(row["created_at"]),
        updated_at=_parse(row["updated_at"]),
    )


def _execution_from_row(row: Any) -> ExecutionResult:
    return ExecutionResult(
        execution_id=row["id"],
        scenario_id=row["scenario_id"],
        status=ExecutionStatus(row["status"]),
        trigger=ExecutionTrigger(row["trigger_kind"]),
        started_at=_parse(row["started_at"]),
        completed_at=_parse(row["completed_at"]),
        error_message=row["error_message"],
        failure=json.loads(row["failure"]) if row["failure"] else None,
    )


def _trigger_from_row(row: Any) -> ScheduleTrigger:
    return ScheduleTrigger(
        id=row["id"],
        scenario_id=row["scenario_id"],
        enabled=bool(row["enabled"]),
        frequency=Frequency(row["frequency"]),
        time=row["time"],
        day_of_week=row["day_of_week"],
        day_of_month=row["day_of_month"],
        created_at=_parse(row["created_at"]),
        updated_at=_parse(row["updated_at"]),
    )


def _run_from_row(row: Any) -> ScheduleRun:
    return ScheduleRun(
        id=row["id"],
        schedule_id=row["schedule_id"],
        scenario_id=row["scenario_id"],
        execution_id=row["execution_id"],
        status=ExecutionStatus(row["status"]),
        due_at=_parse(row["due_at"]),
        started_at=_parse(row["started_at"]),
        completed_at=_parse(row["completed_at"]),
        error_message=row["error_message"],
    )


class ScenarioStore:
    """Persistence collaborator; each call is a short single-row operation."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path

    async def init(self) -> None:
        await init_db(self.db_path)

    async def _fetchone(self, sql: str, params: tuple = ()) -> Any:
        row = None
        async for db in get_db(self.db_path):
            async with db.execute(sql, params) as cursor:
                row = await cursor.fetchone()
        return row

    async def _fetchall(self, sql: str, params: tuple = ()) -> list[Any]:
        rows: list[Any] = []
        async for db in get_db(self.db_path):
            async with db.execute(sql, params) as cursor:
                rows = list(await cursor.fetchall())
        return rows

    async def _write(self, sql: str, params: tuple = ()) -> int:
        rowcount = 0
        async for db in get_db(self.db_path):
            cursor = await db.execute(sql, params)
            rowcount = cursor.rowcount
            await db.commit()
        return rowcount

    # Scenarios

    async def load_scenario(self, scenario_id: str) -> Scenario:
        row = await self._fetchone("SELECT * FROM scenarios WHERE id = ?", (scenario_id,))
        if row is None:
            raise ScenarioNotFound(scenario_id)
        return _scenario_from_row(row)

    async def save_scenario(self, scenario: Scenario) -> Scenario:
        """Insert or overwrite a scenario; the stored script is replaced, never merged."""
        await self._write(
            """
            INSERT INTO scenarios (id, name, description, target_url, script, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                description = excluded.description,
                target_url = excluded.target_url,
                script = excluded.script,
                updated_at = excluded.updated_at
            """,
            (
                scenario.id,
                scenario.name,
                scenario.description,
                scenario.target_url,
                json.dumps(scenario.script.to_dict()),
                _iso(scenario.created_at),
                _iso(scenario.updated_at),
            ),
        )
        return await self.load_scenario(scenario.id)

    async def list_scenarios(self) -> list[Scenario]:
        rows = await self._fetchall("SELECT * FROM scenarios ORDER BY updated_at DESC, rowid DESC")
        return [_scenario_from_row(row) for row in rows]

    async def delete_scenario(self, scenario_id: str) -> bool:
        """Delete a scenario and its trigger; execution and run history are kept."""
        deleted = await self._write("DELETE FROM scenarios WHERE id = ?", (scenario_id,))
        if deleted:
            await self.delete_trigger(scenario_id)
        return deleted > 0

    # Executions

    async def create_execution(self, result: ExecutionResult) -> None:
        await self._write(
            """
            INSERT INTO executions (
                id, scenario_id, status, trigger_kind, started_at, completed_at, error_message, failure
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                result.execution_id,
                result.scenario_id,
                result.status.value,
                result.trigger.value,
                _iso(result.started_at),
                _iso(result.completed_at),
                result.error_message,
                json.dumps(result.failure) if result.failure else None,
            ),
        )

    async def complete_execution(self, result: ExecutionResult) -> bool:
        """Move a RUNNING execution to its terminal state; terminal rows are never rewritten."""
        updated = await self._write(
            """
            UPDATE executions
            SET status = ?, completed_at = ?, error_message = ?, failure = ?
            WHERE id = ? AND status = ?
            """,
            (
                result.status.value,
                _iso(result.completed_at or utc_now()),
                result.error_message,
                json.dumps(result.failure) if result.failure else None,
                result.execution_id,
                ExecutionStatus.RUNNING.value,
            ),
        )
        if not updated:
            logger.warning("Execution %s was not RUNNING; completion ignored", result.execution_id)
        return updated > 0

    async def load_execution(self, execution_id: str) -> ExecutionResult:
        row = await self._fetchone("SELECT * FROM executions WHERE id = ?", (execution_id,))
        if row is None:
            raise ExecutionNotFound(execution_id)
        return _execution_from_row(row)

    async def list_executions(self, scenario_id: str, limit: int = 50) -> list[ExecutionResult]:
        rows = await self._fetchall(
            "SELECT * FROM executions WHERE scenario_id = ? ORDER BY started_at DESC, rowid DESC LIMIT ?",
            (scenario_id, limit),
        )
        return [_execution_from_row(row) for row in rows]

    # Triggers

    async def load_trigger(self, scenario_id: str) -> Optional[ScheduleTrigger]:
        row = await self._fetchone("SELECT * FROM schedules WHERE scenario_id = ?", (scenario_id,))
        return _trigger_from_row(row) if row is not None else None

    async def upsert_trigger(self, trigger: ScheduleTrigger) -> ScheduleTrigger:
        """Insert or update the single trigger of a scenario, keeping its id and created_at."""
        await self._write(
            """
            INSERT INTO schedules (
                id, scenario_id, enabled, frequency, time, day_of_week, day_of_month, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(scenario_id) DO UPDATE SET
                enabled = excluded.enabled,
                frequency = excluded.frequency,
                time = excluded.time,
                day_of_week = excluded.day_of_week,
                day_of_month = excluded.day_of_month,
                updated_at = excluded.updated_at
            """,
            (
                trigger.id,
                trigger.scenario_id,
                1 if trigger.enabled else 0,
                trigger.frequency.value,
                trigger.time,
                trigger.day_of_week,
                trigger.day_of_month,
                _iso(trigger.created_at),
                _iso(trigger.updated_at),
            ),
        )
        stored = await self.load_trigger(trigger.scenario_id)
        if stored is None:
            # Deleted between the write and the read-back.
            raise ScheduleNotFound(trigger.scenario_id)
        return stored

    async def delete_trigger(self, scenario_id: str) -> bool:
        deleted = await self._write("DELETE FROM schedules WHERE scenario_id = ?", (scenario_id,))
        return deleted > 0

    async def list_triggers(self, enabled_only: bool = False) -> list[ScheduleTrigger]:
        sql = "SELECT * FROM schedules"
        if enabled_only:
            sql += " WHERE enabled = 1"
        rows = await self._fetchall(sql + " ORDER BY created_at, rowid")
        return [_trigger_from_row(row) for row in rows]

    # Schedule runs

    async def append_run(self, run: ScheduleRun) -> None:
        await self._write(
            """
            INSERT INTO schedule_runs (
                id, schedule_id, scenario_id, execution_id, status, due_at, started_at, completed_at, error_message
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                run.id,
                run.schedule_id,
                run.scenario_id,
                run.execution_id,
                run.status.value,
                _iso(run.due_at),
                _iso(run.started_at),
                _iso(run.completed_at),
                run.error_message,
            ),
        )

    async def update_run(self, run: ScheduleRun) -> bool:
        """Record the terminal status of a RUNNING run; terminal runs are immutable."""
        updated = await self._write(
            """
            UPDATE schedule_runs
            SET status = ?, completed_at = ?, error_message = ?
            WHERE id = ? AND status = ?
            """,
            (
                run.status.value,
                _iso(run.completed_at or utc_now()),
                run.error_message,
                run.id,
                ExecutionStatus.RUNNING.value,
            ),
        )
        if not updated:
            logger.warning("Schedule run %s was not RUNNING; update ignored", run.id)
        return updated > 0

    async def list_runs(self, schedule_id: str, limit: Optional[int] = None) -> list[ScheduleRun]:
        sql = "SELECT * FROM schedule_runs WHERE schedule_id = ? ORDER BY due_at DESC, started_at DESC, rowid DESC"
        params: tuple = (schedule_id,)
        if limit is not None:
            sql += " LIMIT ?"
            params = (schedule_id, limit)
        rows = await self._fetchall(sql, params)
        return [_run_from_row(row) for row in rows]

    async def latest_run(self, schedule_id: str) -> Optional[ScheduleRun]:
        runs = await self.list_runs(schedule_id, limit=1)
        return runs[0] if runs else None

    async def reconcile_interrupted(self, now: Optional[datetime] = None) -> tuple[int, int]:
        """Fail executions and runs left RUNNING by a previous process; returns both counts."""
        completed_at = _iso(now or utc_now())
        executions = await self._write(
            """
            UPDATE executions
            SET status = ?, completed_at = ?, error_message = ?
            WHERE status = ?
            """,
            (ExecutionStatus.FAILED.value, completed_at, INTERRUPTED_MESSAGE, ExecutionStatus.RUNNING.value),
        )
        runs = await self._write(
            """
            UPDATE schedule_runs
            SET status = ?, completed_at = ?, error_message = ?
            WHERE status = ?
            """,
            (ExecutionStatus.FAILED.value, completed_at, INTERRUPTED_MESSAGE, ExecutionStatus.RUNNING.value),
        )
        logger.info("Reconciled %d interrupted executions and %d interrupted runs", executions, runs)
        return executions, runs
