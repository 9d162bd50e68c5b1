"""Core entities shared by the recorder, execution engine and scheduler."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from scenably.contracts import EXECUTION_RESULT_SCHEMA_V1
from scenably.recorder.script import ActionScript


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class RecordingStatus(str, Enum):
    STARTING = "STARTING"
    RECORDING = "RECORDING"
    STOPPED = "STOPPED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


TERMINAL_RECORDING_STATUSES = frozenset(
    {RecordingStatus.STOPPED, RecordingStatus.COMPLETED, RecordingStatus.FAILED}
)


class ExecutionStatus(str, Enum):
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class ExecutionTrigger(str, Enum):
    MANUAL = "manual"
    DEBUG = "debug"
    SCHEDULE = "schedule"


class Frequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


@dataclass
class RecordingSession:
    """Externally visible state of one recording session.

    The recorder process handle is never stored here; it stays with the
    supervisor that owns the session.
    """

    session_id: str
    target_url: str
    status: RecordingStatus = RecordingStatus.STARTING
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    message: Optional[str] = None
    script: Optional[ActionScript] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_RECORDING_STATUSES

    def snapshot(self) -> "RecordingSession":
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "target_url": self.target_url,
            "status": self.status.value,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "message": self.message,
            "script": self.script.to_dict() if self.script is not None else None,
        }


@dataclass
class Scenario:
    """Persisted pairing of a target URL and its current ActionScript."""

    id: str
    name: str
    target_url: str
    script: ActionScript = field(default_factory=ActionScript)
    description: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "target_url": self.target_url,
            "script": self.script.to_dict(),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class ExecutionResult:
    """Outcome of one scenario execution; terminal once completed_at is set."""

    execution_id: str
    scenario_id: str
    status: ExecutionStatus = ExecutionStatus.RUNNING
    started_at: datetime = field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    trigger: ExecutionTrigger = ExecutionTrigger.MANUAL
    failure: Optional[dict[str, str]] = None

    @property
    def is_terminal(self) -> bool:
        return self.status != ExecutionStatus.RUNNING

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": EXECUTION_RESULT_SCHEMA_V1,
            "execution_id": self.execution_id,
            "scenario_id": self.scenario_id,
            "status": self.status.value,
            "trigger": self.trigger.value,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "error_message": self.error_message,
            "failure": self.failure,
        }


@dataclass
class ScheduleTrigger:
    """Recurring schedule definition; one per scenario."""

    scenario_id: str
    frequency: Frequency
    time: str
    enabled: bool = True
    day_of_week: Optional[str] = None
    day_of_month: Optional[int] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "scenario_id": self.scenario_id,
            "enabled": self.enabled,
            "frequency": self.frequency.value,
            "time": self.time,
            "day_of_week": self.day_of_week,
            "day_of_month": self.day_of_month,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class ScheduleRun:
    """Append-only record of one scheduled dispatch."""

    id: str
    schedule_id: str
    scenario_id: str
    execution_id: str
    due_at: datetime
    status: ExecutionStatus = ExecutionStatus.RUNNING
    started_at: datetime = field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "schedule_id": self.schedule_id,
            "scenario_id": self.scenario_id,
            "execution_id": self.execution_id,
            "status": self.status.value,
            "due_at": _iso(self.due_at),
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "error_message": self.error_message,
        }
