"""Wiring of store, recorder registry, execution engine and scheduler."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from fastapi import Request

from scenably.browser.execution_engine import ExecutionEngine
from scenably.browser.executor import BrowserExecutor
from scenably.recorder.process import PlaywrightCodegenLauncher
from scenably.recorder.registry import SessionRegistry

from .scheduler import Scheduler
from .store import ScenarioStore

logger = logging.getLogger("scenably.supervisor.services")


@dataclass
class Services:
    settings: dict[str, Any]
    store: ScenarioStore
    registry: SessionRegistry
    engine: ExecutionEngine
    scheduler: Scheduler
    executor: Any

    async def close(self) -> None:
        """Stop recorders, wait for executions, then release browsers."""
        await self.registry.shutdown()
        await self.scheduler.drain()
        await self.engine.drain()
        await self.executor.close()


def build_services(settings: dict[str, Any], *, launcher=None, executor=None) -> Services:
    store = ScenarioStore(Path(settings["db_path"]))
    launcher = launcher or PlaywrightCodegenLauncher(
        dialect=settings["recorder_dialect"],
        readiness_grace_seconds=settings["readiness_grace_seconds"],
    )
    executor = executor or BrowserExecutor(
        browser_name=settings["browser"],
        headless=settings["headless"],
        debug_slow_mo_ms=settings["debug_slow_mo_ms"],
        action_timeout_ms=settings["action_timeout_ms"],
        navigation_timeout_ms=settings["navigation_timeout_ms"],
    )
    registry = SessionRegistry(launcher, retention_seconds=settings["session_retention_seconds"])
    engine = ExecutionEngine(store, executor)
    scheduler = Scheduler(store, engine, timezone=settings["timezone"])
    logger.info("Services configured (db=%s, timezone=%s)", settings["db_path"], settings["timezone"])
    return Services(
        settings=settings,
        store=store,
        registry=registry,
        engine=engine,
        scheduler=scheduler,
        executor=executor,
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the app's service container."""
    return request.app.state.services
