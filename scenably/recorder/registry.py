"""In-memory registry of recording sessions with per-URL exclusivity and reaping."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable
from uuid import uuid4

from scenably.errors import SessionNotFound
from scenably.models import RecordingSession, utc_now
from scenably.recorder.supervisor import SessionSupervisor, StopResult
from scenably.recorder.urls import normalize_target_url

logger = logging.getLogger("scenably.recorder.registry")

DEFAULT_RETENTION_SECONDS = 3600


def _new_session_id() -> str:
    return f"session-{uuid4().hex}"


class SessionRegistry:
    """Track live recording sessions; the only component that stops recorders."""

    def __init__(
        self,
        launcher,
        *,
        retention_seconds: float = DEFAULT_RETENTION_SECONDS,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = _new_session_id,
    ) -> None:
        self._launcher = launcher
        self.retention = timedelta(seconds=retention_seconds)
        self._clock = clock
        self._id_factory = id_factory
        self._supervisors: dict[str, SessionSupervisor] = {}
        self._active_by_url: dict[str, str] = {}
        self._lock = asyncio.Lock()

    def _require(self, session_id: str) -> SessionSupervisor:
        supervisor = self._supervisors.get(session_id)
        if supervisor is None:
            raise SessionNotFound(session_id)
        return supervisor

    def _release_url(self, supervisor: SessionSupervisor) -> None:
        url = supervisor.session.target_url
        if supervisor.session.is_terminal and self._active_by_url.get(url) == supervisor.session_id:
            del self._active_by_url[url]

    async def start(self, target_url: str) -> str:
        """Start recording ``target_url`` or return the live session already recording it."""
        url = normalize_target_url(target_url)
        async with self._lock:
            existing_id = self._active_by_url.get(url)
            existing = self._supervisors.get(existing_id) if existing_id else None
            if existing is not None and not existing.session.is_terminal:
                logger.info("Reusing live recording session %s for %s", existing_id, url)
                return existing.session_id
            supervisor = SessionSupervisor(self._id_factory(), url, self._launcher, created_at=self._clock())
            self._supervisors[supervisor.session_id] = supervisor
            self._active_by_url[url] = supervisor.session_id

        try:
            await supervisor.start()
        finally:
            self._release_url(supervisor)
        return supervisor.session_id

    async def stop(self, session_id: str, save_transcript: bool) -> StopResult:
        supervisor = self._require(session_id)
        result = await supervisor.stop(save_transcript)
        self._release_url(supervisor)
        return result

    def get_status(self, session_id: str) -> RecordingSession:
        return self._require(session_id).get_status()

    def mark_completed(self, session_id: str) -> RecordingSession:
        return self._require(session_id).mark_completed()

    def list_sessions(self) -> list[RecordingSession]:
        return [supervisor.get_status() for supervisor in self._supervisors.values()]

    def reap_stale(self, now: datetime | None = None) -> int:
        """Delete terminal sessions older than the retention window; returns the count."""
        current = now or self._clock()
        stale = [
            session_id
            for session_id, supervisor in self._supervisors.items()
            if supervisor.session.is_terminal and current - supervisor.session.created_at > self.retention
        ]
        for session_id in stale:
            supervisor = self._supervisors.pop(session_id)
            self._release_url(supervisor)
        if stale:
            logger.info("Reaped %d stale recording sessions", len(stale))
        return len(stale)

    async def shutdown(self) -> None:
        """Stop every live recorder without saving transcripts."""
        for supervisor in list(self._supervisors.values()):
            if supervisor.session.is_terminal:
                continue
            try:
                await supervisor.stop(save_transcript=False)
            except Exception as exc:
                logger.error("Failed to stop recording session %s on shutdown: %s", supervisor.session_id, exc)
            self._release_url(supervisor)
