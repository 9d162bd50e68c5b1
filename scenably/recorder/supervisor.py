"""Session supervisor owning one recorder subprocess end-to-end."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from scenably.errors import InvalidSessionState, LaunchFailure
from scenably.models import RecordingSession, RecordingStatus, utc_now
from scenably.recorder.codegen import transform_transcript
from scenably.recorder.script import Action, ActionScript
from scenably.recorder.urls import normalize_target_url

logger = logging.getLogger("scenably.recorder.supervisor")

StopResult = tuple[Optional[ActionScript], str]


def headless_generate(target_url: str) -> ActionScript:
    """Return an editable single-navigation script without launching a recorder."""
    url = normalize_target_url(target_url)
    return ActionScript(actions=(Action.navigate(url),))


class SessionSupervisor:
    """Drive one recording session through STARTING -> RECORDING -> STOPPED/FAILED.

    The recorder handle returned by the launcher is held privately and is
    released exactly once, by ``stop``.
    """

    def __init__(
        self,
        session_id: str,
        target_url: str,
        launcher,
        *,
        created_at: datetime | None = None,
        transform: Callable[[str], ActionScript] = transform_transcript,
    ) -> None:
        created = created_at or utc_now()
        self.session = RecordingSession(
            session_id=session_id,
            target_url=target_url,
            status=RecordingStatus.STARTING,
            created_at=created,
            updated_at=created,
            message="Recorder is starting",
        )
        self._launcher = launcher
        self._transform = transform
        self._handle = None
        self._stop_lock = asyncio.Lock()

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def status(self) -> RecordingStatus:
        return self.session.status

    def get_status(self) -> RecordingSession:
        return self.session.snapshot()

    def _transition(self, status: RecordingStatus, message: str) -> None:
        previous = self.session.status
        self.session.status = status
        self.session.message = message
        self.session.updated_at = utc_now()
        logger.info(
            "Recording session %s: %s -> %s (%s)",
            self.session_id,
            previous.value,
            status.value,
            message,
        )

    def _last_result(self) -> StopResult:
        return self.session.script, self.session.message or ""

    async def start(self) -> str:
        """Launch the recorder; raises LaunchFailure after moving to FAILED."""
        if self.session.status != RecordingStatus.STARTING or self._handle is not None:
            return self.session_id
        try:
            self._handle = await self._launcher.launch(self.session.target_url)
        except LaunchFailure as exc:
            self._transition(RecordingStatus.FAILED, exc.message)
            raise
        except OSError as exc:
            self._transition(RecordingStatus.FAILED, f"failed to spawn recorder: {exc}")
            raise LaunchFailure(f"failed to spawn recorder: {exc}") from exc
        self._transition(RecordingStatus.RECORDING, "Recording started")
        return self.session_id

    async def stop(self, save_transcript: bool) -> StopResult:
        """Stop recording and optionally transform the transcript.

        Safe to call in any state: a session that has not finished starting is
        left alone, and a terminal session returns its last known result.
        """
        if self.session.status == RecordingStatus.STARTING:
            return None, "Recording session is still starting"
        async with self._stop_lock:
            if self.session.is_terminal:
                return self._last_result()

            handle, self._handle = self._handle, None
            try:
                transcript = await self._launcher.terminate(handle)
            except Exception as exc:
                logger.error("Recorder for session %s failed to stop cleanly: %s", self.session_id, exc)
                self._transition(RecordingStatus.FAILED, f"recorder failed: {exc}")
                return self._last_result()

            if not save_transcript:
                self._transition(RecordingStatus.STOPPED, "Recording stopped; transcript discarded")
                return self._last_result()

            if transcript.strip():
                try:
                    script = self._transform(transcript)
                except Exception as exc:
                    logger.error("Transcript for session %s could not be converted: %s", self.session_id, exc)
                    self._transition(RecordingStatus.FAILED, f"transcript conversion failed: {exc}")
                    return self._last_result()
                message = f"Recording stopped; captured {len(script)} actions"
            else:
                script = headless_generate(self.session.target_url)
                message = "Recording stopped; no transcript captured, using navigation template"
            self.session.script = script
            self._transition(RecordingStatus.STOPPED, message)
            return self._last_result()

    def mark_completed(self) -> RecordingSession:
        """Record that an external consumer persisted this session's scenario."""
        if self.session.status == RecordingStatus.COMPLETED:
            return self.get_status()
        if self.session.status != RecordingStatus.STOPPED:
            raise InvalidSessionState(
                f"session {self.session_id} is {self.session.status.value}; only STOPPED sessions can be completed"
            )
        self._transition(RecordingStatus.COMPLETED, "Scenario saved")
        return self.get_status()
