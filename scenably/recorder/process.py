"""Playwright codegen subprocess launcher used by recording sessions."""

from __future__ import annotations

import asyncio
import logging
import shutil
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path

from scenably.errors import InfrastructureError, LaunchFailure

logger = logging.getLogger("scenably.recorder.process")

CODEGEN_TARGETS = {
    "python": ("python-async", "recording.py"),
    "javascript": ("javascript", "recording.js"),
}
STDERR_TAIL_CHARS = 2_000


@dataclass
class RecorderHandle:
    """Opaque handle for one running codegen process."""

    target_url: str
    process: asyncio.subprocess.Process
    workdir: Path
    output_path: Path
    log_path: Path

    @property
    def pid(self) -> int:
        return self.process.pid


class PlaywrightCodegenLauncher:
    """Spawn, supervise and terminate ``playwright codegen`` recorder processes."""

    def __init__(
        self,
        *,
        dialect: str = "python",
        readiness_grace_seconds: float = 1.0,
        terminate_timeout_seconds: float = 5.0,
        read_attempts: int = 10,
        read_interval_seconds: float = 0.5,
        python_exec: str = sys.executable,
    ) -> None:
        if dialect not in CODEGEN_TARGETS:
            raise ValueError(f"unsupported recorder dialect: {dialect}")
        self.dialect = dialect
        self.readiness_grace_seconds = readiness_grace_seconds
        self.terminate_timeout_seconds = terminate_timeout_seconds
        self.read_attempts = read_attempts
        self.read_interval_seconds = read_interval_seconds
        self.python_exec = python_exec

    def build_command(self, url: str, output_path: Path) -> list[str]:
        target, _ = CODEGEN_TARGETS[self.dialect]
        return [
            self.python_exec,
            "-m",
            "playwright",
            "codegen",
            "--target",
            target,
            "--output",
            str(output_path),
            url,
        ]

    async def launch(self, url: str) -> RecorderHandle:
        """Start codegen against ``url`` and return once it has confirmed readiness."""
        _, filename = CODEGEN_TARGETS[self.dialect]
        workdir = Path(tempfile.mkdtemp(prefix="scenably-recording-"))
        output_path = workdir / filename
        log_path = workdir / "codegen.log"
        command = self.build_command(url, output_path)
        logger.info("Launching recorder for %s", url)

        try:
            with log_path.open("wb") as log_file:
                process = await asyncio.create_subprocess_exec(
                    *command,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=log_file,
                )
        except OSError as exc:
            shutil.rmtree(workdir, ignore_errors=True)
            raise LaunchFailure(f"failed to spawn recorder: {exc}") from exc

        handle = RecorderHandle(
            target_url=url,
            process=process,
            workdir=workdir,
            output_path=output_path,
            log_path=log_path,
        )

        try:
            await asyncio.wait_for(process.wait(), timeout=self.readiness_grace_seconds)
        except asyncio.TimeoutError:
            logger.info("Recorder ready pid=%s url=%s", process.pid, url)
            return handle

        details = self._stderr_tail(handle)
        self._cleanup(handle)
        raise LaunchFailure(
            f"recorder exited during startup with code {process.returncode}: {details}".rstrip(": ")
        )

    async def terminate(self, handle: RecorderHandle) -> str:
        """Stop the recorder and return its transcript ("" when none was written)."""
        process = handle.process
        if process.returncode is None:
            logger.info("Terminating recorder pid=%s", process.pid)
            try:
                process.terminate()
            except ProcessLookupError:
                logger.debug("Recorder pid=%s already gone", process.pid)
            try:
                await asyncio.wait_for(process.wait(), timeout=self.terminate_timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning("Recorder pid=%s ignored SIGTERM; killing", process.pid)
                process.kill()
                await process.wait()
        elif process.returncode != 0:
            details = self._stderr_tail(handle)
            self._cleanup(handle)
            raise InfrastructureError(
                f"recorder exited unexpectedly with code {process.returncode}: {details}".rstrip(": ")
            )

        try:
            return await self._read_transcript(handle)
        finally:
            self._cleanup(handle)

    async def _read_transcript(self, handle: RecorderHandle) -> str:
        for attempt in range(1, self.read_attempts + 1):
            if handle.output_path.exists():
                text = handle.output_path.read_text(encoding="utf-8", errors="replace")
                if text.strip():
                    logger.info("Read recorder transcript (%d chars) on attempt %d", len(text), attempt)
                    return text
            await asyncio.sleep(self.read_interval_seconds)
        logger.warning("Recorder transcript not found at %s", handle.output_path)
        return ""

    def _stderr_tail(self, handle: RecorderHandle) -> str:
        if not handle.log_path.exists():
            return ""
        return handle.log_path.read_text(encoding="utf-8", errors="replace")[-STDERR_TAIL_CHARS:].strip()

    def _cleanup(self, handle: RecorderHandle) -> None:
        shutil.rmtree(handle.workdir, ignore_errors=True)
