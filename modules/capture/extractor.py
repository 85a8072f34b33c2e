from __future__ import annotations

"""Run the external frame extractor under a per-attempt deadline."""

import asyncio  # noqa: E402
from contextlib import suppress  # noqa: E402
from typing import Sequence  # noqa: E402

from loguru import logger  # noqa: E402

from core.capture_state import AttemptOutcome, CaptureAttempt  # noqa: E402

logger = logger.bind(module="extractor")

READ_CHUNK = 4096


def _decode(data: bytes | bytearray | None) -> str:
    return bytes(data or b"").decode(errors="replace")


async def _collect(stream: asyncio.StreamReader | None, buf: bytearray) -> None:
    """Append everything read from ``stream`` to ``buf`` until EOF."""
    if stream is None:
        return
    while True:
        chunk = await stream.read(READ_CHUNK)
        if not chunk:
            return
        buf.extend(chunk)


class ExtractorRunner:
    """Spawn one ffmpeg process per call and classify how it ended.

    The attempt's outcome is resolved by whichever of natural exit, spawn
    error or deadline happens first. stderr is read by a separate task while
    the process runs, so whatever ffmpeg printed before being killed is kept
    in ``diagnostic_text``.
    """

    def __init__(self, kill_grace_s: float = 2.0) -> None:
        self.kill_grace_s = kill_grace_s

    async def run(self, cmd: Sequence[str], attempt: CaptureAttempt) -> CaptureAttempt:
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            attempt.diagnostic_text = str(exc)
            attempt.resolve(AttemptOutcome.SPAWN_ERROR)
            return attempt

        buf = bytearray()
        reader = asyncio.create_task(_collect(proc.stderr, buf), name="extractor-stderr")
        try:
            await asyncio.wait_for(proc.wait(), attempt.timeout_s)
        except asyncio.TimeoutError:
            attempt.resolve(AttemptOutcome.TIMED_OUT)
            await self._terminate(proc, reader)
            attempt.diagnostic_text = _decode(buf)
            return attempt
        except asyncio.CancelledError:
            await self._terminate(proc, reader)
            attempt.diagnostic_text = _decode(buf)
            raise

        await self._drain(proc, reader)
        attempt.diagnostic_text = _decode(buf)
        code = proc.returncode
        attempt.resolve(
            AttemptOutcome.SUCCEEDED if code == 0 else AttemptOutcome.FAILED,
            exit_code=code,
        )
        return attempt

    async def _terminate(self, proc: asyncio.subprocess.Process, reader: asyncio.Task) -> None:
        """Kill ``proc`` if it is still running, reap it and finish reading stderr."""
        if proc.returncode is None:
            with suppress(ProcessLookupError):
                proc.kill()
        try:
            await asyncio.wait_for(proc.wait(), self.kill_grace_s)
        except asyncio.TimeoutError:
            logger.warning("Extractor pid {} did not exit after kill", getattr(proc, "pid", "?"))
        await self._drain(proc, reader)

    async def _drain(self, proc: asyncio.subprocess.Process, reader: asyncio.Task) -> None:
        # a grandchild holding the pipe open must not stall the attempt
        try:
            await asyncio.wait_for(reader, self.kill_grace_s)
        except asyncio.TimeoutError:
            logger.warning("Gave up reading stderr of extractor pid {}", getattr(proc, "pid", "?"))


__all__ = ["ExtractorRunner"]
