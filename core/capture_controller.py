"""Drive capture sessions through primary and fallback attempts."""

from __future__ import annotations

import asyncio
import os
from contextlib import suppress
from pathlib import Path
from typing import Any, Awaitable, Callable

from loguru import logger

from core.capture_state import (
    AttemptOutcome,
    CaptureAttempt,
    CaptureProfile,
    CaptureSession,
    CaptureState,
)
from core.config import Settings
from core.stats import CaptureStats
from modules.capture.extractor import ExtractorRunner
from utils import logx
from utils.ffmpeg import build_fallback_cmd, build_primary_cmd, scan_stderr, stderr_tail

logger = logger.bind(module="capture")

Sleep = Callable[[float], Awaitable[Any]]


class CaptureController:
    """Own the capture session and publish frames to ``settings.image_path``.

    ffmpeg writes to ``settings.partial_path``; only a successful attempt
    moves it over the served image, so a failed attempt never touches the
    last good frame.
    """

    def __init__(
        self,
        settings: Settings,
        runner: ExtractorRunner | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.runner = runner or ExtractorRunner()
        self.session = CaptureSession(max_retries=settings.max_retries)
        self.stats = CaptureStats()
        self.last_attempt: CaptureAttempt | None = None
        self._sleep = sleep

    @property
    def busy(self) -> bool:
        return not self.session.idle

    @property
    def image_path(self) -> Path:
        return self.settings.image_path

    def _command(self, profile: CaptureProfile) -> list[str]:
        s = self.settings
        if profile is CaptureProfile.PRIMARY:
            return build_primary_cmd(s.source_url, s.partial_path, s.ffmpeg_bin)
        return build_fallback_cmd(s.source_url, s.partial_path, s.ffmpeg_bin)

    def _timeout(self, profile: CaptureProfile) -> float:
        if profile is CaptureProfile.PRIMARY:
            return self.settings.primary_timeout_s
        return self.settings.fallback_timeout_s

    async def run_session(self) -> CaptureState | None:
        """Run one session to ``SUCCESS`` or ``GIVE_UP``.

        Returns ``None`` without doing anything when a session is already
        active.
        """
        if self.busy:
            self.stats.ticks_skipped += 1
            logx.debug("CAPTURE_SKIPPED", state=self.session.state.value)
            return None

        session = self.session
        session.begin()
        self.stats.sessions_started += 1
        try:
            while True:
                outcome = await self._attempt(session.current_profile)
                state = session.record(outcome)
                if state is not CaptureState.RETRY_WAIT:
                    break
                logx.warn(
                    "CAPTURE_RETRY",
                    attempt=session.attempts_made,
                    max_retries=session.max_retries,
                    backoff_s=self.settings.retry_backoff_s,
                    next_profile=session.current_profile.value,
                )
                await self._sleep(self.settings.retry_backoff_s)
                session.start_fallback()
        except asyncio.CancelledError:
            logger.info("Capture session cancelled in {}", session.state.value)
            self._abandon()
            raise
        except Exception:
            logger.exception("Capture session crashed in {}", session.state.value)
            self._abandon()
            raise

        if state is CaptureState.GIVE_UP:
            logx.error(
                "CAPTURE_GIVE_UP",
                attempts=session.attempts_made,
                max_retries=session.max_retries,
                serving_stale=self.image_path.exists(),
            )
        self.stats.record_session(state)
        session.finish()
        return state

    async def _attempt(self, profile: CaptureProfile) -> AttemptOutcome:
        """Run one extractor attempt and return the outcome the session should see.

        A clean exit whose frame cannot be published counts as a failure.
        """
        timeout = self._timeout(profile)
        cmd = self._command(profile)
        attempt = CaptureAttempt(profile=profile, timeout_s=timeout)
        logx.event(
            "CAPTURE_START",
            profile=profile.value,
            url=self.settings.source_url,
            attempt=self.session.attempts_made + 1,
            timeout_s=timeout,
        )
        logx.debug("CAPTURE_CMD", cmd=" ".join(cmd))
        await self.runner.run(cmd, attempt)
        self.last_attempt = attempt
        self.stats.record_attempt(attempt)
        self._report(attempt)
        if not attempt.succeeded:
            self._discard_partial()
            return attempt.outcome
        if not self._publish():
            self.stats.record_publish_failure()
            self._discard_partial()
            return AttemptOutcome.FAILED
        return attempt.outcome

    def _report(self, attempt: CaptureAttempt) -> None:
        scan = scan_stderr(attempt.diagnostic_text)
        for line in scan.error_lines:
            logger.warning("ffmpeg {}: {}", attempt.profile.value, line)
        if scan.stream_detected:
            logger.debug("ffmpeg {} detected stream: {}", attempt.profile.value, scan.stream_lines[0])

        if attempt.succeeded:
            logx.event(
                "CAPTURE_OK",
                profile=attempt.profile.value,
                attempt=self.session.attempts_made + 1,
                elapsed_s=round(attempt.elapsed_s, 3),
            )
            return
        logx.warn(
            "CAPTURE_FAILED",
            profile=attempt.profile.value,
            attempt=self.session.attempts_made + 1,
            kind=attempt.failure_kind.value if attempt.failure_kind else None,
            rc=attempt.exit_code,
            ffmpeg_tail=stderr_tail(attempt.diagnostic_text),
        )

    def _publish(self) -> bool:
        partial = self.settings.partial_path
        if not partial.exists():
            logger.warning("Extractor exited cleanly but wrote no frame to {}", partial)
            return True
        try:
            os.replace(partial, self.image_path)
        except OSError as exc:
            logger.error("Could not publish frame to {}: {}", self.image_path, exc)
            return False
        return True

    def _abandon(self) -> None:
        self._discard_partial()
        self.session.abort()

    def _discard_partial(self) -> None:
        with suppress(FileNotFoundError):
            self.settings.partial_path.unlink()

    def status(self) -> dict[str, Any]:
        """Return a JSON-friendly snapshot of session state and counters."""
        image = self.image_path
        updated = None
        if image.exists():
            with suppress(FileNotFoundError):
                updated = image.stat().st_mtime
        last = self.last_attempt
        return {
            "state": self.session.state.value,
            "attemptsMade": self.session.attempts_made,
            "maxRetries": self.session.max_retries,
            "currentProfile": self.session.current_profile.value,
            "imageAvailable": updated is not None,
            "imageUpdatedAt": updated,
            "lastAttempt": None
            if last is None
            else {
                "profile": last.profile.value,
                "outcome": last.outcome.value,
                "exitCode": last.exit_code,
                "elapsedS": round(last.elapsed_s, 3),
            },
            "stats": self.stats.as_dict(),
        }


__all__ = ["CaptureController"]
