"""Fire capture sessions on a fixed wall-clock grid."""

from __future__ import annotations

import asyncio
from contextlib import suppress

from loguru import logger

from core.capture_controller import CaptureController
from utils import logx

logger = logger.bind(module="scheduler")


class CaptureScheduler:
    """Start a capture session once after ``startup_delay_s`` and then every
    ``interval_s`` seconds.

    Ticks that arrive while a session is still retrying are skipped, so the
    session's retry counter is never shared with a second session.
    """

    def __init__(
        self,
        controller: CaptureController,
        interval_s: float,
        startup_delay_s: float = 3.0,
    ) -> None:
        self.controller = controller
        self.interval_s = interval_s
        self.startup_delay_s = startup_delay_s
        self.ticks = 0
        self._tasks: list[asyncio.Task] = []
        self._session_task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def start(self) -> None:
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self._kickoff(), name="capture-kickoff"),
            asyncio.create_task(self._interval_loop(), name="capture-interval"),
        ]
        logger.info(
            "Capture scheduler started (first capture in {:.1f}s, then every {:.1f}s)",
            self.startup_delay_s,
            self.interval_s,
        )

    async def _kickoff(self) -> None:
        await asyncio.sleep(self.startup_delay_s)
        self.tick()

    async def _interval_loop(self) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time() + self.interval_s
        while True:
            await asyncio.sleep(max(0.0, next_at - loop.time()))
            self.tick()
            next_at += self.interval_s
            # fell behind (e.g. suspended host): realign instead of bursting
            if next_at < loop.time():
                next_at = loop.time() + self.interval_s

    def tick(self) -> asyncio.Task | None:
        """Start a session unless one is already active."""
        self.ticks += 1
        if self.controller.busy or (self._session_task and not self._session_task.done()):
            self.controller.stats.ticks_skipped += 1
            if logx.every(30, "capture_tick_skipped"):
                logx.debug(
                    "CAPTURE_TICK_SKIPPED",
                    state=self.controller.session.state.value,
                    skipped=self.controller.stats.ticks_skipped,
                )
            return None
        task = asyncio.create_task(self._run_session(), name="capture-session")
        self._session_task = task
        return task

    async def _run_session(self) -> None:
        try:
            await self.controller.run_session()
        except Exception as exc:
            logger.warning("Capture session ended with {}; next tick starts fresh", type(exc).__name__)

    async def stop(self) -> None:
        """Stop ticking and cancel an in-flight session."""
        tasks = list(self._tasks)
        if self._session_task is not None:
            tasks.append(self._session_task)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task
        self._tasks = []
        self._session_task = None
        logger.info("Capture scheduler stopped after {} ticks", self.ticks)


__all__ = ["CaptureScheduler"]
