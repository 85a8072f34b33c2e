"""Counters describing capture activity since process start."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone

from core.capture_state import AttemptOutcome, CaptureAttempt, CaptureState


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class CaptureStats:
    sessions_started: int = 0
    sessions_succeeded: int = 0
    sessions_given_up: int = 0
    attempts_total: int = 0
    attempts_failed: int = 0
    attempts_timed_out: int = 0
    spawn_errors: int = 0
    publish_failures: int = 0
    ticks_skipped: int = 0
    last_result: str | None = None
    last_success_at: str | None = None
    last_failure_at: str | None = None
    last_error: str | None = None

    def record_attempt(self, attempt: CaptureAttempt) -> None:
        self.attempts_total += 1
        kind = attempt.failure_kind
        if kind is None:
            return
        self.attempts_failed += 1
        if attempt.outcome is AttemptOutcome.TIMED_OUT:
            self.attempts_timed_out += 1
        elif attempt.outcome is AttemptOutcome.SPAWN_ERROR:
            self.spawn_errors += 1
        self.last_error = kind.value

    def record_publish_failure(self) -> None:
        self.publish_failures += 1
        self.last_error = "publish_failed"

    def record_session(self, state: CaptureState) -> None:
        """Update counters for a session that ended in ``state``."""
        self.last_result = state.value
        if state is CaptureState.SUCCESS:
            self.sessions_succeeded += 1
            self.last_success_at = _now_iso()
        elif state is CaptureState.GIVE_UP:
            self.sessions_given_up += 1
            self.last_failure_at = _now_iso()

    def as_dict(self) -> dict:
        return asdict(self)


__all__ = ["CaptureStats"]
