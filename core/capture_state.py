from __future__ import annotations

"""Capture session state machine.

A session walks ``IDLE -> PRIMARY -> SUCCESS`` on the happy path. Failures
move it to ``RETRY_WAIT`` and then ``FALLBACK`` until the shared retry
ceiling is hit, at which point it lands in ``GIVE_UP``. Both terminal states
return to ``IDLE`` through :meth:`CaptureSession.finish`.
"""

import time  # noqa: E402
from dataclasses import dataclass, field  # noqa: E402
from enum import Enum  # noqa: E402


class CaptureProfile(str, Enum):
    """ffmpeg argument set used for an attempt."""

    PRIMARY = "primary"
    FALLBACK = "fallback"
    PROBE = "probe"


class AttemptOutcome(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    SPAWN_ERROR = "spawn_error"


class FailureKind(str, Enum):
    """Failure taxonomy reported in logs."""

    SPAWN_FAILURE = "spawn_failure"
    NON_ZERO_EXIT = "non_zero_exit"
    TIMEOUT = "timeout"


_FAILURE_KINDS = {
    AttemptOutcome.FAILED: FailureKind.NON_ZERO_EXIT,
    AttemptOutcome.TIMED_OUT: FailureKind.TIMEOUT,
    AttemptOutcome.SPAWN_ERROR: FailureKind.SPAWN_FAILURE,
}


class CaptureState(str, Enum):
    IDLE = "idle"
    PRIMARY = "primary_attempt"
    RETRY_WAIT = "retry_wait"
    FALLBACK = "fallback_attempt"
    SUCCESS = "success"
    GIVE_UP = "give_up"


TRANSITIONS: dict[CaptureState, frozenset[CaptureState]] = {
    CaptureState.IDLE: frozenset({CaptureState.PRIMARY}),
    CaptureState.PRIMARY: frozenset(
        {CaptureState.SUCCESS, CaptureState.RETRY_WAIT, CaptureState.GIVE_UP}
    ),
    CaptureState.RETRY_WAIT: frozenset({CaptureState.FALLBACK}),
    CaptureState.FALLBACK: frozenset(
        {CaptureState.SUCCESS, CaptureState.RETRY_WAIT, CaptureState.GIVE_UP}
    ),
    CaptureState.SUCCESS: frozenset({CaptureState.IDLE}),
    CaptureState.GIVE_UP: frozenset({CaptureState.IDLE}),
}

ATTEMPT_STATES = frozenset({CaptureState.PRIMARY, CaptureState.FALLBACK})
TERMINAL_STATES = frozenset({CaptureState.SUCCESS, CaptureState.GIVE_UP})


class InvalidTransition(RuntimeError):
    """Raised when a session is driven along an edge the table does not allow."""


class SessionBusy(InvalidTransition):
    """Raised when a new session is started while another one is active."""


@dataclass
class CaptureAttempt:
    """One invocation of the frame extractor.

    Attributes
    ----------
    profile:
        Argument set the process was started with.
    timeout_s:
        Allotted duration for this attempt.
    started_at, timeout_deadline:
        Wall clock timestamps in seconds.
    exit_code:
        Process exit status, only known after a natural exit.
    diagnostic_text:
        Accumulated stderr output.
    outcome:
        Set exactly once through :meth:`resolve`.
    """

    profile: CaptureProfile
    timeout_s: float
    started_at: float = field(default_factory=time.time)
    timeout_deadline: float = 0.0
    exit_code: int | None = None
    diagnostic_text: str = ""
    outcome: AttemptOutcome = AttemptOutcome.PENDING
    finished_at: float | None = None

    def __post_init__(self) -> None:
        if not self.timeout_deadline:
            self.timeout_deadline = self.started_at + self.timeout_s

    @property
    def done(self) -> bool:
        return self.outcome is not AttemptOutcome.PENDING

    @property
    def succeeded(self) -> bool:
        return self.outcome is AttemptOutcome.SUCCEEDED

    @property
    def failure_kind(self) -> FailureKind | None:
        return _FAILURE_KINDS.get(self.outcome)

    @property
    def elapsed_s(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.time()
        return max(0.0, end - self.started_at)

    def resolve(self, outcome: AttemptOutcome, exit_code: int | None = None) -> bool:
        """Record ``outcome`` unless another handler already did.

        Returns ``True`` when this call set the outcome. The loser of an
        exit/timeout race gets ``False`` and leaves the attempt untouched.
        """
        if outcome is AttemptOutcome.PENDING:
            raise ValueError("cannot resolve an attempt to pending")
        if self.done:
            return False
        self.outcome = outcome
        self.exit_code = exit_code
        self.finished_at = time.time()
        return True


@dataclass
class CaptureSession:
    """Retry bookkeeping for one "get a fresh frame" cycle."""

    max_retries: int = 2
    attempts_made: int = 0
    current_profile: CaptureProfile = CaptureProfile.PRIMARY
    state: CaptureState = CaptureState.IDLE

    @property
    def idle(self) -> bool:
        return self.state is CaptureState.IDLE

    def _move(self, target: CaptureState) -> CaptureState:
        if target not in TRANSITIONS[self.state]:
            raise InvalidTransition(f"{self.state.value} -> {target.value}")
        self.state = target
        return target

    def begin(self) -> CaptureState:
        """Start a session with the primary profile."""
        if not self.idle:
            raise SessionBusy(f"session already in {self.state.value}")
        self.attempts_made = 0
        self.current_profile = CaptureProfile.PRIMARY
        return self._move(CaptureState.PRIMARY)

    def record(self, outcome: AttemptOutcome) -> CaptureState:
        """Apply the outcome of the attempt that just finished.

        Every failure kind goes through the same ceiling check, so a failing
        fallback can never schedule more attempts than ``max_retries`` allows.
        """
        if self.state not in ATTEMPT_STATES:
            raise InvalidTransition(f"no attempt in flight in {self.state.value}")
        if outcome is AttemptOutcome.PENDING:
            raise ValueError("attempt has not finished")
        if outcome is AttemptOutcome.SUCCEEDED:
            self.attempts_made = 0
            return self._move(CaptureState.SUCCESS)
        self.attempts_made += 1
        if self.attempts_made <= self.max_retries:
            self.current_profile = CaptureProfile.FALLBACK
            return self._move(CaptureState.RETRY_WAIT)
        return self._move(CaptureState.GIVE_UP)

    def start_fallback(self) -> CaptureState:
        """Leave the backoff wait and run the fallback profile."""
        return self._move(CaptureState.FALLBACK)

    def finish(self) -> CaptureState:
        """Reset counters once the session reached a terminal state."""
        if self.state not in TERMINAL_STATES:
            raise InvalidTransition(f"session not finished in {self.state.value}")
        self.attempts_made = 0
        self.current_profile = CaptureProfile.PRIMARY
        return self._move(CaptureState.IDLE)

    def abort(self) -> None:
        """Force the session back to ``IDLE`` after cancellation."""
        self.attempts_made = 0
        self.current_profile = CaptureProfile.PRIMARY
        self.state = CaptureState.IDLE


__all__ = [
    "ATTEMPT_STATES",
    "AttemptOutcome",
    "CaptureAttempt",
    "CaptureProfile",
    "CaptureSession",
    "CaptureState",
    "FailureKind",
    "InvalidTransition",
    "SessionBusy",
    "TERMINAL_STATES",
    "TRANSITIONS",
]
