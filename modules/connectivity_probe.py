from __future__ import annotations

"""One-shot reachability check of the camera source at startup."""

from dataclasses import dataclass  # noqa: E402

from loguru import logger  # noqa: E402

from core.capture_state import AttemptOutcome, CaptureAttempt, CaptureProfile  # noqa: E402
from core.config import Settings  # noqa: E402
from modules.capture.extractor import ExtractorRunner  # noqa: E402
from utils import logx  # noqa: E402
from utils.ffmpeg import build_probe_cmd, scan_stderr, stderr_tail  # noqa: E402

logger = logger.bind(module="probe")


@dataclass
class ProbeResult:
    reachable: bool
    outcome: AttemptOutcome
    exit_code: int | None
    stream_detected: bool
    detail: str = ""

    def as_dict(self) -> dict:
        return {
            "reachable": self.reachable,
            "outcome": self.outcome.value,
            "exitCode": self.exit_code,
            "streamDetected": self.stream_detected,
            "detail": self.detail,
        }


def classify(attempt: CaptureAttempt) -> ProbeResult:
    """Reachable means a clean exit or a stream description on stderr."""
    scan = scan_stderr(attempt.diagnostic_text)
    reachable = attempt.exit_code == 0 or scan.stream_detected
    if scan.stream_lines:
        detail = scan.stream_lines[0]
    else:
        detail = stderr_tail(attempt.diagnostic_text, lines=2)
    return ProbeResult(
        reachable=reachable,
        outcome=attempt.outcome,
        exit_code=attempt.exit_code,
        stream_detected=scan.stream_detected,
        detail=detail,
    )


async def probe_source(settings: Settings, runner: ExtractorRunner | None = None) -> ProbeResult:
    """Read a short stretch of the source without writing output and log the verdict.

    Purely informational: the result never gates captures.
    """
    runner = runner or ExtractorRunner()
    cmd = build_probe_cmd(settings.source_url, settings.probe_duration_s, settings.ffmpeg_bin)
    attempt = CaptureAttempt(profile=CaptureProfile.PROBE, timeout_s=settings.probe_timeout_s)
    logger.info("Testing RTSP connection...")
    await runner.run(cmd, attempt)

    result = classify(attempt)
    for line in scan_stderr(attempt.diagnostic_text).error_lines:
        logger.warning("RTSP test error: {}", line)
    if result.reachable:
        logx.event("PROBE_OK", url=settings.source_url, detail=result.detail)
    else:
        logx.warn(
            "PROBE_FAILED",
            url=settings.source_url,
            outcome=result.outcome.value,
            rc=result.exit_code,
            detail=result.detail,
        )
    return result


__all__ = ["ProbeResult", "classify", "probe_source"]
