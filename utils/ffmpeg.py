"""ffmpeg command profiles and stderr scanning."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import ffmpeg

STREAM_MARKER = "Stream #0:0"
ERROR_MARKERS = ("Error", "failed", "Invalid")


def build_primary_cmd(url: str, output: str | Path, ffmpeg_bin: str = "ffmpeg") -> list[str]:
    """Return the reliable single-frame capture command (TCP transport)."""
    stream = ffmpeg.input(url, rtsp_transport="tcp", use_wallclock_as_timestamps=1)
    stream = stream.output(str(output), f="image2", update=1, **{"frames:v": 1, "q:v": 2})
    return stream.overwrite_output().compile(cmd=ffmpeg_bin)


def build_fallback_cmd(url: str, output: str | Path, ffmpeg_bin: str = "ffmpeg") -> list[str]:
    """Return the best-effort capture command (UDP transport, lower quality)."""
    stream = ffmpeg.input(url, rtsp_transport="udp")
    stream = stream.output(
        str(output), f="image2", pix_fmt="yuvj420p", **{"frames:v": 1, "q:v": 5}
    )
    return stream.overwrite_output().compile(cmd=ffmpeg_bin)


def build_probe_cmd(url: str, duration_s: float = 1, ffmpeg_bin: str = "ffmpeg") -> list[str]:
    """Return a command that reads ``duration_s`` of the source and discards it."""
    stream = ffmpeg.input(url, rtsp_transport="tcp")
    return stream.output("-", f="null", t=_fmt_seconds(duration_s)).compile(cmd=ffmpeg_bin)


def _fmt_seconds(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


@dataclass
class StderrScan:
    """Observability summary of ffmpeg's error stream."""

    stream_detected: bool = False
    stream_lines: list[str] = field(default_factory=list)
    error_lines: list[str] = field(default_factory=list)


def scan_stderr(text: str) -> StderrScan:
    """Classify ffmpeg stderr lines into stream descriptions and errors."""
    scan = StderrScan()
    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue
        if STREAM_MARKER in line:
            scan.stream_detected = True
            scan.stream_lines.append(line)
        if any(marker in line for marker in ERROR_MARKERS):
            scan.error_lines.append(line)
    return scan


def stderr_tail(text: str, lines: int = 5) -> str:
    """Return the last ``lines`` non-empty lines of *text*."""
    kept = [ln for ln in text.splitlines() if ln.strip()]
    return "\n".join(kept[-lines:])


__all__ = [
    "ERROR_MARKERS",
    "STREAM_MARKER",
    "StderrScan",
    "build_fallback_cmd",
    "build_primary_cmd",
    "build_probe_cmd",
    "scan_stderr",
    "stderr_tail",
]
