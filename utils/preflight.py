"""Pre-start checks for the ffmpeg binary and the frame output directory."""

from __future__ import annotations

import os
import uuid
from contextlib import suppress
from pathlib import Path
from shutil import which

from loguru import logger

from core.config import Settings

logger = logger.bind(module="preflight")


class DependencyError(RuntimeError):
    """Raised when a runtime dependency is unusable."""


class OutputDirNotWritable(DependencyError):
    """Raised when frames cannot be written to the output directory."""


def check_ffmpeg(ffmpeg_bin: str = "ffmpeg") -> bool:
    """Return whether ``ffmpeg_bin`` resolves to an executable."""
    available = which(ffmpeg_bin) is not None
    if not available:
        logger.warning("'{}' not found; every capture attempt will fail to spawn", ffmpeg_bin)
    return available


def check_output_dir(path: str | Path) -> None:
    """Create ``path`` if needed and prove it is writable with a probe file.

    Raises:
        OutputDirNotWritable: If the directory cannot be created or written.
    """
    directory = Path(path)
    probe = directory / f".write-test-{uuid.uuid4().hex}"
    try:
        directory.mkdir(parents=True, exist_ok=True)
        probe.write_text("test")
    except OSError as exc:
        raise OutputDirNotWritable(f"cannot write to {directory}: {exc}") from exc
    finally:
        with suppress(OSError):
            probe.unlink()


def remove_frames(settings: Settings) -> list[Path]:
    """Delete the served image and any partial frame; return what was removed."""
    removed: list[Path] = []
    for path in (settings.image_path, settings.partial_path):
        try:
            os.remove(path)
        except FileNotFoundError:
            continue
        except OSError as exc:
            logger.warning("Could not remove {}: {}", path, exc)
            continue
        removed.append(path)
    return removed


def run_preflight(settings: Settings) -> dict[str, bool]:
    """Run startup checks; problems are logged as warnings, never raised."""
    report = {"ffmpeg_available": check_ffmpeg(settings.ffmpeg_bin), "output_writable": True}
    try:
        check_output_dir(settings.output_dir)
        logger.info("Temp directory write permissions verified: {}", settings.output_dir)
    except OutputDirNotWritable as exc:
        report["output_writable"] = False
        logger.warning("{}; captures will keep failing until this is fixed", exc)
    removed = remove_frames(settings)
    if removed:
        logger.info("Removed stale frames: {}", ", ".join(p.name for p in removed))
    return report


__all__ = [
    "DependencyError",
    "OutputDirNotWritable",
    "check_ffmpeg",
    "check_output_dir",
    "remove_frames",
    "run_preflight",
]
