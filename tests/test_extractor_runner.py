import asyncio
import sys

from core.capture_state import AttemptOutcome, CaptureAttempt, CaptureProfile
from modules.capture.extractor import ExtractorRunner


def _attempt(timeout_s=5.0):
    return CaptureAttempt(profile=CaptureProfile.PRIMARY, timeout_s=timeout_s)


def _py(code):
    return [sys.executable, "-c", code]


def test_exit_zero_succeeds():
    attempt = asyncio.run(ExtractorRunner().run(_py("import sys; sys.stderr.write('Stream #0:0: Video')"), _attempt()))
    assert attempt.outcome is AttemptOutcome.SUCCEEDED
    assert attempt.exit_code == 0
    assert "Stream #0:0" in attempt.diagnostic_text


def test_non_zero_exit_fails_with_code():
    attempt = asyncio.run(ExtractorRunner().run(_py("import sys; sys.exit(3)"), _attempt()))
    assert attempt.outcome is AttemptOutcome.FAILED
    assert attempt.exit_code == 3


def test_missing_binary_is_spawn_error(tmp_path):
    missing = str(tmp_path / "no-such-ffmpeg")
    attempt = asyncio.run(ExtractorRunner().run([missing, "-version"], _attempt()))
    assert attempt.outcome is AttemptOutcome.SPAWN_ERROR
    assert attempt.exit_code is None
    assert attempt.diagnostic_text


def test_deadline_kills_hung_process():
    attempt = _attempt(timeout_s=0.3)
    asyncio.run(ExtractorRunner().run(_py("import time; time.sleep(30)"), attempt))
    assert attempt.outcome is AttemptOutcome.TIMED_OUT
    assert attempt.exit_code is None
    assert attempt.elapsed_s < 10


def test_stderr_before_timeout_is_kept():
    code = (
        "import sys, time\n"
        "sys.stderr.write('Stream #0:0: Video: h264\\n')\n"
        "sys.stderr.flush()\n"
        "time.sleep(30)\n"
    )
    attempt = _attempt(timeout_s=1.0)
    asyncio.run(ExtractorRunner().run(_py(code), attempt))

    assert attempt.outcome is AttemptOutcome.TIMED_OUT
    assert "Stream #0:0: Video: h264" in attempt.diagnostic_text


class _FakeProc:
    """Process double whose stderr is a real ``StreamReader``.

    Build it inside a running loop.
    """

    def __init__(self, returncode=None, err=b"", delay=0.0):
        self.pid = 4242
        self.returncode = None
        self._final = returncode
        self._delay = delay
        self._exited = asyncio.Event()
        self.killed = False
        self.stderr = asyncio.StreamReader()
        if err:
            self.stderr.feed_data(err)

    def _exit(self, code):
        if self.returncode is None:
            self.returncode = code
            self.stderr.feed_eof()
            self._exited.set()

    async def wait(self):
        if self.returncode is None and self._delay:
            try:
                await asyncio.wait_for(self._exited.wait(), self._delay)
            except asyncio.TimeoutError:
                pass
        self._exit(self._final)
        return self.returncode

    def kill(self):
        self.killed = True
        if self.returncode is None:
            self.stderr.feed_data(b"\nkilled")
            self._exit(-9)


def _patch_exec(monkeypatch, **kwargs):
    procs = []

    async def fake_exec(*args, **kw):
        proc = _FakeProc(**kwargs)
        procs.append(proc)
        return proc

    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)
    return procs


def test_fake_process_timeout_keeps_earlier_stderr(monkeypatch):
    procs = _patch_exec(monkeypatch, returncode=0, err=b"Stream #0:0: Video: h264", delay=60)
    attempt = asyncio.run(ExtractorRunner().run(["ffmpeg"], _attempt(timeout_s=0.05)))

    assert procs[0].killed
    assert attempt.outcome is AttemptOutcome.TIMED_OUT
    assert attempt.diagnostic_text == "Stream #0:0: Video: h264\nkilled"


def test_fake_process_failure_keeps_stderr(monkeypatch):
    procs = _patch_exec(monkeypatch, returncode=1, err=b"Connection refused")
    attempt = asyncio.run(ExtractorRunner().run(["ffmpeg"], _attempt()))

    assert not procs[0].killed
    assert attempt.outcome is AttemptOutcome.FAILED
    assert attempt.exit_code == 1
    assert attempt.diagnostic_text == "Connection refused"


def test_cancel_kills_process_and_propagates(monkeypatch):
    procs = _patch_exec(monkeypatch, returncode=0, err=b"partial output", delay=60)

    async def scenario():
        attempt = _attempt(timeout_s=30)
        task = asyncio.create_task(ExtractorRunner().run(["ffmpeg"], attempt))
        await asyncio.sleep(0.05)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            return attempt, True
        return attempt, False

    attempt, cancelled = asyncio.run(scenario())
    assert cancelled
    assert procs[0].killed
    assert attempt.outcome is AttemptOutcome.PENDING
    assert attempt.diagnostic_text.startswith("partial output")
