"""Subprocess wrapper that streams a provider CLI's stdout line by line.

stdin is fed from a writer thread and stderr is drained on a reader thread so neither
pipe can fill up while the caller iterates stdout. A watchdog thread kills the process
once the overall timeout elapses, or when no stdout line arrived within the idle
timeout; ``timed_out`` then names which limit fired.
"""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from pathlib import Path
from typing import Iterator, Sequence

from ..errors import ProviderStartError
from .utils import sanitize_environment

logger = logging.getLogger(__name__)

_WATCHDOG_INTERVAL = 0.5
_TERMINATE_GRACE = 5.0


class CliProcess:
    def __init__(
        self,
        args: Sequence[str],
        *,
        cwd: Path,
        stdin_text: str | None = None,
        timeout_ms: int | None = None,
        idle_timeout_ms: int | None = None,
    ) -> None:
        self.args = [str(arg) for arg in args]
        self.cwd = Path(cwd)
        self._stdin_text = stdin_text
        self._timeout = timeout_ms / 1000 if timeout_ms else None
        self._idle_timeout = idle_timeout_ms / 1000 if idle_timeout_ms else None
        self._proc: subprocess.Popen[str] | None = None
        self._stderr_chunks: list[str] = []
        self._threads: list[threading.Thread] = []
        self._finished = threading.Event()
        self._last_output = time.monotonic()
        self.timed_out: str | None = None

    @property
    def timeout_label(self) -> str:
        limit = self._idle_timeout if self.timed_out == "idle timeout" else self._timeout
        return f"{int((limit or 0) * 1000)} ms"

    @property
    def stderr(self) -> str:
        return "".join(self._stderr_chunks)

    def start(self) -> None:
        try:
            self._proc = subprocess.Popen(
                self.args,
                cwd=str(self.cwd),
                text=True,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                bufsize=1,
                env=sanitize_environment(),
            )
        except OSError as exc:
            raise ProviderStartError(f"Failed to start {self.args[0]}: {exc}") from exc

        self._last_output = time.monotonic()
        self._spawn(self._feed_stdin, "stdin")
        self._spawn(self._drain_stderr, "stderr")
        if self._timeout or self._idle_timeout:
            self._spawn(self._watchdog, "watchdog")

    def lines(self) -> Iterator[str]:
        proc = self._require()
        assert proc.stdout is not None
        for line in proc.stdout:
            self._last_output = time.monotonic()
            yield line.rstrip("\n")

    def wait(self) -> int:
        code = self._require().wait()
        self._finished.set()
        for thread in self._threads:
            thread.join(timeout=_TERMINATE_GRACE)
        return code

    def close(self) -> None:
        """Stop the process if it is still running; safe to call more than once."""

        proc = self._proc
        if proc is None:
            return
        if proc.poll() is None:
            proc.terminate()
            try:
                proc.wait(timeout=_TERMINATE_GRACE)
            except subprocess.TimeoutExpired:
                proc.kill()
                proc.wait()
        self._finished.set()
        for stream in (proc.stdout, proc.stderr):
            if stream is not None and not stream.closed:
                stream.close()

    def _require(self) -> subprocess.Popen[str]:
        if self._proc is None:
            raise ProviderStartError("process has not been started")
        return self._proc

    def _spawn(self, target, name: str) -> None:
        thread = threading.Thread(target=target, name=f"cli-{name}", daemon=True)
        thread.start()
        self._threads.append(thread)

    def _feed_stdin(self) -> None:
        proc = self._require()
        assert proc.stdin is not None
        try:
            if self._stdin_text:
                proc.stdin.write(self._stdin_text)
            proc.stdin.close()
        except (BrokenPipeError, OSError, ValueError) as exc:
            logger.debug("stdin closed early for %s: %s", self.args[0], exc)

    def _drain_stderr(self) -> None:
        proc = self._require()
        assert proc.stderr is not None
        try:
            for line in proc.stderr:
                self._stderr_chunks.append(line)
        except ValueError:
            # stream closed by close()
            return

    def _watchdog(self) -> None:
        started = time.monotonic()
        proc = self._require()
        while not self._finished.wait(_WATCHDOG_INTERVAL):
            if proc.poll() is not None:
                return
            now = time.monotonic()
            if self._timeout and now - started >= self._timeout:
                self.timed_out = "timed out"
            elif self._idle_timeout and now - self._last_output >= self._idle_timeout:
                self.timed_out = "idle timeout"
            else:
                continue
            logger.warning(
                "Killing %s: %s", self.args[0], self.timed_out, extra={"cwd": str(self.cwd)}
            )
            proc.kill()
            return


__all__ = ["CliProcess"]
