"""Line-atomic protocol output shared by the dispatcher, worker and watchdog."""

from __future__ import annotations

import io
import sys
import threading
import time
from typing import Iterable, Optional, TextIO

INFO_PREFIX = "info string "


def ensure_line_buffered_stdout() -> None:
    stdout = sys.stdout
    if isinstance(stdout, io.TextIOBase) and getattr(stdout, "line_buffering", False):
        return
    buffer = getattr(stdout, "buffer", None)
    if buffer is None:
        return
    sys.stdout = io.TextIOWrapper(buffer, line_buffering=True)


class Output:
    """Writes whole lines under a lock and remembers when the last one went out.

    ``send`` is for protocol replies (``bestmove``, ``readyok``, ``info depth``),
    ``info`` for human readable diagnostics which get the ``info string`` prefix.
    When no stream is given the current ``sys.stdout`` is looked up on every
    write.
    """

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream
        self._lock = threading.RLock()
        self._last_output = time.monotonic()

    @property
    def last_output(self) -> float:
        """Monotonic timestamp (seconds) of the most recent line."""
        with self._lock:
            return self._last_output

    def send(self, line: str) -> None:
        self.write_lines((line,))

    def info(self, message: str) -> None:
        self.write_lines(INFO_PREFIX + line for line in str(message).splitlines() or [""])

    def write_lines(self, lines: Iterable[str]) -> None:
        with self._lock:
            stream = self._stream or sys.stdout
            for line in lines:
                print(line, file=stream)
            stream.flush()
            self._last_output = time.monotonic()

    def block(self) -> threading.RLock:
        """Hold this while writing several lines that must stay together."""
        return self._lock
