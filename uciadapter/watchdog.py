"""Timer thread that enforces search deadlines and reports progress."""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING, Optional

from .models import StopReason

if TYPE_CHECKING:
    from .engine import ChessEngine

MIN_SLEEP = 0.001


class Watchdog:
    """One per engine.  Runs until a full stop is requested.

    While a search is active it flags ``StopReason.TIMEOUT`` shortly before
    the deadline and, between deadlines, emits an ``info depth ...`` line
    whenever nothing has been printed for ``output_interval_ms``.  It never
    touches the worker thread itself.
    """

    def __init__(self, engine: "ChessEngine") -> None:
        self._engine = engine
        self._control = engine.control
        self._output = engine.output
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._active = False

    def is_running(self) -> bool:
        with self._lock:
            return self._active

    def ensure_running(self) -> None:
        with self._lock:
            if self._active:
                return
            self._active = True
            self._thread = threading.Thread(target=self._run, name="watchdog", daemon=True)
            self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _run(self) -> None:
        try:
            while self._keep_running():
                self._tick()
        except Exception as exc:
            self._output.info(f"ERROR: watchdog {exc}")
            with self._lock:
                self._active = False

    def _keep_running(self) -> bool:
        # checked under the lock so ensure_running never sees a thread that is about to exit
        with self._lock:
            if self._control.stop_requested():
                self._active = False
                return False
            return True

    def _tick(self) -> None:
        config = self._engine.config
        control = self._control
        generation = control.generation
        margin = config.deadline_margin_ms / 1000.0
        now = time.monotonic()

        if not control.is_searching():
            control.wait_for_change(generation, config.idle_interval_ms / 1000.0)
            return

        sleep = config.poll_interval_ms / 1000.0
        if not control.timeout_occurred():
            deadline = control.stop_time
            if deadline and now + margin >= deadline:
                control.request_stop(StopReason.TIMEOUT)
            else:
                interval = config.output_interval_ms / 1000.0
                if now >= self._output.last_output + interval:
                    self._output.send(self._engine.get_search_stats().info_line())
                if deadline:
                    sleep = min(sleep, deadline - margin - now)
        control.wait_for_change(generation, max(MIN_SLEEP, sleep))
