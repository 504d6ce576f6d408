"""Engine collaborator boundary and the per-engine search state."""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Tuple

from .config import AdapterConfig
from .models import GoParams, SearchStats, StopReason
from .options import EngineOption
from .output import Output
from .watchdog import Watchdog

START_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"


class SearchControl:
    """Cancellation bits, searching flag and timestamps shared by three threads.

    Everything lives behind one condition variable.  ``generation`` is bumped
    on every change so a sleeping watchdog can wake as soon as a search starts
    or a stop is requested.
    """

    def __init__(self) -> None:
        self._changed = threading.Condition(threading.Lock())
        self._reasons = StopReason.NONE
        self._searching = False
        self._start_time = time.monotonic()
        self._stop_time = 0.0
        self._end_time = 0.0
        self._generation = 0
        self._worker: Optional[Any] = None

    def _notify(self) -> None:
        self._generation += 1
        self._changed.notify_all()

    @property
    def generation(self) -> int:
        with self._changed:
            return self._generation

    @property
    def reasons(self) -> StopReason:
        with self._changed:
            return self._reasons

    def request_stop(self, reason: StopReason = StopReason.FULL_STOP) -> None:
        with self._changed:
            self._reasons |= reason
            self._notify()

    def clear(self, reasons: StopReason = StopReason.FULL_STOP | StopReason.TIMEOUT) -> None:
        with self._changed:
            self._reasons &= ~reasons
            self._notify()

    def stop_requested(self) -> bool:
        return bool(self.reasons & StopReason.FULL_STOP)

    def timeout_occurred(self) -> bool:
        return bool(self.reasons & StopReason.TIMEOUT)

    def should_stop(self) -> bool:
        return self.reasons != StopReason.NONE

    def begin_search(self, stop_time: float = 0.0, searching: bool = True, start_time: Optional[float] = None) -> None:
        with self._changed:
            self._reasons &= ~StopReason.TIMEOUT
            self._searching = searching
            self._start_time = time.monotonic() if start_time is None else start_time
            self._stop_time = stop_time
            self._end_time = 0.0
            self._notify()

    def end_search(self) -> None:
        with self._changed:
            self._searching = False
            self._end_time = time.monotonic()
            self._notify()

    def is_searching(self) -> bool:
        with self._changed:
            return self._searching

    @property
    def start_time(self) -> float:
        with self._changed:
            return self._start_time

    @property
    def stop_time(self) -> float:
        """Monotonic deadline in seconds, 0.0 when the search is unbounded."""
        with self._changed:
            return self._stop_time

    def elapsed_ms(self) -> int:
        """Milliseconds since the search started, frozen once it ends."""
        with self._changed:
            end = self._end_time or time.monotonic()
            return int((end - self._start_time) * 1000)

    def wait_for_search_finish(self, timeout: Optional[float] = None) -> bool:
        with self._changed:
            return self._changed.wait_for(lambda: not self._searching, timeout)

    def wait_for_change(self, since: int, timeout: Optional[float]) -> bool:
        with self._changed:
            return self._changed.wait_for(lambda: self._generation != since, timeout)

    def claim_worker(self, task: Any) -> bool:
        with self._changed:
            if self._worker is not None:
                return False
            self._worker = task
            return True

    def release_worker(self, task: Any) -> None:
        with self._changed:
            if self._worker is task:
                self._worker = None

    @property
    def worker(self) -> Optional[Any]:
        with self._changed:
            return self._worker


class ChessEngine(ABC):
    """Base class for engines driven by ``UCIAdapter``.

    Subclasses implement position handling, ``my_go`` and ``my_perft``; the
    ``go`` and ``perft`` template methods here take care of the deadline,
    the watchdog and the searching flag.  Long running work must poll
    ``should_stop()`` regularly, otherwise ``stop`` and ``quit`` block.
    """

    def __init__(self, config: Optional[AdapterConfig] = None, output: Optional[Output] = None) -> None:
        self.config = config or AdapterConfig()
        self.output = output or Output()
        self.control = SearchControl()
        self.watchdog = Watchdog(self)
        self._debug = False

    # ------------------------------------------------------------------
    # Identity and options
    # ------------------------------------------------------------------

    @abstractmethod
    def engine_name(self) -> str: ...

    @abstractmethod
    def engine_version(self) -> str: ...

    @abstractmethod
    def author_name(self) -> str: ...

    def email_address(self) -> str:
        return ""

    def country_name(self) -> str:
        return ""

    @abstractmethod
    def get_options(self) -> List[EngineOption]: ...

    @abstractmethod
    def set_engine_option(self, name: str, value: str) -> bool: ...

    # ------------------------------------------------------------------
    # Position and board
    # ------------------------------------------------------------------

    @abstractmethod
    def initialize(self) -> None: ...

    @abstractmethod
    def is_initialized(self) -> bool: ...

    @abstractmethod
    def set_position(self, fen: str) -> Optional[str]:
        """Load ``fen``; return the unconsumed remainder of the text or None on failure."""

    @abstractmethod
    def make_move(self, move: str) -> bool: ...

    @abstractmethod
    def get_fen(self) -> str: ...

    @abstractmethod
    def print_board(self) -> None: ...

    @abstractmethod
    def white_to_move(self) -> bool: ...

    @abstractmethod
    def clear_search_data(self) -> None: ...

    @abstractmethod
    def ponder_hit(self) -> None: ...

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    @abstractmethod
    def my_go(self, params: GoParams) -> Tuple[Optional[str], Optional[str]]:
        """Search the current position; return ``(bestmove, pondermove)``."""

    @abstractmethod
    def my_perft(self, depth: int) -> int: ...

    @abstractmethod
    def get_search_stats(self) -> SearchStats: ...

    def moves_to_go(self) -> int:
        return self.config.default_moves_to_go

    def use_timer(self) -> bool:
        return self.config.use_timer

    def compute_stop_time(self, params: GoParams, start: float) -> float:
        if params.infinite or params.ponder:
            return 0.0
        stop_time = start + params.movetime / 1000.0 if params.movetime > 0 else 0.0
        time_left = params.time_left(self.white_to_move())
        if time_left:
            moves = params.movestogo if params.movestogo > 0 else self.moves_to_go()
            end_time = start + (time_left / moves) / 1000.0
            if not stop_time or end_time < stop_time:
                stop_time = end_time
        return stop_time

    def go(self, params: GoParams) -> Tuple[Optional[str], Optional[str]]:
        start = time.monotonic()
        self.control.begin_search(self.compute_stop_time(params, start), start_time=start)
        if self.use_timer():
            self.watchdog.ensure_running()
        try:
            return self.my_go(params)
        finally:
            self.control.end_search()
            if self.stop_requested() and self.use_timer():
                self.watchdog.join()

    def perft(self, depth: int) -> int:
        self.control.begin_search(searching=False)
        return self.my_perft(depth)

    # ------------------------------------------------------------------
    # Registration and copy protection
    # ------------------------------------------------------------------

    def is_registered(self) -> bool:
        return True

    def register_later(self) -> None:
        pass

    def do_registration(self, name: str, code: str) -> bool:
        return True

    def is_copy_protected(self) -> bool:
        return False

    def copy_is_ok(self) -> bool:
        return True

    # ------------------------------------------------------------------
    # Debug, stop state and statistics
    # ------------------------------------------------------------------

    def set_debug(self, flag: bool) -> None:
        self._debug = flag

    def is_debug_on(self) -> bool:
        return self._debug

    def log_debug(self, message: str) -> None:
        if not self._debug:
            return
        self.output.info(message)

    def stop_searching(self, reason: StopReason = StopReason.FULL_STOP) -> None:
        self.control.request_stop(reason)

    def clear_stop_flags(self) -> None:
        self.control.clear()

    def stop_requested(self) -> bool:
        return self.control.stop_requested()

    def timeout_occurred(self) -> bool:
        return self.control.timeout_occurred()

    def should_stop(self) -> bool:
        return self.control.should_stop()

    def is_searching(self) -> bool:
        return self.control.is_searching()

    def wait_for_search_finish(self) -> None:
        self.control.wait_for_search_finish()

    def reset_engine_stats(self) -> None:
        pass

    def show_engine_stats(self) -> None:
        pass

    def quit(self) -> None:
        self.control.request_stop(StopReason.FULL_STOP)
        self.watchdog.join()
