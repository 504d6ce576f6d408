"""Long running commands and the worker thread that runs them.

Each command parses its own tokens, does its work on a worker thread and
reacts to ``stop()`` by polling.  ``BackgroundTask`` owns the thread and the
IDLE -> RUNNING -> (STOPPING -> JOINED) | COMPLETED lifecycle.
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Set, Tuple

from .engine import ChessEngine
from .models import GoParams, average, percent, rate
from .move_finder import MoveFinder
from .tokens import CommandTokens, TokenError


class TaskState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    JOINED = "joined"
    COMPLETED = "completed"


class BackgroundCommand(ABC):
    name = ""
    needs_arguments = False  # print usage instead of running when given no tokens
    changes_position = False

    def __init__(self, engine: ChessEngine) -> None:
        self.engine = engine
        self.output = engine.output
        self._stop_event = threading.Event()
        self._reset()

    @abstractmethod
    def usage(self) -> str: ...

    @abstractmethod
    def description(self) -> str: ...

    @abstractmethod
    def _reset(self) -> None:
        """Put every parsed field back to its default."""

    @abstractmethod
    def _parse(self, tokens: CommandTokens) -> bool: ...

    @abstractmethod
    def run(self) -> None: ...

    def parse(self, tokens: CommandTokens) -> bool:
        self._reset()
        try:
            return self._parse(tokens)
        except TokenError as exc:
            self.output.info(str(exc))
            self.output.info(f"usage: {self.usage()}")
            return False

    def prepare(self) -> None:
        self._stop_event.clear()

    def stop(self) -> None:
        self._stop_event.set()
        self.engine.stop_searching()

    def stop_requested(self) -> bool:
        return self._stop_event.is_set() or self.engine.stop_requested()

    def _unexpected(self, tokens: CommandTokens) -> bool:
        self.output.info(f"Unexpected token: {tokens[0]}")
        self.output.info(f"usage: {self.usage()}")
        return False

    def _read_lines(self, path: str) -> Optional[List[str]]:
        try:
            with open(path, encoding="utf-8") as handle:
                return handle.read().splitlines()
        except OSError as exc:
            self.output.info(f"Cannot open file '{path}': {exc.strerror or exc}")
            return None


def _positions(lines: List[str], skip: int) -> Iterator[Tuple[int, str]]:
    """Yield ``(line_number, text)`` for non-blank, non-comment lines after ``skip``."""
    seen = 0
    for number, raw in enumerate(lines, start=1):
        text = raw.strip()
        if not text or text.startswith("#"):
            continue
        seen += 1
        if seen <= skip:
            continue
        yield number, text


class RegisterCommand(BackgroundCommand):
    name = "register"

    def usage(self) -> str:
        return "register [later] [name <x>] [code <x>]"

    def description(self) -> str:
        return "Register the chess engine to enable full functionality."

    def _reset(self) -> None:
        self.later = False
        self.user_name = ""
        self.code = ""

    def _parse(self, tokens: CommandTokens) -> bool:
        self.later = tokens.pop_param("later")
        self.user_name = tokens.pop_string_value("name", until="code") or ""
        self.code = tokens.pop_string_value("code") or ""
        if tokens:
            return self._unexpected(tokens)
        return True

    def run(self) -> None:
        engine = self.engine
        self.output.send("registration checking")
        if engine.is_registered():
            ok = True
        elif self.later:
            engine.register_later()
            ok = True
        else:
            ok = engine.do_registration(self.user_name, self.code)
        self.output.send("registration ok" if ok else "registration error")

    def stop(self) -> None:
        pass


class GoCommand(BackgroundCommand):
    name = "go"

    NUMBER_FIELDS = ("depth", "nodes", "movestogo", "movetime", "wtime", "btime", "winc", "binc")

    def usage(self) -> str:
        return (
            "go [infinite] [ponder] [depth <x>] [nodes <x>] [wtime <x>] [btime <x>] "
            "[winc <x>] [binc <x>] [movetime <msecs>] [movestogo <x>]"
        )

    def description(self) -> str:
        return "Find the best move for the current position."

    def _reset(self) -> None:
        self.params = GoParams()

    def _parse(self, tokens: CommandTokens) -> bool:
        values = {"infinite": False, "ponder": False}
        while tokens:
            if tokens.pop_param("searchmoves"):
                self.output.info("searchmoves not implemented!")
                tokens.clear()
                break
            flag = next((name for name in ("infinite", "ponder") if tokens.pop_param(name)), None)
            if flag:
                values[flag] = True
                continue
            for field_name in self.NUMBER_FIELDS:
                number = tokens.pop_number(field_name)
                if number is not None:
                    values[field_name] = number
                    break
            else:
                return self._unexpected(tokens)

        self.params = GoParams(**values)
        return True

    def run(self) -> None:
        best, ponder = self.engine.go(self.params)
        if not best:
            self.output.send("bestmove none")
        elif ponder:
            self.output.send(f"bestmove {best} ponder {ponder}")
        else:
            self.output.send(f"bestmove {best}")


class PerftCommand(BackgroundCommand):
    name = "perft"
    needs_arguments = True
    changes_position = True

    def usage(self) -> str:
        return (
            "perft [depth <x>] [count <x>] [skip <x>] [leafs <x>] [epd] "
            f"[file <x> (default={self.engine.config.perft_file})]"
        )

    def description(self) -> str:
        return "Execute performance test."

    def _reset(self) -> None:
        self.max_depth = 0
        self.count = 0
        self.skip = 0
        self.max_leafs = 0
        self.file_name = ""
        self.leaf_total = 0

    def _parse(self, tokens: CommandTokens) -> bool:
        epd = False
        while tokens:
            if tokens.pop_param("epd"):
                epd = True
                continue
            file_name = tokens.pop_string_value("file")
            if file_name is not None:
                self.file_name = file_name
                continue
            for field_name, attr in (
                ("depth", "max_depth"),
                ("count", "count"),
                ("skip", "skip"),
                ("leafs", "max_leafs"),
            ):
                number = tokens.pop_number(field_name)
                if number is not None:
                    setattr(self, attr, number)
                    break
            else:
                return self._unexpected(tokens)
        if epd and not self.file_name:
            self.file_name = self.engine.config.perft_file
        return True

    def run(self) -> None:
        self.leaf_total = 0
        start = time.monotonic()
        if self.file_name:
            if not self._run_file():
                return
        else:
            self.leaf_total = self.engine.perft(max(1, self.max_depth))
        msecs = (time.monotonic() - start) * 1000.0
        self.output.info(
            f"Total Perft {self.leaf_total} {rate(self.leaf_total / 1000.0, msecs):.2f} KLeafs/sec"
        )

    def _run_file(self) -> bool:
        lines = self._read_lines(self.file_name)
        if lines is None:
            return False
        done = False
        for tested, (number, text) in enumerate(_positions(lines, self.skip), start=1):
            if done or self.stop_requested():
                break
            self.output.info(f"{self.file_name} line {number} {text}")
            remain = self.engine.set_position(text)
            if remain is None:
                self.output.info(f"Invalid position: {text}")
                break
            done = not self._check_line(CommandTokens(remain))
            if self.count > 0 and tested >= self.count:
                break
        return True

    def _check_line(self, tokens: CommandTokens) -> bool:
        """Verify every ``D<depth> <leafs>`` pair; False stops the whole run."""
        while tokens:
            if self.stop_requested():
                return False
            token = tokens.pop_string().strip(" ;")
            if not token.startswith("D"):
                continue
            try:
                depth = int(token[1:])
            except ValueError:
                depth = 0
            if depth < 1:
                self.output.info(f"--- invalid depth: {token}")
                return True
            if not tokens:
                self.output.info("--- missing expected leaf count")
                return True
            expected = tokens.pop_leading_number()
            if expected is None or expected < 1:
                self.output.info("--- invalid expected leaf count")
                return True
            if not self._verify(depth, expected):
                return False
        return True

    def _verify(self, depth: int, expected: int) -> bool:
        if self.max_depth > 0 and depth > self.max_depth:
            return True
        if self.max_leafs > 0 and expected > self.max_leafs:
            return True
        self.output.info(f"--- {depth} => {expected}")
        leafs = self.engine.perft(depth)
        self.leaf_total += leafs
        if leafs != expected:
            self.output.info(f"--- {leafs} != {expected}")
            return False
        return True


@dataclass
class FailedTest:
    line: int
    fen: str
    bestmove: str


class TestCommand(BackgroundCommand):
    name = "test"
    needs_arguments = True
    changes_position = True
    __test__ = False  # not a pytest class

    def usage(self) -> str:
        return (
            "test [print] [skip <x>] [count <x>] [depth <x>] [time <msecs>] [fail <x>] "
            f"[file <x> (default={self.engine.config.test_file})]"
        )

    def description(self) -> str:
        return "Find the best move for a suite of test positions."

    def _reset(self) -> None:
        self.no_clear = False
        self.print_board = False
        self.max_count = 0
        self.max_depth = 0
        self.max_fails = 0
        self.skip = 0
        self.max_time = 0
        self.file_name = ""

    def _parse(self, tokens: CommandTokens) -> bool:
        while tokens:
            if tokens.pop_param("noclear"):
                self.no_clear = True
                continue
            if tokens.pop_param("print"):
                self.print_board = True
                continue
            file_name = tokens.pop_string_value("file")
            if file_name is not None:
                self.file_name = file_name
                continue
            for field_name, attr in (
                ("count", "max_count"),
                ("depth", "max_depth"),
                ("fail", "max_fails"),
                ("skip", "skip"),
                ("time", "max_time"),
            ):
                number = tokens.pop_number(field_name)
                if number is not None:
                    setattr(self, attr, number)
                    break
            else:
                return self._unexpected(tokens)
        if not self.file_name:
            self.file_name = self.engine.config.test_file
        return True

    @staticmethod
    def _expected_moves(finder: MoveFinder, tokens: CommandTokens) -> Tuple[Set[str], Set[str]]:
        best: Set[str] = set()
        avoid: Set[str] = set()
        while tokens:
            if tokens.pop_param("bm"):
                target = best
            elif tokens.pop_param("am"):
                target = avoid
            else:
                tokens.popleft()
                continue
            while tokens:
                coord = finder.resolve(tokens[0])
                if not coord:
                    break
                tokens.popleft()
                target.add(coord)
        return best, avoid

    def run(self) -> None:
        lines = self._read_lines(self.file_name)
        if lines is None:
            return

        engine = self.engine
        info = self.output.info
        finder = MoveFinder(log=info)
        failed: List[FailedTest] = []
        passed = tested = 0
        depths: List[int] = []
        seldepths: List[int] = []
        total_nodes = total_qnodes = total_time = 0

        engine.reset_engine_stats()
        for number, fen in _positions(lines, self.skip):
            if self.stop_requested():
                break
            tested += 1
            info(f"--- Test {tested} at line {number} {fen}")
            if not finder.load_position(fen):
                break
            remain = engine.set_position(fen)
            if remain is None:
                info(f"Invalid position: {fen}")
                break

            best, avoid = self._expected_moves(finder, CommandTokens(remain))
            if not best and not avoid:
                info(f"error at line {number}, no best or avoid moves specified")
                break

            if not self.no_clear:
                engine.clear_search_data()
            if self.print_board and not engine.is_debug_on():
                engine.print_board()

            bestmove, _ = engine.go(GoParams(depth=self.max_depth, movetime=self.max_time))
            bestmove = bestmove or ""
            stats = engine.get_search_stats()
            self.output.send(f"bestmove {bestmove or 'none'}")

            if not bestmove or (best and bestmove not in best) or (avoid and bestmove in avoid):
                info(f"--- FAILED! line {number} ({percent(passed, tested):.1f}%) {fen}")
                failed.append(FailedTest(number, fen, bestmove))
                if self.max_fails > 0 and len(failed) >= self.max_fails:
                    break
            else:
                passed += 1
                info(f"--- Passed. line {number} ({percent(passed, tested):.1f}%) {fen}")

            depths.append(stats.depth)
            seldepths.append(stats.seldepth)
            total_nodes += stats.nodes
            total_qnodes += stats.qnodes
            total_time += stats.msecs

            if engine.stop_requested() or (self.max_count and tested >= self.max_count):
                break

        with self.output.block():
            info(f"--- Completed {tested} test positions")
            info(f"--- Passed    {passed} passed ({percent(passed, tested):.1f}%)")
            info(f"--- Time      {total_time} ({average(total_time, tested):.1f} avg)")
            info(f"--- Nodes     {total_nodes}, {rate(total_nodes / 1000.0, total_time):.2f} KNodes/sec")
            info(f"--- QNodes    {total_qnodes} ({percent(total_qnodes, total_nodes):.1f}%)")
            info(
                f"--- Depth     {min(depths, default=-1)} min, "
                f"{int(average(sum(depths), len(depths)))} avg, {max(depths, default=0)} max"
            )
            info(
                f"--- SelDepth  {min(seldepths, default=-1)} min, "
                f"{int(average(sum(seldepths), len(seldepths)))} avg, {max(seldepths, default=0)} max"
            )
            info("--- Averaged Engine Statistics ---")
            engine.show_engine_stats()

            for failure in failed:
                info(f"--- Failed line {failure.line} {failure.fen}")
                info(f"--- Engine move: {failure.bestmove}")
                if self.print_board or engine.is_debug_on():
                    engine.set_position(failure.fen)
                    engine.print_board()


class BackgroundTask:
    """Runs one ``BackgroundCommand`` on a daemon worker thread.

    ``stop`` is non-blocking and may be called from any thread;
    ``wait_for_finish`` is an unbounded join.  The engine's worker slot makes
    sure only one task per engine is running at a time.
    """

    def __init__(self, command: BackgroundCommand, engine: Optional[ChessEngine] = None) -> None:
        self.command = command
        self.engine = engine or command.engine
        self._lock = threading.Lock()
        self._state = TaskState.IDLE
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> TaskState:
        with self._lock:
            return self._state

    def is_running(self) -> bool:
        return self.state in (TaskState.RUNNING, TaskState.STOPPING)

    def start(self) -> bool:
        engine = self.engine
        with self._lock:
            if self._state is not TaskState.IDLE:
                return False
            if not engine.control.claim_worker(self):
                engine.output.info("Another background command is still active, can't execute")
                return False
            try:
                if not engine.is_initialized():
                    engine.initialize()
                engine.clear_stop_flags()
                self.command.prepare()
                self._thread = threading.Thread(target=self._run, name=self.command.name, daemon=True)
                self._state = TaskState.RUNNING
                self._thread.start()
            except Exception:
                self._state = TaskState.IDLE
                self._thread = None
                engine.control.release_worker(self)
                raise
        return True

    def _run(self) -> None:
        try:
            self.command.run()
        except Exception as exc:
            self.engine.output.info(f"ERROR: {self.command.name} {exc}")
        finally:
            self.engine.control.release_worker(self)
            with self._lock:
                if self._state is TaskState.RUNNING:
                    self._state = TaskState.COMPLETED

    def stop(self) -> None:
        with self._lock:
            if self._state is not TaskState.RUNNING:
                return
            self._state = TaskState.STOPPING
        self.command.stop()

    def wait_for_finish(self) -> None:
        with self._lock:
            thread = self._thread
        if thread is None:
            return
        if thread is not threading.current_thread():
            thread.join()
        with self._lock:
            if self._state is TaskState.STOPPING:
                self._state = TaskState.JOINED
