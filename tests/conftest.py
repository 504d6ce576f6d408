import threading
from typing import List, Optional, Tuple

import pytest

from uciadapter import (
    START_FEN,
    AdapterConfig,
    ChessEngine,
    EngineOption,
    GoParams,
    OptionType,
    SearchStats,
    SimpleEngine,
)


class StubEngine(ChessEngine):
    """Records every call so tests can assert exactly what the adapter did."""

    def __init__(self, config: Optional[AdapterConfig] = None) -> None:
        super().__init__(config or AdapterConfig(use_timer=False))
        self.calls: List[Tuple] = []
        self.fen = START_FEN
        self.initialized = False
        self.registered = True
        self.rejected_moves = set()
        self.result: Tuple[Optional[str], Optional[str]] = ("e2e4", None)
        # when set, every search waits for it (or for a stop request)
        self.release: Optional[threading.Event] = None
        self.search_until_stopped = False
        self.options = [
            EngineOption("Hash", OptionType.SPIN, "16", min_value=1, max_value=64),
            EngineOption("Ponder", OptionType.CHECK, "false"),
        ]

    def engine_name(self) -> str:
        return "Stub"

    def engine_version(self) -> str:
        return "0.1"

    def author_name(self) -> str:
        return "Tester"

    def get_options(self) -> List[EngineOption]:
        return self.options

    def set_engine_option(self, name: str, value: str) -> bool:
        self.calls.append(("setoption", name, value))
        for option in self.options:
            if option.name.lower() == name.lower():
                return option.set_value(value) if value else True
        return False

    def initialize(self) -> None:
        self.calls.append(("initialize",))
        self.initialized = True

    def is_initialized(self) -> bool:
        return self.initialized

    def set_position(self, fen: str) -> Optional[str]:
        self.calls.append(("set_position", fen))
        fields = fen.split()
        if len(fields) < 4 or fields[0].count("/") != 7:
            return None
        consumed = 4
        while consumed < min(6, len(fields)) and fields[consumed].isdigit():
            consumed += 1
        self.fen = " ".join(fields[:consumed])
        return " ".join(fields[consumed:])

    def make_move(self, move: str) -> bool:
        self.calls.append(("make_move", move))
        return move not in self.rejected_moves

    def get_fen(self) -> str:
        return self.fen

    def print_board(self) -> None:
        self.output.info(f"board {self.fen}")

    def white_to_move(self) -> bool:
        return True

    def clear_search_data(self) -> None:
        self.calls.append(("clear_search_data",))

    def ponder_hit(self) -> None:
        self.calls.append(("ponder_hit",))

    def is_registered(self) -> bool:
        return self.registered

    def do_registration(self, name: str, code: str) -> bool:
        self.calls.append(("register", name, code))
        return code == "1234"

    def my_go(self, params: GoParams) -> Tuple[Optional[str], Optional[str]]:
        self.calls.append(("go", params))
        if params.infinite or self.search_until_stopped:
            while not self.should_stop():
                self.control.wait_for_change(self.control.generation, 0.01)
        elif self.release is not None:
            self.release.wait(5.0)
        return self.result

    def my_perft(self, depth: int) -> int:
        self.calls.append(("perft", depth))
        return 20 ** depth

    def get_search_stats(self) -> SearchStats:
        return SearchStats(depth=3, seldepth=5, nodes=1000, qnodes=250, msecs=self.control.elapsed_ms())

    def calls_named(self, name: str) -> List[Tuple]:
        return [call for call in self.calls if call[0] == name]


@pytest.fixture()
def stub_engine():
    engine = StubEngine()
    yield engine
    engine.quit()


@pytest.fixture()
def simple_engine():
    engine = SimpleEngine(AdapterConfig(use_timer=False))
    engine.initialize()
    yield engine
    engine.quit()


@pytest.fixture()
def make_stub_engine():
    engines: List[StubEngine] = []

    def factory(config: Optional[AdapterConfig] = None) -> StubEngine:
        engine = StubEngine(config)
        engines.append(engine)
        return engine

    yield factory
    for engine in engines:
        engine.quit()
