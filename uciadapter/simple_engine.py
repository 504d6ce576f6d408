"""Reference engine built on python-chess.

Scores every legal move one ply deep with material and piece-square terms
and plays the best one.  It exists so the adapter can be run end to end and
so ``go``, ``perft`` and ``test`` have something real to drive.
"""

import random
import threading
from typing import Dict, List, Optional, Tuple

import chess

from .config import AdapterConfig
from .engine import START_FEN, ChessEngine
from .models import GoParams, SearchStats
from .options import EngineOption, OptionType
from .output import Output

# Basic centipawn piece values
PIECE_VALUES: Dict[int, int] = {
    chess.PAWN: 100,
    chess.KNIGHT: 320,
    chess.BISHOP: 330,
    chess.ROOK: 500,
    chess.QUEEN: 900,
    chess.KING: 0,
}

CHECK_BONUS = 24
PROMOTION_BONUS = 80
TRADE_ATTACKER_WEIGHT = 0.3

# Piece-square tables from white's point of view, a8 first
PIECE_SQUARE_TABLES: Dict[int, List[int]] = {
    chess.PAWN: [
        0, 0, 0, 0, 0, 0, 0, 0,
        50, 50, 50, 50, 50, 50, 50, 50,
        10, 10, 20, 30, 30, 20, 10, 10,
        5, 5, 10, 25, 25, 10, 5, 5,
        0, 0, 0, 20, 20, 0, 0, 0,
        5, -5, -10, 0, 0, -10, -5, 5,
        5, 10, 10, -20, -20, 10, 10, 5,
        0, 0, 0, 0, 0, 0, 0, 0,
    ],
    chess.KNIGHT: [
        -50, -40, -30, -30, -30, -30, -40, -50,
        -40, -20, 0, 0, 0, 0, -20, -40,
        -30, 0, 10, 15, 15, 10, 0, -30,
        -30, 5, 15, 20, 20, 15, 5, -30,
        -30, 0, 15, 20, 20, 15, 0, -30,
        -30, 5, 10, 15, 15, 10, 5, -30,
        -40, -20, 0, 5, 5, 0, -20, -40,
        -50, -40, -30, -30, -30, -30, -40, -50,
    ],
    chess.BISHOP: [
        -20, -10, -10, -10, -10, -10, -10, -20,
        -10, 0, 0, 0, 0, 0, 0, -10,
        -10, 0, 5, 10, 10, 5, 0, -10,
        -10, 5, 5, 10, 10, 5, 5, -10,
        -10, 0, 10, 10, 10, 10, 0, -10,
        -10, 10, 10, 10, 10, 10, 10, -10,
        -10, 5, 0, 0, 0, 0, 5, -10,
        -20, -10, -10, -10, -10, -10, -10, -20,
    ],
    chess.ROOK: [
        0, 0, 0, 0, 0, 0, 0, 0,
        5, 10, 10, 10, 10, 10, 10, 5,
        -5, 0, 0, 0, 0, 0, 0, -5,
        -5, 0, 0, 0, 0, 0, 0, -5,
        -5, 0, 0, 0, 0, 0, 0, -5,
        -5, 0, 0, 0, 0, 0, 0, -5,
        -5, 0, 0, 0, 0, 0, 0, -5,
        0, 0, 0, 5, 5, 0, 0, 0,
    ],
    chess.QUEEN: [
        -20, -10, -10, -5, -5, -10, -10, -20,
        -10, 0, 0, 0, 0, 0, 0, -10,
        -10, 0, 5, 5, 5, 5, 0, -10,
        -5, 0, 5, 5, 5, 5, 0, -5,
        0, 0, 5, 5, 5, 5, 0, -5,
        -10, 0, 5, 5, 5, 5, 0, -10,
        -10, 0, 0, 0, 0, 0, 0, -10,
        -20, -10, -10, -5, -5, -10, -10, -20,
    ],
    chess.KING: [
        -30, -40, -40, -50, -50, -40, -40, -30,
        -30, -40, -40, -50, -50, -40, -40, -30,
        -30, -30, -30, -40, -40, -30, -30, -30,
        -20, -20, -20, -20, -20, -20, -20, -20,
        -10, -10, -10, -10, -10, -10, -10, -10,
        20, 20, 0, 0, 0, 0, 20, 20,
        20, 30, 10, 0, 0, 10, 30, 20,
        20, 30, 10, 0, 0, 10, 30, 20,
    ],
}

STYLE_MATERIAL = "Material"
STYLE_POSITIONAL = "Positional"
CLEAR_SEARCH_DATA = "Clear Search Data"


def _table_index(square: chess.Square, color: chess.Color) -> int:
    # tables are laid out a8..h1, python-chess squares run a1..h8
    return chess.square_mirror(square) if color == chess.WHITE else square


class SimpleEngine(ChessEngine):
    """Single-ply heuristic engine used as the default collaborator."""

    def __init__(self, config: Optional[AdapterConfig] = None, output: Optional[Output] = None) -> None:
        super().__init__(config, output)
        self.board = chess.Board()
        self._initialized = False
        self._rng = random.Random()
        self._ponder_hit = threading.Event()
        self._stats_lock = threading.Lock()
        self._stats = SearchStats()
        self._total_nodes = 0
        self._searches = 0
        self._options: Dict[str, EngineOption] = {
            option.name.lower(): option
            for option in (
                EngineOption("Hash", OptionType.SPIN, "16", min_value=1, max_value=1024),
                EngineOption("Ponder", OptionType.CHECK, "false"),
                EngineOption(
                    "Style",
                    OptionType.COMBO,
                    STYLE_POSITIONAL,
                    combo_values=(STYLE_MATERIAL, STYLE_POSITIONAL),
                ),
                EngineOption("Noise", OptionType.SPIN, "0", min_value=0, max_value=200),
                EngineOption("Poll Interval", OptionType.SPIN, "1000", min_value=1, max_value=1000000),
                EngineOption(CLEAR_SEARCH_DATA, OptionType.BUTTON),
            )
        }

    # ------------------------------------------------------------------
    # Identity and options
    # ------------------------------------------------------------------

    def engine_name(self) -> str:
        return "SimpleEngine"

    def engine_version(self) -> str:
        return "1.0"

    def author_name(self) -> str:
        return "uciadapter developers"

    def get_options(self) -> List[EngineOption]:
        return list(self._options.values())

    def set_engine_option(self, name: str, value: str) -> bool:
        option = self._options.get(name.strip().lower())
        if option is None:
            return False
        if option.option_type is OptionType.BUTTON:
            if option.name == CLEAR_SEARCH_DATA:
                self.clear_search_data()
            return True
        if not value:
            option.reset()
            return True
        if not option.set_value(value):
            return False
        self.log_debug(f"{option.name} set to {option.value}")
        return True

    def option(self, name: str) -> EngineOption:
        return self._options[name.lower()]

    # ------------------------------------------------------------------
    # Position and board
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        self.board.reset()
        self._initialized = True

    def is_initialized(self) -> bool:
        return self._initialized

    def set_position(self, fen: str) -> Optional[str]:
        fields = fen.split()
        if len(fields) < 4:
            return None
        consumed = 4
        # halfmove and fullmove counters are optional
        while consumed < min(6, len(fields)) and fields[consumed].isdigit():
            consumed += 1
        text = " ".join(fields[:consumed])
        try:
            board = chess.Board(text)
        except ValueError:
            self.log_debug(f"Invalid FEN received: {text}")
            return None
        self.board = board
        return " ".join(fields[consumed:])

    def make_move(self, move: str) -> bool:
        try:
            parsed = chess.Move.from_uci(move)
        except ValueError:
            return False
        if parsed not in self.board.legal_moves:
            return False
        self.board.push(parsed)
        return True

    def get_fen(self) -> str:
        return self.board.fen()

    def print_board(self) -> None:
        with self.output.block():
            for line in str(self.board).splitlines():
                self.output.info(line)
            self.output.info(f"fen {self.board.fen()}")

    def white_to_move(self) -> bool:
        return self.board.turn == chess.WHITE

    def clear_search_data(self) -> None:
        with self._stats_lock:
            self._stats = SearchStats()

    def ponder_hit(self) -> None:
        self._ponder_hit.set()

    def clear_stop_flags(self) -> None:
        super().clear_stop_flags()
        self._ponder_hit.clear()

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def get_search_stats(self) -> SearchStats:
        with self._stats_lock:
            stats = self._stats
            return SearchStats(
                depth=stats.depth,
                seldepth=stats.seldepth,
                nodes=stats.nodes,
                qnodes=stats.qnodes,
                msecs=self.control.elapsed_ms(),
                movenum=stats.movenum,
                move=stats.move,
            )

    def _update_stats(self, **changes) -> None:
        with self._stats_lock:
            for key, value in changes.items():
                setattr(self._stats, key, value)

    def my_go(self, params: GoParams) -> Tuple[Optional[str], Optional[str]]:
        self._update_stats(depth=1, seldepth=1, nodes=0, qnodes=0, movenum=0, move=None)
        board = self.board.copy(stack=False)
        best = self._select_move(board, params.nodes)
        self._searches += 1

        ponder = None
        if best is not None:
            board.push(best)
            reply = self._select_move(board, 0, count_nodes=False)
            ponder = reply.uci() if reply is not None else None

        if params.infinite or params.ponder:
            # the protocol forbids answering before stop (or ponderhit)
            while not self.should_stop() and not (params.ponder and self._ponder_hit.is_set()):
                self.control.wait_for_change(self.control.generation, 0.05)

        return (best.uci() if best is not None else None), ponder

    def _select_move(self, board: chess.Board, max_nodes: int, count_nodes: bool = True) -> Optional[chess.Move]:
        mover = board.turn
        best_move: Optional[chess.Move] = None
        best_score = -float("inf")
        noise = self.option("Noise").int_value

        for number, move in enumerate(list(board.legal_moves), start=1):
            if count_nodes:
                if self.should_stop() and best_move is not None:
                    break
                with self._stats_lock:
                    self._stats.nodes += 1
                    self._stats.movenum = number
                    self._stats.move = move.uci()
                self._total_nodes += 1
            score = self._score_move(board, move)
            if mover == chess.BLACK:
                score = -score
            if noise:
                score += self._rng.gauss(0.0, noise)
            if score > best_score:
                best_score = score
                best_move = move
            if count_nodes and max_nodes and number >= max_nodes:
                break
        return best_move

    def _score_move(self, board: chess.Board, move: chess.Move) -> float:
        mover = board.turn
        attacker = board.piece_at(move.from_square)
        captured = board.piece_at(move.to_square)
        if board.is_en_passant(move):
            capture_value = PIECE_VALUES[chess.PAWN]
        else:
            capture_value = PIECE_VALUES.get(captured.piece_type, 0) if captured else 0
        attacker_value = PIECE_VALUES.get(attacker.piece_type, 0) if attacker else 0
        gives_check = board.gives_check(move)
        sign = 1 if mover == chess.WHITE else -1

        board.push(move)
        try:
            if board.is_checkmate():
                return sign * 100000.0
            score = self._evaluate_board(board)
        finally:
            board.pop()

        if gives_check:
            score += sign * CHECK_BONUS
        if move.promotion is not None:
            score += sign * PROMOTION_BONUS
        if capture_value:
            score += sign * (capture_value - TRADE_ATTACKER_WEIGHT * attacker_value)
        return score

    def _evaluate_board(self, board: chess.Board) -> float:
        positional = self.option("Style").value == STYLE_POSITIONAL
        score = 0.0
        for square, piece in board.piece_map().items():
            value = PIECE_VALUES.get(piece.piece_type, 0)
            if positional:
                value += PIECE_SQUARE_TABLES[piece.piece_type][_table_index(square, piece.color)]
            score += value if piece.color == chess.WHITE else -value
        return score

    def my_perft(self, depth: int) -> int:
        self._update_stats(depth=depth, seldepth=depth, nodes=0, qnodes=0, movenum=0, move=None)
        board = self.board.copy(stack=False)
        poll = self.option("Poll Interval").int_value
        return self._perft(board, depth, poll)

    def _perft(self, board: chess.Board, depth: int, poll: int) -> int:
        if depth <= 0:
            return 1
        leafs = 0
        for move in board.legal_moves:
            with self._stats_lock:
                self._stats.nodes += 1
                nodes = self._stats.nodes
            if nodes % poll == 0 and self.should_stop():
                break
            if depth == 1:
                leafs += 1
                continue
            board.push(move)
            leafs += self._perft(board, depth - 1, poll)
            board.pop()
        return leafs

    def reset_engine_stats(self) -> None:
        self._total_nodes = 0
        self._searches = 0

    def show_engine_stats(self) -> None:
        self.output.info(f"searches {self._searches} nodes {self._total_nodes}")


def build_engine(config: Optional[AdapterConfig] = None) -> SimpleEngine:
    engine = SimpleEngine(config)
    engine.initialize()
    engine.set_position(START_FEN)
    return engine
