"""Resolve loosely written chess moves into coordinate notation.

``MoveFinder`` keeps a throwaway 8x8 snapshot of a FEN position and matches a
move descriptor such as ``Nbd2``, ``exd5``, ``QxR``, ``O-O`` or ``e7e8q``
against the pieces that could geometrically make it.  Only piece movement and
occupancy are considered; checks and pins are ignored.
"""

from __future__ import annotations

import string
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple


Square = Tuple[int, int]  # (file, rank), both 0..7
Direction = Tuple[int, int]

FILES = "abcdefgh"
RANKS = "12345678"
PIECE_LETTERS = "BKNPQR"
VICTIM_LETTERS = "BNPQR"
PROMOTION_LETTERS = "bnqr"
CAPTURE_MARKERS = "-x:"
PUNCTUATION = frozenset(string.punctuation)
CHECK_MARKS = "+#!?;"

ROOK_DIRECTIONS: Tuple[Direction, ...] = ((0, 1), (1, 0), (0, -1), (-1, 0))
BISHOP_DIRECTIONS: Tuple[Direction, ...] = ((1, 1), (1, -1), (-1, -1), (-1, 1))
KING_STEPS = ROOK_DIRECTIONS + BISHOP_DIRECTIONS
KNIGHT_JUMPS: Tuple[Direction, ...] = (
    (1, 2), (2, 1), (2, -1), (1, -2), (-1, -2), (-2, -1), (-2, 1), (-1, 2),
)

SLIDING_DIRECTIONS: Dict[str, Tuple[Direction, ...]] = {
    "B": BISHOP_DIRECTIONS,
    "R": ROOK_DIRECTIONS,
    "Q": ROOK_DIRECTIONS + BISHOP_DIRECTIONS,
}
STEPPING_DIRECTIONS: Dict[str, Tuple[Direction, ...]] = {
    "K": KING_STEPS,
    "N": KNIGHT_JUMPS,
}


def square_name(square: Square) -> str:
    return FILES[square[0]] + RANKS[square[1]]


def parse_square(text: str) -> Optional[Square]:
    if len(text) >= 2 and text[0] in FILES and text[1] in RANKS:
        return FILES.index(text[0]), RANKS.index(text[1])
    return None


def _on_board(file: int, rank: int) -> bool:
    return 0 <= file < 8 and 0 <= rank < 8


def _sign(value: int) -> int:
    return (value > 0) - (value < 0)


def _direction_between(origin: Square, dest: Square, sliding: bool) -> Optional[Direction]:
    file_delta = dest[0] - origin[0]
    rank_delta = dest[1] - origin[1]
    if not file_delta and not rank_delta:
        return None
    if not sliding:
        return file_delta, rank_delta
    if file_delta and rank_delta and abs(file_delta) != abs(rank_delta):
        return None
    return _sign(file_delta), _sign(rank_delta)


class _Cursor:
    """Reads a move descriptor left to right."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def peek(self, offset: int = 0) -> str:
        index = self.pos + offset
        return self.text[index] if index < len(self.text) else ""

    def take(self, alphabet: str) -> Optional[int]:
        char = self.peek()
        if char and char in alphabet:
            self.pos += 1
            return alphabet.index(char)
        return None

    def skip_punctuation(self) -> None:
        while self.peek() and self.peek() in PUNCTUATION:
            self.pos += 1

    @property
    def rest(self) -> str:
        return self.text[self.pos:]


class MoveFinder:
    def __init__(self, log: Optional[Callable[[str], None]] = None) -> None:
        self._log = log
        self._board: List[List[str]] = [[""] * 8 for _ in range(8)]
        self._white_to_move = True
        self._castle_short = {True: "", False: ""}
        self._castle_long = {True: "", False: ""}
        self._en_passant: Optional[Square] = None

    @property
    def white_to_move(self) -> bool:
        return self._white_to_move

    @property
    def en_passant(self) -> Optional[str]:
        return square_name(self._en_passant) if self._en_passant else None

    def piece_at(self, name: str) -> str:
        square = parse_square(name)
        if square is None:
            raise ValueError(f"Invalid square '{name}'")
        return self._board[square[0]][square[1]]

    def castle_moves(self, white: bool) -> Tuple[str, str]:
        """Kingside and queenside king moves still allowed for one side."""
        return self._castle_short[white], self._castle_long[white]

    # ------------------------------------------------------------------
    # Position loading
    # ------------------------------------------------------------------

    def load_position(self, fen: str) -> bool:
        """Rebuild the snapshot from ``fen``; trailing fields are ignored.

        On failure the problem is passed to the logger and the snapshot must
        not be used until the next successful load.
        """
        self._board = [[""] * 8 for _ in range(8)]
        self._white_to_move = True
        self._castle_short = {True: "", False: ""}
        self._castle_long = {True: "", False: ""}
        self._en_passant = None

        fields = fen.split()
        if len(fields) < 2:
            return self._fail(f"Incomplete position '{fen}'")

        rows = fields[0].split("/")
        if len(rows) != 8:
            return self._fail(f"Expected 8 ranks in '{fields[0]}'")
        for row_index, row in enumerate(rows):
            rank = 7 - row_index
            file = 0
            for char in row:
                if char in RANKS:
                    file += int(char)
                elif char.upper() in PIECE_LETTERS:
                    if file < 8:
                        self._board[file][rank] = char
                    file += 1
                else:
                    return self._fail(f"Invalid character '{char}' in rank {rank + 1}")
                if file > 8:
                    return self._fail(f"Too many squares in rank {rank + 1}")
            if file != 8:
                return self._fail(f"Too few squares in rank {rank + 1}")

        side = fields[1]
        if side not in ("w", "b"):
            return self._fail(f"Expected 'w' or 'b' at '{side}'")
        self._white_to_move = side == "w"

        rights = fields[2] if len(fields) > 2 else "-"
        if rights != "-":
            for char in rights:
                if char == "K":
                    self._castle_short[True] = "e1g1"
                elif char == "Q":
                    self._castle_long[True] = "e1c1"
                elif char == "k":
                    self._castle_short[False] = "e8g8"
                elif char == "q":
                    self._castle_long[False] = "e8c8"
                else:
                    return self._fail(f"Unexpected castle rights at '{rights}'")

        if len(fields) > 3:
            self._en_passant = parse_square(fields[3])
        return True

    def _fail(self, message: str) -> bool:
        if self._log is not None:
            self._log(message)
        return False

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, notation: str) -> str:
        """Coordinate notation for ``notation``, or "" when it is not exactly one move."""
        text = notation.strip()
        if len(text) < 2:
            return ""

        castle_short = self._castle_short[self._white_to_move]
        castle_long = self._castle_long[self._white_to_move]
        bare = text.rstrip(CHECK_MARKS)
        spelled = bare.lower().replace("0", "o")
        if spelled == "o-o-o" or (castle_long and bare == castle_long):
            return castle_long
        if spelled == "o-o" or (castle_short and bare == castle_short):
            return castle_short

        if text in ("ep", "e.p."):
            if self._en_passant is None:
                return ""
            return self._piece_move("", "P", dest=self._en_passant)

        if text[0] in PIECE_LETTERS:
            return self._piece_move(text[1:], text[0])

        square = parse_square(text)
        if square is not None:
            occupant = self._board[square[0]][square[1]]
            if not occupant:
                return self._piece_move(text[2:], "P", dest=square)
            if self._is_friend(occupant):
                return self._piece_move(text[2:], occupant.upper(), origin=square)
            return ""

        if text[0] in FILES and (text[1] in FILES or text[1] in CAPTURE_MARKERS):
            return self._piece_move(text, "P")
        return ""

    def _piece_move(
        self,
        descriptor: str,
        piece: str,
        origin: Optional[Square] = None,
        dest: Optional[Square] = None,
    ) -> str:
        cursor = _Cursor(descriptor)
        from_file = from_rank = to_file = to_rank = None
        capture = ""

        if origin is not None:
            from_file, from_rank = origin
        if dest is not None:
            to_file, to_rank = dest
        else:
            if origin is None:
                from_file = cursor.take(FILES)
                from_rank = cursor.take(RANKS)

            marker = cursor.take(CAPTURE_MARKERS)
            if marker is not None:
                capture = "-" if CAPTURE_MARKERS[marker] == "-" else "x"
            victim = cursor.take(VICTIM_LETTERS)
            if victim is not None:
                if capture == "-":
                    return ""
                capture = VICTIM_LETTERS[victim]

            to_file = cursor.take(FILES)
            to_rank = cursor.take(RANKS)
            if to_file is None and to_rank is None:
                if origin is not None:
                    return ""
                # a lone square part names the destination
                to_file, to_rank = from_file, from_rank
                from_file = from_rank = None

        cursor.skip_punctuation()
        promotion = ""
        if piece == "P" and cursor.peek() and cursor.peek().lower() in PROMOTION_LETTERS:
            promotion = cursor.peek().lower()
            cursor.pos += 1
            cursor.skip_punctuation()
        if cursor.rest:
            return ""

        origins = self._origins(piece, from_file, from_rank)
        if not origins:
            return ""
        moves = self._generate(piece, origins, to_file, to_rank, capture)
        if len(moves) != 1:
            return ""
        start, end = moves[0]
        return square_name(start) + square_name(end) + promotion

    def _origins(self, piece: str, file: Optional[int], rank: Optional[int]) -> List[Square]:
        letter = self._friend(piece)
        files = range(8) if file is None else (file,)
        ranks = range(8) if rank is None else (rank,)
        return [(x, y) for x in files for y in ranks if self._board[x][y] == letter]

    def _generate(
        self,
        piece: str,
        origins: Iterable[Square],
        to_file: Optional[int],
        to_rank: Optional[int],
        capture: str,
    ) -> List[Tuple[Square, Square]]:
        moves: List[Tuple[Square, Square]] = []
        dest_known = to_file is not None and to_rank is not None
        for origin in origins:
            if piece == "P":
                targets = self._pawn_targets(origin)
            else:
                sliding = piece in SLIDING_DIRECTIONS
                directions = SLIDING_DIRECTIONS.get(piece) or STEPPING_DIRECTIONS[piece]
                if dest_known:
                    directions = self._prune(origin, (to_file, to_rank), directions, sliding)
                targets = self._line_targets(origin, directions, sliding)
            for dest, captured in targets:
                if self._accepts(dest, captured, to_file, to_rank, capture):
                    moves.append((origin, dest))
        return moves

    @staticmethod
    def _prune(
        origin: Square, dest: Square, directions: Sequence[Direction], sliding: bool
    ) -> Sequence[Direction]:
        direction = _direction_between(origin, dest, sliding)
        if direction in directions:
            return (direction,)
        return directions

    def _line_targets(
        self, origin: Square, directions: Iterable[Direction], sliding: bool
    ) -> List[Tuple[Square, str]]:
        targets: List[Tuple[Square, str]] = []
        for file_step, rank_step in directions:
            file, rank = origin[0] + file_step, origin[1] + rank_step
            while _on_board(file, rank):
                occupant = self._board[file][rank]
                if occupant and self._is_friend(occupant):
                    break
                targets.append(((file, rank), occupant))
                if occupant or not sliding:
                    break
                file, rank = file + file_step, rank + rank_step
        return targets

    def _pawn_targets(self, origin: Square) -> List[Tuple[Square, str]]:
        forward = 1 if self._white_to_move else -1
        start_rank = 1 if self._white_to_move else 6
        file, rank = origin
        targets: List[Tuple[Square, str]] = []

        if _on_board(file, rank + forward) and not self._board[file][rank + forward]:
            targets.append(((file, rank + forward), ""))
            double = rank + 2 * forward
            if rank == start_rank and _on_board(file, double) and not self._board[file][double]:
                targets.append(((file, double), ""))

        for side in (1, -1):
            dest = (file + side, rank + forward)
            if not _on_board(*dest):
                continue
            occupant = self._board[dest[0]][dest[1]]
            if occupant and not self._is_friend(occupant):
                targets.append((dest, occupant))
            elif not occupant and dest == self._en_passant:
                targets.append((dest, self._enemy("P")))
        return targets

    @staticmethod
    def _accepts(
        dest: Square, captured: str, to_file: Optional[int], to_rank: Optional[int], capture: str
    ) -> bool:
        if to_file is not None and dest[0] != to_file:
            return False
        if to_rank is not None and dest[1] != to_rank:
            return False
        if capture == "-":
            return not captured
        if capture == "x":
            return bool(captured)
        if capture:
            return captured.upper() == capture
        return True

    def _is_friend(self, piece: str) -> bool:
        return piece.isupper() == self._white_to_move

    def _friend(self, piece: str) -> str:
        return piece.upper() if self._white_to_move else piece.lower()

    def _enemy(self, piece: str) -> str:
        return piece.lower() if self._white_to_move else piece.upper()
