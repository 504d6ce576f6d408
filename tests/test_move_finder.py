import pytest

from uciadapter import START_FEN, MoveFinder
from uciadapter.move_finder import parse_square, square_name

AFTER_E4 = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3 0 1"
OPEN_CENTER = "rnbqkbnr/ppp1pppp/8/3p4/4P3/8/PPPP1PPP/RNBQKBNR w KQkq d6 0 2"
EN_PASSANT = "4k3/8/8/3pP3/8/8/8/4K3 w - d6 0 2"
TWO_ROOKS = "4k3/8/8/8/8/8/4K3/R6R w - - 0 1"
PROMOTION = "8/4P3/8/8/8/8/k7/4K3 w - - 0 1"
CASTLING = "r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1"


def finder_for(fen: str) -> MoveFinder:
    finder = MoveFinder()
    assert finder.load_position(fen)
    return finder


@pytest.mark.parametrize(
    "notation, expected",
    [
        ("e4", "e2e4"),
        ("e3", "e2e3"),
        ("e2e4", "e2e4"),
        ("Nf3", "g1f3"),
        ("Nc3+", "b1c3"),
        ("Ng1f3", "g1f3"),
        ("g1-f3", "g1f3"),
        ("O-O", "e1g1"),
        ("0-0-0", "e1c1"),
        ("e1g1", "e1g1"),
        ("e5", ""),
        ("Nd4", ""),
        ("Qd1", ""),
        ("Ke2", ""),
        ("x", ""),
        ("z9", ""),
    ],
)
def test_resolve_from_start(notation: str, expected: str) -> None:
    assert finder_for(START_FEN).resolve(notation) == expected


def test_black_moves() -> None:
    finder = finder_for(AFTER_E4)
    assert not finder.white_to_move
    assert finder.resolve("e5") == "e7e5"
    assert finder.resolve("Nf6") == "g8f6"
    assert finder.resolve("O-O") == "e8g8"
    assert finder.resolve("e4") == ""


@pytest.mark.parametrize(
    "notation, expected",
    [
        ("O-O+", "e1g1"),
        ("0-0-0#", "e1c1"),
        ("e1c1", "e1c1"),
        ("e1g1!", "e1g1"),
        ("e1g1q", ""),
        ("O-O-Q", ""),
        ("O-Oxyz", ""),
        ("o-o-o-o", ""),
    ],
)
def test_castling_must_match_whole_move(notation: str, expected: str) -> None:
    assert finder_for(CASTLING).resolve(notation) == expected


@pytest.mark.parametrize(
    "notation, expected",
    [
        ("exd5", "e4d5"),
        ("ed", "e4d5"),
        ("ed5", "e4d5"),
        ("PxP", "e4d5"),
        ("exd5!", "e4d5"),
        ("e5", "e4e5"),
        ("e4-d5", ""),
        ("Bb5", "f1b5"),
        ("Qh5", "d1h5"),
    ],
)
def test_pawn_captures(notation: str, expected: str) -> None:
    assert finder_for(OPEN_CENTER).resolve(notation) == expected


def test_en_passant() -> None:
    finder = finder_for(EN_PASSANT)
    assert finder.en_passant == "d6"
    assert finder.resolve("ep") == "e5d6"
    assert finder.resolve("exd6") == "e5d6"
    assert finder.resolve("PxP") == "e5d6"
    assert finder.resolve("e6") == "e5e6"


def test_ambiguous_moves_need_disambiguation() -> None:
    finder = finder_for(TWO_ROOKS)
    assert finder.resolve("Rd1") == ""
    assert finder.resolve("Rad1") == "a1d1"
    assert finder.resolve("Rhd1") == "h1d1"
    assert finder.resolve("Ra8") == "a1a8"
    # no castle rights in this position
    assert finder.resolve("O-O") == ""


def test_capture_of_named_piece_through_empty_squares() -> None:
    finder = finder_for("4k3/8/8/8/r7/8/8/Q3K3 w - - 0 1")
    assert finder.resolve("QxR") == "a1a4"
    assert finder.resolve("Qxa4") == "a1a4"
    assert finder.resolve("QxN") == ""
    assert finder.resolve("Q-a4") == ""
    assert finder.resolve("Qa3") == "a1a3"


def test_promotion() -> None:
    finder = finder_for(PROMOTION)
    assert finder.resolve("e8=Q") == "e7e8q"
    assert finder.resolve("e8n") == "e7e8n"
    assert finder.resolve("e7e8r") == "e7e8r"
    # only pawns promote
    assert finder.resolve("Ke2q") == ""
    assert finder.resolve("e8=K") == ""


def test_piece_lookup_and_squares() -> None:
    finder = finder_for(START_FEN)
    assert finder.piece_at("e1") == "K"
    assert finder.piece_at("d8") == "q"
    assert finder.piece_at("e4") == ""
    assert finder.castle_moves(True) == ("e1g1", "e1c1")
    with pytest.raises(ValueError):
        finder.piece_at("k9")
    assert parse_square("h8") == (7, 7)
    assert parse_square("i1") is None
    assert square_name((0, 0)) == "a1"


@pytest.mark.parametrize(
    "fen, message",
    [
        ("8/8/8 w - -", "Expected 8 ranks"),
        ("rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBN w KQkq -", "Too few squares"),
        ("rnbqkbnr/pppppppp/9/8/8/8/PPPPPPPP/RNBQKBNR w KQkq -", "Invalid character '9'"),
        ("rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNRR w KQkq -", "Too many squares"),
        ("rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR x KQkq -", "Expected 'w' or 'b'"),
        ("rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KX -", "Unexpected castle rights"),
        ("rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR", "Incomplete position"),
    ],
)
def test_load_failures_are_logged(fen: str, message: str) -> None:
    messages = []
    finder = MoveFinder(log=messages.append)
    assert not finder.load_position(fen)
    assert len(messages) == 1
    assert message in messages[0]


def test_reload_resets_state() -> None:
    finder = finder_for(EN_PASSANT)
    assert finder.load_position(START_FEN)
    assert finder.en_passant is None
    assert finder.piece_at("e5") == ""
