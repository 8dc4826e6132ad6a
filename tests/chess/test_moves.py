"""Unit tests for /src/chess/moves.py"""

import pytest

from src.chess.board import Board
from src.chess.castling import CastlingDirection
from src.chess.moves import (
    DIAGONALS,
    STRAIGHTS,
    Move,
    candidate_castling_move,
    candidate_king_moves,
    candidate_knight_moves,
    candidate_pawn_moves,
    candidate_queen_moves,
    en_passant_moves,
    is_attacked_by_king,
    is_attacked_by_knight,
    is_attacked_by_pawn,
    is_attacked_on_diagonal,
    is_attacked_on_straight,
    is_pawn_push_to_promotion_square,
    pawn_pushes_w_promotion,
    raycasting_move,
)
from src.chess.pieces import Color, PieceType
from src.chess.square import BOARD_DIMENSIONS, Square
from src.core.exceptions import InvalidRequestError

EMPTY_FEN = "/".join(["8"] * 8)


def sq(name: str) -> Square:
    return Square.from_algebraic(name)


def targets(moves: list[Move]) -> set[str]:
    return {move.to_square.to_algebraic() for move in moves}


# -- MOVE CREATION, ENCODING/DECODING UCI NOTATION ---
@pytest.mark.parametrize("uci", ["e2e4", "a1a5", "g1f3", "e7e8q", "b2b1n"])
def test_uci_notation(uci: str) -> None:
    move = Move.from_uci(uci)
    assert move.from_square == sq(uci[:2])
    assert move.to_square == sq(uci[2:4])
    assert move.to_uci() == uci


def test_promotion_piece_from_uci() -> None:
    assert Move.from_uci("e7e8q").promote_to == PieceType.QUEEN
    assert Move.from_uci("e7e8").promote_to is None


@pytest.mark.parametrize("uci", ["e2", "e2e9", "e7e8x", "e2e4qq", "z1a1"])
def test_invalid_uci(uci: str) -> None:
    with pytest.raises(InvalidRequestError):
        Move.from_uci(uci)


def test_same_squares_ignores_engine_flags() -> None:
    """A requested king move matches the engine's castling move"""
    requested = Move.from_uci("e1g1")
    castling = candidate_castling_move(CastlingDirection.WHITE_KING_SIDE)
    assert requested.same_squares(castling)
    assert requested != castling
    assert not Move.from_uci("e7e8q").same_squares(Move.from_uci("e7e8n"))


# --- MOVEMENT RULES ---
def test_raycasting_move_empty_board() -> None:
    """Only the edge of the board stops a sliding piece on an empty board"""
    board = Board.from_fen("/".join(["8", "8", "8", "R7", "8", "8", "8", "8"]))
    moves = raycasting_move(sq("a5"), board, STRAIGHTS)
    assert len(moves) == (BOARD_DIMENSIONS[0] - 1) + (BOARD_DIMENSIONS[1] - 1)


def test_raycasting_move_stops_at_blockers() -> None:
    """Enemy blocker can be captured, own blocker cannot"""
    # white rook d2, black pawn d5, white pawn f2
    board = Board.from_fen("/".join(["8", "8", "8", "3p4", "8", "8", "3R1P2", "8"]))
    moves = raycasting_move(sq("d2"), board, STRAIGHTS)
    assert targets(moves) == {"d1", "d3", "d4", "d5", "a2", "b2", "c2", "e2"}


def test_knight_moves_from_corner() -> None:
    board = Board.from_fen("/".join(["8"] * 7 + ["N7"]))
    assert targets(candidate_knight_moves(sq("a1"), board)) == {"b3", "c2"}


def test_king_moves_do_not_capture_own_pieces() -> None:
    board = Board.from_fen("/".join(["8"] * 6 + ["PP6", "K7"]))
    assert targets(candidate_king_moves(sq("a1"), board)) == {"b1"}


def test_queen_combines_rook_and_bishop() -> None:
    board = Board.from_fen("/".join(["8", "8", "8", "3Q4", "8", "8", "8", "8"]))
    assert len(candidate_queen_moves(sq("d5"), board)) == 27


class TestPawnMoves:
    def test_single_and_double_push_from_starting_rank(self) -> None:
        board = Board.from_fen("/".join(["8"] * 6 + ["4P3", "8"]))
        assert targets(candidate_pawn_moves(sq("e2"), board)) == {"e3", "e4"}

    def test_black_pawn_moves_down(self) -> None:
        board = Board.from_fen("/".join(["8", "3p4"] + ["8"] * 6))
        assert targets(candidate_pawn_moves(sq("d7"), board)) == {"d6", "d5"}

    def test_no_double_push_after_first_move(self) -> None:
        board = Board.from_fen("/".join(["8"] * 5 + ["4P3", "8", "8"]))
        assert targets(candidate_pawn_moves(sq("e3"), board)) == {"e4"}

    def test_blocked_pawn_cannot_move_or_jump(self) -> None:
        """A piece right in front blocks both the single and the double push"""
        board = Board.from_fen("/".join(["8"] * 5 + ["4n3", "4P3", "8"]))
        assert candidate_pawn_moves(sq("e2"), board) == []

    def test_double_push_blocked_on_fourth_rank(self) -> None:
        board = Board.from_fen("/".join(["8"] * 4 + ["4n3", "8", "4P3", "8"]))
        assert targets(candidate_pawn_moves(sq("e2"), board)) == {"e3"}

    def test_pawn_captures_diagonally_only(self) -> None:
        """Enemy in front blocks the push. Enemy on the diagonal can be taken"""
        board = Board.from_fen("/".join(["8", "8", "8", "3pp3", "4P3", "8", "8", "8"]))
        assert targets(candidate_pawn_moves(sq("e4"), board)) == {"d5"}

    def test_pawn_on_edge_file(self) -> None:
        board = Board.from_fen("/".join(["8", "8", "8", "8", "1p6", "P7", "8", "8"]))
        assert targets(candidate_pawn_moves(sq("a3"), board)) == {"a4", "b4"}


# --- ATTACK RULES ---
def test_pawn_attacks_are_directional() -> None:
    """A white pawn on e4 attacks d5/f5, never d3/f3"""
    board = Board.from_fen("/".join(["8", "8", "8", "8", "4P3", "8", "8", "8"]))
    assert is_attacked_by_pawn(sq("d5"), Color.WHITE, board)
    assert is_attacked_by_pawn(sq("f5"), Color.WHITE, board)
    assert not is_attacked_by_pawn(sq("d3"), Color.WHITE, board)
    assert not is_attacked_by_pawn(sq("e5"), Color.WHITE, board)


def test_sliding_attacks_are_blocked() -> None:
    # black rook a8, black bishop h8, white pawn on d4 between h8 and a1
    board = Board.from_fen("/".join(["r6b", "8", "8", "8", "3P4", "8", "8", "8"]))
    assert is_attacked_on_straight(sq("a1"), Color.BLACK, board)
    assert is_attacked_on_diagonal(sq("e5"), Color.BLACK, board)
    assert not is_attacked_on_diagonal(sq("a1"), Color.BLACK, board)
    # a bishop does not attack along straights
    assert not is_attacked_on_straight(sq("h1"), Color.BLACK, board)


def test_knight_and_king_attacks() -> None:
    board = Board.from_fen("/".join(["8", "8", "8", "8", "3n4", "8", "8", "6K1"]))
    assert is_attacked_by_knight(sq("e2"), Color.BLACK, board)
    assert not is_attacked_by_knight(sq("d2"), Color.BLACK, board)
    assert is_attacked_by_king(sq("h2"), Color.WHITE, board)
    assert not is_attacked_by_king(sq("e1"), Color.WHITE, board)


# --- SPECIAL MOVES ---
def test_en_passant_candidates_from_both_sides() -> None:
    """Black just played d7-d5: white pawns on c5 and e5 can both take on d6"""
    board = Board.from_fen("/".join(["8", "8", "8", "2PpP3", "8", "8", "8", "8"]))
    moves = en_passant_moves(sq("d6"), Color.WHITE, board)
    assert {move.from_square.to_algebraic() for move in moves} == {"c5", "e5"}
    assert all(move.is_en_passant for move in moves)


def test_promotion_expansion() -> None:
    board = Board.from_fen("/".join(["8", "4P3"] + ["8"] * 6))
    push = Move(sq("e7"), sq("e8"))
    assert is_pawn_push_to_promotion_square(push, board)
    promoted = pawn_pushes_w_promotion(push)
    assert {move.promote_to for move in promoted} == {
        PieceType.KNIGHT,
        PieceType.BISHOP,
        PieceType.ROOK,
        PieceType.QUEEN,
    }


def test_diagonal_vectors() -> None:
    """Sanity check of the direction tables the strategies share"""
    assert all(abs(df) == abs(dr) == 1 for df, dr in DIAGONALS)
    assert all(abs(df) + abs(dr) == 1 for df, dr in STRAIGHTS)
