"""Unit tests for /src/chess/pieces.py"""

import pytest

from src.chess.pieces import EMPTY, FEN_TO_PIECE, PIECE_TO_FEN, Color, Piece, PieceType


@pytest.mark.parametrize("char", list(FEN_TO_PIECE.keys()))
def test_piece_color_follows_letter_case(char: str) -> None:
    """Capital letters: white. Lower case: black"""
    white = Piece.from_fen(char.upper())
    black = Piece.from_fen(char)
    assert white == Piece(FEN_TO_PIECE[char], Color.WHITE)
    assert black == Piece(FEN_TO_PIECE[char], Color.BLACK)


@pytest.mark.parametrize(
    "piece_type",
    [piece_type for piece_type in PieceType if piece_type != PieceType.EMPTY],
)
def test_pieces_to_fen(piece_type: PieceType) -> None:
    assert Piece(piece_type, Color.WHITE).to_fen() == PIECE_TO_FEN[piece_type].upper()
    assert Piece(piece_type, Color.BLACK).to_fen() == PIECE_TO_FEN[piece_type]


@pytest.mark.parametrize("color", [Color.WHITE, Color.BLACK])
def test_promotion_returns_new_piece(color: Color) -> None:
    """Pieces are values: the pawn itself is untouched, and the color carries over"""
    pawn = Piece(PieceType.PAWN, color)
    queen = pawn.promoted_to(PieceType.QUEEN)
    assert queen == Piece(PieceType.QUEEN, color)
    assert pawn.type == PieceType.PAWN


def test_opponent() -> None:
    assert Color.WHITE.opponent == Color.BLACK
    assert Color.BLACK.opponent == Color.WHITE
    assert Color.NONE.opponent == Color.NONE


def test_empty_piece() -> None:
    assert EMPTY.is_empty
    assert EMPTY.color == Color.NONE
    assert not Piece.from_fen("k").is_empty
