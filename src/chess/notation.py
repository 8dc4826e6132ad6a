"""SAN (Standard Algebraic Notation) for the move history."""

from src.chess.board import Board
from src.chess.moves import Move
from src.chess.pieces import PIECE_TO_SAN, PieceType


def move_to_san(
    board: Board,
    move: Move,
    legal_moves: list[Move],
    gives_check: bool,
    is_mate: bool,
) -> str:
    """
    Write a legal *move* in SAN, given the *board* before the move and every legal move from that position.

    ex) e4, Nxf7, exd6, Rad1, N5c3, Qh4xe1, O-O-O, e8=Q+, Qh4#
    """
    suffix = "#" if is_mate else ("+" if gives_check else "")

    if move.castling_direction is not None:
        return ("O-O" if move.castling_direction.is_king_side else "O-O-O") + suffix

    piece = board.piece(move.from_square)
    is_capture = move.is_en_passant or not board.is_empty(move.to_square)

    san = ""
    if piece.type == PieceType.PAWN:
        if is_capture:
            san += move.from_square.file_name
    else:
        san += PIECE_TO_SAN[piece.type]
        san += _disambiguation(board, move, legal_moves)

    if is_capture:
        san += "x"
    san += move.to_square.to_algebraic()

    if move.promote_to is not None:
        san += "=" + PIECE_TO_SAN[move.promote_to]
    return san + suffix


def _disambiguation(board: Board, move: Move, legal_moves: list[Move]) -> str:
    """Prefer the file, then the rank, then the full square of the moving piece."""
    piece = board.piece(move.from_square)
    rivals = [
        other.from_square
        for other in legal_moves
        if other.to_square == move.to_square
        and other.from_square != move.from_square
        and board.piece(other.from_square) == piece
    ]
    if not rivals:
        return ""
    if all(square.file != move.from_square.file for square in rivals):
        return move.from_square.file_name
    if all(square.rank != move.from_square.rank for square in rivals):
        return str(move.from_square.rank)
    return move.from_square.to_algebraic()
