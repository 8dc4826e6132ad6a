"""
Representation of a single position in the game: everything a FEN string encodes.
"""

from dataclasses import dataclass, field
from typing import Optional, Self

from src.chess.board import Board
from src.chess.castling import CastlingDirection
from src.chess.fen import STARTING_FEN, castling_from_fen, castling_to_fen, is_valid_fen
from src.chess.pieces import Color
from src.chess.square import Square
from src.core.exceptions import InvalidFENError


@dataclass(frozen=True)
class Position:
    """
    A complete, self-contained chess position.
    ----

    FEN, or Forsyth-Edwards Notation, is a standard notation for describing a particular board position of a chess game.
    The purpose of FEN is to provide all the necessary information to restart a game from a particular position.

    <board position string><active color><castling rights><en passant square><# half move clock><number turns played>

    * The active color is either "w" or "b"
    * Castling rights are denoted as "k" for king-side or "q" for queen-side. Capital letters for the white pieces, small letters for the black pieces.
        In the starting position: KQkq (all rights available). If no rights are left, a "-" is used.
    * The en passant square indicates the square a pawn can take on. If not available a "-" is used.
    * The half move clock counts the number of half-moves since the last pawn move or capture (fifty-move rule).
    * The number of turns starts at 1 and increments after every move black makes.

    ex) The standard starting position has a FEN
    rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1

    Positions are values. The rules engine never changes one, it builds the next.
    The board is frozen on construction; equal positions hash alike.
    """

    board: Board = field(hash=False)
    color_to_move: Color
    castling_rights: frozenset[CastlingDirection]
    en_passant_square: Optional[Square]
    half_move_clock: int
    full_move_number: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "board", self.board.frozen())

    @classmethod
    def from_fen(cls, fen: str) -> Self:
        """Parse the FEN into data"""
        fen = fen.strip()
        if not is_valid_fen(fen):
            raise InvalidFENError(f"Cannot interpret supplied string as FEN: {fen}")

        (
            placement,
            active_color,
            castling_str,
            en_passant_algebraic,
            half_move_clock,
            num_turns,
        ) = fen.split(" ")

        en_passant_square = (
            Square.from_algebraic(en_passant_algebraic)
            if en_passant_algebraic != "-"
            else None
        )
        return cls(
            board=Board.from_fen(placement),
            color_to_move=Color.WHITE if active_color == "w" else Color.BLACK,
            castling_rights=castling_from_fen(castling_str),
            en_passant_square=en_passant_square,
            half_move_clock=int(half_move_clock),
            full_move_number=int(num_turns),
        )

    @classmethod
    def starting_position(cls) -> Self:
        return cls.from_fen(STARTING_FEN)

    def to_fen(self) -> str:
        """reverse operation: write a FEN from the given data"""
        return f"{self.repetition_key()} {self.half_move_clock} {self.full_move_number}"

    def repetition_key(self) -> str:
        """Placement + side to move + castling rights + en passant: what has to match for positions to count as repeated."""
        active_color = "w" if self.color_to_move == Color.WHITE else "b"
        en_passant_algebraic = (
            self.en_passant_square.to_algebraic()
            if self.en_passant_square is not None
            else "-"
        )
        return f"{self.board.to_fen()} {active_color} {castling_to_fen(self.castling_rights)} {en_passant_algebraic}"

    def has_castling_right(self, direction: CastlingDirection) -> bool:
        return direction in self.castling_rights
