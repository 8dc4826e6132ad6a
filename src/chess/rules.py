"""
The rules engine. Pure functions of a Position: no state is kept between calls.

* which moves are legal
* what position a legal move leads to (+ its SAN and flags)
* whether a position ends the game, and why
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

from src.chess.castling import CASTLING_RULES, castling_directions
from src.chess.moves import (
    DEFAULT_PROMOTION,
    Move,
    candidate_castling_move,
    en_passant_moves,
    forward,
    is_pawn_push_to_promotion_square,
    pawn_pushes_w_promotion,
)
from src.chess.notation import move_to_san
from src.chess.pieces import Color, Piece, PieceType
from src.chess.position import Position
from src.core.shared_types import RejectionReason, TerminationReason

_LOGGER = logging.getLogger(__name__)

# 50 moves by each side without a pawn move or a capture
FIFTY_MOVE_HALF_MOVES = 100
REPETITIONS_FOR_DRAW = 3
MINOR_PIECES = (PieceType.KNIGHT, PieceType.BISHOP)


@dataclass(frozen=True)
class MoveFlags:
    capture: bool = False
    check: bool = False
    checkmate: bool = False
    castle: bool = False
    en_passant: bool = False
    promotion: Optional[PieceType] = None


@dataclass(frozen=True)
class AcceptedMove:
    move: Move
    position: Position
    san: str
    flags: MoveFlags

    @property
    def accepted(self) -> bool:
        return True


@dataclass(frozen=True)
class RejectedMove:
    reason: RejectionReason
    message: str

    @property
    def accepted(self) -> bool:
        return False


MoveResult = AcceptedMove | RejectedMove


@dataclass(frozen=True)
class TerminalState:
    terminal: bool
    reason: TerminationReason


class ChessRules:
    """Stateless: callers own the current Position and hand it in."""

    def reset(self) -> Position:
        """Standard starting position"""
        return Position.starting_position()

    # --- LEGAL MOVES ---
    def legal_moves(self, position: Position) -> list[Move]:
        """
        List of legal moves for the side to move
        ----

        1. generate candidate moves, using the basic movement rules for all pieces (the board does this calculation)
        2. add castling moves (checked in full already: rights, empty squares, attacked squares)
        3. add candidate en passant moves
        4. remove illegal options --> a move that would leave your own king in check
        5. Pawn push to promotion square? --> one move for every choice of piece type to promote into.
        """
        color = position.color_to_move
        candidate_moves = position.board.generate_candidate_moves(color)
        candidate_moves.extend(self._castling_moves(position))
        if position.en_passant_square is not None:
            candidate_moves.extend(
                en_passant_moves(position.en_passant_square, color, position.board)
            )

        legal_moves: list[Move] = []
        for move in candidate_moves:
            if self._leaves_king_in_check(position, move):
                continue
            if is_pawn_push_to_promotion_square(move, position.board):
                legal_moves.extend(pawn_pushes_w_promotion(move))
            else:
                legal_moves.append(move)
        return legal_moves

    def legal_move(self, position: Position, move: Move) -> MoveResult:
        """
        Validate a requested move against the position.
        ----

        Returns the next position with the move's SAN and flags, or a rejection. The given position is never changed.
        A pawn reaching the last rank without a promotion piece becomes a queen.
        """
        piece = position.board.piece(move.from_square)
        if piece.is_empty:
            return RejectedMove(
                RejectionReason.ILLEGAL_MOVE,
                f"There is no piece on {move.from_square.to_algebraic()}.",
            )
        if piece.color != position.color_to_move:
            return RejectedMove(
                RejectionReason.NOT_YOUR_TURN,
                f"It is {position.color_to_move.name.lower()}'s turn to move.",
            )

        if move.promote_to is None and is_pawn_push_to_promotion_square(
            move, position.board
        ):
            move = Move(move.from_square, move.to_square, DEFAULT_PROMOTION)

        legal_moves = self.legal_moves(position)
        matched = next((m for m in legal_moves if m.same_squares(move)), None)
        if matched is None:
            _LOGGER.debug("Rejected %s in %s", move.to_uci(), position.to_fen())
            return RejectedMove(
                RejectionReason.ILLEGAL_MOVE, f"Move not allowed: {move.to_uci()}"
            )

        new_position = self.apply(position, matched)
        gives_check = self.is_check(new_position)
        is_mate = gives_check and not self.legal_moves(new_position)
        flags = MoveFlags(
            capture=matched.is_en_passant
            or not position.board.is_empty(matched.to_square),
            check=gives_check,
            checkmate=is_mate,
            castle=matched.castling_direction is not None,
            en_passant=matched.is_en_passant,
            promotion=matched.promote_to,
        )
        san = move_to_san(position.board, matched, legal_moves, gives_check, is_mate)
        return AcceptedMove(matched, new_position, san, flags)

    def apply(self, position: Position, move: Move) -> Position:
        """
        Build the position after a move that is known to be legal.
        ----

        1. update the board (castling moves king + rook, en passant removes the passed pawn, promotion swaps the piece)
        2. revoke castling rights: any move from or onto a king/rook home square
        3. record an en passant target, only if an enemy pawn could actually take
        4. move counters, then hand the move to the opponent
        """
        color = position.color_to_move
        moving_piece = position.board.piece(move.from_square)
        is_capture = move.is_en_passant or not position.board.is_empty(move.to_square)

        board = position.board.copy()
        board.apply(move)

        touched = {move.from_square, move.to_square}
        castling_rights = frozenset(
            direction
            for direction in position.castling_rights
            if CASTLING_RULES[direction].king_from not in touched
            and CASTLING_RULES[direction].rook_from not in touched
        )

        en_passant_square = None
        is_pawn_move = moving_piece.type == PieceType.PAWN
        if is_pawn_move and abs(move.to_square.rank - move.from_square.rank) == 2:
            enemy_pawn = Piece(PieceType.PAWN, color.opponent)
            neighbours = [move.to_square.offset(df, 0) for df in (-1, 1)]
            if any(
                square.is_within_bounds() and board.piece(square) == enemy_pawn
                for square in neighbours
            ):
                en_passant_square = move.from_square.offset(0, forward(color))

        half_move_clock = (
            0 if (is_pawn_move or is_capture) else position.half_move_clock + 1
        )
        full_move_number = position.full_move_number
        if color == Color.BLACK:
            full_move_number += 1

        return Position(
            board=board,
            color_to_move=color.opponent,
            castling_rights=castling_rights,
            en_passant_square=en_passant_square,
            half_move_clock=half_move_clock,
            full_move_number=full_move_number,
        )

    # --- GAME END ---
    def is_check(self, position: Position) -> bool:
        """Is the side to move in check?"""
        return position.board.is_check(position.color_to_move)

    def is_terminal(
        self, position: Position, previous_keys: Iterable[str] = ()
    ) -> TerminalState:
        """
        Has the game ended in this position?
        ----

        `previous_keys` are the repetition keys of the positions that came before this one in the game.
        Evaluated in priority order: checkmate, stalemate, insufficient material, threefold repetition, fifty-move rule.
        """
        if not self.legal_moves(position):
            reason = (
                TerminationReason.CHECKMATE
                if self.is_check(position)
                else TerminationReason.STALEMATE
            )
            return TerminalState(True, reason)

        if self.is_insufficient_material(position):
            return TerminalState(True, TerminationReason.INSUFFICIENT_MATERIAL)

        key = position.repetition_key()
        if list(previous_keys).count(key) + 1 >= REPETITIONS_FOR_DRAW:
            return TerminalState(True, TerminationReason.THREEFOLD_REPETITION)

        if position.half_move_clock >= FIFTY_MOVE_HALF_MOVES:
            return TerminalState(True, TerminationReason.DRAW_OTHER)

        return TerminalState(False, TerminationReason.NONE)

    def is_insufficient_material(self, position: Position) -> bool:
        """K v K, K+minor v K, and kings with bishops that all stand on the same square color."""
        others = [
            (square, piece)
            for square, piece in position.board.position.items()
            if not piece.is_empty and piece.type != PieceType.KING
        ]
        if not others:
            return True
        if len(others) == 1 and others[0][1].type in MINOR_PIECES:
            return True
        if all(piece.type == PieceType.BISHOP for _, piece in others):
            return len({square.is_light for square, _ in others}) == 1
        return False

    # --- CASTLING ---
    def _castling_moves(self, position: Position) -> list[Move]:
        """
        **you are allowed to castle if**

        * Castling rights are not yet revoked (so king and rook have not moved).
        * You are not currently in check (you cannot castle out of check).
        * The squares between king and rook are empty.
        * The king does not pass over or land on an attacked square.
        """
        color = position.color_to_move
        board = position.board
        directions = [
            direction
            for direction in castling_directions(color)
            if position.has_castling_right(direction)
        ]
        if not directions or board.is_check(color):
            return []

        moves: list[Move] = []
        for direction in directions:
            rule = CASTLING_RULES[direction]
            if board.piece(rule.king_from) != Piece(PieceType.KING, color):
                continue
            if board.piece(rule.rook_from) != Piece(PieceType.ROOK, color):
                continue
            if board.is_any_occupied(rule.must_be_empty):
                continue
            if board.is_any_under_attack(rule.king_path, color.opponent):
                continue
            moves.append(candidate_castling_move(direction))
        return moves

    def _leaves_king_in_check(self, position: Position, move: Move) -> bool:
        """Make the move on a copy of the board and look at your own king"""
        board = position.board.copy()
        board.apply(move)
        return board.is_check(position.color_to_move)
