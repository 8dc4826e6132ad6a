"""
The GameSession is the entrypoint into the domain layer for the service layer (and for a UI driving a board).

It owns the one mutable slot of a game: the current Position. Every change goes through the rules engine.
States: in progress -> terminal (latched on the first move that ends the game). Only `reset()` leaves the terminal state.
"""

import logging
from typing import Optional, Self
from uuid import UUID

from src.chess.moves import Move
from src.chess.pieces import FEN_TO_PIECE, PieceType
from src.chess.position import Position
from src.chess.rules import (
    AcceptedMove,
    ChessRules,
    MoveResult,
    RejectedMove,
    TerminalState,
)
from src.chess.square import Square
from src.core.exceptions import GameStateError, InvalidRequestError
from src.core.models import GameModel, UserId
from src.core.shared_types import Color, RejectionReason, TerminationReason

_LOGGER = logging.getLogger(__name__)

NOT_TERMINAL = TerminalState(False, TerminationReason.NONE)


def parse_promotion(promotion: Optional[str]) -> Optional[PieceType]:
    """Accept either the FEN letter ('q', 'N') or the piece name ('queen')"""
    if promotion is None:
        return None
    value = promotion.strip().lower()
    if value in FEN_TO_PIECE:
        return FEN_TO_PIECE[value]
    if value.upper() in PieceType.__members__ and value != "empty":
        return PieceType[value.upper()]
    raise InvalidRequestError(f"Cannot promote to {promotion!r}.")


def build_uci(
    from_square_alg: str, to_square_alg: str, promotion: Optional[str] = None
) -> str:
    """Squares (+ optional promotion piece) from a request into a single UCI string"""
    piece_type = parse_promotion(promotion)
    move = Move(
        Square.from_algebraic(from_square_alg),
        Square.from_algebraic(to_square_alg),
        piece_type,
    )
    return move.to_uci()


class GameSession:
    def __init__(
        self,
        room_id: Optional[UUID] = None,
        white_player: Optional[UserId] = None,
        black_player: Optional[UserId] = None,
        starting_fen: Optional[str] = None,
        rules: Optional[ChessRules] = None,
    ) -> None:
        self.room_id = room_id
        self.rules = rules or ChessRules()
        self.players: dict[Color, UserId] = {}
        if white_player is not None:
            self.players[Color.WHITE] = white_player
        if black_player is not None:
            self.players[Color.BLACK] = black_player

        self._starting_position = (
            Position.from_fen(starting_fen) if starting_fen else self.rules.reset()
        )
        self._position = self._starting_position
        self._history: list[str] = []
        self._moves: list[Move] = []
        self._previous_keys: list[str] = []
        self._state = NOT_TERMINAL

    # --- PERSISTENCE ---
    @classmethod
    def from_model(cls, model: GameModel, rules: Optional[ChessRules] = None) -> Self:
        """Rebuild a session by replaying the stored moves. Replaying keeps the repetition history exact."""
        session = cls(
            room_id=model.room_id,
            white_player=model.white_player_id,
            black_player=model.black_player_id,
            starting_fen=model.starting_fen,
            rules=rules,
        )
        for uci in model.moves_uci:
            result = session._play(Move.from_uci(uci))
            if not result.accepted:
                raise GameStateError(
                    f"Stored game for room {model.room_id} contains an illegal move: {uci}"
                )
        return session

    def to_model(self) -> GameModel:
        """Encode back into a format the Service layer uses"""
        if self.room_id is None or len(self.players) != 2:
            raise GameStateError("Only a game between two seated players can be stored.")
        return GameModel(
            room_id=self.room_id,
            white_player_id=self.players[Color.WHITE],
            black_player_id=self.players[Color.BLACK],
            starting_fen=self._starting_position.to_fen(),
            current_fen=self.fen,
            moves_uci=self.moves_uci(),
            history_san=self.history(),
            termination=self.reason(),
        )

    # --- COMMANDS ---
    def make_move(
        self,
        from_square: str,
        to_square: str,
        promotion: Optional[str] = None,
        player: Optional[UserId] = None,
    ) -> MoveResult:
        """
        Attempt a move. Never raises for bad input: a rejection is returned instead.
        ----

        1. a finished game accepts no moves (the engine is not even asked)
        2. when players are known and `player` is given, it must be that player's turn
        3. the engine validates the move and builds the next position
        4. history is appended, and a terminal position latches the result
        """
        if self.is_over():
            return RejectedMove(
                RejectionReason.GAME_OVER,
                f"Game already over: {self._state.reason.value}.",
            )

        turn_player = self.players.get(self.side_to_move())
        if player is not None and turn_player is not None and player != turn_player:
            return RejectedMove(
                RejectionReason.NOT_YOUR_TURN,
                "It is not your turn. Waiting for the opponent to move first.",
            )

        try:
            move = Move(
                Square.from_algebraic(from_square),
                Square.from_algebraic(to_square),
                parse_promotion(promotion),
            )
        except InvalidRequestError as error:
            return RejectedMove(RejectionReason.ILLEGAL_MOVE, str(error))

        return self._play(move)

    def reset(self) -> None:
        """Start over ("rejouer"). Allowed at any time, clears the latched result."""
        self._position = self._starting_position
        self._history = []
        self._moves = []
        self._previous_keys = []
        self._state = NOT_TERMINAL

    # --- READERS ---
    def current_position(self) -> Position:
        return self._position

    @property
    def fen(self) -> str:
        return self._position.to_fen()

    def history(self) -> list[str]:
        """Moves so far, in SAN"""
        return list(self._history)

    def moves_uci(self) -> list[str]:
        return [move.to_uci() for move in self._moves]

    def is_over(self) -> bool:
        return self._state.terminal

    def reason(self) -> TerminationReason:
        return self._state.reason

    def side_to_move(self) -> Color:
        return Color[self._position.color_to_move.name]

    def winner(self) -> Optional[Color]:
        """Only a checkmate has a winner: the side that is NOT to move"""
        if self._state.reason != TerminationReason.CHECKMATE:
            return None
        return Color[self._position.color_to_move.opponent.name]

    def winner_id(self) -> Optional[UserId]:
        winner = self.winner()
        return self.players.get(winner) if winner else None

    def legal_moves(self) -> list[str]:
        if self.is_over():
            return []
        return [move.to_uci() for move in self.rules.legal_moves(self._position)]

    # -- PRIVATE HELPERS ---
    def _play(self, move: Move) -> MoveResult:
        result = self.rules.legal_move(self._position, move)
        if isinstance(result, AcceptedMove):
            self._previous_keys.append(self._position.repetition_key())
            self._position = result.position
            self._history.append(result.san)
            self._moves.append(result.move)
            self._update_terminal_state()
        return result

    def _update_terminal_state(self) -> None:
        state = self.rules.is_terminal(self._position, self._previous_keys)
        if state.terminal:
            self._state = state
            _LOGGER.info(
                "Game in room %s ended: %s after %d moves",
                self.room_id,
                state.reason.value,
                len(self._history),
            )
