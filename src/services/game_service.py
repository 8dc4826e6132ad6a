"""Orchestration of communication from the UI layer to the game logic and persistence layers (and the reverse direction)."""

import logging
from typing import Optional
from uuid import UUID

from src.api.models import MoveRequest
from src.chess.game import GameSession
from src.chess.rules import MoveResult, RejectedMove
from src.core.exceptions import GameStateError, RepositoryError, RoomNotFoundError
from src.core.models import GameModel
from src.core.shared_types import RejectionReason, RoomStatus
from src.db.repository import GameRepository, RoomRepository
from src.services.session import SessionProvider, require_identity

_LOGGER = logging.getLogger(__name__)


class GameService:
    """Orchestration of layers for the game played in a room."""

    def __init__(
        self,
        games: GameRepository,
        rooms: RoomRepository,
        session: SessionProvider,
        starting_fen: Optional[str] = None,
    ) -> None:
        self.games = games
        self.rooms = rooms
        self.session = session
        self.starting_fen = starting_fen

    def start_game(self, room_id: UUID) -> GameModel:
        """
        Game for a room that just got its guest. Host plays white, guest plays black.
        ----
        Safe to call from both players' clients: an existing game is returned as is.
        """
        existing = self.games.get_game(room_id)
        if existing is not None:
            return existing

        room = self.rooms.get_room(room_id)
        if room is None:
            raise RoomNotFoundError(f"Room with {room_id=} not found.")
        if room.status != RoomStatus.PLAYING or room.guest_id is None:
            raise GameStateError(f"Room {room_id} has no opponent seated yet.")

        session = GameSession(
            room_id=room_id,
            white_player=room.host_id,
            black_player=room.guest_id,
            starting_fen=self.starting_fen,
        )
        stored = self.games.create_game(session.to_model())
        _LOGGER.info(
            "Game started in room %s: %s vs %s", room_id, room.host_id, room.guest_id
        )
        return stored

    def get_game(self, room_id: UUID) -> GameModel:
        """Current state of the room's game, as stored."""
        return self._fetch_game(room_id)

    def load_session(self, room_id: UUID) -> GameSession:
        return GameSession.from_model(self._fetch_game(room_id))

    def make_move(self, room_id: UUID, request: MoveRequest) -> MoveResult:
        """
        Make a move attempt for the signed-in player.
        ----
        Only accepted moves are written back. A rejection leaves the stored game untouched.
        """
        player = require_identity(self.session)

        # Create a new GameSession instance from the retrieved GameModel
        game = self.load_session(room_id)
        if player not in game.players.values():
            return RejectedMove(
                RejectionReason.NOT_YOUR_TURN, "Only the seated players can move."
            )

        result = game.make_move(
            request.from_square, request.to_square, request.promote_to, player=player
        )
        if not result.accepted:
            _LOGGER.debug(
                "Move %s-%s in room %s rejected: %s",
                request.from_square,
                request.to_square,
                room_id,
                result.reason,
            )
            return result

        self.games.update_game(game.to_model())
        return result

    def reset_game(self, room_id: UUID) -> GameModel:
        """Back to the starting position, with the same players."""
        player = require_identity(self.session)
        game = self.load_session(room_id)
        if player not in game.players.values():
            raise GameStateError("Only the seated players can restart the game.")
        game.reset()
        updated = self.games.update_game(game.to_model())
        _LOGGER.info("Game in room %s reset by %s", room_id, player)
        return updated or game.to_model()

    def discard_game(self, room_id: UUID) -> None:
        """Handle a request to delete a Game record."""
        self.games.delete_game(room_id)

    # -- Internal helpers --
    def _fetch_game(self, room_id: UUID) -> GameModel:
        """Attempt to find the game in the repository and raise error if it fails."""
        game_model = self.games.get_game(room_id)
        if game_model is None:
            raise RepositoryError(f"Game for {room_id=} not found.")
        return game_model
