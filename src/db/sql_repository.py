"""Implementations of the Repository protocols using SQLAlchemy. Shared plumbing + the game repository."""

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional
from uuid import UUID, uuid4

from sqlalchemy import inspect, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from src.core.exceptions import StoreError
from src.core.models import GameModel, Row
from src.core.shared_types import ChangeType, TerminationReason
from src.db.schema import Base, DBGame
from src.realtime.feed import ChangeFeed

_LOGGER = logging.getLogger(__name__)


def row_dict(record: Base) -> Row:
    """Column values of a mapped object, the shape change events carry"""
    return {
        attribute.key: getattr(record, attribute.key)
        for attribute in inspect(record).mapper.column_attrs
    }


class SQLRepository:
    """Data stored using SQL / methods implemented using SQLAlchemy"""

    def __init__(self, db_session: Session, feed: Optional[ChangeFeed] = None) -> None:
        self.db = db_session
        self.feed = feed

    @contextmanager
    def _store_errors(self, operation: str) -> Iterator[None]:
        """Anything the database raises (other than constraint violations the caller handles) becomes a StoreError."""
        try:
            yield
        except IntegrityError:
            self.db.rollback()
            raise
        except SQLAlchemyError as error:
            self.db.rollback()
            _LOGGER.error("Store failure during %s: %s", operation, error)
            raise StoreError(f"{operation} failed") from error

    def _publish(
        self,
        table: str,
        change: ChangeType,
        new: Optional[Row] = None,
        old: Optional[Row] = None,
    ) -> None:
        if self.feed is not None:
            self.feed.publish(table, change, new=new, old=old)

    def _refetch(self, model: type[Base], key: Any) -> Any:
        """Read a row again, bypassing whatever the session has cached."""
        return self.db.get(model, key, populate_existing=True)


class SQLGameRepository(SQLRepository):
    """One game per room."""

    def get_game(self, room_id: UUID) -> GameModel | None:
        """Get game by room ID, if record exists."""
        with self._store_errors("get game"):
            game_db = self._fetch_game(room_id)
        if game_db:
            return self._to_model(game_db)
        return None

    def create_game(self, game: GameModel) -> GameModel:
        """Store new game and return the stored data. A room that already has a game keeps it: that one is returned."""
        with self._store_errors("create game"):
            game_db = DBGame(
                id=uuid4(),
                room_id=game.room_id,
                white_player_id=game.white_player_id,
                black_player_id=game.black_player_id,
                starting_fen=game.starting_fen,
                current_fen=game.current_fen,
                moves_uci=game.moves_uci,
                history_san=game.history_san,
                termination=str(game.termination),
            )
            self.db.add(game_db)
            try:
                self.db.commit()
            except IntegrityError:
                # the other player started the room's game first
                self.db.rollback()
                existing = self._fetch_game(game.room_id)
                if existing is None:
                    raise
                _LOGGER.info("Game for room %s already exists", game.room_id)
                return self._to_model(existing)
            self.db.refresh(game_db)
        self._publish("games", ChangeType.INSERT, new=row_dict(game_db))
        return self._to_model(game_db)

    def update_game(self, game: GameModel) -> GameModel | None:
        """Add new info to existing record."""
        with self._store_errors("update game"):
            game_db = self._fetch_game(game.room_id)
            if not game_db:
                return None
            old = row_dict(game_db)
            game_db.current_fen = game.current_fen
            # new list objects, so the JSON columns register as changed
            game_db.moves_uci = list(game.moves_uci)
            game_db.history_san = list(game.history_san)
            game_db.termination = str(game.termination)
            self.db.commit()
            self.db.refresh(game_db)
        self._publish("games", ChangeType.UPDATE, new=row_dict(game_db), old=old)
        return self._to_model(game_db)

    def delete_game(self, room_id: UUID) -> GameModel | None:
        """Remove a game's record."""
        with self._store_errors("delete game"):
            game_db = self._fetch_game(room_id)
            if not game_db:
                return None
            game_model = self._to_model(game_db)
            old = row_dict(game_db)
            self.db.delete(game_db)
            self.db.commit()
        self._publish("games", ChangeType.DELETE, old=old)
        return game_model

    def _fetch_game(self, room_id: UUID) -> DBGame | None:
        query = select(DBGame).where(DBGame.room_id == room_id)
        return self.db.scalar(query)

    def _to_model(self, game_db: DBGame) -> GameModel:
        """Convert SQLAlchemy model to data transfer model."""
        return GameModel(
            room_id=game_db.room_id,
            white_player_id=game_db.white_player_id,
            black_player_id=game_db.black_player_id,
            starting_fen=game_db.starting_fen,
            current_fen=game_db.current_fen,
            moves_uci=list(game_db.moves_uci),
            history_san=list(game_db.history_san),
            termination=TerminationReason(game_db.termination),
        )
