"""Profiles + rankings. Rankings are only ever created here, always with the configured default rating."""

import logging
from typing import Optional
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.core.exceptions import InvalidRequestError
from src.core.models import UserId, UserRankingModel, UserSummary, normalize_username
from src.db.schema import DBProfile, DBUserRanking
from src.db.sql_repository import SQLRepository
from src.realtime.feed import ChangeFeed

_LOGGER = logging.getLogger(__name__)


class SQLUserRepository(SQLRepository):
    def __init__(
        self,
        db_session: Session,
        feed: Optional[ChangeFeed] = None,
        default_rating: int = 400,
    ) -> None:
        super().__init__(db_session, feed)
        self.default_rating = default_rating

    def get_summary(self, user_id: UserId) -> UserSummary | None:
        query = (
            select(DBProfile.id, DBProfile.username, DBUserRanking.elo_rating)
            .outerjoin(DBUserRanking, DBUserRanking.user_id == DBProfile.id)
            .where(DBProfile.id == user_id)
        )
        with self._store_errors("get user summary"):
            row = self.db.execute(query).first()
        if row is None:
            return None
        profile_id, username, rating = row
        return UserSummary(
            id=profile_id,
            username=username,
            rating=rating if rating is not None else self.default_rating,
        )

    def create_profile(
        self, user_id: UserId, username: str, avatar_url: Optional[str] = None
    ) -> UserSummary:
        username = normalize_username(username)
        with self._store_errors("create profile"):
            self.db.add(DBProfile(id=user_id, username=username, avatar_url=avatar_url))
            try:
                self.db.commit()
            except IntegrityError as error:
                self.db.rollback()
                raise InvalidRequestError(
                    f"Username {username!r} or user {user_id} already registered."
                ) from error
        ranking = self.create_ranking(user_id)
        return UserSummary(id=user_id, username=username, rating=ranking.rating)

    def get_ranking(self, user_id: UserId) -> UserRankingModel | None:
        with self._store_errors("get ranking"):
            ranking_db = self._fetch_ranking(user_id)
        return self._to_model(ranking_db) if ranking_db else None

    def create_ranking(self, user_id: UserId) -> UserRankingModel:
        with self._store_errors("create ranking"):
            existing = self._fetch_ranking(user_id)
            if existing is not None:
                return self._to_model(existing)

            ranking_db = DBUserRanking(
                id=uuid4(),
                user_id=user_id,
                games_played=0,
                games_won=0,
                games_lost=0,
                elo_rating=self.default_rating,
            )
            self.db.add(ranking_db)
            try:
                self.db.commit()
            except IntegrityError:
                # another client created it in between: theirs is as good as ours
                self.db.rollback()
                _LOGGER.info("Ranking for %s created concurrently, reusing it", user_id)
                return self._to_model(self._fetch_ranking(user_id))
            self.db.refresh(ranking_db)
        return self._to_model(ranking_db)

    def _fetch_ranking(self, user_id: UserId) -> DBUserRanking | None:
        query = select(DBUserRanking).where(DBUserRanking.user_id == user_id)
        return self.db.scalar(query)

    def _to_model(self, ranking_db: DBUserRanking) -> UserRankingModel:
        return UserRankingModel(
            user_id=ranking_db.user_id,
            games_played=ranking_db.games_played,
            games_won=ranking_db.games_won,
            games_lost=ranking_db.games_lost,
            rating=ranking_db.elo_rating,
        )
