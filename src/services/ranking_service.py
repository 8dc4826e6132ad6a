"""Read side of the user rankings. Ratings are settled elsewhere: nothing here computes ELO."""

import logging
from typing import Optional

from src.core.models import UserId, UserRankingModel
from src.db.repository import UserRepository
from src.services.session import SessionProvider, require_identity

_LOGGER = logging.getLogger(__name__)


def win_rate(ranking: UserRankingModel) -> int:
    """Percentage of games won, rounded. 0 before the first game."""
    if ranking.games_played == 0:
        return 0
    return round(100 * ranking.games_won / ranking.games_played)


class RankingService:
    def __init__(self, users: UserRepository, session: SessionProvider) -> None:
        self.users = users
        self.session = session

    def get_ranking(self, user_id: Optional[UserId] = None) -> UserRankingModel:
        """Ranking of `user_id` (default: the signed-in user). A missing row is created with the default rating."""
        user_id = user_id or require_identity(self.session)
        ranking = self.users.get_ranking(user_id)
        if ranking is None:
            _LOGGER.info("No ranking yet for %s, creating the default one", user_id)
            ranking = self.users.create_ranking(user_id)
        return ranking
