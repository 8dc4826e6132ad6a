"""Unit tests for src/db/sql_user_repository.py"""

from unittest.mock import patch
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from src.core.exceptions import InvalidRequestError
from src.db.schema import DBUserRanking
from src.db.sql_user_repository import SQLUserRepository


def test_profile_gets_default_ranking(user_repo: SQLUserRepository) -> None:
    summary = user_repo.create_profile("dave", "Dave")
    assert summary.username == "Dave"
    assert summary.rating == 400

    ranking = user_repo.get_ranking("dave")
    assert ranking.games_played == ranking.games_won == ranking.games_lost == 0
    assert ranking.rating == 400


def test_configured_default_rating(db_session_repo: Session) -> None:
    repo = SQLUserRepository(db_session_repo, default_rating=1200)
    assert repo.create_profile("erin", "Erin").rating == 1200
    assert repo.get_summary("erin").rating == 1200


def test_username_is_unique(user_repo: SQLUserRepository) -> None:
    with pytest.raises(InvalidRequestError):
        user_repo.create_profile("someone_else", "Alice")
    assert user_repo.get_summary("someone_else") is None


@pytest.mark.parametrize("username", ["a b!", "ab", "x" * 21, "   "])
def test_username_is_validated(user_repo: SQLUserRepository, username: str) -> None:
    with pytest.raises(InvalidRequestError):
        user_repo.create_profile("dave", username)
    assert user_repo.get_summary("dave") is None
    assert user_repo.get_ranking("dave") is None


def test_username_is_stripped(user_repo: SQLUserRepository) -> None:
    assert user_repo.create_profile("dave", "  dave_99 ").username == "dave_99"
    assert user_repo.get_summary("dave").username == "dave_99"


def test_get_summary(user_repo: SQLUserRepository) -> None:
    summary = user_repo.get_summary("bob")
    assert summary.id == "bob"
    assert summary.username == "Bob"
    assert summary.rating == 400
    assert user_repo.get_summary("nobody") is None


def test_summary_without_ranking_row(
    user_repo: SQLUserRepository, db_session_repo: Session
) -> None:
    """Rating falls back to the default, it is never missing"""
    db_session_repo.query(DBUserRanking).filter_by(user_id="carol").delete()
    db_session_repo.commit()
    assert user_repo.get_ranking("carol") is None
    assert user_repo.get_summary("carol").rating == 400


def test_create_ranking_is_idempotent(user_repo: SQLUserRepository) -> None:
    first = user_repo.get_ranking("alice")
    assert user_repo.create_ranking("alice") == first


def test_create_ranking_race(user_repo: SQLUserRepository, db_session_repo: Session) -> None:
    """The row shows up between our check and our insert: the existing one is returned"""
    db_session_repo.query(DBUserRanking).filter_by(user_id="carol").delete()
    db_session_repo.commit()

    original_fetch = user_repo._fetch_ranking
    competitor = DBUserRanking(
        id=uuid4(),
        user_id="carol",
        games_played=3,
        games_won=2,
        games_lost=1,
        elo_rating=900,
    )

    def fetch_then_lose_race(user_id: str) -> DBUserRanking | None:
        found = original_fetch(user_id)
        if competitor not in db_session_repo:
            db_session_repo.add(competitor)
            db_session_repo.commit()
        return found

    with patch.object(user_repo, "_fetch_ranking", side_effect=fetch_then_lose_race):
        ranking = user_repo.create_ranking("carol")

    assert ranking.rating == 900
    assert ranking.games_played == 3
