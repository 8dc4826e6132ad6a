"""
Pytest will auto-discover / import this file called 'conftest.py'.
This file defines fixtures/variables required for testing multiple layers.
"""

import time
from typing import Callable, Iterator, Optional

import pytest
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from src.core.config import Settings
from src.core.models import RoomDraft, RoomModel, TimeControl, UserId
from src.db.repository import RoomRepository
from src.db.schema import Base
from src.db.sql_chat_repository import SQLChatRepository
from src.db.sql_repository import SQLGameRepository
from src.db.sql_room_repository import SQLRoomRepository
from src.db.sql_user_repository import SQLUserRepository
from src.realtime.feed import ChangeFeed
from src.services.room_service import RoomRegistry
from src.services.session import LocalSession

# Setup an in-memory SQLite database for testing
DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)


@pytest.fixture
def db_session_repo() -> Iterator[Session]:
    """Connection to a test database. Tables are removed at teardown to make unit tests of repository independent of each other."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url=DATABASE_URL)


@pytest.fixture
def feed() -> ChangeFeed:
    return ChangeFeed()


@pytest.fixture
def room_repo(db_session_repo: Session, feed: ChangeFeed) -> SQLRoomRepository:
    return SQLRoomRepository(db_session_repo, feed)


@pytest.fixture
def game_repo(db_session_repo: Session, feed: ChangeFeed) -> SQLGameRepository:
    return SQLGameRepository(db_session_repo, feed)


@pytest.fixture
def chat_repo(db_session_repo: Session, feed: ChangeFeed) -> SQLChatRepository:
    return SQLChatRepository(db_session_repo, feed)


@pytest.fixture
def user_repo(db_session_repo: Session, feed: ChangeFeed) -> SQLUserRepository:
    """Three registered users: alice, bob and carol"""
    repo = SQLUserRepository(db_session_repo, feed)
    for user_id in ("alice", "bob", "carol"):
        repo.create_profile(user_id, user_id.capitalize())
    return repo


@pytest.fixture
def make_room(room_repo: SQLRoomRepository) -> Callable[..., RoomModel]:
    """Store a room straight through the repository (no session, no validation)"""

    def _make_room(
        host_id: UserId = "alice",
        is_private: bool = False,
        max_spectators: int = 2,
        name: str = "Friday blitz",
    ) -> RoomModel:
        draft = RoomDraft(
            name=name,
            host_id=host_id,
            is_private=is_private,
            room_code="ABC123" if is_private else None,
            time_control=TimeControl(5, 3),
            max_spectators=max_spectators,
        )
        return room_repo.create_room(draft)

    return _make_room


@pytest.fixture
def registry_for(
    room_repo: SQLRoomRepository,
    user_repo: SQLUserRepository,
    game_repo: SQLGameRepository,
    settings: Settings,
) -> Callable[..., RoomRegistry]:
    """One RoomRegistry per signed-in user, all of them on the same store"""

    def _registry_for(
        user_id: UserId,
        rooms: Optional[RoomRepository] = None,
        settings_override: Optional[Settings] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> RoomRegistry:
        return RoomRegistry(
            rooms or room_repo,
            user_repo,
            LocalSession(user_id),
            settings=settings_override or settings,
            games=game_repo,
            clock=clock,
        )

    return _registry_for
