"""Generate database sessions"""

import logging
from typing import Iterator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from src.core.config import Settings
from src.db.schema import Base

_LOGGER = logging.getLogger(__name__)


def make_engine(settings: Settings) -> Engine:
    engine = create_engine(settings.database_url, echo=settings.database_echo)
    _LOGGER.info("Database engine created for %s", engine.url.render_as_string())
    return engine


def init_db(engine: Engine) -> None:
    """Ensure all tables are created"""
    Base.metadata.create_all(bind=engine)


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


def get_db(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()
