"""Who is calling. Services never take the acting user as an argument: they ask the session."""

import logging
from typing import Optional, Protocol

from src.core.exceptions import SessionExpiredError
from src.core.models import UserId

_LOGGER = logging.getLogger(__name__)


class SessionProvider(Protocol):
    def get_session_identity(self) -> UserId | None:
        """Authenticated user id, or None once the session is gone."""
        ...


class LocalSession:
    """In-process session: one signed-in user per instance."""

    def __init__(self, user_id: Optional[UserId] = None) -> None:
        self._user_id = user_id

    def sign_in(self, user_id: UserId) -> None:
        self._user_id = user_id
        _LOGGER.debug("Signed in as %s", user_id)

    def expire(self) -> None:
        _LOGGER.debug("Session of %s expired", self._user_id)
        self._user_id = None

    def get_session_identity(self) -> UserId | None:
        return self._user_id


def require_identity(session: SessionProvider) -> UserId:
    user_id = session.get_session_identity()
    if user_id is None:
        raise SessionExpiredError("Not signed in (or the session expired).")
    return user_id
