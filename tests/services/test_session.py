"""Unit tests for src/services/session.py"""

import pytest

from src.core.exceptions import SessionExpiredError
from src.services.session import LocalSession, require_identity


def test_signed_in() -> None:
    session = LocalSession("alice")
    assert require_identity(session) == "alice"


def test_sign_in_later() -> None:
    session = LocalSession()
    assert session.get_session_identity() is None
    session.sign_in("bob")
    assert require_identity(session) == "bob"


def test_expired_session() -> None:
    session = LocalSession("alice")
    session.expire()
    with pytest.raises(SessionExpiredError):
        require_identity(session)
