"""Unit tests for src/core/log_config.py"""

import logging
from typing import Iterator

import pytest

from src.core.config import Settings
from src.core.log_config import configure_logging, configure_logging_from


@pytest.fixture
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    try:
        yield
    finally:
        root.handlers = handlers
        root.setLevel(level)


@pytest.mark.usefixtures("restore_root_logger")
@pytest.mark.parametrize(
    "level, expected",
    [
        ("debug", logging.DEBUG),
        ("WARNING", logging.WARNING),
        (logging.ERROR, logging.ERROR),
        ("nonsense", logging.INFO),
    ],
)
def test_configure_logging(level: str | int, expected: int) -> None:
    configure_logging(level)
    assert logging.getLogger().level == expected
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


@pytest.mark.usefixtures("restore_root_logger")
def test_level_from_settings() -> None:
    configure_logging_from(Settings(log_level="debug"))
    assert logging.getLogger().level == logging.DEBUG


@pytest.mark.usefixtures("restore_root_logger")
def test_level_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHESS_ROOMS_LOG_LEVEL", "ERROR")
    configure_logging_from()
    assert logging.getLogger().level == logging.ERROR
