import pytest

from src.api.models import (
    CreateRoomRequest,
    JoinRoomRequest,
    MoveRequest,
    SendMessageRequest,
    UsernameRequest,
)
from src.core.exceptions import InvalidRequestError
from src.core.models import TimeControl


# -- Validation - CreateRoomRequest --
def test_room_defaults() -> None:
    request = CreateRoomRequest(name="Friday blitz")
    assert not request.is_private
    assert request.time_control == "10+0"
    assert request.parsed_time_control() == TimeControl(10, 0)
    assert request.max_spectators == 10


def test_room_name_is_trimmed() -> None:
    assert CreateRoomRequest(name="  Friday blitz\n").name == "Friday blitz"


@pytest.mark.parametrize("name", ["", "    ", "\n\t"])
def test_invalid_room_name(name: str) -> None:
    """Empty after trimming. The length limit is a setting, see the room registry tests"""
    with pytest.raises(InvalidRequestError):
        CreateRoomRequest(name=name)


def test_longest_room_name() -> None:
    assert len(CreateRoomRequest(name="x" * 50).name) == 50


@pytest.mark.parametrize(
    "text, expected", [("5+3", "5+3"), (" 15 + 10 ", "15+10"), ("1+0", "1+0")]
)
def test_time_control_is_normalized(text: str, expected: str) -> None:
    assert CreateRoomRequest(name="Room", time_control=text).time_control == expected


@pytest.mark.parametrize(
    "text",
    [
        "",
        "10",  # no increment
        "ten+0",  # not a number
        "10+0+0",  # too many parts
        "0+5",  # no base time
        "5+-1",  # negative increment
    ],
)
def test_invalid_time_control(text: str) -> None:
    with pytest.raises(InvalidRequestError):
        CreateRoomRequest(name="Room", time_control=text)


@pytest.mark.parametrize("value", [0, 50, 500])
def test_spectator_limit_bounds(value: int) -> None:
    assert CreateRoomRequest(name="Room", max_spectators=value).max_spectators == value


@pytest.mark.parametrize("value", [-1, -50])
def test_invalid_spectator_limit(value: int) -> None:
    with pytest.raises(InvalidRequestError):
        CreateRoomRequest(name="Room", max_spectators=value)


# -- Validation - JoinRoomRequest --
def test_room_code_is_normalized() -> None:
    assert JoinRoomRequest(room_code=" ab12cd ").room_code == "AB12CD"
    assert JoinRoomRequest().room_code is None


@pytest.mark.parametrize("code", ["", "AB-12", "ÄBC123"])
def test_invalid_room_code(code: str) -> None:
    with pytest.raises(InvalidRequestError):
        JoinRoomRequest(room_code=code)


# -- Validation - MoveRequest --
def test_valid_square_names() -> None:
    """Test that MoveRequest accepts correctly written squares in algebraic notation."""
    request = MoveRequest(from_square="e2", to_square=" E4")
    assert request.from_square == "e2"
    assert request.to_square == "e4"
    assert request.promote_to is None


@pytest.mark.parametrize(
    "square",
    [
        "nonsense",  # anything more than two characters.
        "11",  # First character is not a letter
        "aa",  # second character is not a number
        "i1",  # off the board
        "a9",
    ],
)
def test_invalid_from_square(square: str) -> None:
    """Test that an exception is raised when using invalid square name."""
    with pytest.raises(InvalidRequestError):
        MoveRequest(from_square=square, to_square="e2")


@pytest.mark.parametrize("square", ["nonsense", "11", "aa"])
def test_invalid_to_square(square: str) -> None:
    with pytest.raises(InvalidRequestError):
        MoveRequest(from_square="e2", to_square=square)


@pytest.mark.parametrize("promotion", ["q", "knight", "R"])
def test_valid_promotion(promotion: str) -> None:
    request = MoveRequest(from_square="e7", to_square="e8", promote_to=promotion)
    assert request.promote_to == promotion


@pytest.mark.parametrize("promotion", ["x", "dragon", ""])
def test_invalid_promotion(promotion: str) -> None:
    with pytest.raises(InvalidRequestError):
        MoveRequest(from_square="e7", to_square="e8", promote_to=promotion)


# -- Validation - SendMessageRequest / UsernameRequest --
def test_message_is_trimmed() -> None:
    assert SendMessageRequest(content="  gg  ").content == "gg"


@pytest.mark.parametrize("content", ["", " \n "])
def test_empty_message(content: str) -> None:
    with pytest.raises(InvalidRequestError):
        SendMessageRequest(content=content)


@pytest.mark.parametrize("username", ["bob", "magnus_c", "A" * 20, "  padded_1 "])
def test_valid_username(username: str) -> None:
    assert UsernameRequest(username=username).username == username.strip()


@pytest.mark.parametrize("username", ["ab", "A" * 21, "with space", "dash-ed", "émile"])
def test_invalid_username(username: str) -> None:
    with pytest.raises(InvalidRequestError):
        UsernameRequest(username=username)
