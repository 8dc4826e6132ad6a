"""Unit tests for /src/chess/square.py"""

from string import ascii_lowercase

import pytest

from src.chess.square import BOARD_DIMENSIONS, Square
from src.core.exceptions import InvalidRequestError


@pytest.mark.parametrize(
    "file, rank, notation",
    [
        (file, rank, f"{ascii_lowercase[file - 1]}{rank}")
        for file in range(1, 9)
        for rank in range(1, 9)
    ],
)
def test_algebraic_notation_both_ways(file: int, rank: int, notation: str) -> None:
    """'a1' is file 1, rank 1 and the other way around"""
    square = Square.from_algebraic(notation)
    assert square == Square(file, rank)
    assert square.to_algebraic() == notation


def test_upper_case_file_is_accepted() -> None:
    assert Square.from_algebraic("E4") == Square(5, 4)


@pytest.mark.parametrize("notation", ["", "e", "e44", "i1", "a9", "a0", "4e", "ee"])
def test_invalid_square_names(notation: str) -> None:
    """Anything that is not on the 8x8 board is a request error, not a crash"""
    with pytest.raises(InvalidRequestError):
        Square.from_algebraic(notation)


def test_square_out_of_bounds() -> None:
    assert not Square(BOARD_DIMENSIONS[0] + 1, 1).is_within_bounds()
    assert not Square(1, 0).is_within_bounds()
    assert Square(8, 8).is_within_bounds()


def test_offset_and_square_color() -> None:
    """a1 is dark, h1 is light. Offsets may leave the board, the caller checks bounds"""
    a1 = Square.from_algebraic("a1")
    assert not a1.is_light
    assert Square.from_algebraic("h1").is_light
    assert a1.offset(1, 2) == Square.from_algebraic("b3")
    assert not a1.offset(-1, 0).is_within_bounds()
