"""Request models: everything a UI sends in is validated here, before any store call."""

import re
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from src.chess.game import parse_promotion
from src.chess.square import Square
from src.core.exceptions import InvalidRequestError
from src.core.models import TimeControl, normalize_username

ROOM_CODE_PATTERN = re.compile(r"^[A-Z0-9]+$")


# --- REQUEST MODELS ---
class CreateRoomRequest(BaseModel):
    name: str
    is_private: bool = False
    time_control: str = "10+0"
    max_spectators: int = 10

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise InvalidRequestError("Room name cannot be empty.")
        return value

    @field_validator("time_control")
    @classmethod
    def validate_time_control(cls, value: str) -> str:
        try:
            parsed = TimeControl.parse(value)
        except ValueError as error:
            raise InvalidRequestError(
                f"Cannot interpret time control {value!r}; expected e.g. '10+0'."
            ) from error
        if parsed.base_minutes <= 0 or parsed.increment_seconds < 0:
            raise InvalidRequestError(f"Time control {value!r} out of range.")
        return str(parsed)

    @field_validator("max_spectators")
    @classmethod
    def validate_max_spectators(cls, value: int) -> int:
        # the upper bound is a setting, checked by the room registry
        if value < 0:
            raise InvalidRequestError("Maximum number of spectators cannot be negative.")
        return value

    def parsed_time_control(self) -> TimeControl:
        return TimeControl.parse(self.time_control)


class JoinRoomRequest(BaseModel):
    room_code: Optional[str] = None

    @field_validator("room_code")
    @classmethod
    def normalize_code(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip().upper()
        if not ROOM_CODE_PATTERN.match(value):
            raise InvalidRequestError("Room code contains letters and digits only.")
        return value


class MoveRequest(BaseModel):
    from_square: str
    to_square: str
    promote_to: Optional[str] = None

    @field_validator(*["from_square", "to_square"])
    @classmethod
    def validate_square(cls, value: str) -> str:
        # raises InvalidRequestError with the offending value in the message
        return Square.from_algebraic(value.strip().lower()).to_algebraic()

    @field_validator("promote_to")
    @classmethod
    def validate_promotion(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        parse_promotion(value)
        return value


class SendMessageRequest(BaseModel):
    content: str = Field(default="")

    @field_validator("content")
    @classmethod
    def validate_content(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise InvalidRequestError("Message cannot be empty.")
        return value


class UsernameRequest(BaseModel):
    username: str

    @field_validator("username")
    @classmethod
    def validate_username(cls, value: str) -> str:
        return normalize_username(value)
