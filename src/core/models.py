"""
Boundary layer data model(s).

These objects can be used to communicate with the Services.
Hence, both the API layer (higher) and domain/db layers (lower) will use model(s) defined here to send to/receive from the Services
(Decouples the data model specific to the DB layer, API layer, or domain layer from the information needed to send across boundaries)
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Self
from uuid import UUID

from src.core.exceptions import InvalidRequestError
from src.core.shared_types import (
    ChangeType,
    JoinOutcome,
    ParticipantRole,
    RoomStatus,
    TerminationReason,
)

# Type aliases to make the models easier to read
UserId = str
Row = dict[str, Any]

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{3,20}$")


def normalize_username(value: str) -> str:
    """Strip surrounding whitespace; raises InvalidRequestError unless 3-20 letters, digits or underscores remain."""
    value = value.strip()
    if not USERNAME_PATTERN.match(value):
        raise InvalidRequestError(
            "Username must be 3-20 characters: letters, digits or underscores."
        )
    return value


@dataclass
class GameModel:
    """Transport-safe representation of a chess game used between Service, DB, and Game layers."""

    room_id: UUID
    white_player_id: UserId
    black_player_id: UserId
    starting_fen: str
    current_fen: str
    moves_uci: list[str]
    history_san: list[str]
    termination: str = TerminationReason.NONE


@dataclass(frozen=True)
class TimeControl:
    """Base time in minutes + increment in seconds. Stored, never enforced."""

    base_minutes: int
    increment_seconds: int

    @classmethod
    def parse(cls, text: str) -> Self:
        """'10+0' -> TimeControl(10, 0)"""
        base, increment = text.strip().split("+")
        return cls(int(base), int(increment))

    def __str__(self) -> str:
        return f"{self.base_minutes}+{self.increment_seconds}"


@dataclass(frozen=True)
class UserSummary:
    """The one shape of "profile" used by rooms, participants, and projections."""

    id: UserId
    username: str
    rating: int


@dataclass
class RoomDraft:
    """Everything needed to store a new room. Validated already."""

    name: str
    host_id: UserId
    is_private: bool
    room_code: Optional[str]
    time_control: TimeControl
    max_spectators: int


@dataclass
class RoomModel:
    id: UUID
    name: str
    host_id: UserId
    guest_id: Optional[UserId]
    is_private: bool
    room_code: Optional[str]
    status: RoomStatus
    time_control: TimeControl
    max_spectators: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: Row) -> Self:
        """Build from a change-feed row (column name -> value)"""
        return cls(
            id=row["id"],
            name=row["name"],
            host_id=row["host_id"],
            guest_id=row["guest_id"],
            is_private=row["is_private"],
            room_code=row["room_code"],
            status=RoomStatus(row["status"]),
            time_control=TimeControl(
                row["time_base_minutes"], row["time_increment_seconds"]
            ),
            max_spectators=row["max_spectators"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


@dataclass
class ParticipantModel:
    id: UUID
    room_id: UUID
    user_id: UserId
    role: ParticipantRole
    joined_at: datetime
    left_at: Optional[datetime]
    is_active: bool
    user: Optional[UserSummary] = None

    @classmethod
    def from_row(cls, row: Row, user: Optional[UserSummary] = None) -> Self:
        return cls(
            id=row["id"],
            room_id=row["room_id"],
            user_id=row["user_id"],
            role=ParticipantRole(row["role"]),
            joined_at=row["joined_at"],
            left_at=row["left_at"],
            is_active=row["is_active"],
            user=user,
        )


@dataclass
class RoomWithParticipants:
    """Snapshot of a room as fetched from the store. Treat as stale as soon as it is returned."""

    room: RoomModel
    participants: list[ParticipantModel] = field(default_factory=list)
    host: Optional[UserSummary] = None
    guest: Optional[UserSummary] = None

    def active(self, role: ParticipantRole) -> list[ParticipantModel]:
        return [p for p in self.participants if p.is_active and p.role == role]

    @property
    def spectator_count(self) -> int:
        return len(self.active(ParticipantRole.SPECTATOR))


@dataclass
class ChatMessageModel:
    id: UUID
    room_id: UUID
    sender_id: UserId
    content: str
    created_at: datetime

    @classmethod
    def from_row(cls, row: Row) -> Self:
        return cls(
            id=row["id"],
            room_id=row["room_id"],
            sender_id=row["sender_id"],
            content=row["content"],
            created_at=row["created_at"],
        )


@dataclass
class UserRankingModel:
    user_id: UserId
    games_played: int
    games_won: int
    games_lost: int
    rating: int


@dataclass
class JoinResult:
    """Typed outcome of a join attempt. Never raised: the UI decides how to show it."""

    outcome: JoinOutcome
    role: Optional[ParticipantRole] = None
    participant: Optional[ParticipantModel] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome in (
            JoinOutcome.JOINED,
            JoinOutcome.ALREADY_JOINED,
            JoinOutcome.ALREADY_SPECTATING,
        )


@dataclass
class LeaveResult:
    left: bool
    seat_released: bool = False
    room_closed: bool = False


@dataclass(frozen=True)
class ChangeEvent:
    """A row-level change pushed by the store."""

    event_id: int
    table: str
    type: ChangeType
    new: Optional[Row] = None
    old: Optional[Row] = None
