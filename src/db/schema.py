"""Database tables / schema"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, String, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from src.core.shared_types import RoomStatus, TerminationReason


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class DBProfile(Base):
    """Public part of a user account. Credentials live with the auth provider, not here."""

    __tablename__ = "profiles"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    username: Mapped[str] = mapped_column(String(20), unique=True)
    avatar_url: Mapped[Optional[str]]
    created_at: Mapped[datetime] = mapped_column(default=utc_now)


class DBRoom(Base):
    __tablename__ = "rooms"
    id: Mapped[UUID] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    host_id: Mapped[str] = mapped_column(String(64))
    guest_id: Mapped[Optional[str]] = mapped_column(String(64))
    is_private: Mapped[bool] = mapped_column(default=False)
    room_code: Mapped[Optional[str]] = mapped_column(String(16))
    status: Mapped[str] = mapped_column(String(16), default=RoomStatus.WAITING.value)
    time_base_minutes: Mapped[int] = mapped_column(default=10)
    time_increment_seconds: Mapped[int] = mapped_column(default=0)
    max_spectators: Mapped[int] = mapped_column(default=10)
    created_at: Mapped[datetime] = mapped_column(default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(default=utc_now, onupdate=utc_now)


class DBParticipant(Base):
    """Soft-deleted on leave (is_active=False), so the table doubles as the room's audit history."""

    __tablename__ = "room_participants"
    id: Mapped[UUID] = mapped_column(primary_key=True)
    room_id: Mapped[UUID] = mapped_column(ForeignKey("rooms.id", ondelete="CASCADE"))
    user_id: Mapped[str] = mapped_column(String(64))
    role: Mapped[str] = mapped_column(String(16))
    joined_at: Mapped[datetime] = mapped_column(default=utc_now)
    left_at: Mapped[Optional[datetime]]
    is_active: Mapped[bool] = mapped_column(default=True)

    __table_args__ = (
        # one ACTIVE participation per user per room; inactive rows are history
        Index(
            "uq_room_participants_active",
            "room_id",
            "user_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )


class DBGame(Base):
    __tablename__ = "games"
    id: Mapped[UUID] = mapped_column(primary_key=True)
    room_id: Mapped[UUID] = mapped_column(
        ForeignKey("rooms.id", ondelete="CASCADE"), unique=True
    )
    white_player_id: Mapped[str] = mapped_column(String(64))
    black_player_id: Mapped[str] = mapped_column(String(64))
    starting_fen: Mapped[str]
    current_fen: Mapped[str]
    moves_uci: Mapped[list[str]] = mapped_column(JSON, default=list)
    history_san: Mapped[list[str]] = mapped_column(JSON, default=list)
    termination: Mapped[str] = mapped_column(
        String(32), default=TerminationReason.NONE.value
    )
    created_at: Mapped[datetime] = mapped_column(default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(default=utc_now, onupdate=utc_now)


class DBChatMessage(Base):
    __tablename__ = "chat_messages"
    id: Mapped[UUID] = mapped_column(primary_key=True)
    room_id: Mapped[UUID] = mapped_column(
        ForeignKey("rooms.id", ondelete="CASCADE"), index=True
    )
    sender_id: Mapped[str] = mapped_column(String(64))
    content: Mapped[str] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(default=utc_now)


class DBUserRanking(Base):
    """Written by whatever settles finished games. Read-only for this package, apart from creating the default row."""

    __tablename__ = "user_ranking"
    id: Mapped[UUID] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), unique=True)
    games_played: Mapped[int] = mapped_column(default=0)
    games_won: Mapped[int] = mapped_column(default=0)
    games_lost: Mapped[int] = mapped_column(default=0)
    # no column default: the repository always writes the configured default rating
    elo_rating: Mapped[int]
    created_at: Mapped[datetime] = mapped_column(default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(default=utc_now, onupdate=utc_now)
