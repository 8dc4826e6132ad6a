"""
Protocol repositories: the persistent store as this package sees it.

Any backend works, as long as `claim_guest_seat` applies its predicate and its write atomically with respect to other writers.
Writes are published on the change feed once they are committed.
"""

from typing import Optional, Protocol
from uuid import UUID

from src.core.models import (
    ChatMessageModel,
    GameModel,
    ParticipantModel,
    RoomDraft,
    RoomModel,
    UserId,
    UserRankingModel,
    UserSummary,
)
from src.core.shared_types import ParticipantRole, RoomStatus


class RoomRepository(Protocol):
    """Rooms + their participants (one repository, as the seat claim touches both)"""

    def create_room(self, draft: RoomDraft) -> RoomModel:
        """Store a new room in status 'waiting' together with the host's participant row."""
        ...

    def get_room(self, room_id: UUID) -> RoomModel | None:
        """Get room by ID, if record exists."""
        ...

    def list_rooms(
        self, status: RoomStatus, is_private: bool, limit: int
    ) -> list[RoomModel]:
        """Newest first."""
        ...

    def list_participants(
        self, room_id: UUID, active_only: bool = True
    ) -> list[ParticipantModel]:
        """Ordered by join time, with the user summary resolved."""
        ...

    def find_active_participant(
        self, room_id: UUID, user_id: UserId
    ) -> ParticipantModel | None: ...

    def count_active(self, room_id: UUID, role: ParticipantRole) -> int: ...

    def insert_participant(
        self, room_id: UUID, user_id: UserId, role: ParticipantRole
    ) -> ParticipantModel:
        """Raises ParticipantConflictError if the user already has an active participation in the room."""
        ...

    def insert_spectator_below_cap(
        self, room_id: UUID, user_id: UserId
    ) -> ParticipantModel | None:
        """Insert a spectator only while the active spectator count is below the room's maximum (None otherwise).
        Raises ParticipantConflictError like insert_participant."""
        ...

    def delete_participant(self, participant_id: UUID) -> None:
        """Hard delete. Only used to roll back an intent row that never got its seat."""
        ...

    def deactivate_participant(
        self, room_id: UUID, user_id: UserId
    ) -> ParticipantModel | None:
        """Soft delete: is_active=False, left_at=now."""
        ...

    def claim_guest_seat(self, room_id: UUID, user_id: UserId) -> int:
        """guest=user, status=playing WHERE guest IS NULL AND status='waiting'. Returns the number of rows changed (0 or 1)."""
        ...

    def leave_guest_seat(
        self, room_id: UUID, user_id: UserId
    ) -> tuple[ParticipantModel | None, int]:
        """
        Soft delete of the active participation + guest=NULL, status=waiting WHERE guest=user, in ONE transaction.
        Returns the deactivated participant (None if none was active) and the number of room rows changed.
        """
        ...

    def close_room(self, room_id: UUID) -> int:
        """status=finished and every active participant deactivated."""
        ...

    def claim_seat_atomically(
        self, room_id: UUID, user_id: UserId
    ) -> ParticipantModel | None:
        """
        Participant insert + conditional seat claim in ONE transaction.
        Returns the player's participant row, None if the seat is gone, raises ParticipantConflictError if already joined,
        and AtomicJoinUnavailableError if the store cannot do this.
        """
        ...


class GameRepository(Protocol):
    """Persistence of the game played in a room (at most one per room)"""

    def get_game(self, room_id: UUID) -> GameModel | None: ...

    def create_game(self, game: GameModel) -> GameModel:
        """Returns the game already stored for the room if another client created it first."""
        ...

    def update_game(self, game: GameModel) -> GameModel | None:
        """Add new info to existing record."""
        ...

    def delete_game(self, room_id: UUID) -> GameModel | None:
        """Remove a game's record."""
        ...


class ChatRepository(Protocol):
    def add_message(
        self, room_id: UUID, sender_id: UserId, content: str
    ) -> ChatMessageModel: ...

    def list_messages(self, room_id: UUID, limit: int) -> list[ChatMessageModel]:
        """Oldest first (the most recent `limit` messages)."""
        ...


class UserRepository(Protocol):
    def get_summary(self, user_id: UserId) -> UserSummary | None: ...

    def create_profile(
        self, user_id: UserId, username: str, avatar_url: Optional[str] = None
    ) -> UserSummary: ...

    def get_ranking(self, user_id: UserId) -> UserRankingModel | None: ...

    def create_ranking(self, user_id: UserId) -> UserRankingModel:
        """Zero games, default rating. Returns the existing row if another client created it first."""
        ...
