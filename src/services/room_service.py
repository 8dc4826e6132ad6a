"""
Rooms: creation, seat assignment, leaving.

The store is the only authority on who sits where. Nothing here holds a lock or trusts an earlier read:
every seat change is a conditional write, re-checked by the store at write time.
"""

import logging
import secrets
import string
import time
from typing import Callable, Optional
from uuid import UUID

from src.api.models import CreateRoomRequest, JoinRoomRequest
from src.core.config import Settings
from src.core.exceptions import (
    AtomicJoinUnavailableError,
    InvalidRequestError,
    ParticipantConflictError,
    RoomNotFoundError,
    StoreError,
)
from src.core.models import (
    JoinResult,
    LeaveResult,
    ParticipantModel,
    RoomDraft,
    RoomModel,
    RoomWithParticipants,
    UserId,
    UserSummary,
)
from src.core.shared_types import (
    JoinOutcome,
    ParticipantRole,
    RoomAvailability,
    RoomStatus,
)
from src.db.repository import GameRepository, RoomRepository, UserRepository
from src.services.session import SessionProvider, require_identity

_LOGGER = logging.getLogger(__name__)

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits


def room_availability(snapshot: RoomWithParticipants) -> RoomAvailability:
    """What a room list shows next to a room. Computed from the snapshot on every fetch."""
    room = snapshot.room
    if room.status == RoomStatus.PLAYING:
        return RoomAvailability.PLAYING
    if room.guest_id is not None:
        return RoomAvailability.FULL
    if snapshot.spectator_count >= room.max_spectators:
        return RoomAvailability.SPECTATORS_FULL
    return RoomAvailability.AVAILABLE


def generate_room_code(length: int) -> str:
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(length))


class RoomRegistry:
    """Orchestration of the room operations for the signed-in user."""

    def __init__(
        self,
        rooms: RoomRepository,
        users: UserRepository,
        session: SessionProvider,
        settings: Optional[Settings] = None,
        games: Optional[GameRepository] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.rooms = rooms
        self.users = users
        self.session = session
        self.settings = settings or Settings()
        self.games = games
        self.clock = clock

    # --- ROOMS ---
    def create_room(self, request: CreateRoomRequest) -> RoomModel:
        """The signed-in user becomes host of a new waiting room."""
        host_id = require_identity(self.session)

        if len(request.name) > self.settings.max_room_name_length:
            raise InvalidRequestError(
                f"Room name is limited to {self.settings.max_room_name_length} characters."
            )
        if request.max_spectators > self.settings.max_spectators_limit:
            raise InvalidRequestError(
                f"At most {self.settings.max_spectators_limit} spectators per room."
            )

        room_code = (
            generate_room_code(self.settings.room_code_length)
            if request.is_private
            else None
        )
        room = self.rooms.create_room(
            RoomDraft(
                name=request.name,
                host_id=host_id,
                is_private=request.is_private,
                room_code=room_code,
                time_control=request.parsed_time_control(),
                max_spectators=request.max_spectators,
            )
        )
        _LOGGER.info(
            "Room %s (%r) created by %s, private=%s", room.id, room.name, host_id, room.is_private
        )
        return room

    def fetch_room(self, room_id: UUID) -> RoomWithParticipants:
        """Full read of a room: the source of truth for every projection"""
        room = self.rooms.get_room(room_id)
        if room is None:
            raise RoomNotFoundError(f"Room with {room_id=} not found.")
        participants = self.rooms.list_participants(room_id)
        return RoomWithParticipants(
            room=room,
            participants=participants,
            host=self._summary_of(room.host_id, participants),
            guest=self._summary_of(room.guest_id, participants),
        )

    def list_open_rooms(self, limit: Optional[int] = None) -> list[RoomModel]:
        """Public rooms still waiting for an opponent, newest first."""
        return self.rooms.list_rooms(
            RoomStatus.WAITING,
            is_private=False,
            limit=limit or self.settings.open_rooms_limit,
        )

    def user_summary(self, user_id: UserId) -> UserSummary | None:
        return self.users.get_summary(user_id)

    # --- SEATS ---
    def join_as_player(
        self, room_id: UUID, room_code: Optional[str] = None
    ) -> JoinResult:
        """
        Claim the guest seat of a room.
        ----

        1. precondition read: waiting, no guest, caller is not the host (private rooms also need the code)
        2. the atomic path, when the store supports it: intent + claim in one transaction
        3. otherwise: insert intent, conditional claim, delete the intent if the claim changed nothing

        Losing the race, a duplicate join and the deadline passing are outcomes, not errors.
        """
        user_id = require_identity(self.session)
        deadline = self.clock() + self.settings.join_timeout_seconds

        room = self.rooms.get_room(room_id)
        if room is None:
            return JoinResult(JoinOutcome.NOT_FOUND, message="Room not found.")
        if room.host_id == user_id:
            return JoinResult(
                JoinOutcome.IS_HOST,
                role=ParticipantRole.HOST,
                message="You are the host of this room.",
            )
        if room.guest_id == user_id:
            return self._already_joined(room_id, user_id)
        if room.is_private and self._normalized_code(room_code) != room.room_code:
            _LOGGER.debug("Wrong room code from %s for room %s", user_id, room_id)
            return JoinResult(JoinOutcome.INVALID_CODE, message="Invalid room code.")
        if room.status != RoomStatus.WAITING or room.guest_id is not None:
            return self._unavailable(room_id, user_id)

        if self.settings.use_atomic_join:
            try:
                return self._atomic_join(room_id, user_id)
            except AtomicJoinUnavailableError:
                _LOGGER.info("Atomic join unavailable, using the two-step protocol")
        return self._two_step_join(room_id, user_id, deadline)

    def join_as_spectator(self, room_id: UUID) -> JoinResult:
        user_id = require_identity(self.session)

        room = self.rooms.get_room(room_id)
        if room is None:
            return JoinResult(JoinOutcome.NOT_FOUND, message="Room not found.")
        if room.host_id == user_id:
            return JoinResult(
                JoinOutcome.IS_HOST,
                role=ParticipantRole.HOST,
                message="You are the host of this room.",
            )

        existing = self.rooms.find_active_participant(room_id, user_id)
        if existing is not None:
            return self._existing_participation(existing)
        if room.status == RoomStatus.FINISHED:
            return JoinResult(JoinOutcome.ROOM_UNAVAILABLE, message="Room is closed.")

        try:
            participant = self.rooms.insert_spectator_below_cap(room_id, user_id)
        except ParticipantConflictError:
            # joined from another tab in the meantime
            return JoinResult(
                JoinOutcome.ALREADY_SPECTATING, role=ParticipantRole.SPECTATOR
            )
        if participant is None:
            _LOGGER.info("Room %s at its spectator limit, %s rejected", room_id, user_id)
            return JoinResult(
                JoinOutcome.SPECTATORS_FULL,
                message="This room has reached its spectator limit.",
            )

        _LOGGER.info("%s is spectating room %s", user_id, room_id)
        return JoinResult(
            JoinOutcome.JOINED, role=ParticipantRole.SPECTATOR, participant=participant
        )

    def leave_room(self, room_id: UUID) -> LeaveResult:
        """
        Soft-delete the caller's participation.
        ----

        A guest leaving frees the seat and reopens the room. The host leaving closes the room:
        every participant is deactivated and the room is marked finished.
        Either way the game played in the room is discarded.
        """
        user_id = require_identity(self.session)

        room = self.rooms.get_room(room_id)
        if room is None:
            return LeaveResult(left=False)

        if room.host_id == user_id:
            if room.status == RoomStatus.FINISHED:
                return LeaveResult(left=False)
            closed = self.rooms.close_room(room_id) > 0
            self._discard_game(room_id)
            _LOGGER.info("Host %s left, room %s closed", user_id, room_id)
            return LeaveResult(left=True, room_closed=closed)

        if room.guest_id != user_id:
            participant = self.rooms.deactivate_participant(room_id, user_id)
            return LeaveResult(left=participant is not None)

        # conditional on the leaver still being the guest
        participant, released = self.rooms.leave_guest_seat(room_id, user_id)
        seat_released = released > 0
        if seat_released:
            self._discard_game(room_id)
            _LOGGER.info("Guest %s left, room %s open again", user_id, room_id)
        return LeaveResult(
            left=participant is not None or seat_released, seat_released=seat_released
        )

    # -- Internal helpers --
    @staticmethod
    def _normalized_code(room_code: Optional[str]) -> Optional[str]:
        """Upper case, no surrounding whitespace. A malformed code matches no room."""
        try:
            return JoinRoomRequest(room_code=room_code).room_code
        except InvalidRequestError:
            return None

    def _atomic_join(self, room_id: UUID, user_id: UserId) -> JoinResult:
        try:
            participant = self.rooms.claim_seat_atomically(room_id, user_id)
        except ParticipantConflictError:
            return self._already_joined(room_id, user_id)
        if participant is None:
            _LOGGER.info("%s lost the seat race for room %s", user_id, room_id)
            return self._unavailable(room_id, user_id)
        _LOGGER.info("%s took the guest seat of room %s", user_id, room_id)
        return JoinResult(
            JoinOutcome.JOINED, role=ParticipantRole.PLAYER, participant=participant
        )

    def _two_step_join(
        self, room_id: UUID, user_id: UserId, deadline: float
    ) -> JoinResult:
        try:
            intent = self.rooms.insert_participant(
                room_id, user_id, ParticipantRole.PLAYER
            )
        except ParticipantConflictError:
            return self._already_joined(room_id, user_id)

        if self.clock() > deadline:
            self._rollback_intent(intent, "deadline passed")
            return JoinResult(
                JoinOutcome.TIMED_OUT, message="Joining took too long. Please try again."
            )

        try:
            claimed = self.rooms.claim_guest_seat(room_id, user_id)
        except StoreError:
            self._rollback_intent(intent, "store failure")
            raise

        if claimed != 1:
            self._rollback_intent(intent, "seat already taken")
            return self._unavailable(room_id, user_id)

        _LOGGER.info("%s took the guest seat of room %s", user_id, room_id)
        return JoinResult(
            JoinOutcome.JOINED, role=ParticipantRole.PLAYER, participant=intent
        )

    def _rollback_intent(self, intent: ParticipantModel, why: str) -> None:
        _LOGGER.info(
            "Rolling back join intent of %s in room %s (%s)",
            intent.user_id,
            intent.room_id,
            why,
        )
        self.rooms.delete_participant(intent.id)

    def _already_joined(self, room_id: UUID, user_id: UserId) -> JoinResult:
        existing = self.rooms.find_active_participant(room_id, user_id)
        if existing is not None:
            return self._existing_participation(existing)
        return JoinResult(JoinOutcome.ALREADY_JOINED, role=ParticipantRole.PLAYER)

    def _existing_participation(self, participant: ParticipantModel) -> JoinResult:
        if participant.role == ParticipantRole.SPECTATOR:
            return JoinResult(
                JoinOutcome.ALREADY_SPECTATING,
                role=participant.role,
                participant=participant,
            )
        return JoinResult(
            JoinOutcome.ALREADY_JOINED, role=participant.role, participant=participant
        )

    def _unavailable(self, room_id: UUID, user_id: UserId) -> JoinResult:
        _LOGGER.debug("Room %s not available to %s", room_id, user_id)
        return JoinResult(
            JoinOutcome.ROOM_UNAVAILABLE,
            message="This room is no longer available. Try another room.",
        )

    def _summary_of(
        self, user_id: Optional[UserId], participants: list[ParticipantModel]
    ) -> UserSummary | None:
        if user_id is None:
            return None
        for participant in participants:
            if participant.user_id == user_id and participant.user is not None:
                return participant.user
        return self.users.get_summary(user_id)

    def _discard_game(self, room_id: UUID) -> None:
        if self.games is not None and self.games.delete_game(room_id) is not None:
            _LOGGER.info("Game of room %s discarded", room_id)
