"""Rooms and participants using SQLAlchemy. The seat claim is a single conditional UPDATE: the database arbitrates the race."""

import logging
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.core.exceptions import AtomicJoinUnavailableError, ParticipantConflictError
from src.core.models import (
    ParticipantModel,
    RoomDraft,
    RoomModel,
    TimeControl,
    UserId,
    UserSummary,
)
from src.core.shared_types import ChangeType, ParticipantRole, RoomStatus
from src.db.schema import DBParticipant, DBProfile, DBRoom, DBUserRanking, utc_now
from src.db.sql_repository import SQLRepository, row_dict
from src.realtime.feed import ChangeFeed

_LOGGER = logging.getLogger(__name__)

ROOMS = "rooms"
PARTICIPANTS = "room_participants"


class SQLRoomRepository(SQLRepository):
    def __init__(
        self,
        db_session: Session,
        feed: Optional[ChangeFeed] = None,
        default_rating: int = 400,
        atomic_join: bool = True,
    ) -> None:
        super().__init__(db_session, feed)
        self.default_rating = default_rating
        self.atomic_join = atomic_join

    # --- ROOMS ---
    def create_room(self, draft: RoomDraft) -> RoomModel:
        with self._store_errors("create room"):
            room_db = DBRoom(
                id=uuid4(),
                name=draft.name,
                host_id=draft.host_id,
                guest_id=None,
                is_private=draft.is_private,
                room_code=draft.room_code,
                status=RoomStatus.WAITING.value,
                time_base_minutes=draft.time_control.base_minutes,
                time_increment_seconds=draft.time_control.increment_seconds,
                max_spectators=draft.max_spectators,
            )
            self.db.add(room_db)
            # the host row is written in the same transaction: a room never exists without its host
            self.db.flush()
            host_db = self._new_participant(room_db.id, draft.host_id, ParticipantRole.HOST)
            self.db.add(host_db)
            self.db.commit()
            self.db.refresh(room_db)
            self.db.refresh(host_db)
        self._publish(ROOMS, ChangeType.INSERT, new=row_dict(room_db))
        self._publish(PARTICIPANTS, ChangeType.INSERT, new=row_dict(host_db))
        return self._room_model(room_db)

    def get_room(self, room_id: UUID) -> RoomModel | None:
        with self._store_errors("get room"):
            room_db = self._refetch(DBRoom, room_id)
        return self._room_model(room_db) if room_db else None

    def list_rooms(
        self, status: RoomStatus, is_private: bool, limit: int
    ) -> list[RoomModel]:
        query = (
            select(DBRoom)
            .where(DBRoom.status == status.value, DBRoom.is_private == is_private)
            .order_by(DBRoom.created_at.desc())
            .limit(limit)
        )
        with self._store_errors("list rooms"):
            rooms = self.db.scalars(query).all()
        return [self._room_model(room_db) for room_db in rooms]

    def close_room(self, room_id: UUID) -> int:
        with self._store_errors("close room"):
            old = self._refetch(DBRoom, room_id)
            if old is None:
                return 0
            old_row = row_dict(old)
            leaving = self.db.scalars(
                select(DBParticipant).where(
                    DBParticipant.room_id == room_id, DBParticipant.is_active.is_(True)
                )
            ).all()
            now = utc_now()
            for participant_db in leaving:
                participant_db.is_active = False
                participant_db.left_at = now
            result = self.db.execute(
                update(DBRoom)
                .where(DBRoom.id == room_id)
                .values(status=RoomStatus.FINISHED.value, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
            room_db = self._refetch(DBRoom, room_id)
        for participant_db in leaving:
            self._publish(PARTICIPANTS, ChangeType.UPDATE, new=row_dict(participant_db))
        self._publish(ROOMS, ChangeType.UPDATE, new=row_dict(room_db), old=old_row)
        return result.rowcount

    # --- SEAT ---
    def claim_guest_seat(self, room_id: UUID, user_id: UserId) -> int:
        with self._store_errors("claim guest seat"):
            old_row = self._room_row(room_id)
            result = self.db.execute(self._claim_statement(room_id, user_id))
            self.db.commit()
        if result.rowcount:
            self._publish_room_update(room_id, old_row)
        return result.rowcount

    def leave_guest_seat(
        self, room_id: UUID, user_id: UserId
    ) -> tuple[ParticipantModel | None, int]:
        """
        Deactivate the user's participation and free the seat they hold, in one transaction.
        Returns the deactivated participant (None if there was no active one) and the number of room rows changed.
        """
        statement = (
            update(DBRoom)
            .where(DBRoom.id == room_id, DBRoom.guest_id == user_id)
            .values(
                guest_id=None, status=RoomStatus.WAITING.value, updated_at=utc_now()
            )
            .execution_options(synchronize_session=False)
        )
        with self._store_errors("leave guest seat"):
            old_row = self._room_row(room_id)
            participant_db = self._active_participant(room_id, user_id)
            old = None
            if participant_db is not None:
                old = row_dict(participant_db)
                participant_db.is_active = False
                participant_db.left_at = utc_now()
            result = self.db.execute(statement)
            self.db.commit()
            if participant_db is not None:
                self.db.refresh(participant_db)
        if participant_db is not None:
            self._publish(
                PARTICIPANTS, ChangeType.UPDATE, new=row_dict(participant_db), old=old
            )
        if result.rowcount:
            self._publish_room_update(room_id, old_row)
        participant = self._participant_model(participant_db) if participant_db else None
        return participant, result.rowcount

    def claim_seat_atomically(
        self, room_id: UUID, user_id: UserId
    ) -> ParticipantModel | None:
        """Intent row + conditional claim, committed together or not at all."""
        if not self.atomic_join:
            raise AtomicJoinUnavailableError("Atomic seat claim disabled for this store.")

        with self._store_errors("atomic seat claim"):
            old_row = self._room_row(room_id)
            participant_db = self._new_participant(room_id, user_id, ParticipantRole.PLAYER)
            self.db.add(participant_db)
            try:
                self.db.flush()
            except IntegrityError as error:
                self.db.rollback()
                raise ParticipantConflictError(
                    f"User {user_id} already participates in room {room_id}."
                ) from error

            result = self.db.execute(self._claim_statement(room_id, user_id))
            if result.rowcount != 1:
                # lost the race: nothing of this attempt is kept
                self.db.rollback()
                return None
            self.db.commit()
            self.db.refresh(participant_db)

        self._publish(PARTICIPANTS, ChangeType.INSERT, new=row_dict(participant_db))
        self._publish_room_update(room_id, old_row)
        return self._participant_model(participant_db)

    # --- PARTICIPANTS ---
    def list_participants(
        self, room_id: UUID, active_only: bool = True
    ) -> list[ParticipantModel]:
        query = (
            select(DBParticipant, DBProfile.username, DBUserRanking.elo_rating)
            .outerjoin(DBProfile, DBProfile.id == DBParticipant.user_id)
            .outerjoin(DBUserRanking, DBUserRanking.user_id == DBParticipant.user_id)
            .where(DBParticipant.room_id == room_id)
            .order_by(DBParticipant.joined_at, DBParticipant.id)
        )
        if active_only:
            query = query.where(DBParticipant.is_active.is_(True))

        with self._store_errors("list participants"):
            rows = self.db.execute(query).all()

        participants: list[ParticipantModel] = []
        for participant_db, username, rating in rows:
            user = None
            if username is not None:
                user = UserSummary(
                    id=participant_db.user_id,
                    username=username,
                    rating=rating if rating is not None else self.default_rating,
                )
            participants.append(self._participant_model(participant_db, user))
        return participants

    def find_active_participant(
        self, room_id: UUID, user_id: UserId
    ) -> ParticipantModel | None:
        with self._store_errors("find participant"):
            participant_db = self._active_participant(room_id, user_id)
        return self._participant_model(participant_db) if participant_db else None

    def count_active(self, room_id: UUID, role: ParticipantRole) -> int:
        with self._store_errors("count participants"):
            return self._count_active(room_id, role)

    def insert_participant(
        self, room_id: UUID, user_id: UserId, role: ParticipantRole
    ) -> ParticipantModel:
        with self._store_errors("insert participant"):
            participant_db = self._new_participant(room_id, user_id, role)
            self.db.add(participant_db)
            try:
                self.db.commit()
            except IntegrityError as error:
                self.db.rollback()
                raise ParticipantConflictError(
                    f"User {user_id} already participates in room {room_id}."
                ) from error
            self.db.refresh(participant_db)
        self._publish(PARTICIPANTS, ChangeType.INSERT, new=row_dict(participant_db))
        return self._participant_model(participant_db)

    def insert_spectator_below_cap(
        self, room_id: UUID, user_id: UserId
    ) -> ParticipantModel | None:
        """
        Conditional insert: count and insert inside one transaction, with the room row locked.
        ----

        FOR UPDATE serializes concurrent spectator joins of the same room on databases that support row locks;
        SQLite ignores it, but only ever runs one writer at a time anyway.
        """
        with self._store_errors("insert spectator"):
            room_db = self.db.scalar(
                select(DBRoom)
                .where(DBRoom.id == room_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            if room_db is None:
                self.db.rollback()
                return None
            if self._count_active(room_id, ParticipantRole.SPECTATOR) >= room_db.max_spectators:
                self.db.rollback()
                return None

            participant_db = self._new_participant(room_id, user_id, ParticipantRole.SPECTATOR)
            self.db.add(participant_db)
            try:
                self.db.commit()
            except IntegrityError as error:
                self.db.rollback()
                raise ParticipantConflictError(
                    f"User {user_id} already participates in room {room_id}."
                ) from error
            self.db.refresh(participant_db)
        self._publish(PARTICIPANTS, ChangeType.INSERT, new=row_dict(participant_db))
        return self._participant_model(participant_db)

    def delete_participant(self, participant_id: UUID) -> None:
        with self._store_errors("delete participant"):
            participant_db = self._refetch(DBParticipant, participant_id)
            if participant_db is None:
                return
            old = row_dict(participant_db)
            self.db.delete(participant_db)
            self.db.commit()
        self._publish(PARTICIPANTS, ChangeType.DELETE, old=old)

    def deactivate_participant(
        self, room_id: UUID, user_id: UserId
    ) -> ParticipantModel | None:
        with self._store_errors("deactivate participant"):
            participant_db = self._active_participant(room_id, user_id)
            if participant_db is None:
                return None
            old = row_dict(participant_db)
            participant_db.is_active = False
            participant_db.left_at = utc_now()
            self.db.commit()
            self.db.refresh(participant_db)
        self._publish(PARTICIPANTS, ChangeType.UPDATE, new=row_dict(participant_db), old=old)
        return self._participant_model(participant_db)

    # -- Internal helpers --
    def _claim_statement(self, room_id: UUID, user_id: UserId):
        """The compare-and-swap: only a waiting room with a free seat is updated"""
        return (
            update(DBRoom)
            .where(
                DBRoom.id == room_id,
                DBRoom.guest_id.is_(None),
                DBRoom.status == RoomStatus.WAITING.value,
            )
            .values(guest_id=user_id, status=RoomStatus.PLAYING.value, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )

    def _room_row(self, room_id: UUID) -> dict | None:
        room_db = self._refetch(DBRoom, room_id)
        return row_dict(room_db) if room_db else None

    def _publish_room_update(self, room_id: UUID, old_row: dict | None) -> None:
        room_db = self._refetch(DBRoom, room_id)
        if room_db is not None:
            self._publish(ROOMS, ChangeType.UPDATE, new=row_dict(room_db), old=old_row)

    def _active_participant(self, room_id: UUID, user_id: UserId) -> DBParticipant | None:
        query = select(DBParticipant).where(
            DBParticipant.room_id == room_id,
            DBParticipant.user_id == user_id,
            DBParticipant.is_active.is_(True),
        )
        return self.db.scalar(query)

    def _count_active(self, room_id: UUID, role: ParticipantRole) -> int:
        query = (
            select(func.count())
            .select_from(DBParticipant)
            .where(
                DBParticipant.room_id == room_id,
                DBParticipant.role == role.value,
                DBParticipant.is_active.is_(True),
            )
        )
        return self.db.scalar(query) or 0

    def _new_participant(
        self, room_id: UUID, user_id: UserId, role: ParticipantRole
    ) -> DBParticipant:
        return DBParticipant(
            id=uuid4(),
            room_id=room_id,
            user_id=user_id,
            role=role.value,
            joined_at=utc_now(),
            left_at=None,
            is_active=True,
        )

    def _room_model(self, room_db: DBRoom) -> RoomModel:
        """Convert SQLAlchemy model to data transfer model."""
        return RoomModel(
            id=room_db.id,
            name=room_db.name,
            host_id=room_db.host_id,
            guest_id=room_db.guest_id,
            is_private=room_db.is_private,
            room_code=room_db.room_code,
            status=RoomStatus(room_db.status),
            time_control=TimeControl(
                room_db.time_base_minutes, room_db.time_increment_seconds
            ),
            max_spectators=room_db.max_spectators,
            created_at=room_db.created_at,
            updated_at=room_db.updated_at,
        )

    def _participant_model(
        self, participant_db: DBParticipant, user: Optional[UserSummary] = None
    ) -> ParticipantModel:
        return ParticipantModel(
            id=participant_db.id,
            room_id=participant_db.room_id,
            user_id=participant_db.user_id,
            role=ParticipantRole(participant_db.role),
            joined_at=participant_db.joined_at,
            left_at=participant_db.left_at,
            is_active=participant_db.is_active,
            user=user,
        )
