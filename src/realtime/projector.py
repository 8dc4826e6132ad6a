"""
Local, possibly stale view of one room: the room itself, its active participants and its chat.

A full fetch is the source of truth. Change events are folded in between fetches:
chat messages and single participant changes in place, a room status or guest change by fetching everything again.

Connection states:

    disconnected --mount/visible--> connected
    connected --subscription error--> reconnecting --retry ok--> connected
    any --hidden/unmount/session lost--> disconnected

Retries go through an injected scheduler (asyncio's `loop.call_later` fits), one pending retry at a time.
"""

import logging
from typing import Any, Callable, Optional, Protocol
from uuid import UUID

from src.core.config import Settings
from src.core.exceptions import StoreError
from src.core.models import (
    ChangeEvent,
    ChatMessageModel,
    ParticipantModel,
    RoomModel,
    RoomWithParticipants,
)
from src.core.shared_types import (
    ConnectionState,
    RoomAvailability,
    RoomStatus,
    SubscriptionStatus,
)
from src.realtime.feed import ChangeFeed, Subscription
from src.services.chat_service import ChatService
from src.services.room_service import RoomRegistry, room_availability
from src.services.session import SessionProvider

_LOGGER = logging.getLogger(__name__)


class Cancellable(Protocol):
    def cancel(self) -> Any: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], Any]) -> Cancellable: ...


class RoomProjector:
    def __init__(
        self,
        room_id: UUID,
        registry: RoomRegistry,
        chat: ChatService,
        feed: ChangeFeed,
        session: SessionProvider,
        scheduler: Scheduler,
        settings: Optional[Settings] = None,
        on_room_status: Optional[Callable[[RoomStatus], None]] = None,
        on_session_expired: Optional[Callable[[], None]] = None,
        on_connection_change: Optional[Callable[[ConnectionState], None]] = None,
    ) -> None:
        self.room_id = room_id
        self.registry = registry
        self.chat = chat
        self.feed = feed
        self.session = session
        self.scheduler = scheduler
        self.settings = settings or Settings()
        self.on_room_status = on_room_status
        self.on_session_expired = on_session_expired
        self.on_connection_change = on_connection_change

        self.state = ConnectionState.DISCONNECTED
        self.snapshot: Optional[RoomWithParticipants] = None
        self.messages: list[ChatMessageModel] = []
        self._message_ids: set[UUID] = set()
        self._subscriptions: list[Subscription] = []
        self._retry_handle: Optional[Cancellable] = None
        self._retry_attempts = 0
        self._mounted = False
        self._visible = True

    # --- LIFECYCLE ---
    def mount(self) -> None:
        self._mounted = True
        self._connect()

    def unmount(self) -> None:
        self._mounted = False
        self._cancel_retry()
        self._teardown()
        self._set_state(ConnectionState.DISCONNECTED)

    def on_visibility_change(self, visible: bool) -> None:
        """Hidden: release the subscriptions. Visible again: check the session, then resubscribe and refetch."""
        self._visible = visible
        if not self._mounted:
            return
        if not visible:
            self._cancel_retry()
            self._teardown()
            self._set_state(ConnectionState.DISCONNECTED)
            return
        if self.state != ConnectionState.CONNECTED:
            self._retry_attempts = 0
            self._cancel_retry()
            self._connect()

    def on_subscription_status(self, status: SubscriptionStatus) -> None:
        if status == SubscriptionStatus.SUBSCRIBED:
            if self._subscriptions and all(
                s.status == SubscriptionStatus.SUBSCRIBED for s in self._subscriptions
            ):
                self._set_state(ConnectionState.CONNECTED)
            return
        if not self._active or self._retry_handle is not None:
            return
        _LOGGER.warning("Subscription for room %s reported %s", self.room_id, status.value)
        self._teardown()
        self._schedule_retry()

    # --- VIEW ---
    def refresh(self) -> None:
        """Full fetch. Replaces the whole projection."""
        self.snapshot = self.registry.fetch_room(self.room_id)
        self.messages = self.chat.list_messages(self.room_id)
        self._message_ids = {message.id for message in self.messages}

    @property
    def availability(self) -> RoomAvailability | None:
        return room_availability(self.snapshot) if self.snapshot else None

    @property
    def participants(self) -> list[ParticipantModel]:
        return list(self.snapshot.participants) if self.snapshot else []

    # -- Connection helpers --
    @property
    def _active(self) -> bool:
        return self._mounted and self._visible

    def _connect(self) -> None:
        if self.session.get_session_identity() is None:
            self._session_lost()
            return

        self._teardown()
        try:
            self.refresh()
        except StoreError as error:
            _LOGGER.warning("Fetching room %s failed: %s", self.room_id, error)
            self._schedule_retry()
            return

        self._subscribe()
        if all(s.status == SubscriptionStatus.SUBSCRIBED for s in self._subscriptions):
            self._retry_attempts = 0
            self._set_state(ConnectionState.CONNECTED)

    def _subscribe(self) -> None:
        room_filter = {"room_id": self.room_id}
        subscriptions = [
            self.feed.subscribe(
                "rooms",
                {"id": self.room_id},
                on_update=self._on_room_update,
                on_status=self.on_subscription_status,
            ),
            self.feed.subscribe(
                "room_participants",
                room_filter,
                on_insert=self._on_participant_change,
                on_update=self._on_participant_change,
                on_delete=self._on_participant_delete,
                on_status=self.on_subscription_status,
            ),
            self.feed.subscribe(
                "chat_messages",
                room_filter,
                on_insert=self._on_chat_insert,
                on_status=self.on_subscription_status,
            ),
        ]
        self._subscriptions = subscriptions

    def _teardown(self) -> None:
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            self.feed.unsubscribe(subscription)

    def _schedule_retry(self) -> None:
        """First retry right away, later ones after the configured delay."""
        self._set_state(ConnectionState.RECONNECTING)
        if self._retry_handle is not None:
            return
        delay = 0.0 if self._retry_attempts == 0 else self.settings.reconnect_delay_seconds
        self._retry_attempts += 1
        _LOGGER.info(
            "Reconnecting to room %s in %.1fs (attempt %d)",
            self.room_id,
            delay,
            self._retry_attempts,
        )
        self._retry_handle = self.scheduler.call_later(delay, self._retry)

    def _retry(self) -> None:
        self._retry_handle = None
        if not self._active:
            return
        self._connect()

    def _cancel_retry(self) -> None:
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None

    def _session_lost(self) -> None:
        _LOGGER.info("Session gone while viewing room %s", self.room_id)
        self._cancel_retry()
        self._teardown()
        self._set_state(ConnectionState.DISCONNECTED)
        if self.on_session_expired is not None:
            self.on_session_expired()

    def _set_state(self, state: ConnectionState) -> None:
        if state == self.state:
            return
        _LOGGER.debug("Room %s: %s -> %s", self.room_id, self.state.value, state.value)
        self.state = state
        if self.on_connection_change is not None:
            self.on_connection_change(state)

    # -- Event folding --
    def _on_room_update(self, event: ChangeEvent) -> None:
        if self.snapshot is None or event.new is None:
            return
        room = RoomModel.from_row(event.new)
        previous = self.snapshot.room
        if room.status == previous.status and room.guest_id == previous.guest_id:
            self.snapshot.room = room
            return

        # status or seat changed: everything derived from it may be stale
        try:
            self.refresh()
        except StoreError as error:
            _LOGGER.warning("Refetch of room %s failed: %s", self.room_id, error)
            self._teardown()
            self._schedule_retry()
            return
        if room.status != previous.status and self.on_room_status is not None:
            self.on_room_status(room.status)

    def _on_participant_change(self, event: ChangeEvent) -> None:
        if self.snapshot is None or event.new is None:
            return
        participant = ParticipantModel.from_row(event.new)
        participants = [p for p in self.snapshot.participants if p.id != participant.id]
        if participant.is_active:
            participant.user = self.registry.user_summary(participant.user_id)
            participants.append(participant)
        self.snapshot.participants = participants

    def _on_participant_delete(self, event: ChangeEvent) -> None:
        if self.snapshot is None or event.old is None:
            return
        self.snapshot.participants = [
            p for p in self.snapshot.participants if p.id != event.old["id"]
        ]

    def _on_chat_insert(self, event: ChangeEvent) -> None:
        if event.new is None:
            return
        message = ChatMessageModel.from_row(event.new)
        if message.id in self._message_ids:
            return
        self._message_ids.add(message.id)
        self.messages.append(message)
        # stable sort: equal timestamps keep arrival order
        self.messages.sort(key=lambda m: m.created_at)
