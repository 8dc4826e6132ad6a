"""Room chat. Messages are validated locally, so an empty or oversized message never reaches the store."""

import logging
from typing import Optional
from uuid import UUID

from src.api.models import SendMessageRequest
from src.core.config import Settings
from src.core.exceptions import InvalidRequestError
from src.core.models import ChatMessageModel
from src.db.repository import ChatRepository
from src.services.session import SessionProvider, require_identity

_LOGGER = logging.getLogger(__name__)


class ChatService:
    def __init__(
        self,
        chat: ChatRepository,
        session: SessionProvider,
        settings: Optional[Settings] = None,
    ) -> None:
        self.chat = chat
        self.session = session
        self.settings = settings or Settings()

    def send_message(self, room_id: UUID, text: str) -> ChatMessageModel:
        """Raises InvalidRequestError for empty (after stripping) or too long messages."""
        sender_id = require_identity(self.session)
        content = SendMessageRequest(content=text).content
        if len(content) > self.settings.max_chat_length:
            raise InvalidRequestError(
                f"Messages are limited to {self.settings.max_chat_length} characters."
            )
        message = self.chat.add_message(room_id, sender_id, content)
        _LOGGER.debug("Message %s sent to room %s", message.id, room_id)
        return message

    def list_messages(
        self, room_id: UUID, limit: Optional[int] = None
    ) -> list[ChatMessageModel]:
        """Oldest first"""
        return self.chat.list_messages(room_id, limit or self.settings.chat_history_limit)
