"""Append-only chat storage"""

from uuid import UUID, uuid4

from sqlalchemy import select

from src.core.models import ChatMessageModel, UserId
from src.core.shared_types import ChangeType
from src.db.schema import DBChatMessage
from src.db.sql_repository import SQLRepository, row_dict

CHAT_MESSAGES = "chat_messages"


class SQLChatRepository(SQLRepository):
    def add_message(
        self, room_id: UUID, sender_id: UserId, content: str
    ) -> ChatMessageModel:
        with self._store_errors("add chat message"):
            message_db = DBChatMessage(
                id=uuid4(), room_id=room_id, sender_id=sender_id, content=content
            )
            self.db.add(message_db)
            self.db.commit()
            self.db.refresh(message_db)
        self._publish(CHAT_MESSAGES, ChangeType.INSERT, new=row_dict(message_db))
        return ChatMessageModel.from_row(row_dict(message_db))

    def list_messages(self, room_id: UUID, limit: int) -> list[ChatMessageModel]:
        """The `limit` most recent messages, returned oldest first."""
        query = (
            select(DBChatMessage)
            .where(DBChatMessage.room_id == room_id)
            .order_by(DBChatMessage.created_at.desc(), DBChatMessage.id.desc())
            .limit(limit)
        )
        with self._store_errors("list chat messages"):
            messages = self.db.scalars(query).all()
        return [ChatMessageModel.from_row(row_dict(m)) for m in reversed(messages)]
