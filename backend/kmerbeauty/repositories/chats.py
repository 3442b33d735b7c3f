"""
Chat repository - conversations and their messages.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update

from kmerbeauty.lib.errors import translate_db_errors
from kmerbeauty.models.chats import Chat, ChatMessage
from kmerbeauty.repositories.base import BaseRepository


class ChatRepository(BaseRepository):
    """Repository for chat database operations"""
    
    def get_chat(self, chat_id: UUID) -> Optional[Chat]:
        with translate_db_errors("get_chat"):
            return self.db.get(Chat, chat_id)
    
    def find_direct_chat(self, client_id: UUID, provider_user_id: UUID) -> Optional[Chat]:
        """The chat between two users that is not attached to a booking"""
        stmt = (
            select(Chat)
            .where(
                Chat.client_id == client_id,
                Chat.provider_id == provider_user_id,
                Chat.booking_id.is_(None),
            )
            .order_by(Chat.created_at)
            .limit(1)
        )
        with translate_db_errors("find_direct_chat"):
            return self.db.execute(stmt).scalars().first()
    
    def create_chat(self, client_id: UUID, provider_user_id: UUID) -> Chat:
        chat = Chat(client_id=client_id, provider_id=provider_user_id, booking_id=None, is_active=True)
        with translate_db_errors("create_chat"):
            self.db.add(chat)
            self.db.commit()
            self.db.refresh(chat)
        return chat
    
    def list_messages(self, chat_id: UUID, limit: int = 50, offset: int = 0) -> List[ChatMessage]:
        """Messages of a chat, oldest first"""
        stmt = (
            select(ChatMessage)
            .where(ChatMessage.chat_id == chat_id)
            .order_by(ChatMessage.created_at)
            .offset(offset)
            .limit(limit)
        )
        with translate_db_errors("chat_messages"):
            return list(self.db.execute(stmt).scalars().all())
    
    def add_message(
        self,
        chat_id: UUID,
        sender_id: UUID,
        content: str,
        message_type: str,
        attachments: List[str],
    ) -> ChatMessage:
        message = ChatMessage(
            chat_id=chat_id,
            sender_id=sender_id,
            content=content,
            type=message_type,
            attachments=attachments,
        )
        with translate_db_errors("send_message"):
            self.db.add(message)
            self.db.commit()
            self.db.refresh(message)
        return message
    
    def touch_last_message(self, chat_id: UUID, content: str, at: datetime) -> None:
        stmt = (
            update(Chat)
            .where(Chat.id == chat_id)
            .values(last_message=content, last_message_at=at)
        )
        with translate_db_errors("chat_last_message"):
            self.db.execute(stmt)
            self.db.commit()
