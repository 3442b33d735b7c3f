"""
Direct chat between a client and a provider.

Providers are addressed by their salon or therapist id; conversations
are stored against the provider's user account. A direct chat is the
one chat between two users that is not tied to a booking.
"""
import enum
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from kmerbeauty.lib.errors import DataAccessError, NotFoundError
from kmerbeauty.lib.logging import get_logger
from kmerbeauty.models.chats import Chat, MessageType
from kmerbeauty.repositories.catalog import ProviderRepository
from kmerbeauty.repositories.chats import ChatRepository


logger = get_logger(__name__)


class ProviderType(str, enum.Enum):
    THERAPIST = "therapist"
    SALON = "salon"


class ChatAccessDenied(Exception):
    """Caller is not a participant of the chat."""
    
    def __init__(self, chat_id: UUID):
        self.chat_id = chat_id
        super().__init__(f"Not a participant of chat {chat_id}")


class ChatView(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    
    id: UUID
    client_id: UUID
    provider_id: UUID
    booking_id: Optional[UUID] = None
    is_active: bool
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class MessageView(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    
    id: UUID
    chat_id: UUID
    sender_id: UUID
    content: str
    type: MessageType
    attachments: List[str] = []
    is_read: bool
    created_at: Optional[datetime] = None


def is_participant(chat: Chat, user_id: UUID) -> bool:
    return user_id in (chat.client_id, chat.provider_id)


class ChatService:
    """Direct chats and their messages"""
    
    def __init__(self, chats: ChatRepository, providers: ProviderRepository):
        self.chats = chats
        self.providers = providers
    
    def get_or_create_direct_chat(
        self,
        client_id: UUID,
        provider_id: UUID,
        provider_type: ProviderType,
    ) -> ChatView:
        """
        Return the direct chat between a client and a provider, creating it once.
        
        Raises:
            NotFoundError: If the salon or therapist does not exist
        """
        provider_user_id = self.providers.provider_user_id(provider_id, provider_type.value)
        chat = self.chats.find_direct_chat(client_id, provider_user_id)
        if chat is None:
            chat = self.chats.create_chat(client_id, provider_user_id)
            logger.info(
                "Direct chat created",
                extra={"chat_id": str(chat.id), "provider_type": provider_type.value},
            )
        return ChatView.model_validate(chat)
    
    def require_participant(self, chat_id: UUID, user_id: UUID) -> Chat:
        """
        Raises:
            NotFoundError: If the chat does not exist
            ChatAccessDenied: If `user_id` is neither client nor provider
        """
        chat = self.chats.get_chat(chat_id)
        if chat is None:
            raise NotFoundError("Chat", str(chat_id))
        if not is_participant(chat, user_id):
            raise ChatAccessDenied(chat_id)
        return chat
    
    def list_messages(self, chat_id: UUID, user_id: UUID, limit: int = 50, offset: int = 0) -> List[MessageView]:
        self.require_participant(chat_id, user_id)
        return [MessageView.model_validate(m) for m in self.chats.list_messages(chat_id, limit, offset)]
    
    def send_message(
        self,
        chat_id: UUID,
        sender_id: UUID,
        content: str,
        message_type: MessageType = MessageType.TEXT,
        attachments: Optional[List[str]] = None,
    ) -> MessageView:
        """
        Store a message and update the chat preview.
        
        The message is returned even when the preview update fails.
        """
        self.require_participant(chat_id, sender_id)
        message = self.chats.add_message(chat_id, sender_id, content, message_type.value, attachments or [])
        try:
            self.chats.touch_last_message(chat_id, content, datetime.now(timezone.utc))
        except DataAccessError as exc:
            logger.error(
                "Chat preview not updated",
                extra={"chat_id": str(chat_id), "kind": exc.kind.value},
            )
        return MessageView.model_validate(message)
