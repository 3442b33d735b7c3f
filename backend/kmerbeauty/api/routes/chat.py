"""
Chat API routes - direct conversations with providers.
"""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from kmerbeauty.api.dependencies import get_chat_service, get_current_user_id
from kmerbeauty.api.middleware.error_handler import ForbiddenException
from kmerbeauty.models.chats import MessageType
from kmerbeauty.services.chat_service import (
    ChatAccessDenied,
    ChatService,
    ChatView,
    MessageView,
    ProviderType,
)


class DirectChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    
    client_id: UUID = Field(alias="clientId")
    provider_id: UUID = Field(alias="providerId")
    provider_type: ProviderType = Field(alias="providerType")


class SendMessageRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
    type: MessageType = MessageType.TEXT
    attachments: List[str] = []


router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("/direct", response_model=ChatView)
def get_or_create_direct_chat(
    body: DirectChatRequest,
    user_id: UUID = Depends(get_current_user_id),
    chats: ChatService = Depends(get_chat_service),
) -> ChatView:
    """
    Chat between the caller and a salon or therapist, outside any booking.
    
    Returns the existing direct chat or creates it.
    """
    if body.client_id != user_id:
        raise ForbiddenException("Cannot open a chat for another client")
    return chats.get_or_create_direct_chat(body.client_id, body.provider_id, body.provider_type)


@router.get("/{chat_id}/messages", response_model=List[MessageView])
def list_messages(
    chat_id: UUID,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user_id: UUID = Depends(get_current_user_id),
    chats: ChatService = Depends(get_chat_service),
) -> List[MessageView]:
    """Messages of a chat, oldest first."""
    try:
        return chats.list_messages(chat_id, user_id, limit=limit, offset=offset)
    except ChatAccessDenied as e:
        raise ForbiddenException(str(e))


@router.post("/{chat_id}/messages", response_model=MessageView)
def send_message(
    chat_id: UUID,
    body: SendMessageRequest,
    user_id: UUID = Depends(get_current_user_id),
    chats: ChatService = Depends(get_chat_service),
) -> MessageView:
    try:
        return chats.send_message(chat_id, user_id, body.content, body.type, body.attachments)
    except ChatAccessDenied as e:
        raise ForbiddenException(str(e))
