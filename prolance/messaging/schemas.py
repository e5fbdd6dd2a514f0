from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from prolance.messaging.models import MessageType


class MessageCreate(BaseModel):
    conversation_id: int
    content: str = Field(min_length=1, max_length=5000)


class MarkReadRequest(BaseModel):
    conversation_id: int


class MessageResponse(BaseModel):
    id: int
    conversation_id: int
    sender_id: Optional[int] = None
    content: str
    message_type: MessageType
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ConversationResponse(BaseModel):
    id: int
    project_id: int
    application_id: int
    participants: List[int]
    freelancer_id: int
    client_id: int
    last_message_at: Optional[datetime] = None
    last_message_preview: Optional[str] = None
    last_message_sender_id: Optional[int] = None
    unread_count: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ConversationDetailResponse(BaseModel):
    conversation: ConversationResponse
    messages: List[MessageResponse]
