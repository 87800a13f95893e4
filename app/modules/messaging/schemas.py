from pydantic import BaseModel
from typing import Optional, List, Dict, Any
from datetime import datetime


class MessageResponse(BaseModel):
    id: str
    conversation_id: str
    sender_id: str
    text: str
    is_edited: bool = False
    is_deleted: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ParticipantResponse(BaseModel):
    user_id: str
    profile: Optional[Dict[str, Any]] = None


class ConversationResponse(BaseModel):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_message_text: Optional[str] = None
    last_message_at: Optional[datetime] = None
    last_message_sender_id: Optional[str] = None
    participants: List[ParticipantResponse] = []
    unread_count: int = 0


class StartConversationRequest(BaseModel):
    user_id: str


class StartConversationResponse(BaseModel):
    conversation_id: str


class SendMessageRequest(BaseModel):
    text: str


class EditMessageRequest(BaseModel):
    text: str
