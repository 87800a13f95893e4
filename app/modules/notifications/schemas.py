from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime


class PushTokenRequest(BaseModel):
    push_token: str = Field(..., min_length=1, max_length=255)


class NotificationResponse(BaseModel):
    id: str
    user_id: str
    title: str
    body: str
    data: Optional[Dict[str, Any]] = None
    type: str = "general"
    read: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NewsletterRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=120)
    body: str = Field(..., min_length=1, max_length=1000)
    data: Optional[Dict[str, Any]] = None


class BroadcastResponse(BaseModel):
    recipients: int
    sent: int
    errors: int
