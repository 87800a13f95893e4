from pydantic import BaseModel, EmailStr
from typing import Optional, List, Dict, Any


class DeleteAccountRequest(BaseModel):
    confirm_email: Optional[EmailStr] = None


class DeleteAccountResponse(BaseModel):
    deleted: bool
    message: str
    canceled_subscriptions: List[str] = []
    warnings: List[str] = []


class PrivacySettingsRequest(BaseModel):
    profile_visible: Optional[bool] = None
    location_sharing_enabled: Optional[bool] = None
    marketing_emails_enabled: Optional[bool] = None
    analytics_enabled: Optional[bool] = None
    push_notifications_enabled: Optional[bool] = None


class PrivacySettingsResponse(BaseModel):
    message: str
    updated: Dict[str, Any]
