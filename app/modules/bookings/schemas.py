from pydantic import BaseModel, Field, model_validator
from typing import Optional, Dict, Any
from datetime import datetime


class BookingResponse(BaseModel):
    id: str
    user_id: str
    club_id: str
    class_id: Optional[str] = None
    credits_used: int = 0
    status: str
    booking_code: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    clubs: Optional[Dict[str, Any]] = None
    classes: Optional[Dict[str, Any]] = None

    class Config:
        from_attributes = True


class DirectVisitRequest(BaseModel):
    club_id: str
    credits: Optional[int] = Field(None, ge=1)


class ClassBookingRequest(BaseModel):
    class_id: str


class BookingQRResponse(BaseModel):
    payload: str = Field(..., description="JSON string encoded in the QR code")
    booking_code: str
    valid_until: datetime


class CheckInRequest(BaseModel):
    qr_data: Optional[str] = None
    booking_code: Optional[str] = Field(None, min_length=6, max_length=6)

    @model_validator(mode="after")
    def require_one(self):
        if not self.qr_data and not self.booking_code:
            raise ValueError("qr_data or booking_code is required")
        return self


class CheckInResponse(BaseModel):
    booking_id: str
    visit_id: str
    user_id: str
    club_id: str
    subscription_type: str
    credits_deducted: int = 0
    cost_to_club: float = 0
