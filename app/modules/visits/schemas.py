from pydantic import BaseModel, Field
from typing import Optional, Literal, Dict, Any
from datetime import datetime


class LogVisitRequest(BaseModel):
    user_id: str
    club_id: str
    subscription_type: Literal["unlimited", "credits"]
    visit_date: Optional[datetime] = None


class VisitResponse(BaseModel):
    id: str
    user_id: str
    club_id: str
    booking_id: Optional[str] = None
    visit_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    credits_used: int = 0
    subscription_type: Optional[str] = None
    cost_to_club: float = 0
    unique_monthly_visit: bool = False
    payout_processed: bool = False
    clubs: Optional[Dict[str, Any]] = None

    class Config:
        from_attributes = True


class LogVisitResponse(BaseModel):
    visit_id: str
    cost_to_club: float
    unique_monthly_visit: bool
    visit_count: int
    credits_used: int = 0


class MonthlyVisitStats(BaseModel):
    month: str = Field(..., description="YYYY-MM")
    visits: int = 0
    unique_clubs: int = 0
    credits_used: int = 0
