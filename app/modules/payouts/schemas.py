from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime


class UnlimitedUserPayout(BaseModel):
    user_id: str
    unique_gyms_count: int
    payout_per_visit: float
    visit_count: int
    total_payout: float


class CreditsUserPayout(BaseModel):
    user_id: str
    visit_count: int
    total_payout: float


class GymVisitUsage(BaseModel):
    club_id: str
    visit_count: int
    is_unique: bool


class UserMonthlyUsage(BaseModel):
    user_id: str
    subscription_type: str
    unique_gyms_visited: int
    gym_visits: List[GymVisitUsage] = []


class ClubPayoutCalculation(BaseModel):
    club_id: str
    club_name: str
    period: str
    unlimited_users: List[UnlimitedUserPayout] = []
    unlimited_amount: float = 0
    unlimited_visits: int = 0
    credits_users: List[CreditsUserPayout] = []
    credits_amount: float = 0
    credits_visits: int = 0
    total_amount: float = 0
    total_visits: int = 0
    unique_users: int = 0


class PayoutValidation(BaseModel):
    valid: bool
    errors: List[str] = []


class PayoutRunRequest(BaseModel):
    period: Optional[date] = None
    club_ids: Optional[List[str]] = Field(default=None, max_length=500)


class PayoutResponse(BaseModel):
    id: str
    club_id: str
    payout_period: date
    unlimited_amount: float = 0
    credits_amount: float = 0
    total_amount: float = 0
    unlimited_visits: int = 0
    credits_visits: int = 0
    total_visits: int = 0
    unique_users: int = 0
    status: str
    stripe_transfer_id: Optional[str] = None
    retry_count: int = 0
    error_message: Optional[str] = None
    transfer_completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GeneratePayoutsResponse(BaseModel):
    period: str
    clubs_processed: int
    total_amount: float
    payouts: List[PayoutResponse] = []
    message: Optional[str] = None


class TransferResult(BaseModel):
    club_id: str
    club_name: Optional[str] = None
    amount: float
    status: str  # success, failed, skipped
    stripe_transfer_id: Optional[str] = None
    message: Optional[str] = None


class SendTransfersResponse(BaseModel):
    period: str
    transfers_attempted: int
    transfers_succeeded: int
    transfers_failed: int
    results: List[TransferResult] = []
    message: Optional[str] = None


class PeriodSummaryResponse(BaseModel):
    period: str
    total_clubs: int
    total_amount: float
    total_visits: int
    unlimited_amount: float
    credits_amount: float
    pending_count: int
    paid_count: int
    failed_count: int
    formatted_total: str
