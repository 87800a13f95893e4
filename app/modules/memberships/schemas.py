from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime


class MembershipPlanResponse(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    price: float
    credits: int = 0
    max_daily_gyms: int = 0
    features: List[str] = []
    popular: bool = False
    button_text: Optional[str] = None
    stripe_product_id: Optional[str] = None
    stripe_price_id: Optional[str] = None
    currency: Optional[str] = None
    is_trial: bool = False

    class Config:
        from_attributes = True


class MembershipResponse(BaseModel):
    id: str
    user_id: str
    plan_id: Optional[str] = None
    plan_type: str
    credits: int = 0
    credits_used: int = 0
    is_active: Optional[bool] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    next_cycle_date: Optional[datetime] = None
    has_used_trial: Optional[bool] = None
    trial_end_date: Optional[datetime] = None
    stripe_subscription_id: Optional[str] = None
    stripe_price_id: Optional[str] = None
    stripe_status: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MembershipWithPlanResponse(MembershipResponse):
    plan: Optional[MembershipPlanResponse] = None
    credits_remaining: int = 0
    subscription_type: str = "credits"  # credits | unlimited


class CreateMembershipRequest(BaseModel):
    plan_id: str


class CreditsUpdateResponse(BaseModel):
    credits_used: int
    credits_remaining: int
