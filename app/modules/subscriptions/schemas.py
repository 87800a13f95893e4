from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class CreateSubscriptionRequest(BaseModel):
    price_id: str = Field(..., min_length=1)


class CreateSubscriptionResponse(BaseModel):
    subscription_id: str
    client_secret: Optional[str] = None
    status: str


class CancelSubscriptionRequest(BaseModel):
    at_period_end: bool = True


class SubscriptionStatusResponse(BaseModel):
    subscription_id: str
    status: str
    cancel_at_period_end: bool = False
    current_period_end: Optional[datetime] = None
    paused: bool = False


class ScheduleChangeRequest(BaseModel):
    new_price_id: str = Field(..., min_length=1)


class ScheduledChangeResponse(BaseModel):
    id: str
    membership_id: str
    user_id: Optional[str] = None
    scheduled_plan_id: str
    scheduled_plan_title: Optional[str] = None
    scheduled_plan_credits: Optional[int] = None
    scheduled_stripe_price_id: str
    scheduled_change_date: datetime
    stripe_schedule_id: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InvoiceResponse(BaseModel):
    id: str
    number: Optional[str] = None
    status: Optional[str] = None
    amount_due: float
    amount_paid: float
    currency: str
    created: Optional[datetime] = None
    hosted_invoice_url: Optional[str] = None
    invoice_pdf: Optional[str] = None


class UpcomingInvoiceResponse(BaseModel):
    amount_due: float
    currency: str
    next_payment_attempt: Optional[datetime] = None
    lines: List[str] = []


class PaymentMethodResponse(BaseModel):
    id: str
    brand: Optional[str] = None
    last4: Optional[str] = None
    exp_month: Optional[int] = None
    exp_year: Optional[int] = None
    is_default: bool = False


class SetupIntentResponse(BaseModel):
    setup_intent_id: str
    client_secret: str
    customer_id: str


class SetDefaultPaymentMethodRequest(BaseModel):
    payment_method_id: str = Field(..., min_length=1)
