from fastapi import APIRouter, Depends, Request
from app.config.settings import settings
from app.database.supabase_client import get_service_supabase
from app.modules.subscriptions.schemas import (
    CreateSubscriptionRequest, CreateSubscriptionResponse, CancelSubscriptionRequest,
    SubscriptionStatusResponse, ScheduleChangeRequest, ScheduledChangeResponse,
    InvoiceResponse, UpcomingInvoiceResponse, PaymentMethodResponse, SetupIntentResponse,
    SetDefaultPaymentMethodRequest
)
from app.modules.subscriptions.service import SubscriptionService
from app.core.dependencies import get_current_user_id, get_stripe
from app.core.rate_limit import limiter
from app.integrations.stripe_client import StripeClient
from supabase import Client
from typing import List, Dict

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


def get_subscription_service(
    supabase: Client = Depends(get_service_supabase),
    stripe_client: StripeClient = Depends(get_stripe)
) -> SubscriptionService:
    return SubscriptionService(supabase, stripe_client)


@router.post("", response_model=CreateSubscriptionResponse, status_code=201)
@limiter.limit(settings.strict_rate_limit)
async def create_subscription(
    request: Request,
    body: CreateSubscriptionRequest,
    user_data: Dict = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service)
):
    """Create a subscription and return the client secret for payment confirmation"""
    return service.create_subscription(user_data["id"], body.price_id, user_data.get("email"))


@router.post("/cancel", response_model=SubscriptionStatusResponse)
async def cancel_subscription(
    body: CancelSubscriptionRequest,
    user_data: Dict = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service)
):
    return service.cancel_subscription(user_data["id"], at_period_end=body.at_period_end)


@router.post("/reactivate", response_model=SubscriptionStatusResponse)
async def reactivate_subscription(
    user_data: Dict = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service)
):
    """Undo a cancellation scheduled for period end"""
    return service.reactivate_subscription(user_data["id"])


@router.post("/pause", response_model=SubscriptionStatusResponse)
async def pause_subscription(
    user_data: Dict = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service)
):
    return service.pause_subscription(user_data["id"])


@router.post("/resume", response_model=SubscriptionStatusResponse)
async def resume_subscription(
    user_data: Dict = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service)
):
    return service.resume_subscription(user_data["id"])


@router.post("/scheduled-changes", response_model=ScheduledChangeResponse, status_code=201)
async def schedule_plan_change(
    body: ScheduleChangeRequest,
    user_data: Dict = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service)
):
    """Switch plan from the next billing cycle"""
    return service.schedule_plan_change(user_data["id"], body.new_price_id)


@router.get("/scheduled-changes", response_model=List[ScheduledChangeResponse])
async def list_scheduled_changes(
    user_data: Dict = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service)
):
    return service.list_scheduled_changes(user_data["id"])


@router.delete("/scheduled-changes", response_model=ScheduledChangeResponse)
async def cancel_scheduled_change(
    user_data: Dict = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service)
):
    return service.cancel_scheduled_change(user_data["id"])


@router.get("/invoices", response_model=List[InvoiceResponse])
async def list_invoices(
    limit: int = 24,
    user_data: Dict = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service)
):
    """Billing history"""
    return service.list_invoices(user_data["id"], limit=min(limit, 100))


@router.get("/invoices/upcoming", response_model=UpcomingInvoiceResponse)
async def upcoming_invoice(
    user_data: Dict = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service)
):
    return service.upcoming_invoice(user_data["id"])


@router.get("/payment-methods", response_model=List[PaymentMethodResponse])
async def list_payment_methods(
    user_data: Dict = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service)
):
    return service.list_payment_methods(user_data["id"])


@router.post("/payment-methods/setup-intent", response_model=SetupIntentResponse, status_code=201)
@limiter.limit(settings.strict_rate_limit)
async def create_setup_intent(
    request: Request,
    user_data: Dict = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service)
):
    """SetupIntent for adding a card; the webhook makes the first card the default"""
    return service.create_setup_intent(user_data["id"], user_data.get("email"))


@router.put("/payment-methods/default", response_model=PaymentMethodResponse)
async def set_default_payment_method(
    body: SetDefaultPaymentMethodRequest,
    user_data: Dict = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service)
):
    return service.set_default_payment_method(user_data["id"], body.payment_method_id)


@router.delete("/payment-methods/{payment_method_id}", status_code=204)
async def detach_payment_method(
    payment_method_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service)
):
    service.detach_payment_method(user_data["id"], payment_method_id)
    return None
