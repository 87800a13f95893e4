from fastapi import APIRouter, Depends, Header, Request
from app.config.settings import settings
from app.core.rate_limit import limiter
from app.database.supabase_client import get_service_supabase
from app.integrations.stripe_client import get_stripe_client
from app.modules.notifications.service import NotificationService
from app.modules.webhooks.schemas import WebhookAck
from app.modules.webhooks.service import StripeWebhookService, verify_event
from supabase import Client
from typing import Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stripe", tags=["webhooks"])


def get_webhook_service(supabase: Client = Depends(get_service_supabase)) -> StripeWebhookService:
    try:
        stripe_client = get_stripe_client()
    except ValueError:
        # Events can still be projected; only handlers that call back into Stripe need it
        logger.warning("Stripe secret key not configured; webhook handlers run without API access")
        stripe_client = None
    return StripeWebhookService(supabase, stripe_client, NotificationService(supabase))


@router.post("/webhook", response_model=WebhookAck)
@limiter.exempt
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    service: StripeWebhookService = Depends(get_webhook_service)
):
    """Billing events: subscriptions, invoices, setup intents"""
    payload = await request.body()
    event = verify_event(payload, stripe_signature, settings.stripe_webhook_secret)
    return service.handle_event(event)


@router.post("/webhook/connect", response_model=WebhookAck)
@limiter.exempt
async def stripe_connect_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    service: StripeWebhookService = Depends(get_webhook_service)
):
    """Connect events for club accounts (account.updated)"""
    payload = await request.body()
    event = verify_event(payload, stripe_signature, settings.stripe_connect_webhook_secret)
    return service.handle_event(event)
