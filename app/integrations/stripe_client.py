import re
from datetime import datetime, timezone
import stripe
from fastapi import HTTPException
from app.config.settings import settings
from typing import Any, Dict, Iterator, List, Optional
import logging

logger = logging.getLogger(__name__)

_SENSITIVE_KEYS = {
    "card_number", "number", "cvc", "cvv", "exp_month", "exp_year",
    "client_secret", "secret", "password", "token", "key",
}
_CARD_NUMBER_RE = re.compile(r"\b(?:\d[ -]?){12,18}\d\b")


def redact_sensitive(value: Any) -> Any:
    """Mask card-like numbers and secret-ish keys before a value is logged."""
    if isinstance(value, dict):
        return {
            k: "[REDACTED]" if str(k).lower() in _SENSITIVE_KEYS else redact_sensitive(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact_sensitive(v) for v in value]
    if isinstance(value, str):
        return _CARD_NUMBER_RE.sub("[CARD]", value)
    return value


def stripe_http_error(e: Exception) -> HTTPException:
    """Map a stripe.StripeError to a 502 for the API caller"""
    message = getattr(e, "user_message", None) or str(e)
    logger.error(f"Stripe error: {redact_sensitive(str(e))}")
    return HTTPException(status_code=502, detail=f"Payment provider error: {message}")


def from_timestamp(value: Optional[int]) -> Optional[str]:
    """Unix timestamp from Stripe to ISO string; None for missing/invalid."""
    if value is None or isinstance(value, bool):
        return None
    try:
        ts = int(value)
    except (TypeError, ValueError):
        return None
    if ts <= 0:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def subscription_first_item(subscription) -> Optional[Any]:
    items = (subscription.get("items") or {}).get("data") or []
    return items[0] if items else None


def subscription_price_id(subscription) -> Optional[str]:
    item = subscription_first_item(subscription)
    if not item or not item.get("price"):
        return None
    return item["price"].get("id")


def subscription_period(subscription):
    """(start, end) unix timestamps. Newer API versions carry them on the item."""
    start = subscription.get("current_period_start")
    end = subscription.get("current_period_end")
    if start is None or end is None:
        item = subscription_first_item(subscription) or {}
        start = start if start is not None else item.get("current_period_start")
        end = end if end is not None else item.get("current_period_end")
    return start, end


def to_plain(value: Any) -> Any:
    """StripeObject (and nested ones) to plain dicts and lists"""
    if isinstance(value, stripe.StripeObject):
        value = value.to_dict()
    if isinstance(value, dict):
        return {k: to_plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_plain(v) for v in value]
    return value


def _iter_plain(listing) -> Iterator[Dict[str, Any]]:
    for item in listing.auto_paging_iter():
        yield to_plain(item)


class StripeClient:
    """Thin wrapper over the stripe module. Returns plain dicts; raises stripe.StripeError on API failures."""

    def __init__(self):
        if not settings.stripe_secret_key:
            raise ValueError("Stripe secret key must be configured")
        stripe.api_key = settings.stripe_secret_key
        if settings.stripe_api_version:
            stripe.api_version = settings.stripe_api_version
        self.currency = settings.currency

    # Customers

    def create_customer(self, email: Optional[str], name: Optional[str], user_id: str):
        return to_plain(stripe.Customer.create(
            email=email,
            name=name,
            metadata={"user_id": user_id},
        ))

    def find_customer_by_email(self, email: str):
        customers = to_plain(stripe.Customer.list(email=email, limit=1))
        return customers["data"][0] if customers.get("data") else None

    def retrieve_customer(self, customer_id: str):
        return to_plain(stripe.Customer.retrieve(customer_id))

    def set_default_payment_method(self, customer_id: str, payment_method_id: str):
        return to_plain(stripe.Customer.modify(
            customer_id,
            invoice_settings={"default_payment_method": payment_method_id},
        ))

    # Subscriptions

    def create_subscription(self, customer_id: str, price_id: str, user_id: str):
        return to_plain(stripe.Subscription.create(
            customer=customer_id,
            items=[{"price": price_id}],
            payment_behavior="default_incomplete",
            payment_settings={"save_default_payment_method": "on_subscription"},
            expand=["latest_invoice.payment_intent"],
            metadata={"user_id": user_id},
        ))

    def retrieve_subscription(self, subscription_id: str):
        return to_plain(stripe.Subscription.retrieve(subscription_id))

    def modify_subscription(self, subscription_id: str, **params):
        return to_plain(stripe.Subscription.modify(subscription_id, **params))

    def cancel_subscription(self, subscription_id: str):
        return to_plain(stripe.Subscription.cancel(subscription_id))

    def iter_subscriptions(self, customer_id: Optional[str] = None, status: str = "all") -> Iterator:
        params: Dict[str, Any] = {"status": status, "limit": 100}
        if customer_id:
            params["customer"] = customer_id
        return _iter_plain(stripe.Subscription.list(**params))

    # Prices

    def retrieve_price(self, price_id: str):
        return to_plain(stripe.Price.retrieve(price_id))

    def iter_active_prices(self) -> Iterator:
        return _iter_plain(stripe.Price.list(
            active=True, type="recurring", limit=100, expand=["data.product"]
        ))

    # Subscription schedules

    def create_schedule_from_subscription(self, subscription_id: str):
        return to_plain(stripe.SubscriptionSchedule.create(from_subscription=subscription_id))

    def modify_schedule(self, schedule_id: str, **params):
        return to_plain(stripe.SubscriptionSchedule.modify(schedule_id, **params))

    def cancel_schedule(self, schedule_id: str):
        return to_plain(stripe.SubscriptionSchedule.cancel(schedule_id))

    def release_schedule(self, schedule_id: str):
        return to_plain(stripe.SubscriptionSchedule.release(schedule_id))

    def iter_schedules(self) -> Iterator:
        return _iter_plain(stripe.SubscriptionSchedule.list(limit=100))

    # Payment methods

    def list_card_payment_methods(self, customer_id: str) -> List:
        return to_plain(stripe.PaymentMethod.list(customer=customer_id, type="card"))["data"]

    def retrieve_payment_method(self, payment_method_id: str):
        return to_plain(stripe.PaymentMethod.retrieve(payment_method_id))

    def tag_payment_method(self, payment_method_id: str, metadata: Dict[str, str]):
        return to_plain(stripe.PaymentMethod.modify(payment_method_id, metadata=metadata))

    def detach_payment_method(self, payment_method_id: str):
        return to_plain(stripe.PaymentMethod.detach(payment_method_id))

    def create_setup_intent(self, customer_id: str, user_id: str):
        return to_plain(stripe.SetupIntent.create(
            customer=customer_id,
            payment_method_types=["card"],
            usage="off_session",
            metadata={"user_id": user_id},
        ))

    # Invoices

    def list_invoices(self, customer_id: str, limit: int = 24) -> List:
        return to_plain(stripe.Invoice.list(customer=customer_id, limit=limit))["data"]

    def preview_upcoming_invoice(self, customer_id: str, subscription_id: str):
        return to_plain(stripe.Invoice.create_preview(customer=customer_id, subscription=subscription_id))

    # Connect

    def create_transfer(self, amount_ore: int, destination: str, metadata: Dict[str, str],
                        idempotency_key: Optional[str] = None):
        params: Dict[str, Any] = {}
        if idempotency_key:
            params["idempotency_key"] = idempotency_key
        return to_plain(stripe.Transfer.create(
            amount=amount_ore,
            currency=self.currency,
            destination=destination,
            metadata=metadata,
            **params,
        ))

    def create_connect_account(self, email: Optional[str], club_id: str, country: str,
                               business_type: str, payout_schedule: Dict[str, Any]):
        return to_plain(stripe.Account.create(
            type="express",
            country=country,
            email=email,
            business_type=business_type,
            capabilities={"card_payments": {"requested": True}, "transfers": {"requested": True}},
            settings={"payouts": {"schedule": payout_schedule}},
            metadata={"club_id": club_id},
        ))

    def create_account_link(self, account_id: str, refresh_url: str, return_url: str):
        return to_plain(stripe.AccountLink.create(
            account=account_id,
            refresh_url=refresh_url,
            return_url=return_url,
            type="account_onboarding",
        ))

    def retrieve_account(self, account_id: str):
        return to_plain(stripe.Account.retrieve(account_id))

    def delete_connect_account(self, account_id: str):
        return to_plain(stripe.Account.delete(account_id))

    # Webhooks

    @staticmethod
    def construct_event(payload: bytes, sig_header: str, secret: str):
        """Verify signature. Raises stripe.SignatureVerificationError or ValueError."""
        return stripe.Webhook.construct_event(payload, sig_header, secret)


_client: Optional[StripeClient] = None


def get_stripe_client() -> StripeClient:
    global _client
    if _client is None:
        _client = StripeClient()
    return _client
