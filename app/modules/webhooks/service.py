import json
import stripe
from supabase import Client
from app.core.time_utils import utcnow, utcnow_iso, parse_datetime
from app.database.supabase_client import first_row
from app.integrations.stripe_client import (
    StripeClient, from_timestamp, redact_sensitive, subscription_period, subscription_price_id
)
from app.modules.memberships.service import MembershipService
from app.modules.notifications.service import NotificationService
from typing import Any, Callable, Dict, Optional
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ("active", "trialing")
INCOMPLETE_STATUSES = ("incomplete", "incomplete_expired")
TERMINAL_STATUSES = ("canceled", "incomplete_expired")


def _id_of(value: Any) -> Optional[str]:
    """Stripe fields may hold an id string or an expanded object."""
    if value is None or isinstance(value, str):
        return value
    return value.get("id")


def verify_event(payload: bytes, sig_header: Optional[str], secret: Optional[str]) -> Dict[str, Any]:
    """Check the Stripe-Signature header and return the event as a plain dict."""
    if not secret:
        logger.error("Stripe webhook secret is not configured")
        raise HTTPException(status_code=400, detail="Webhook secret not configured")
    if not sig_header:
        raise HTTPException(status_code=400, detail="Missing Stripe-Signature header")
    try:
        StripeClient.construct_event(payload, sig_header, secret)
    except stripe.SignatureVerificationError as e:
        logger.warning(f"Stripe webhook signature verification failed: {e}")
        raise HTTPException(status_code=400, detail="Invalid signature")
    except ValueError as e:
        logger.warning(f"Invalid Stripe webhook payload: {e}")
        raise HTTPException(status_code=400, detail="Invalid payload")
    return json.loads(payload)


def derive_kyc_status(account: Dict[str, Any]) -> str:
    requirements = account.get("requirements") or {}
    if requirements.get("currently_due"):
        return "needs_input"
    if requirements.get("eventually_due"):
        return "pending"
    if account.get("charges_enabled") and account.get("payouts_enabled"):
        return "verified"
    return "pending"


class StripeWebhookService:
    """
    Projects Stripe events onto Supabase. Stripe is authoritative: subscription
    state only changes here and in the sync jobs that reuse these handlers.
    """

    def __init__(
        self,
        supabase: Client,
        stripe_client: Optional[StripeClient] = None,
        notifications: Optional[NotificationService] = None
    ):
        self.supabase = supabase
        self.stripe = stripe_client
        self.memberships = MembershipService(supabase)
        self.notifications = notifications
        self.handlers: Dict[str, Callable[[Dict[str, Any]], None]] = {
            "customer.subscription.created": self.handle_subscription_upsert,
            "customer.subscription.updated": self.handle_subscription_upsert,
            "customer.subscription.deleted": self.handle_subscription_deleted,
            "subscription_schedule.canceled": self.handle_schedule_canceled,
            "subscription_schedule.released": self.handle_schedule_finished,
            "subscription_schedule.completed": self.handle_schedule_finished,
            "invoice.payment_succeeded": self.handle_payment_succeeded,
            "invoice.payment_failed": self.handle_payment_failed,
            "setup_intent.succeeded": self.handle_setup_intent_succeeded,
            "setup_intent.setup_failed": self.handle_setup_intent_failed,
            "payment_method.attached": self.handle_payment_method_attached,
            "account.updated": self.handle_account_updated,
        }

    # Event bookkeeping

    def _already_processed(self, event_id: str) -> bool:
        result = self.supabase.table("stripe_webhook_events")\
            .select("id")\
            .eq("id", event_id)\
            .eq("status", "processed")\
            .limit(1)\
            .execute()
        return bool(result.data)

    def _record(self, event: Dict[str, Any], status: str, error: Optional[str] = None) -> None:
        try:
            self.supabase.table("stripe_webhook_events").upsert({
                "id": event["id"],
                "type": event.get("type"),
                "status": status,
                "error_message": error,
                "processed_at": utcnow_iso(),
            }, on_conflict="id").execute()
        except Exception as e:
            logger.error(f"Failed to record webhook event {event.get('id')}: {e}")

    def handle_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """
        Dispatch one verified event. Redelivered events that were already processed
        are acknowledged without running the handler again. Handler errors are
        re-raised so Stripe retries the delivery.
        """
        event_id = event.get("id")
        event_type = event.get("type")
        if event_id and self._already_processed(event_id):
            logger.info(f"Skipping already processed webhook event {event_id} ({event_type})")
            return {"received": True, "type": event_type, "duplicate": True}

        handler = self.handlers.get(event_type)
        if handler is None:
            logger.info(f"Unhandled Stripe event type: {event_type}")
            return {"received": True, "type": event_type, "duplicate": False}

        obj = (event.get("data") or {}).get("object") or {}
        try:
            handler(obj)
        except Exception as e:
            logger.error(f"Error handling Stripe event {event_id} ({event_type}): {redact_sensitive(str(e))}")
            if event_id:
                self._record(event, "failed", str(e))
            raise
        if event_id:
            self._record(event, "processed")
        logger.info(f"Processed Stripe event {event_id} ({event_type})")
        return {"received": True, "type": event_type, "duplicate": False}

    # Subscriptions

    def handle_subscription_upsert(self, subscription: Dict[str, Any]) -> None:
        start, end = subscription_period(subscription)
        if (not start or not end) and self.stripe is not None:
            # Thin event payloads can miss the billing period
            subscription = self.stripe.retrieve_subscription(subscription["id"])
        self.sync_subscription_to_database(subscription)

    def _user_for_customer(self, customer_id: Optional[str]) -> Optional[str]:
        if not customer_id:
            return None
        profile = first_row(self.supabase.table("profiles")
                            .select("id")
                            .eq("stripe_customer_id", customer_id)
                            .limit(1)
                            .execute())
        return profile["id"] if profile else None

    def sync_subscription_to_database(self, subscription: Dict[str, Any]) -> str:
        """
        Map a Stripe subscription onto subscriptions + memberships. Idempotent.
        Returns one of: skipped, unchanged, updated, rebound, created.
        """
        subscription_id = subscription["id"]
        status = subscription.get("status")
        price_id = subscription_price_id(subscription)
        if not price_id:
            logger.warning(f"Subscription {subscription_id} has no price, skipping sync")
            return "skipped"

        start_ts, end_ts = subscription_period(subscription)
        period_start = from_timestamp(start_ts)
        period_end = from_timestamp(end_ts)
        if not period_start or not period_end:
            if status in INCOMPLETE_STATUSES:
                logger.warning(f"Skipping sync for incomplete subscription {subscription_id}")
                return "skipped"
            raise ValueError(f"Invalid period timestamps on subscription {subscription_id}")

        plan = self.memberships.get_plan_by_price(price_id)
        if not plan:
            logger.warning(f"No membership plan for price {price_id}, skipping sync of {subscription_id}")
            return "skipped"

        customer_id = _id_of(subscription.get("customer"))
        user_id = (subscription.get("metadata") or {}).get("user_id") or self._user_for_customer(customer_id)
        if not user_id:
            logger.error(f"Cannot sync subscription {subscription_id}: no user_id in metadata or customer")
            return "skipped"

        is_active = status in ACTIVE_STATUSES
        self.supabase.table("subscriptions").upsert({
            "user_id": user_id,
            "membership_plan_id": plan["id"],
            "stripe_subscription_id": subscription_id,
            "stripe_customer_id": customer_id,
            "stripe_price_id": price_id,
            "status": status,
            "current_period_start": period_start,
            "current_period_end": period_end,
            "cancel_at_period_end": bool(subscription.get("cancel_at_period_end")),
            "updated_at": utcnow_iso(),
        }, on_conflict="stripe_subscription_id").execute()

        plan_fields = {
            "plan_id": plan["id"],
            "plan_type": plan["title"],
            "credits": plan.get("credits") or 0,
            "credits_used": 0,
            "stripe_price_id": price_id,
        }
        stripe_fields = {
            "stripe_status": status,
            "start_date": period_start,
            "end_date": period_end,
            "updated_at": utcnow_iso(),
        }

        existing = self.memberships.get_membership_by_subscription(subscription_id)
        if existing:
            plan_changed = existing.get("plan_id") != plan["id"] or existing.get("stripe_price_id") != price_id
            update_data = dict(stripe_fields)
            if plan_changed:
                update_data.update(plan_fields)
                update_data["next_cycle_date"] = None
            if status not in INCOMPLETE_STATUSES:
                update_data["is_active"] = is_active
            self.supabase.table("memberships")\
                .update(update_data)\
                .eq("id", existing["id"])\
                .execute()
            if plan_changed:
                self._mirror_credits(user_id, plan.get("credits") or 0)
                self._mark_changes_applied(existing["id"], price_id)
                logger.info(f"Membership {existing['id']} moved to plan {plan['title']}")
                return "updated"
            return "unchanged"

        if status in TERMINAL_STATUSES:
            logger.info(f"Ignoring {status} subscription {subscription_id} with no membership")
            return "skipped"

        active = self.memberships.get_active_membership(user_id)
        if active:
            if not is_active:
                # Rebind once the new subscription is paid for, not before
                logger.info(f"Deferring rebind of membership {active['id']} until {subscription_id} is active")
                return "skipped"
            # New subscription id for a user who already has a membership: rebind, never duplicate
            self.supabase.table("memberships")\
                .update({
                    **plan_fields,
                    **stripe_fields,
                    "stripe_subscription_id": subscription_id,
                    "stripe_customer_id": customer_id,
                    "is_active": True,
                })\
                .eq("id", active["id"])\
                .execute()
            self._mirror_credits(user_id, plan.get("credits") or 0)
            logger.info(f"Rebound membership {active['id']} to subscription {subscription_id}")
            return "rebound"

        if not customer_id:
            logger.error(f"Cannot create membership for {subscription_id}: no customer id")
            return "skipped"

        self.supabase.table("memberships").insert({
            "user_id": user_id,
            **plan_fields,
            **stripe_fields,
            "is_active": is_active,
            "stripe_customer_id": customer_id,
            "stripe_subscription_id": subscription_id,
            "created_at": utcnow_iso(),
        }).execute()
        if is_active:
            self._mirror_credits(user_id, plan.get("credits") or 0)
        logger.info(f"Created membership for user {user_id} from subscription {subscription_id}")
        return "created"

    def _mirror_credits(self, user_id: str, credits: int) -> None:
        self.supabase.table("profiles")\
            .update({"credits": credits})\
            .eq("id", user_id)\
            .execute()

    def _mark_changes_applied(self, membership_id: str, price_id: str) -> None:
        self.supabase.table("membership_scheduled_changes")\
            .update({"status": "applied", "updated_at": utcnow_iso()})\
            .eq("membership_id", membership_id)\
            .eq("scheduled_stripe_price_id", price_id)\
            .in_("status", ["pending", "confirmed"])\
            .execute()

    def handle_subscription_deleted(self, subscription: Dict[str, Any]) -> None:
        subscription_id = subscription["id"]
        now = utcnow_iso()
        self.supabase.table("subscriptions")\
            .update({"status": "canceled", "canceled_at": now, "updated_at": now})\
            .eq("stripe_subscription_id", subscription_id)\
            .execute()

        membership = self.memberships.get_membership_by_subscription(subscription_id)
        if not membership:
            logger.warning(f"No membership for deleted subscription {subscription_id}")
            return
        self.supabase.table("memberships")\
            .update({"is_active": False, "stripe_status": "canceled", "next_cycle_date": None, "updated_at": now})\
            .eq("id", membership["id"])\
            .execute()
        self.supabase.table("membership_scheduled_changes")\
            .update({"status": "canceled", "updated_at": now})\
            .eq("membership_id", membership["id"])\
            .in_("status", ["pending", "confirmed"])\
            .execute()
        self._mirror_credits(membership["user_id"], 0)
        logger.info(f"Deactivated membership {membership['id']} after subscription {subscription_id} ended")

    # Subscription schedules

    def handle_schedule_canceled(self, schedule: Dict[str, Any]) -> None:
        self.supabase.table("membership_scheduled_changes")\
            .update({"status": "canceled", "updated_at": utcnow_iso()})\
            .eq("stripe_schedule_id", schedule["id"])\
            .in_("status", ["pending", "confirmed"])\
            .execute()

    def handle_schedule_finished(self, schedule: Dict[str, Any]) -> None:
        """Released/completed: applied if the change date has passed, otherwise released early by hand"""
        result = self.supabase.table("membership_scheduled_changes")\
            .select("*")\
            .eq("stripe_schedule_id", schedule["id"])\
            .in_("status", ["pending", "confirmed"])\
            .execute()
        now = utcnow()
        for change in result.data or []:
            change_date = parse_datetime(change.get("scheduled_change_date"))
            status = "applied" if change_date and change_date <= now else "canceled"
            self.supabase.table("membership_scheduled_changes")\
                .update({"status": status, "updated_at": utcnow_iso()})\
                .eq("id", change["id"])\
                .execute()

    # Invoices

    @staticmethod
    def _invoice_subscription_id(invoice: Dict[str, Any]) -> Optional[str]:
        subscription_id = _id_of(invoice.get("subscription"))
        if subscription_id:
            return subscription_id
        # Newer API versions nest it under parent.subscription_details
        details = (invoice.get("parent") or {}).get("subscription_details") or {}
        return _id_of(details.get("subscription"))

    def _record_payment(self, invoice: Dict[str, Any], user_id: Optional[str], status: str) -> None:
        amount = invoice.get("amount_paid") if status == "succeeded" else invoice.get("amount_due")
        self.supabase.table("payments").upsert({
            "user_id": user_id,
            "stripe_invoice_id": invoice["id"],
            "stripe_subscription_id": self._invoice_subscription_id(invoice),
            "amount": (amount or 0) / 100,
            "currency": invoice.get("currency") or "sek",
            "status": status,
            "billing_reason": invoice.get("billing_reason"),
        }, on_conflict="stripe_invoice_id").execute()

    def handle_payment_succeeded(self, invoice: Dict[str, Any]) -> None:
        subscription_id = self._invoice_subscription_id(invoice)
        membership = self.memberships.get_membership_by_subscription(subscription_id) if subscription_id else None
        self._record_payment(invoice, membership["user_id"] if membership else None, "succeeded")
        if not membership:
            return

        update_data = {"updated_at": utcnow_iso()}
        if membership.get("stripe_status") == "past_due":
            update_data["stripe_status"] = "active"
        if invoice.get("billing_reason") == "subscription_cycle":
            # New billing cycle: credits start over
            update_data["credits_used"] = 0
            self._mirror_credits(membership["user_id"], membership.get("credits") or 0)
        self.supabase.table("memberships")\
            .update(update_data)\
            .eq("id", membership["id"])\
            .execute()

    def handle_payment_failed(self, invoice: Dict[str, Any]) -> None:
        subscription_id = self._invoice_subscription_id(invoice)
        membership = self.memberships.get_membership_by_subscription(subscription_id) if subscription_id else None
        self._record_payment(invoice, membership["user_id"] if membership else None, "failed")
        if not membership:
            return

        self.supabase.table("memberships")\
            .update({"stripe_status": "past_due", "updated_at": utcnow_iso()})\
            .eq("id", membership["id"])\
            .execute()
        self.supabase.table("subscriptions")\
            .update({"status": "past_due", "updated_at": utcnow_iso()})\
            .eq("stripe_subscription_id", subscription_id)\
            .execute()
        if self.notifications is not None:
            self.notifications.notify_user(
                membership["user_id"],
                "Payment failed",
                "We couldn't charge your card for your FitPass membership. Please update your payment method.",
                {"type": "payment_failed", "invoice_id": invoice["id"]},
                notification_type="payment",
            )

    # Payment methods

    def handle_setup_intent_succeeded(self, setup_intent: Dict[str, Any]) -> None:
        customer_id = _id_of(setup_intent.get("customer"))
        payment_method_id = _id_of(setup_intent.get("payment_method"))
        if not customer_id or not payment_method_id or self.stripe is None:
            return
        try:
            methods = self.stripe.list_card_payment_methods(customer_id)
            if len(methods) == 1:
                self.stripe.set_default_payment_method(customer_id, payment_method_id)
                logger.info(f"Set first card {payment_method_id} as default for customer {customer_id}")
            self.stripe.tag_payment_method(payment_method_id, {
                "user_added": "true",
                "created_via": "fitpass_app",
                "added_at": utcnow_iso(),
            })
        except stripe.StripeError as e:
            # Card is saved either way; defaults can be fixed by the user
            logger.error(f"Error processing setup intent {setup_intent.get('id')}: {e}")

    def handle_setup_intent_failed(self, setup_intent: Dict[str, Any]) -> None:
        error = setup_intent.get("last_setup_error") or {}
        logger.warning(f"Setup intent {setup_intent.get('id')} failed: {error.get('message')}")

    def handle_payment_method_attached(self, payment_method: Dict[str, Any]) -> None:
        logger.info(f"Payment method {payment_method.get('id')} attached to customer {payment_method.get('customer')}")

    # Connect

    def handle_account_updated(self, account: Dict[str, Any]) -> None:
        kyc_status = derive_kyc_status(account)
        self.supabase.table("clubs")\
            .update({
                "payouts_enabled": bool(account.get("payouts_enabled")),
                "kyc_status": kyc_status,
                "stripe_onboarding_complete": bool(account.get("details_submitted")),
                "updated_at": utcnow_iso(),
            })\
            .eq("stripe_account_id", account["id"])\
            .execute()
        logger.info(f"Connect account {account['id']} updated: kyc_status={kyc_status}")
