import stripe
from supabase import Client
from app.core.time_utils import utcnow_iso
from app.database.supabase_client import first_row
from app.integrations.stripe_client import (
    StripeClient, from_timestamp, stripe_http_error, subscription_period, subscription_price_id
)
from app.modules.memberships.service import MembershipService
from app.modules.subscriptions.schemas import (
    CreateSubscriptionResponse, SubscriptionStatusResponse, ScheduledChangeResponse,
    InvoiceResponse, UpcomingInvoiceResponse, PaymentMethodResponse, SetupIntentResponse
)
from typing import List, Optional, Dict, Any
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)

OPEN_CHANGE_STATUSES = ["pending", "confirmed"]


def _invoice_client_secret(invoice) -> Optional[str]:
    """Client secret of an expanded latest_invoice; newer API versions expose confirmation_secret."""
    if not invoice or isinstance(invoice, str):
        return None
    payment_intent = invoice.get("payment_intent")
    if payment_intent and not isinstance(payment_intent, str):
        return payment_intent.get("client_secret")
    confirmation = invoice.get("confirmation_secret")
    if confirmation:
        return confirmation.get("client_secret")
    return None


class SubscriptionService:
    def __init__(self, supabase: Client, stripe_client: StripeClient):
        self.supabase = supabase
        self.stripe = stripe_client
        self.memberships = MembershipService(supabase)

    # Customers

    def _get_profile(self, user_id: str) -> Dict[str, Any]:
        result = self.supabase.table("profiles")\
            .select("*")\
            .eq("id", user_id)\
            .limit(1)\
            .execute()
        profile = first_row(result)
        if not profile:
            raise HTTPException(status_code=404, detail="User profile not found")
        return profile

    def get_customer_id(self, user_id: str) -> Optional[str]:
        profile = self._get_profile(user_id)
        if profile.get("stripe_customer_id"):
            return profile["stripe_customer_id"]
        membership = self.memberships.get_active_membership(user_id)
        if membership and membership.get("stripe_customer_id"):
            return membership["stripe_customer_id"]
        return None

    def get_or_create_customer(self, user_id: str, email: Optional[str] = None) -> str:
        """Stripe customer for the user: stored id, else an existing customer by email, else a new one"""
        try:
            customer_id = self.get_customer_id(user_id)
            if customer_id:
                return customer_id

            profile = self._get_profile(user_id)
            customer = self.stripe.find_customer_by_email(email) if email else None
            if customer is None:
                name = profile.get("display_name") or " ".join(
                    p for p in (profile.get("first_name"), profile.get("last_name")) if p
                ) or None
                customer = self.stripe.create_customer(email=email, name=name, user_id=user_id)
                logger.info(f"Created Stripe customer {customer['id']} for user {user_id}")

            self.supabase.table("profiles")\
                .update({"stripe_customer_id": customer["id"]})\
                .eq("id", user_id)\
                .execute()
            return customer["id"]
        except HTTPException:
            raise
        except stripe.StripeError as e:
            raise stripe_http_error(e)
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to get Stripe customer: {str(e)}")

    # Subscriptions

    def create_subscription(self, user_id: str, price_id: str, email: Optional[str] = None) -> CreateSubscriptionResponse:
        """Create an incomplete subscription; the client confirms payment with the returned secret"""
        plan = self.memberships.get_plan_by_price(price_id)
        if not plan:
            raise HTTPException(status_code=400, detail="Unknown price")
        membership = self.memberships.get_active_membership(user_id)
        if membership and membership.get("stripe_subscription_id") \
                and membership.get("stripe_status") in ("active", "trialing"):
            raise HTTPException(status_code=409, detail="Subscription already active; schedule a plan change instead")
        customer_id = self.get_or_create_customer(user_id, email)
        try:
            subscription = self.stripe.create_subscription(customer_id, price_id, user_id)
            start, end = subscription_period(subscription)
            self.supabase.table("subscriptions").upsert({
                "user_id": user_id,
                "membership_plan_id": plan["id"],
                "stripe_subscription_id": subscription["id"],
                "stripe_customer_id": customer_id,
                "stripe_price_id": price_id,
                "status": subscription["status"],
                "current_period_start": from_timestamp(start),
                "current_period_end": from_timestamp(end),
                "updated_at": utcnow_iso(),
            }, on_conflict="stripe_subscription_id").execute()

            client_secret = _invoice_client_secret(subscription.get("latest_invoice"))

            logger.info(f"Created subscription {subscription['id']} ({subscription['status']}) for user {user_id}")
            return CreateSubscriptionResponse(
                subscription_id=subscription["id"],
                client_secret=client_secret,
                status=subscription["status"]
            )
        except HTTPException:
            raise
        except stripe.StripeError as e:
            raise stripe_http_error(e)
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to create subscription: {str(e)}")

    def _require_subscription(self, user_id: str) -> Dict[str, Any]:
        membership = self.memberships.get_active_membership(user_id)
        if not membership or not membership.get("stripe_subscription_id"):
            raise HTTPException(status_code=404, detail="No active subscription found")
        return membership

    def _status_response(self, subscription) -> SubscriptionStatusResponse:
        _, end = subscription_period(subscription)
        return SubscriptionStatusResponse(
            subscription_id=subscription["id"],
            status=subscription["status"],
            cancel_at_period_end=bool(subscription.get("cancel_at_period_end")),
            current_period_end=from_timestamp(end),
            paused=bool(subscription.get("pause_collection"))
        )

    def _modify(self, user_id: str, action: str, **params) -> SubscriptionStatusResponse:
        membership = self._require_subscription(user_id)
        subscription_id = membership["stripe_subscription_id"]
        try:
            subscription = self.stripe.modify_subscription(subscription_id, **params)
            self.supabase.table("subscriptions")\
                .update({
                    "status": subscription["status"],
                    "cancel_at_period_end": bool(subscription.get("cancel_at_period_end")),
                    "updated_at": utcnow_iso(),
                })\
                .eq("stripe_subscription_id", subscription_id)\
                .execute()
            logger.info(f"Subscription {subscription_id} {action} for user {user_id}")
            return self._status_response(subscription)
        except stripe.StripeError as e:
            raise stripe_http_error(e)
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to {action} subscription: {str(e)}")

    def cancel_subscription(self, user_id: str, at_period_end: bool = True) -> SubscriptionStatusResponse:
        """Cancel at period end (default) or immediately. The webhook deactivates the membership."""
        if at_period_end:
            return self._modify(user_id, "scheduled for cancellation", cancel_at_period_end=True)
        membership = self._require_subscription(user_id)
        subscription_id = membership["stripe_subscription_id"]
        try:
            subscription = self.stripe.cancel_subscription(subscription_id)
            self.supabase.table("subscriptions")\
                .update({"status": "canceled", "canceled_at": utcnow_iso(), "updated_at": utcnow_iso()})\
                .eq("stripe_subscription_id", subscription_id)\
                .execute()
            logger.info(f"Subscription {subscription_id} canceled immediately for user {user_id}")
            return self._status_response(subscription)
        except stripe.StripeError as e:
            raise stripe_http_error(e)
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to cancel subscription: {str(e)}")

    def reactivate_subscription(self, user_id: str) -> SubscriptionStatusResponse:
        return self._modify(user_id, "reactivated", cancel_at_period_end=False)

    def pause_subscription(self, user_id: str) -> SubscriptionStatusResponse:
        return self._modify(user_id, "paused", pause_collection={"behavior": "void"})

    def resume_subscription(self, user_id: str) -> SubscriptionStatusResponse:
        # Empty string unsets pause_collection in the Stripe API
        return self._modify(user_id, "resumed", pause_collection="")

    # Scheduled plan changes

    def _open_scheduled_change(self, membership_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("membership_scheduled_changes")\
            .select("*")\
            .eq("membership_id", membership_id)\
            .in_("status", OPEN_CHANGE_STATUSES)\
            .order("created_at", desc=True)\
            .limit(1)\
            .execute()
        return first_row(result)

    def _set_change_status(self, change_id: str, status: str) -> None:
        self.supabase.table("membership_scheduled_changes")\
            .update({"status": status, "updated_at": utcnow_iso()})\
            .eq("id", change_id)\
            .execute()

    def schedule_plan_change(self, user_id: str, new_price_id: str) -> ScheduledChangeResponse:
        """
        Switch plan at the next billing cycle through a Stripe subscription schedule.
        Phase 1 keeps the current price until period end, phase 2 moves to the new price,
        then the schedule releases the subscription.
        """
        membership = self._require_subscription(user_id)
        subscription_id = membership["stripe_subscription_id"]

        new_plan = self.memberships.get_plan_by_price(new_price_id)
        if not new_plan:
            raise HTTPException(status_code=400, detail="Unknown price")

        existing = self._open_scheduled_change(membership["id"])
        if existing and existing.get("scheduled_stripe_price_id") == new_price_id:
            return ScheduledChangeResponse(**existing)

        schedule = None
        try:
            subscription = self.stripe.retrieve_subscription(subscription_id)
            current_price_id = subscription_price_id(subscription)
            if current_price_id == new_price_id:
                raise HTTPException(status_code=400, detail="Subscription is already on this plan")

            current_price = self.stripe.retrieve_price(current_price_id)
            new_price = self.stripe.retrieve_price(new_price_id)
            if current_price["currency"] != new_price["currency"]:
                raise HTTPException(
                    status_code=400,
                    detail=(
                        f"Currency mismatch: current subscription uses {current_price['currency'].upper()}, "
                        f"new price uses {new_price['currency'].upper()}"
                    )
                )

            # A subscription holds at most one schedule; drop the one being replaced
            if existing and existing.get("stripe_schedule_id"):
                self.stripe.release_schedule(existing["stripe_schedule_id"])
                self._set_change_status(existing["id"], "canceled")
            elif subscription.get("schedule"):
                self.stripe.release_schedule(subscription["schedule"])

            _, period_end = subscription_period(subscription)
            schedule = self.stripe.create_schedule_from_subscription(subscription_id)
            phase_start = schedule["phases"][0]["start_date"]
            schedule = self.stripe.modify_schedule(
                schedule["id"],
                end_behavior="release",
                proration_behavior="none",
                phases=[
                    {
                        "items": [{"price": current_price_id, "quantity": 1}],
                        "start_date": phase_start,
                        "end_date": period_end,
                    },
                    {
                        "items": [{"price": new_price_id, "quantity": 1}],
                        "iterations": 1,
                    },
                ],
            )

            change_date = from_timestamp(period_end)
            result = self.supabase.table("membership_scheduled_changes").insert({
                "membership_id": membership["id"],
                "user_id": user_id,
                "scheduled_plan_id": new_plan["id"],
                "scheduled_plan_title": new_plan["title"],
                "scheduled_plan_credits": new_plan.get("credits") or 0,
                "scheduled_stripe_price_id": new_price_id,
                "scheduled_change_date": change_date,
                "stripe_schedule_id": schedule["id"],
                "status": "confirmed",
            }).execute()
            if not result.data:
                raise RuntimeError("Failed to store scheduled change")

            try:
                self.supabase.table("memberships")\
                    .update({"next_cycle_date": change_date, "updated_at": utcnow_iso()})\
                    .eq("id", membership["id"])\
                    .execute()
            except Exception as e:
                logger.warning(f"Failed to update next_cycle_date for membership {membership['id']}: {e}")

            logger.info(f"Scheduled plan change to {new_plan['title']} on {change_date} for user {user_id}")
            return ScheduledChangeResponse(**result.data[0])
        except HTTPException:
            raise
        except stripe.StripeError as e:
            raise stripe_http_error(e)
        except Exception as e:
            if schedule is not None:
                try:
                    self.stripe.release_schedule(schedule["id"])
                except stripe.StripeError as release_error:
                    logger.error(f"Failed to release orphaned schedule {schedule['id']}: {release_error}")
            raise HTTPException(status_code=500, detail=f"Failed to schedule plan change: {str(e)}")

    def cancel_scheduled_change(self, user_id: str) -> ScheduledChangeResponse:
        membership = self._require_subscription(user_id)
        existing = self._open_scheduled_change(membership["id"])
        if not existing:
            raise HTTPException(status_code=404, detail="No scheduled change found")
        try:
            if existing.get("stripe_schedule_id"):
                self.stripe.release_schedule(existing["stripe_schedule_id"])
            self._set_change_status(existing["id"], "canceled")
            self.supabase.table("memberships")\
                .update({"next_cycle_date": None, "updated_at": utcnow_iso()})\
                .eq("id", membership["id"])\
                .execute()
            return ScheduledChangeResponse(**{**existing, "status": "canceled"})
        except stripe.StripeError as e:
            raise stripe_http_error(e)
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to cancel scheduled change: {str(e)}")

    def list_scheduled_changes(self, user_id: str) -> List[ScheduledChangeResponse]:
        try:
            result = self.supabase.table("membership_scheduled_changes")\
                .select("*")\
                .eq("user_id", user_id)\
                .order("created_at", desc=True)\
                .execute()
            return [ScheduledChangeResponse(**c) for c in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    # Billing

    def list_invoices(self, user_id: str, limit: int = 24) -> List[InvoiceResponse]:
        customer_id = self.get_customer_id(user_id)
        if not customer_id:
            return []
        try:
            invoices = self.stripe.list_invoices(customer_id, limit=limit)
            return [
                InvoiceResponse(
                    id=inv["id"],
                    number=inv.get("number"),
                    status=inv.get("status"),
                    amount_due=(inv.get("amount_due") or 0) / 100,
                    amount_paid=(inv.get("amount_paid") or 0) / 100,
                    currency=inv.get("currency") or "sek",
                    created=from_timestamp(inv.get("created")),
                    hosted_invoice_url=inv.get("hosted_invoice_url"),
                    invoice_pdf=inv.get("invoice_pdf"),
                )
                for inv in invoices
            ]
        except stripe.StripeError as e:
            raise stripe_http_error(e)

    def upcoming_invoice(self, user_id: str) -> UpcomingInvoiceResponse:
        membership = self._require_subscription(user_id)
        customer_id = self.get_customer_id(user_id)
        if not customer_id:
            raise HTTPException(status_code=404, detail="No Stripe customer found")
        try:
            invoice = self.stripe.preview_upcoming_invoice(customer_id, membership["stripe_subscription_id"])
            lines = (invoice.get("lines") or {}).get("data") or []
            return UpcomingInvoiceResponse(
                amount_due=(invoice.get("amount_due") or 0) / 100,
                currency=invoice.get("currency") or "sek",
                next_payment_attempt=from_timestamp(invoice.get("next_payment_attempt")),
                lines=[line.get("description") or "" for line in lines]
            )
        except stripe.StripeError as e:
            raise stripe_http_error(e)

    # Payment methods

    def list_payment_methods(self, user_id: str) -> List[PaymentMethodResponse]:
        customer_id = self.get_customer_id(user_id)
        if not customer_id:
            return []
        try:
            customer = self.stripe.retrieve_customer(customer_id)
            default_id = (customer.get("invoice_settings") or {}).get("default_payment_method")
            methods = []
            for pm in self.stripe.list_card_payment_methods(customer_id):
                card = pm.get("card") or {}
                methods.append(PaymentMethodResponse(
                    id=pm["id"],
                    brand=card.get("brand"),
                    last4=card.get("last4"),
                    exp_month=card.get("exp_month"),
                    exp_year=card.get("exp_year"),
                    is_default=pm["id"] == default_id,
                ))
            return methods
        except stripe.StripeError as e:
            raise stripe_http_error(e)

    def create_setup_intent(self, user_id: str, email: Optional[str] = None) -> SetupIntentResponse:
        customer_id = self.get_or_create_customer(user_id, email)
        try:
            intent = self.stripe.create_setup_intent(customer_id, user_id)
            return SetupIntentResponse(
                setup_intent_id=intent["id"],
                client_secret=intent["client_secret"],
                customer_id=customer_id
            )
        except stripe.StripeError as e:
            raise stripe_http_error(e)

    def _owned_payment_method(self, user_id: str, payment_method_id: str):
        customer_id = self.get_customer_id(user_id)
        if not customer_id:
            raise HTTPException(status_code=404, detail="No Stripe customer found")
        pm = self.stripe.retrieve_payment_method(payment_method_id)
        if pm.get("customer") != customer_id:
            raise HTTPException(status_code=403, detail="Payment method does not belong to this user")
        return customer_id, pm

    def set_default_payment_method(self, user_id: str, payment_method_id: str) -> PaymentMethodResponse:
        try:
            customer_id, pm = self._owned_payment_method(user_id, payment_method_id)
            self.stripe.set_default_payment_method(customer_id, payment_method_id)
            card = pm.get("card") or {}
            return PaymentMethodResponse(
                id=pm["id"],
                brand=card.get("brand"),
                last4=card.get("last4"),
                exp_month=card.get("exp_month"),
                exp_year=card.get("exp_year"),
                is_default=True
            )
        except HTTPException:
            raise
        except stripe.StripeError as e:
            raise stripe_http_error(e)

    def detach_payment_method(self, user_id: str, payment_method_id: str) -> bool:
        try:
            self._owned_payment_method(user_id, payment_method_id)
            self.stripe.detach_payment_method(payment_method_id)
            return True
        except HTTPException:
            raise
        except stripe.StripeError as e:
            raise stripe_http_error(e)
