import stripe
from supabase import Client
from app.core.time_utils import utcnow_iso
from app.integrations.stripe_client import StripeClient, from_timestamp, subscription_price_id
from app.modules.sync.schemas import (
    SubscriptionSyncResult, ProductSyncResult, IncompleteSubscription, SyncError
)
from app.modules.webhooks.service import StripeWebhookService
from typing import Any, Dict, List, Optional
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)


def _metadata_int(metadata: Dict[str, Any], key: str) -> int:
    try:
        return max(0, int(metadata.get(key) or 0))
    except (TypeError, ValueError):
        return 0


class SyncService:
    """Reconcile Supabase with Stripe for events the webhook may have missed"""

    def __init__(self, supabase: Client, stripe_client: StripeClient):
        self.supabase = supabase
        self.stripe = stripe_client
        self.webhooks = StripeWebhookService(supabase, stripe_client)

    def sync_subscriptions_from_stripe(self) -> SubscriptionSyncResult:
        result = SubscriptionSyncResult()
        try:
            subscriptions = self.stripe.iter_subscriptions(status="all")
            for subscription in subscriptions:
                result.total += 1
                try:
                    outcome = self.webhooks.sync_subscription_to_database(subscription)
                except Exception as e:
                    logger.error(f"Error syncing subscription {subscription['id']}: {e}")
                    result.errors.append(SyncError(id=subscription["id"], error=str(e)))
                    continue
                result.outcomes[outcome] = result.outcomes.get(outcome, 0) + 1
                if outcome == "skipped":
                    result.skipped += 1
                else:
                    result.synced += 1
        except stripe.StripeError as e:
            logger.error(f"Stripe error while listing subscriptions: {e}")
            result.errors.append(SyncError(id="list", error=str(e)))
        logger.info(
            f"Subscription sync: {result.synced} synced, {result.skipped} skipped, {len(result.errors)} errors"
        )
        return result

    def sync_products_from_stripe(self) -> ProductSyncResult:
        """Active recurring prices become membership plans, keyed by stripe_price_id"""
        result = ProductSyncResult()
        try:
            existing = self.supabase.table("membership_plans")\
                .select("stripe_price_id")\
                .execute()
            known = {p["stripe_price_id"] for p in (existing.data or []) if p.get("stripe_price_id")}

            for price in self.stripe.iter_active_prices():
                product = price.get("product")
                if not product or isinstance(product, str) or not product.get("active", True):
                    result.skipped += 1
                    continue
                metadata = product.get("metadata") or {}
                try:
                    self.supabase.table("membership_plans").upsert({
                        "title": product.get("name"),
                        "description": product.get("description"),
                        "price": (price.get("unit_amount") or 0) / 100,
                        "currency": price.get("currency"),
                        "credits": _metadata_int(metadata, "credits"),
                        "max_daily_gyms": _metadata_int(metadata, "max_daily_gyms"),
                        "stripe_product_id": product["id"],
                        "stripe_price_id": price["id"],
                        "updated_at": utcnow_iso(),
                    }, on_conflict="stripe_price_id").execute()
                except Exception as e:
                    logger.error(f"Error syncing price {price['id']}: {e}")
                    result.errors.append(SyncError(id=price["id"], error=str(e)))
                    continue
                if price["id"] in known:
                    result.updated += 1
                else:
                    result.created += 1
        except stripe.StripeError as e:
            logger.error(f"Stripe error while listing prices: {e}")
            result.errors.append(SyncError(id="list", error=str(e)))
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        logger.info(f"Product sync: {result.created} created, {result.updated} updated, {result.skipped} skipped")
        return result

    def list_incomplete_subscriptions(self) -> List[IncompleteSubscription]:
        try:
            return [
                IncompleteSubscription(
                    id=s["id"],
                    customer=s.get("customer") if isinstance(s.get("customer"), str) else None,
                    status=s["status"],
                    price_id=subscription_price_id(s),
                    user_id=(s.get("metadata") or {}).get("user_id"),
                    created=from_timestamp(s.get("created")),
                )
                for s in self.stripe.iter_subscriptions(status="incomplete")
            ]
        except stripe.StripeError as e:
            logger.error(f"Stripe error while listing incomplete subscriptions: {e}")
            raise HTTPException(status_code=502, detail=f"Payment provider error: {e}")
