import stripe
from supabase import Client
from app.core.time_utils import utcnow_iso
from app.database.supabase_client import first_row
from app.integrations.stripe_client import StripeClient
from app.modules.gdpr.schemas import DeleteAccountResponse, PrivacySettingsRequest, PrivacySettingsResponse
from typing import Any, Dict, List, Optional, Tuple
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)

# (table, user column), children before parents
USER_DATA_TABLES: List[Tuple[str, str]] = [
    ("messages", "sender_id"),
    ("conversation_participants", "user_id"),
    ("user_selected_gyms", "user_id"),
    ("favorites", "user_id"),
    ("reviews", "user_id"),
    ("bookings", "user_id"),
    ("visits", "user_id"),
    ("subscription_usage", "user_id"),
    ("notifications", "user_id"),
    ("payments", "user_id"),
    ("membership_scheduled_changes", "user_id"),
    ("subscriptions", "user_id"),
    ("memberships", "user_id"),
]

PRIVACY_FIELDS = {
    "profile_visible": "profile_visibility",
    "location_sharing_enabled": "location_sharing_enabled",
    "marketing_emails_enabled": "marketingnotifications",
    "analytics_enabled": "analytics",
    "push_notifications_enabled": "pushnotifications",
}


class GdprService:
    """Right to be forgotten, data portability and privacy settings"""

    def __init__(self, supabase: Client, stripe_client: Optional[StripeClient] = None):
        self.supabase = supabase
        self.stripe = stripe_client

    def _get_profile(self, user_id: str) -> Dict[str, Any]:
        profile = first_row(self.supabase.table("profiles")
                            .select("*")
                            .eq("id", user_id)
                            .limit(1)
                            .execute())
        if not profile:
            raise HTTPException(status_code=404, detail="User not found")
        return profile

    def _cancel_stripe_subscriptions(self, user_id: str, customer_id: Optional[str]) -> Tuple[List[str], List[str]]:
        """Cancel everything billable. Failures are reported, never fatal."""
        if self.stripe is None:
            return [], ["Stripe is not configured; subscriptions were not canceled"]
        subscription_ids = set()
        memberships = self.supabase.table("memberships")\
            .select("stripe_subscription_id")\
            .eq("user_id", user_id)\
            .execute()
        for membership in memberships.data or []:
            if membership.get("stripe_subscription_id"):
                subscription_ids.add(membership["stripe_subscription_id"])

        canceled, warnings = [], []
        try:
            if customer_id:
                for subscription in self.stripe.iter_subscriptions(customer_id, status="active"):
                    subscription_ids.add(subscription["id"])
        except stripe.StripeError as e:
            logger.error(f"Error listing Stripe subscriptions for user {user_id}: {e}")
            warnings.append("Could not list Stripe subscriptions")

        for subscription_id in sorted(subscription_ids):
            try:
                self.stripe.cancel_subscription(subscription_id)
                canceled.append(subscription_id)
                logger.info(f"Canceled subscription {subscription_id} for deleted user")
            except stripe.StripeError as e:
                # Already canceled subscriptions land here too
                logger.warning(f"Could not cancel subscription {subscription_id}: {e}")
                warnings.append(f"Could not cancel subscription {subscription_id}")
        return canceled, warnings

    def delete_account(self, user_id: str, confirm_email: Optional[str] = None) -> DeleteAccountResponse:
        profile = self._get_profile(user_id)
        if confirm_email and (profile.get("email") or "").lower() != confirm_email.lower():
            raise HTTPException(status_code=403, detail="Email confirmation does not match")

        logger.info(f"Processing account deletion for user {user_id[:8]}")
        canceled, warnings = self._cancel_stripe_subscriptions(user_id, profile.get("stripe_customer_id"))

        for table, column in USER_DATA_TABLES:
            try:
                self.supabase.table(table).delete().eq(column, user_id).execute()
            except Exception as e:
                logger.warning(f"Could not delete user data from {table}: {e}")
                warnings.append(f"Could not delete data from {table}")

        try:
            self.supabase.table("profiles").delete().eq("id", user_id).execute()
        except Exception as e:
            logger.error(f"Error deleting profile of user {user_id[:8]}: {e}")
            raise HTTPException(status_code=500, detail="Failed to complete deletion")

        try:
            self.supabase.auth.admin.delete_user(user_id)
        except Exception as e:
            logger.warning(f"Could not delete auth user {user_id[:8]}: {e}")
            warnings.append("Could not delete login credentials")

        logger.info(f"Account deletion completed for user {user_id[:8]}")
        return DeleteAccountResponse(
            deleted=True,
            message="Account and all associated data have been deleted",
            canceled_subscriptions=canceled,
            warnings=warnings
        )

    def _rows(self, table: str, column: str, user_id: str) -> List[Dict[str, Any]]:
        try:
            result = self.supabase.table(table).select("*").eq(column, user_id).execute()
            return result.data or []
        except Exception as e:
            logger.warning(f"Could not export {table}: {e}")
            return []

    def export_data(self, user_id: str) -> Dict[str, Any]:
        """Everything stored about the user, as one JSON document"""
        profile = self._get_profile(user_id)
        logger.info(f"Exporting data for user {user_id[:8]}")
        return {
            "profile": profile,
            "memberships": self._rows("memberships", "user_id", user_id),
            "subscriptions": self._rows("subscriptions", "user_id", user_id),
            "payments": self._rows("payments", "user_id", user_id),
            "bookings": self._rows("bookings", "user_id", user_id),
            "visits": self._rows("visits", "user_id", user_id),
            "favorites": self._rows("favorites", "user_id", user_id),
            "reviews": self._rows("reviews", "user_id", user_id),
            "selected_gyms": self._rows("user_selected_gyms", "user_id", user_id),
            "messages": self._rows("messages", "sender_id", user_id),
            "metadata": {
                "export_date": utcnow_iso(),
                "data_controller": "FitPass AB",
                "gdpr_notice": "This export contains all personal data we have stored about you.",
                "format": "JSON",
            },
        }

    def update_privacy_settings(self, user_id: str, privacy: PrivacySettingsRequest) -> PrivacySettingsResponse:
        update_data = {
            PRIVACY_FIELDS[field]: value
            for field, value in privacy.model_dump(exclude_none=True).items()
        }
        if not update_data:
            raise HTTPException(status_code=400, detail="No privacy settings provided")
        try:
            self.supabase.table("profiles")\
                .update(update_data)\
                .eq("id", user_id)\
                .execute()
            return PrivacySettingsResponse(message="Privacy settings updated", updated=update_data)
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
