import stripe
from supabase import Client
from app.config.business_config import CONNECT_BUSINESS_TYPE, CONNECT_COUNTRY, CONNECT_PAYOUT_SCHEDULE
from app.config.settings import settings
from app.core.time_utils import utcnow_iso
from app.database.supabase_client import first_row
from app.integrations.stripe_client import StripeClient, stripe_http_error
from app.modules.connect.schemas import OnboardingLinkResponse, ConnectStatusResponse
from app.modules.webhooks.service import derive_kyc_status
from typing import Any, Dict, Optional
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)


class ConnectService:
    """Stripe Connect Express accounts that receive club payouts"""

    def __init__(self, supabase: Client, stripe_client: StripeClient):
        self.supabase = supabase
        self.stripe = stripe_client

    def _get_club(self, club_id: str) -> Dict[str, Any]:
        club = first_row(self.supabase.table("clubs")
                         .select("id, name, stripe_account_id, kyc_status, payouts_enabled, stripe_onboarding_complete")
                         .eq("id", club_id)
                         .limit(1)
                         .execute())
        if not club:
            raise HTTPException(status_code=404, detail="Club not found")
        return club

    @staticmethod
    def _urls(return_url: Optional[str], refresh_url: Optional[str]):
        base = settings.frontend_url.rstrip("/")
        return (
            return_url or f"{base}/club/payouts?onboarding=complete",
            refresh_url or f"{base}/club/payouts?onboarding=refresh",
        )

    def create_onboarding(self, club_id: str, email: Optional[str],
                          return_url: Optional[str] = None, refresh_url: Optional[str] = None) -> OnboardingLinkResponse:
        club = self._get_club(club_id)
        if club.get("stripe_account_id"):
            raise HTTPException(status_code=400, detail="Club already has a connected Stripe account")
        return_url, refresh_url = self._urls(return_url, refresh_url)
        try:
            account = self.stripe.create_connect_account(
                email, club_id, CONNECT_COUNTRY, CONNECT_BUSINESS_TYPE, CONNECT_PAYOUT_SCHEDULE
            )
        except stripe.StripeError as e:
            raise stripe_http_error(e)

        try:
            self.supabase.table("clubs")\
                .update({"stripe_account_id": account["id"], "kyc_status": "pending", "updated_at": utcnow_iso()})\
                .eq("id", club_id)\
                .execute()
        except Exception as e:
            logger.error(f"Failed to save Connect account {account['id']} for club {club_id}: {e}")
            try:
                self.stripe.delete_connect_account(account["id"])
            except stripe.StripeError as cleanup_error:
                logger.error(f"Failed to delete orphaned Connect account {account['id']}: {cleanup_error}")
            raise HTTPException(status_code=500, detail="Failed to save Stripe account")

        try:
            link = self.stripe.create_account_link(account["id"], refresh_url, return_url)
        except stripe.StripeError as e:
            raise stripe_http_error(e)
        logger.info(f"Created Connect account {account['id']} for club {club_id}")
        return OnboardingLinkResponse(account_id=account["id"], url=link["url"])

    def refresh_onboarding_link(self, club_id: str, return_url: Optional[str] = None,
                                refresh_url: Optional[str] = None) -> OnboardingLinkResponse:
        """New onboarding link for an existing account (links expire after a few minutes)"""
        club = self._get_club(club_id)
        account_id = club.get("stripe_account_id")
        if not account_id:
            raise HTTPException(status_code=400, detail="Club does not have a connected Stripe account")
        return_url, refresh_url = self._urls(return_url, refresh_url)
        try:
            link = self.stripe.create_account_link(account_id, refresh_url, return_url)
        except stripe.StripeError as e:
            raise stripe_http_error(e)
        return OnboardingLinkResponse(account_id=account_id, url=link["url"])

    def get_status(self, club_id: str) -> ConnectStatusResponse:
        """Live account state from Stripe; the club row is refreshed on the way"""
        club = self._get_club(club_id)
        account_id = club.get("stripe_account_id")
        if not account_id:
            return ConnectStatusResponse(club_id=club_id)
        try:
            account = self.stripe.retrieve_account(account_id)
        except stripe.StripeError as e:
            raise stripe_http_error(e)

        kyc_status = derive_kyc_status(account)
        payouts_enabled = bool(account.get("payouts_enabled"))
        onboarding_complete = bool(account.get("details_submitted"))
        try:
            self.supabase.table("clubs")\
                .update({
                    "kyc_status": kyc_status,
                    "payouts_enabled": payouts_enabled,
                    "stripe_onboarding_complete": onboarding_complete,
                    "updated_at": utcnow_iso(),
                })\
                .eq("id", club_id)\
                .execute()
        except Exception as e:
            logger.error(f"Failed to refresh Connect state for club {club_id}: {e}")

        requirements = account.get("requirements") or {}
        return ConnectStatusResponse(
            club_id=club_id,
            account_id=account_id,
            kyc_status=kyc_status,
            payouts_enabled=payouts_enabled,
            charges_enabled=bool(account.get("charges_enabled")),
            onboarding_complete=onboarding_complete,
            requirements_due=list(requirements.get("currently_due") or [])
        )
