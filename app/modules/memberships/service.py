from supabase import Client
from app.config.business_config import TRIAL_CREDITS, TRIAL_PERIOD_DAYS
from app.core.time_utils import utcnow, utcnow_iso
from app.database.supabase_client import first_row
from app.modules.memberships.schemas import (
    MembershipPlanResponse, MembershipResponse, MembershipWithPlanResponse, CreditsUpdateResponse
)
from datetime import timedelta
from typing import List, Optional, Dict, Any
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)

DAILY_ACCESS_TITLE_MARKERS = ("premium", "daily access", "unlimited")


def is_daily_access_plan(plan: Optional[Dict[str, Any]]) -> bool:
    """Daily Access / unlimited plans: flagged by max_daily_gyms or recognised by title."""
    if not plan:
        return False
    if (plan.get("max_daily_gyms") or 0) > 0:
        return True
    title = (plan.get("title") or "").lower()
    return any(marker in title for marker in DAILY_ACCESS_TITLE_MARKERS)


def subscription_type_for(membership: Dict[str, Any], plan: Optional[Dict[str, Any]]) -> str:
    if is_daily_access_plan(plan):
        return "unlimited"
    if "unlimited" in (membership.get("plan_type") or "").lower():
        return "unlimited"
    return "credits"


def credits_remaining(membership: Dict[str, Any]) -> int:
    return max(0, (membership.get("credits") or 0) - (membership.get("credits_used") or 0))


class MembershipService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def list_plans(self, include_trial: bool = False) -> List[MembershipPlanResponse]:
        """List membership plans, cheapest first"""
        try:
            query = self.supabase.table("membership_plans").select("*")
            if not include_trial:
                query = query.eq("is_trial", False)
            result = query.order("price").execute()
            return [MembershipPlanResponse(**p) for p in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_plan(self, plan_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("membership_plans")\
            .select("*")\
            .eq("id", plan_id)\
            .limit(1)\
            .execute()
        return first_row(result)

    def get_plan_by_price(self, stripe_price_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("membership_plans")\
            .select("*")\
            .eq("stripe_price_id", stripe_price_id)\
            .limit(1)\
            .execute()
        return first_row(result)

    def get_active_membership(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Most recent active membership row, or None"""
        result = self.supabase.table("memberships")\
            .select("*")\
            .eq("user_id", user_id)\
            .eq("is_active", True)\
            .order("created_at", desc=True)\
            .limit(1)\
            .execute()
        return first_row(result)

    def get_membership_by_subscription(self, stripe_subscription_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("memberships")\
            .select("*")\
            .eq("stripe_subscription_id", stripe_subscription_id)\
            .limit(1)\
            .execute()
        return first_row(result)

    def get_membership_with_plan(self, user_id: str) -> Optional[MembershipWithPlanResponse]:
        try:
            membership = self.get_active_membership(user_id)
            if not membership:
                return None
            plan = self.get_plan(membership["plan_id"]) if membership.get("plan_id") else None
            return MembershipWithPlanResponse(
                **membership,
                plan=MembershipPlanResponse(**plan) if plan else None,
                credits_remaining=credits_remaining(membership),
                subscription_type=subscription_type_for(membership, plan)
            )
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def update_membership_credits(self, user_id: str, delta: int) -> CreditsUpdateResponse:
        """
        Add `delta` to credits_used (negative refunds) and mirror the remaining
        balance onto profiles.credits.
        """
        membership = self.get_active_membership(user_id)
        if not membership:
            raise HTTPException(status_code=404, detail="No active membership found")
        try:
            new_used = max(0, (membership.get("credits_used") or 0) + delta)
            remaining = max(0, (membership.get("credits") or 0) - new_used)

            self.supabase.table("memberships")\
                .update({"credits_used": new_used, "updated_at": utcnow_iso()})\
                .eq("id", membership["id"])\
                .execute()
            self.supabase.table("profiles")\
                .update({"credits": remaining})\
                .eq("id", user_id)\
                .execute()
            return CreditsUpdateResponse(credits_used=new_used, credits_remaining=remaining)
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to update credits: {str(e)}")

    def deactivate_user_memberships(self, user_id: str) -> None:
        self.supabase.table("memberships")\
            .update({"is_active": False, "updated_at": utcnow_iso()})\
            .eq("user_id", user_id)\
            .eq("is_active", True)\
            .execute()

    def create_user_membership(self, user_id: str, plan_id: str) -> MembershipResponse:
        """Start a plan without Stripe (free/admin-granted plans)"""
        plan = self.get_plan(plan_id)
        if not plan:
            raise HTTPException(status_code=404, detail="Membership plan not found")
        if plan.get("stripe_price_id") and (plan.get("price") or 0) > 0:
            raise HTTPException(status_code=400, detail="Paid plans must be purchased through a subscription")
        try:
            self.deactivate_user_memberships(user_id)
            now = utcnow()
            result = self.supabase.table("memberships").insert({
                "user_id": user_id,
                "plan_id": plan["id"],
                "plan_type": plan["title"],
                "credits": plan.get("credits") or 0,
                "credits_used": 0,
                "is_active": True,
                "start_date": now.isoformat(),
                "end_date": (now + timedelta(days=30)).isoformat(),
                "created_at": now.isoformat(),
            }).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create membership")
            self.supabase.table("profiles")\
                .update({"credits": plan.get("credits") or 0})\
                .eq("id", user_id)\
                .execute()
            return MembershipResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def start_trial(self, user_id: str) -> MembershipResponse:
        """One trial per user, ever"""
        try:
            used = self.supabase.table("memberships")\
                .select("id")\
                .eq("user_id", user_id)\
                .eq("has_used_trial", True)\
                .limit(1)\
                .execute()
            if used.data:
                raise HTTPException(status_code=409, detail="Trial already used")
            if self.get_active_membership(user_id):
                raise HTTPException(status_code=409, detail="You already have an active membership")

            now = utcnow()
            trial_end = now + timedelta(days=TRIAL_PERIOD_DAYS)
            result = self.supabase.table("memberships").insert({
                "user_id": user_id,
                "plan_type": "Trial",
                "credits": TRIAL_CREDITS,
                "credits_used": 0,
                "is_active": True,
                "has_used_trial": True,
                "trial_end_date": trial_end.isoformat(),
                "start_date": now.isoformat(),
                "end_date": trial_end.isoformat(),
                "created_at": now.isoformat(),
            }).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to start trial")
            self.supabase.table("profiles")\
                .update({"credits": TRIAL_CREDITS})\
                .eq("id", user_id)\
                .execute()
            logger.info(f"Started {TRIAL_PERIOD_DAYS}-day trial for user {user_id}")
            return MembershipResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def expire_trials(self) -> int:
        """Deactivate trials past their end date. Returns how many were closed."""
        result = self.supabase.table("memberships")\
            .select("id, user_id")\
            .eq("is_active", True)\
            .eq("has_used_trial", True)\
            .is_("stripe_subscription_id", "null")\
            .lt("trial_end_date", utcnow_iso())\
            .execute()
        expired = result.data or []
        for membership in expired:
            try:
                self.supabase.table("memberships")\
                    .update({"is_active": False, "updated_at": utcnow_iso()})\
                    .eq("id", membership["id"])\
                    .execute()
                self.supabase.table("profiles")\
                    .update({"credits": 0})\
                    .eq("id", membership["user_id"])\
                    .execute()
            except Exception as e:
                logger.error(f"Error expiring trial {membership['id']}: {e}")
        return len(expired)
