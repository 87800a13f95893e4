from supabase import Client
from app.config.business_config import DAILY_ACCESS_DEFAULT_SLOTS, DAILY_ACCESS_REMOVAL_NOTICE_DAYS
from app.core.time_utils import parse_datetime, utcnow
from app.database.supabase_client import first_row
from app.modules.daily_access.schemas import (
    DailyAccessStatusResponse, SelectedGymResponse, SelectedGymsResponse,
    DailyAccessActionResponse, DailyAccessSummaryResponse, RolloverResult
)
from app.modules.memberships.service import MembershipService
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)

SELECTION_COLUMNS = "*, clubs:club_id (name, address, image_url)"


def _to_selected_gym(row: Dict[str, Any]) -> SelectedGymResponse:
    club = row.get("clubs") or {}
    return SelectedGymResponse(
        id=row["id"],
        club_id=row["club_id"],
        gym_name=club.get("name"),
        gym_address=club.get("address"),
        gym_image=club.get("image_url"),
        status=row["status"],
        effective_from=row.get("effective_from"),
        created_at=row.get("created_at"),
    )


class DailyAccessService:
    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.memberships = MembershipService(supabase)

    def _daily_access_membership(self, user_id: str) -> Tuple[Optional[Dict[str, Any]], Optional[Dict[str, Any]]]:
        membership = self.memberships.get_active_membership(user_id)
        if not membership or not membership.get("plan_id"):
            return None, None
        plan = self.memberships.get_plan(membership["plan_id"])
        if not plan or (plan.get("max_daily_gyms") or 0) <= 0:
            return None, None
        return membership, plan

    def check_status(self, user_id: str) -> DailyAccessStatusResponse:
        try:
            membership, plan = self._daily_access_membership(user_id)
            if not membership:
                return DailyAccessStatusResponse(has_daily_access=False)
            return DailyAccessStatusResponse(
                has_daily_access=True,
                membership_id=membership["id"],
                plan_title=plan.get("title"),
                max_slots=plan.get("max_daily_gyms") or DAILY_ACCESS_DEFAULT_SLOTS
            )
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def _selections(self, user_id: str, statuses: List[str]) -> List[Dict[str, Any]]:
        result = self.supabase.table("user_selected_gyms")\
            .select(SELECTION_COLUMNS)\
            .eq("user_id", user_id)\
            .in_("status", statuses)\
            .order("created_at")\
            .execute()
        return result.data or []

    def get_selected_gyms(self, user_id: str) -> SelectedGymsResponse:
        try:
            membership, plan = self._daily_access_membership(user_id)
            if not membership:
                return SelectedGymsResponse()
            rows = self._selections(user_id, ["active", "pending", "removed"])
            return SelectedGymsResponse(
                current=[_to_selected_gym(r) for r in rows if r["status"] == "active"],
                pending=[_to_selected_gym(r) for r in rows if r["status"] == "pending"],
                removing=[_to_selected_gym(r) for r in rows if r["status"] == "removed"],
                max_slots=plan.get("max_daily_gyms") or DAILY_ACCESS_DEFAULT_SLOTS
            )
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def is_gym_accessible(self, user_id: str, club_id: str) -> bool:
        """Active picks, and removed picks until their removal takes effect"""
        result = self.supabase.table("user_selected_gyms")\
            .select("id")\
            .eq("user_id", user_id)\
            .eq("club_id", club_id)\
            .in_("status", ["active", "removed"])\
            .limit(1)\
            .execute()
        return bool(result.data)

    def has_pending_only(self, user_id: str) -> bool:
        rows = self._selections(user_id, ["active", "pending"])
        return bool(rows) and all(r["status"] == "pending" for r in rows)

    def add_selected_gym(self, user_id: str, club_id: str) -> DailyAccessActionResponse:
        membership, plan = self._daily_access_membership(user_id)
        if not membership:
            raise HTTPException(status_code=403, detail="A Daily Access membership is required")
        try:
            max_slots = plan.get("max_daily_gyms") or DAILY_ACCESS_DEFAULT_SLOTS
            rows = self._selections(user_id, ["active", "pending"])
            if len(rows) >= max_slots:
                raise HTTPException(status_code=400, detail=f"You can select at most {max_slots} gyms")
            if any(r["club_id"] == club_id for r in rows):
                raise HTTPException(status_code=409, detail="Gym is already selected")

            club = first_row(self.supabase.table("clubs")
                             .select("id, name")
                             .eq("id", club_id)
                             .limit(1)
                             .execute())
            if not club:
                raise HTTPException(status_code=404, detail="Club not found")

            now = utcnow()
            if not rows:
                # A member with no gyms could not train at all this cycle
                status, effective_from = "active", now
                message = f"{club['name']} is now part of your Daily Access"
            else:
                status = "pending"
                effective_from = parse_datetime(membership.get("end_date")) or now
                message = f"{club['name']} will be added from the next billing period"

            self.supabase.table("user_selected_gyms").insert({
                "user_id": user_id,
                "club_id": club_id,
                "status": status,
                "effective_from": effective_from.isoformat(),
            }).execute()
            logger.info(f"User {user_id} selected gym {club_id} ({status})")
            return DailyAccessActionResponse(message=message, status=status, effective_from=effective_from)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def remove_selected_gym(self, user_id: str, club_id: str) -> DailyAccessActionResponse:
        try:
            selection = first_row(self.supabase.table("user_selected_gyms")
                                  .select("*")
                                  .eq("user_id", user_id)
                                  .eq("club_id", club_id)
                                  .in_("status", ["active", "pending"])
                                  .limit(1)
                                  .execute())
            if not selection:
                raise HTTPException(status_code=404, detail="Gym is not selected")

            if selection["status"] == "pending":
                self.supabase.table("user_selected_gyms")\
                    .delete()\
                    .eq("id", selection["id"])\
                    .execute()
                return DailyAccessActionResponse(message="Gym removed from the next period", status="deleted")

            membership = self.memberships.get_active_membership(user_id)
            effective_from = parse_datetime((membership or {}).get("end_date"))
            if effective_from is None:
                effective_from = utcnow() + timedelta(days=DAILY_ACCESS_REMOVAL_NOTICE_DAYS)
            self.supabase.table("user_selected_gyms")\
                .update({"status": "removed", "effective_from": effective_from.isoformat()})\
                .eq("id", selection["id"])\
                .execute()
            return DailyAccessActionResponse(
                message="Gym will be removed at the next billing period",
                status="removed",
                effective_from=effective_from
            )
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def summary(self, user_id: str) -> Optional[DailyAccessSummaryResponse]:
        membership, plan = self._daily_access_membership(user_id)
        if not membership:
            return None
        gyms = self.get_selected_gyms(user_id)
        next_cycle = parse_datetime(membership.get("next_cycle_date")) or parse_datetime(membership.get("end_date"))
        return DailyAccessSummaryResponse(
            user_id=user_id,
            gym_slots=len(gyms.current),
            max_gym_slots=gyms.max_slots,
            next_cycle_date=next_cycle,
            current_gyms=gyms.current,
            pending_gyms=gyms.pending
        )

    def rollover_cycles(self, now: Optional[datetime] = None) -> RolloverResult:
        """Activate pending picks and drop removed ones whose effective date has passed"""
        now_iso = (now or utcnow()).isoformat()
        pending = self.supabase.table("user_selected_gyms")\
            .select("id")\
            .eq("status", "pending")\
            .lte("effective_from", now_iso)\
            .execute()
        removed = self.supabase.table("user_selected_gyms")\
            .select("id")\
            .eq("status", "removed")\
            .lte("effective_from", now_iso)\
            .execute()

        activated_ids = [r["id"] for r in pending.data or []]
        removed_ids = [r["id"] for r in removed.data or []]
        if activated_ids:
            self.supabase.table("user_selected_gyms")\
                .update({"status": "active"})\
                .in_("id", activated_ids)\
                .execute()
        if removed_ids:
            self.supabase.table("user_selected_gyms")\
                .delete()\
                .in_("id", removed_ids)\
                .execute()
        if activated_ids or removed_ids:
            logger.info(f"Daily Access rollover: {len(activated_ids)} activated, {len(removed_ids)} removed")
        return RolloverResult(activated=len(activated_ids), removed=len(removed_ids))
