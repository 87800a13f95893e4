from supabase import Client
from app.config.business_config import (
    CREDIT_VISIT_PAYOUT, DEFAULT_CREDITS_PER_VISIT, MAX_VISITS_PER_DAY, VISIT_COOLDOWN_HOURS,
    calculate_unlimited_payout_per_visit
)
from app.core.time_utils import add_months, month_start, parse_datetime, utcnow
from app.database.supabase_client import first_row
from app.modules.visits.schemas import LogVisitResponse, MonthlyVisitStats, VisitResponse
from datetime import datetime, timedelta
from typing import List, Optional
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)

SUBSCRIPTION_TYPES = ("unlimited", "credits")


class VisitService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _check_visit_limits(self, user_id: str, club_id: str, visit_time: datetime) -> None:
        cooldown_start = visit_time - timedelta(hours=VISIT_COOLDOWN_HOURS)
        recent = self.supabase.table("visits")\
            .select("id")\
            .eq("user_id", user_id)\
            .eq("club_id", club_id)\
            .gt("created_at", cooldown_start.isoformat())\
            .lte("created_at", visit_time.isoformat())\
            .limit(1)\
            .execute()
        if recent.data:
            raise HTTPException(
                status_code=409,
                detail=f"Already checked in at this club within the last {VISIT_COOLDOWN_HOURS} hours"
            )

        day_start = visit_time.replace(hour=0, minute=0, second=0, microsecond=0)
        today = self.supabase.table("visits")\
            .select("id")\
            .eq("user_id", user_id)\
            .gte("created_at", day_start.isoformat())\
            .lt("created_at", (day_start + timedelta(days=1)).isoformat())\
            .execute()
        if len(today.data or []) >= MAX_VISITS_PER_DAY:
            raise HTTPException(
                status_code=429,
                detail=f"Daily visit limit reached ({MAX_VISITS_PER_DAY} visits per day)"
            )

    def log_visit(
        self,
        user_id: str,
        club_id: str,
        subscription_type: str,
        visit_date: Optional[datetime] = None,
        booking_id: Optional[str] = None
    ) -> LogVisitResponse:
        """
        Record a check-in and the club's cost for it, and bump the monthly
        subscription_usage row used for payouts. Credits are not deducted here.
        """
        if subscription_type not in SUBSCRIPTION_TYPES:
            raise HTTPException(status_code=400, detail='subscription_type must be "unlimited" or "credits"')
        try:
            visit_time = parse_datetime(visit_date) if visit_date else utcnow()
            period = month_start(visit_time).isoformat()

            club = first_row(self.supabase.table("clubs")
                             .select("id, name, credits")
                             .eq("id", club_id)
                             .limit(1)
                             .execute())
            if not club:
                raise HTTPException(status_code=404, detail="Club not found")

            self._check_visit_limits(user_id, club_id, visit_time)

            existing_usage = first_row(self.supabase.table("subscription_usage")
                                       .select("id, visit_count, unique_visit")
                                       .eq("user_id", user_id)
                                       .eq("club_id", club_id)
                                       .eq("subscription_period", period)
                                       .limit(1)
                                       .execute())
            is_unique = existing_usage is None

            credits_used = 0
            if subscription_type == "credits":
                credits_used = club.get("credits") or DEFAULT_CREDITS_PER_VISIT
                cost_to_club = CREDIT_VISIT_PAYOUT
            else:
                unique_rows = self.supabase.table("subscription_usage")\
                    .select("club_id")\
                    .eq("user_id", user_id)\
                    .eq("subscription_period", period)\
                    .eq("subscription_type", "unlimited")\
                    .eq("unique_visit", True)\
                    .execute()
                unique_gyms = len(unique_rows.data or [])
                if is_unique:
                    unique_gyms += 1
                cost_to_club = calculate_unlimited_payout_per_visit(unique_gyms)

            visit_result = self.supabase.table("visits").insert({
                "user_id": user_id,
                "club_id": club_id,
                "booking_id": booking_id,
                "visit_date": visit_time.isoformat(),
                "created_at": visit_time.isoformat(),
                "credits_used": credits_used,
                "subscription_type": subscription_type,
                "cost_to_club": cost_to_club,
                "unique_monthly_visit": is_unique,
                "payout_processed": False,
            }).execute()
            if not visit_result.data:
                raise HTTPException(status_code=500, detail="Failed to insert visit")

            visit_count = ((existing_usage or {}).get("visit_count") or 0) + 1
            self.supabase.table("subscription_usage").upsert({
                "user_id": user_id,
                "club_id": club_id,
                "subscription_period": period,
                "subscription_type": subscription_type,
                "visit_count": visit_count,
                "unique_visit": is_unique or bool((existing_usage or {}).get("unique_visit")),
            }, on_conflict="user_id,club_id,subscription_period").execute()

            logger.info(
                f"Logged {subscription_type} visit for user {user_id} at club {club_id}: cost {cost_to_club} SEK"
            )
            return LogVisitResponse(
                visit_id=visit_result.data[0]["id"],
                cost_to_club=cost_to_club,
                unique_monthly_visit=is_unique,
                visit_count=visit_count,
                credits_used=credits_used
            )
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_user_visits(self, user_id: str) -> List[VisitResponse]:
        try:
            result = self.supabase.table("visits")\
                .select("*, clubs:club_id (name, type, image_url)")\
                .eq("user_id", user_id)\
                .order("visit_date", desc=True)\
                .execute()
            return [VisitResponse(**v) for v in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def recent_visits(self, user_id: str, limit: int = 5) -> List[VisitResponse]:
        try:
            result = self.supabase.table("visits")\
                .select("*, clubs:club_id (name, type, image_url)")\
                .eq("user_id", user_id)\
                .order("visit_date", desc=True)\
                .limit(limit)\
                .execute()
            return [VisitResponse(**v) for v in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def monthly_stats(self, user_id: str, months: int = 6,
                      now: Optional[datetime] = None) -> List[MonthlyVisitStats]:
        """Visits, distinct clubs and credits per month, oldest first, empty months included"""
        now = now or utcnow()
        first = month_start(add_months(now, -(months - 1)))
        try:
            result = self.supabase.table("visits")\
                .select("club_id, visit_date, credits_used")\
                .eq("user_id", user_id)\
                .gte("visit_date", first.isoformat())\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        buckets = {}
        for i in range(months):
            key = add_months(datetime(first.year, first.month, 1), i).strftime("%Y-%m")
            buckets[key] = {"visits": 0, "clubs": set(), "credits_used": 0}
        for visit in result.data or []:
            visited = parse_datetime(visit.get("visit_date"))
            if visited is None:
                continue
            bucket = buckets.get(visited.strftime("%Y-%m"))
            if bucket is None:
                continue
            bucket["visits"] += 1
            bucket["clubs"].add(visit.get("club_id"))
            bucket["credits_used"] += visit.get("credits_used") or 0

        return [
            MonthlyVisitStats(
                month=key,
                visits=b["visits"],
                unique_clubs=len(b["clubs"]),
                credits_used=b["credits_used"]
            )
            for key, b in buckets.items()
        ]
