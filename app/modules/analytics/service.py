from supabase import Client
from app.database.supabase_client import first_row
from app.modules.analytics.metrics import PERIODS, calculate_analytics_metrics
from app.modules.analytics.schemas import ClubAnalyticsResponse
from typing import Optional
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)


class AnalyticsService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def club_analytics(self, club_id: str, period: str = "month",
                       price_per_visit: Optional[float] = None) -> ClubAnalyticsResponse:
        if period not in PERIODS:
            raise HTTPException(status_code=400, detail=f"period must be one of {', '.join(PERIODS)}")
        try:
            club = first_row(self.supabase.table("clubs")
                             .select("id, avg_rating")
                             .eq("id", club_id)
                             .limit(1)
                             .execute())
            if not club:
                raise HTTPException(status_code=404, detail="Club not found")

            visits = self.supabase.table("visits")\
                .select("id, user_id, created_at, cost_to_club")\
                .eq("club_id", club_id)\
                .execute()
            bookings = self.supabase.table("bookings")\
                .select("id, user_id, created_at, status")\
                .eq("club_id", club_id)\
                .execute()
            reviews = self.supabase.table("reviews")\
                .select("id, rating, created_at")\
                .eq("club_id", club_id)\
                .execute()

            metrics = calculate_analytics_metrics(
                visits.data,
                bookings.data,
                reviews.data,
                period,
                price_per_visit=price_per_visit,
                club_avg_rating=club.get("avg_rating"),
            )
            return ClubAnalyticsResponse(club_id=club_id, **metrics)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error building analytics for club {club_id}: {e}")
            raise HTTPException(status_code=500, detail=str(e))
