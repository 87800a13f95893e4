from fastapi import APIRouter, Depends, Query
from app.database.supabase_client import get_service_supabase
from app.modules.analytics.schemas import ClubAnalyticsResponse
from app.modules.analytics.service import AnalyticsService
from app.core.dependencies import require_club_admin
from supabase import Client
from typing import Dict, Optional

router = APIRouter(prefix="/analytics", tags=["analytics"])


def get_analytics_service(supabase: Client = Depends(get_service_supabase)) -> AnalyticsService:
    return AnalyticsService(supabase)


@router.get("/clubs/{club_id}", response_model=ClubAnalyticsResponse)
async def club_analytics(
    club_id: str,
    period: str = Query("month", pattern="^(week|month|quarter|year)$"),
    price_per_visit: Optional[float] = Query(None, gt=0),
    user_data: Dict = Depends(require_club_admin),
    service: AnalyticsService = Depends(get_analytics_service)
):
    """Visit, booking and revenue metrics for the club dashboard (club admin)"""
    return service.club_analytics(club_id, period, price_per_visit)
