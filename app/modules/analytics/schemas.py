from pydantic import BaseModel
from typing import Optional, List, Dict, Tuple


class TrendChange(BaseModel):
    value: float
    trend: str  # up | down | neutral


class TrendPoint(BaseModel):
    date: str
    visits: int
    bookings: int = 0
    revenue: float


class DailyVisitPoint(BaseModel):
    date: str
    day: str
    value: int


class ClubAnalyticsResponse(BaseModel):
    club_id: str
    period: str
    period_start: str
    total_visits: int
    unique_visitors: int
    total_bookings: int
    total_reviews: int
    average_rating: str
    estimated_revenue: float
    current_visits: int
    previous_visits: int
    current_bookings: int
    previous_bookings: int
    current_period_revenue: float
    previous_period_revenue: float
    visits_trend: TrendChange
    bookings_trend: TrendChange
    revenue_trend: TrendChange
    visits_by_day: Dict[str, int]
    top_day: Optional[Tuple[str, int]] = None
    trend_data: List[TrendPoint]
    daily_visit_data: List[DailyVisitPoint]
    visits_trend_array: List[int]
    revenue_trend_array: List[float]
    monthly_breakdown: List[Tuple[str, int]]
