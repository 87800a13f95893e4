"""
Club analytics aggregation.
Pure functions over visit/booking/review rows (dicts with ISO `created_at`).
`now` is injectable everywhere so windows are reproducible.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from app.core.time_utils import add_months, parse_datetime, utcnow

PERIODS = ("week", "month", "quarter", "year")
DEFAULT_PRICE_PER_VISIT = 20
TREND_PERIODS = 7
MONTHLY_BREAKDOWN_MONTHS = 6
WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def calculate_percentage_change(current: float, previous: float) -> Dict[str, Any]:
    if previous == 0:
        return {
            "value": 100 if current > 0 else 0,
            "trend": "up" if current > 0 else "neutral",
        }
    change = (current - previous) / previous * 100
    if change > 0:
        trend = "up"
    elif change < 0:
        trend = "down"
    else:
        trend = "neutral"
    return {"value": abs(change), "trend": trend}


def get_period_start(period: str, now: Optional[datetime] = None) -> datetime:
    now = now or utcnow()
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return add_months(now, -1)
    if period == "quarter":
        return add_months(now, -3)
    if period == "year":
        return add_months(now, -12)
    raise ValueError(f"Unknown analytics period: {period}")


def _created(row: Dict[str, Any]) -> Optional[datetime]:
    return parse_datetime(row.get("created_at"))


def _short_date(dt: datetime) -> str:
    return f"{MONTH_ABBR[dt.month - 1]} {dt.day}"


def _trend_window(period: str, now: datetime, i: int) -> Tuple[datetime, datetime, str]:
    if period == "week":
        end = now - timedelta(days=7 * i)
        return end - timedelta(days=7), end, _short_date(end)
    if period == "month":
        end = add_months(now, -i)
        return add_months(end, -1), end, MONTH_ABBR[end.month - 1]
    if period == "quarter":
        end = add_months(now, -3 * i)
        return add_months(end, -3), end, f"Q{(end.month - 1) // 3 + 1}"
    if period == "year":
        end = add_months(now, -12 * i)
        return add_months(end, -12), end, str(end.year)
    raise ValueError(f"Unknown analytics period: {period}")


def generate_trend_data(
    visits: List[Dict[str, Any]],
    period: str,
    price_per_visit: float = DEFAULT_PRICE_PER_VISIT,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Visit counts for the last 7 windows of `period`, oldest first. Windows are [start, end)."""
    now = now or utcnow()
    dates = [d for d in (_created(v) for v in visits) if d is not None]
    trend = []
    for i in range(TREND_PERIODS - 1, -1, -1):
        start, end, label = _trend_window(period, now, i)
        count = sum(1 for d in dates if start <= d < end)
        trend.append({
            "date": label,
            "visits": count,
            "bookings": 0,
            "revenue": count * price_per_visit,
        })
    return trend


def generate_daily_visit_data(
    visits: List[Dict[str, Any]],
    period: str,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """One zero-filled entry per calendar day from the period start up to now."""
    now = now or utcnow()
    start = get_period_start(period, now)
    daily: Dict[str, int] = {}
    day = start.date()
    while day <= now.date():
        daily[day.isoformat()] = 0
        day += timedelta(days=1)

    for visit in visits:
        dt = _created(visit)
        if dt is None or dt < start or dt > now:
            continue
        key = dt.date().isoformat()
        if key in daily:
            daily[key] += 1

    result = []
    for key in sorted(daily):
        d = datetime.fromisoformat(key)
        result.append({"date": _short_date(d), "day": key, "value": daily[key]})
    return result


def generate_monthly_breakdown(visits: List[Dict[str, Any]]) -> List[Tuple[str, int]]:
    """(YYYY-MM, visits) for the last 6 months that have visits, ascending."""
    monthly: Dict[str, int] = {}
    for visit in visits:
        dt = _created(visit)
        if dt is None:
            continue
        key = f"{dt.year}-{dt.month:02d}"
        monthly[key] = monthly.get(key, 0) + 1
    return sorted(monthly.items())[-MONTHLY_BREAKDOWN_MONTHS:]


def calculate_analytics_metrics(
    visits: Optional[List[Dict[str, Any]]],
    bookings: Optional[List[Dict[str, Any]]],
    reviews: Optional[List[Dict[str, Any]]],
    period: str,
    price_per_visit: Optional[float] = None,
    club_avg_rating: Optional[float] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    visits = visits or []
    bookings = bookings or []
    reviews = reviews or []
    price = price_per_visit or DEFAULT_PRICE_PER_VISIT
    now = now or utcnow()

    period_start = get_period_start(period, now)
    previous_start = period_start - (now - period_start)

    current_visits, previous_visits = [], []
    for visit in visits:
        dt = _created(visit)
        if dt is None:
            continue
        if dt >= period_start:
            current_visits.append(visit)
        if previous_start < dt <= period_start:
            previous_visits.append(visit)

    current_bookings, previous_bookings = [], []
    for booking in bookings:
        dt = _created(booking)
        if dt is None:
            continue
        if dt > period_start:
            current_bookings.append(booking)
        elif dt > previous_start:
            previous_bookings.append(booking)

    current_revenue = len(current_visits) * price
    previous_revenue = len(previous_visits) * price

    visits_by_day: Dict[str, int] = {}
    for visit in current_visits:
        day = WEEKDAYS[_created(visit).weekday()]
        visits_by_day[day] = visits_by_day.get(day, 0) + 1
    top_day = sorted(visits_by_day.items(), key=lambda item: item[1], reverse=True)[0] if visits_by_day else None

    trend_data = generate_trend_data(visits, period, price, now)

    return {
        "period": period,
        "period_start": period_start.isoformat(),
        "total_visits": len(visits),
        "unique_visitors": len({v.get("user_id") for v in visits}),
        "total_bookings": len(bookings),
        "total_reviews": len(reviews),
        "average_rating": f"{club_avg_rating:.1f}" if club_avg_rating else "0.0",
        "estimated_revenue": len(visits) * price,
        "current_visits": len(current_visits),
        "previous_visits": len(previous_visits),
        "current_bookings": len(current_bookings),
        "previous_bookings": len(previous_bookings),
        "current_period_revenue": current_revenue,
        "previous_period_revenue": previous_revenue,
        "visits_trend": calculate_percentage_change(len(current_visits), len(previous_visits)),
        "bookings_trend": calculate_percentage_change(len(current_bookings), len(previous_bookings)),
        "revenue_trend": calculate_percentage_change(current_revenue, previous_revenue),
        "visits_by_day": visits_by_day,
        "top_day": top_day,
        "trend_data": trend_data,
        "daily_visit_data": generate_daily_visit_data(visits, period, now),
        "visits_trend_array": [d["visits"] for d in trend_data],
        "revenue_trend_array": [d["revenue"] for d in trend_data],
        "monthly_breakdown": generate_monthly_breakdown(visits),
    }
