import pytest
from datetime import datetime, timedelta, timezone
from app.modules.analytics.metrics import (
    calculate_analytics_metrics, calculate_percentage_change, generate_daily_visit_data,
    generate_monthly_breakdown, generate_trend_data, get_period_start
)

NOW = datetime(2026, 10, 15, 12, 0, tzinfo=timezone.utc)


def visit(days_ago, user_id="u1"):
    return {"user_id": user_id, "created_at": (NOW - timedelta(days=days_ago)).isoformat()}


def test_percentage_change():
    assert calculate_percentage_change(5, 0) == {"value": 100, "trend": "up"}
    assert calculate_percentage_change(0, 0) == {"value": 0, "trend": "neutral"}
    assert calculate_percentage_change(5, 10) == {"value": 50.0, "trend": "down"}
    assert calculate_percentage_change(15, 10) == {"value": 50.0, "trend": "up"}


def test_period_start():
    assert get_period_start("week", NOW) == NOW - timedelta(days=7)
    assert get_period_start("month", NOW) == datetime(2026, 9, 15, 12, tzinfo=timezone.utc)
    assert get_period_start("quarter", NOW) == datetime(2026, 7, 15, 12, tzinfo=timezone.utc)
    with pytest.raises(ValueError):
        get_period_start("decade", NOW)


def test_trend_has_seven_windows_oldest_first():
    trend = generate_trend_data([visit(1), visit(2), visit(10)], "week", price_per_visit=50, now=NOW)
    assert len(trend) == 7
    assert trend[-1]["visits"] == 2
    assert trend[-1]["revenue"] == 100
    assert trend[-2]["visits"] == 1


def test_daily_visit_data_is_zero_filled():
    daily = generate_daily_visit_data([visit(0), visit(0), visit(3)], "week", now=NOW)
    assert len(daily) == 8
    assert daily[-1]["value"] == 2
    assert daily[-1]["day"] == "2026-10-15"
    assert sum(d["value"] for d in daily) == 3


def test_metrics_split_current_and_previous_period():
    visits = [visit(1, "u1"), visit(2, "u2"), visit(3, "u1"), visit(9, "u3")]
    bookings = [{"created_at": (NOW - timedelta(days=1)).isoformat()}]
    metrics = calculate_analytics_metrics(visits, bookings, [{"rating": 5}], "week",
                                          price_per_visit=100, club_avg_rating=4.25, now=NOW)
    assert metrics["total_visits"] == 4
    assert metrics["unique_visitors"] == 3
    assert metrics["current_visits"] == 3
    assert metrics["previous_visits"] == 1
    assert metrics["current_period_revenue"] == 300
    assert metrics["visits_trend"] == {"value": 200.0, "trend": "up"}
    assert metrics["average_rating"] == "4.2"
    assert metrics["total_reviews"] == 1
    assert metrics["estimated_revenue"] == 400
    assert len(metrics["visits_trend_array"]) == 7


def test_metrics_with_no_data():
    metrics = calculate_analytics_metrics(None, None, None, "month", now=NOW)
    assert metrics["total_visits"] == 0
    assert metrics["top_day"] is None
    assert metrics["average_rating"] == "0.0"
    assert metrics["monthly_breakdown"] == []


def test_year_period_start():
    assert get_period_start("year", NOW) == datetime(2025, 10, 15, 12, tzinfo=timezone.utc)
    leap_day = datetime(2028, 2, 29, 9, 30, tzinfo=timezone.utc)
    assert get_period_start("year", leap_day) == datetime(2027, 2, 28, 9, 30, tzinfo=timezone.utc)


def test_trend_labels_per_period():
    week = [t["date"] for t in generate_trend_data([], "week", now=NOW)]
    assert week[-1] == "Oct 15"
    assert week[0] == "Sep 3"

    month = [t["date"] for t in generate_trend_data([], "month", now=NOW)]
    assert month == ["Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct"]

    quarter = [t["date"] for t in generate_trend_data([], "quarter", now=NOW)]
    assert quarter == ["Q2", "Q3", "Q4", "Q1", "Q2", "Q3", "Q4"]

    year = [t["date"] for t in generate_trend_data([], "year", now=NOW)]
    assert year == ["2020", "2021", "2022", "2023", "2024", "2025", "2026"]


def test_month_trend_counts_calendar_months():
    visits = [
        {"created_at": datetime(2026, 10, 1, tzinfo=timezone.utc).isoformat()},
        {"created_at": datetime(2026, 9, 20, tzinfo=timezone.utc).isoformat()},
        {"created_at": datetime(2026, 9, 10, tzinfo=timezone.utc).isoformat()},
    ]
    trend = generate_trend_data(visits, "month", now=NOW)
    # Windows run [Sep 15, Oct 15) and [Aug 15, Sep 15)
    assert trend[-1]["visits"] == 2
    assert trend[-2]["visits"] == 1


def test_monthly_breakdown_keeps_last_six_months_ascending():
    visits = [
        {"created_at": datetime(2026, month, 3, tzinfo=timezone.utc).isoformat()}
        for month in range(1, 9)
    ] + [{"created_at": datetime(2026, 8, 20, tzinfo=timezone.utc).isoformat()}, {"created_at": None}]

    breakdown = generate_monthly_breakdown(visits)
    assert [key for key, _ in breakdown] == ["2026-03", "2026-04", "2026-05", "2026-06", "2026-07", "2026-08"]
    assert breakdown[-1] == ("2026-08", 2)


def test_booking_windows_exclude_the_period_start_from_current():
    period_start = NOW - timedelta(days=7)
    previous_start = NOW - timedelta(days=14)
    bookings = [
        {"created_at": (period_start + timedelta(seconds=1)).isoformat()},
        {"created_at": period_start.isoformat()},
        {"created_at": (previous_start + timedelta(seconds=1)).isoformat()},
        {"created_at": previous_start.isoformat()},
    ]
    metrics = calculate_analytics_metrics([], bookings, [], "week", now=NOW)
    assert metrics["current_bookings"] == 1
    assert metrics["previous_bookings"] == 2
    assert metrics["total_bookings"] == 4
    assert metrics["bookings_trend"] == {"value": 50.0, "trend": "down"}
