from app.modules.payouts.calculations import (
    calculate_all_club_payouts, calculate_club_payout, get_payout_summary, get_user_monthly_usage,
    recalculate_unlimited_visit_costs, validate_payout_calculation, format_payout_amount
)

PERIOD = "2026-09-01"


def usage(user_id, club_id, subscription_type, visit_count, unique=True):
    return {
        "user_id": user_id,
        "club_id": club_id,
        "subscription_period": PERIOD,
        "subscription_type": subscription_type,
        "visit_count": visit_count,
        "unique_visit": unique,
    }


ALL_USAGE = [
    usage("u1", "gym-a", "unlimited", 4),
    usage("u1", "gym-b", "unlimited", 2),
    usage("u2", "gym-a", "unlimited", 3),
    usage("u3", "gym-a", "credits", 5),
    usage("u3", "gym-c", "credits", 1),
]


def test_user_monthly_usage_counts_unique_gyms():
    monthly = get_user_monthly_usage("u1", PERIOD, ALL_USAGE)
    assert monthly.unique_gyms_visited == 2
    assert monthly.subscription_type == "unlimited"
    assert {g.club_id for g in monthly.gym_visits} == {"gym-a", "gym-b"}


def test_club_payout_mixes_unlimited_and_credit_members():
    club_usage = [u for u in ALL_USAGE if u["club_id"] == "gym-a"]
    calc = calculate_club_payout("gym-a", "Gym A", PERIOD, club_usage, ALL_USAGE)

    # u1 used two gyms (450/visit), u2 one gym (550/visit), u3 credits (90/visit)
    assert calc.unlimited_amount == 4 * 450 + 3 * 550
    assert calc.credits_amount == 5 * 90
    assert calc.total_amount == calc.unlimited_amount + calc.credits_amount
    assert calc.total_visits == 12
    assert calc.unique_users == 3
    assert validate_payout_calculation(calc).valid


def test_all_club_payouts_skip_unknown_clubs():
    clubs = {"gym-a": {"name": "Gym A"}, "gym-b": {"name": "Gym B"}}
    calcs = calculate_all_club_payouts(PERIOD, clubs, ALL_USAGE)
    assert sorted(c.club_id for c in calcs) == ["gym-a", "gym-b"]

    summary = get_payout_summary(calcs)
    assert summary["total_clubs"] == 2
    assert summary["total_unique_users"] == 3


def test_validation_flags_inconsistent_totals():
    calc = calculate_club_payout("gym-c", "Gym C", PERIOD, [usage("u3", "gym-c", "credits", 1)], ALL_USAGE)
    broken = calc.model_copy(update={"total_amount": calc.total_amount + 1})
    result = validate_payout_calculation(broken)
    assert not result.valid
    assert "Payout amounts do not add up correctly" in result.errors


def test_recalculate_unlimited_visit_costs():
    visits = [
        {"id": "v1", "user_id": "u1", "subscription_type": "unlimited", "cost_to_club": 550},
        {"id": "v2", "user_id": "u1", "subscription_type": "credits", "cost_to_club": 90},
        {"id": "v3", "user_id": "u2", "subscription_type": "unlimited", "cost_to_club": 550},
    ]
    updated = recalculate_unlimited_visit_costs("u1", visits, 3)
    assert updated == [{"id": "v1", "user_id": "u1", "subscription_type": "unlimited", "cost_to_club": 350}]


def test_format_payout_amount():
    assert format_payout_amount(1234.5) == "1234.50 SEK"
