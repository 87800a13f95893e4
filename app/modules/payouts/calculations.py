"""
Monthly club payout calculations.
Unlimited members pay clubs per visit by how many distinct gyms they used that
month; credit members pay a flat amount per visit.
Inputs are subscription_usage / visits rows as returned by Supabase.
"""

from typing import Any, Dict, List
from app.config.business_config import CREDIT_VISIT_PAYOUT, calculate_unlimited_payout_per_visit
from app.modules.payouts.schemas import (
    ClubPayoutCalculation, CreditsUserPayout, GymVisitUsage,
    PayoutValidation, UnlimitedUserPayout, UserMonthlyUsage
)


def get_user_monthly_usage(user_id: str, period: str, usage_data: List[Dict[str, Any]]) -> UserMonthlyUsage:
    user_usage = [
        u for u in usage_data
        if u["user_id"] == user_id and str(u["subscription_period"]) == period
    ]
    return UserMonthlyUsage(
        user_id=user_id,
        subscription_type=user_usage[0].get("subscription_type") if user_usage else "credits",
        unique_gyms_visited=sum(1 for u in user_usage if u.get("unique_visit")),
        gym_visits=[
            GymVisitUsage(
                club_id=u["club_id"],
                visit_count=u.get("visit_count") or 0,
                is_unique=bool(u.get("unique_visit")),
            )
            for u in user_usage
        ],
    )


def calculate_club_payout(
    club_id: str,
    club_name: str,
    period: str,
    usage_data: List[Dict[str, Any]],
    all_usage_data: List[Dict[str, Any]],
) -> ClubPayoutCalculation:
    """
    Payout for one club. `usage_data` is this club's rows; `all_usage_data` is
    every row of the period, needed to count each member's distinct gyms.
    """
    unlimited_users = []
    credits_users = []
    for usage in usage_data:
        visit_count = usage.get("visit_count") or 0
        if usage.get("subscription_type") == "unlimited":
            monthly = get_user_monthly_usage(usage["user_id"], period, all_usage_data)
            per_visit = calculate_unlimited_payout_per_visit(monthly.unique_gyms_visited)
            unlimited_users.append(UnlimitedUserPayout(
                user_id=usage["user_id"],
                unique_gyms_count=monthly.unique_gyms_visited,
                payout_per_visit=per_visit,
                visit_count=visit_count,
                total_payout=per_visit * visit_count,
            ))
        elif usage.get("subscription_type") == "credits":
            credits_users.append(CreditsUserPayout(
                user_id=usage["user_id"],
                visit_count=visit_count,
                total_payout=visit_count * CREDIT_VISIT_PAYOUT,
            ))

    unlimited_amount = sum(u.total_payout for u in unlimited_users)
    unlimited_visits = sum(u.visit_count for u in unlimited_users)
    credits_amount = sum(u.total_payout for u in credits_users)
    credits_visits = sum(u.visit_count for u in credits_users)

    return ClubPayoutCalculation(
        club_id=club_id,
        club_name=club_name,
        period=period,
        unlimited_users=unlimited_users,
        unlimited_amount=unlimited_amount,
        unlimited_visits=unlimited_visits,
        credits_users=credits_users,
        credits_amount=credits_amount,
        credits_visits=credits_visits,
        total_amount=unlimited_amount + credits_amount,
        total_visits=unlimited_visits + credits_visits,
        unique_users=len({u.user_id for u in unlimited_users} | {u.user_id for u in credits_users}),
    )


def calculate_all_club_payouts(
    period: str,
    clubs: Dict[str, Dict[str, Any]],
    usage_data: List[Dict[str, Any]],
) -> List[ClubPayoutCalculation]:
    """Group usage by club and calculate each; usage for clubs missing from `clubs` is ignored."""
    usage_by_club: Dict[str, List[Dict[str, Any]]] = {}
    for usage in usage_data:
        usage_by_club.setdefault(usage["club_id"], []).append(usage)

    payouts = []
    for club_id, club_usage in usage_by_club.items():
        club = clubs.get(club_id)
        if not club:
            continue
        payouts.append(calculate_club_payout(club_id, club.get("name") or "", period, club_usage, usage_data))
    return payouts


def recalculate_unlimited_visit_costs(
    user_id: str,
    visits: List[Dict[str, Any]],
    final_unique_gym_count: int,
) -> List[Dict[str, Any]]:
    """Re-price a member's unlimited visits once the month's final gym count is known."""
    per_visit = calculate_unlimited_payout_per_visit(final_unique_gym_count)
    return [
        {**visit, "cost_to_club": per_visit}
        for visit in visits
        if visit.get("subscription_type") == "unlimited" and visit.get("user_id") == user_id
    ]


def validate_payout_calculation(calculation: ClubPayoutCalculation) -> PayoutValidation:
    errors = []
    if calculation.total_amount < 0:
        errors.append("Total amount cannot be negative")
    if calculation.total_visits != calculation.unlimited_visits + calculation.credits_visits:
        errors.append("Visit counts do not add up correctly")
    if calculation.total_amount != calculation.unlimited_amount + calculation.credits_amount:
        errors.append("Payout amounts do not add up correctly")
    if calculation.unique_users > calculation.total_visits:
        errors.append("Unique users cannot exceed total visits")
    return PayoutValidation(valid=not errors, errors=errors)


def format_payout_amount(amount: float) -> str:
    return f"{amount:.2f} SEK"


def get_payout_summary(calculations: List[ClubPayoutCalculation]) -> Dict[str, Any]:
    user_ids = set()
    for c in calculations:
        user_ids.update(u.user_id for u in c.unlimited_users)
        user_ids.update(u.user_id for u in c.credits_users)
    return {
        "total_clubs": len(calculations),
        "total_amount": sum(c.total_amount for c in calculations),
        "total_visits": sum(c.total_visits for c in calculations),
        "total_unique_users": len(user_ids),
        "unlimited_amount": sum(c.unlimited_amount for c in calculations),
        "credits_amount": sum(c.credits_amount for c in calculations),
    }
