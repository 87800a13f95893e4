"""
Business Configuration
Pricing, payout and visit-limit values for the FitPass platform.
Used by the visits, payouts and memberships modules. Validated at import.
Amounts are in SEK.
"""

import math

# Unlimited subscription payouts ("Modell C"): paid per visit, by how many
# distinct gyms the member visited in the month
UNLIMITED_PAYOUTS = {
    "ONE_GYM": 550,
    "TWO_GYMS": 450,
    "THREE_PLUS": 350,
}

# Credit system
CREDIT_VISIT_PAYOUT = 90  # SEK per credit visit
DEFAULT_CREDITS_PER_VISIT = 1

# Platform fees
PLATFORM_FEE_PERCENTAGE = 0  # 0 = no fee, 0.15 = 15%
MINIMUM_PAYOUT_AMOUNT = 100
MAX_PAYOUT_RETRIES = 3

# Static fallback values (used only when membership_plans is unavailable)
SUBSCRIPTION_PRICES_FALLBACK = {
    "UNLIMITED": 749,
    "CREDITS_10": 299,
    "CREDITS_20": 499,
    "TRIAL": 0,
}

CREDITS_PER_TIER_FALLBACK = {
    "CREDITS_10": 10,
    "CREDITS_20": 20,
}

# Stripe fees (reference)
STRIPE_FEES = {
    "PERCENTAGE": 0.014,  # 1.4%
    "FIXED": 1.8,
}

# Visit limits
VISIT_COOLDOWN_HOURS = 4
MAX_VISITS_PER_DAY = 3

# Stripe Connect
CONNECT_COUNTRY = "SE"
CONNECT_BUSINESS_TYPE = "company"
CONNECT_PAYOUT_SCHEDULE = {"interval": "monthly", "monthly_anchor": 1}

# Trial period
TRIAL_PERIOD_DAYS = 7
TRIAL_CREDITS = 5

# Daily Access
DAILY_ACCESS_DEFAULT_SLOTS = 3
DAILY_ACCESS_REMOVAL_NOTICE_DAYS = 30


def _round(value: float) -> int:
    """Round half up, so 0.5 SEK always goes to the club."""
    return int(math.floor(value + 0.5))


def calculate_unlimited_payout_per_visit(unique_gyms_visited: int) -> int:
    if unique_gyms_visited == 1:
        return UNLIMITED_PAYOUTS["ONE_GYM"]
    if unique_gyms_visited == 2:
        return UNLIMITED_PAYOUTS["TWO_GYMS"]
    if unique_gyms_visited >= 3:
        return UNLIMITED_PAYOUTS["THREE_PLUS"]
    return 0


def calculate_platform_fee(gross_amount: float) -> int:
    return _round(gross_amount * PLATFORM_FEE_PERCENTAGE)


def calculate_net_payout(gross_amount: float) -> float:
    return gross_amount - calculate_platform_fee(gross_amount)


def estimate_stripe_fee(amount: float) -> int:
    return _round(amount * STRIPE_FEES["PERCENTAGE"] + STRIPE_FEES["FIXED"])


def get_configuration_errors() -> list:
    errors = []
    if UNLIMITED_PAYOUTS["ONE_GYM"] <= 0:
        errors.append("ONE_GYM must be positive")
    if UNLIMITED_PAYOUTS["TWO_GYMS"] <= 0:
        errors.append("TWO_GYMS must be positive")
    if UNLIMITED_PAYOUTS["THREE_PLUS"] <= 0:
        errors.append("THREE_PLUS must be positive")
    if CREDIT_VISIT_PAYOUT <= 0:
        errors.append("CREDIT_VISIT_PAYOUT must be positive")
    if UNLIMITED_PAYOUTS["ONE_GYM"] < UNLIMITED_PAYOUTS["THREE_PLUS"]:
        errors.append("ONE_GYM should be >= THREE_PLUS")
    if MINIMUM_PAYOUT_AMOUNT < 0:
        errors.append("MINIMUM_PAYOUT_AMOUNT cannot be negative")
    if PLATFORM_FEE_PERCENTAGE < 0 or PLATFORM_FEE_PERCENTAGE > 1:
        errors.append("PLATFORM_FEE_PERCENTAGE must be 0-1")
    return errors


def validate_configuration() -> None:
    errors = get_configuration_errors()
    if errors:
        raise ValueError("Config validation failed:\n" + "\n".join(errors))


validate_configuration()
