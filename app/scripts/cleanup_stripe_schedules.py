"""
Cleanup Stripe Subscription Schedules
Lists or cancels subscription schedules left behind by plan changes.

Usage:
    python -m app.scripts.cleanup_stripe_schedules --list     # List all schedules
    python -m app.scripts.cleanup_stripe_schedules --cancel   # Cancel all active schedules
"""

import sys
import stripe
from app.integrations.stripe_client import StripeClient, from_timestamp, get_stripe_client
from typing import Any, Dict, List, Optional

FINISHED_STATUSES = ("canceled", "completed")
USAGE = (
    "Usage:\n"
    "  python -m app.scripts.cleanup_stripe_schedules --list    # List all schedules\n"
    "  python -m app.scripts.cleanup_stripe_schedules --cancel  # Cancel all active schedules"
)


def _iso(timestamp: Optional[int]) -> str:
    return from_timestamp(timestamp) or "ongoing"


def _phase_price(phase: Dict[str, Any]) -> Optional[str]:
    items = phase.get("items") or []
    if not items:
        return None
    price = items[0].get("price")
    return price if isinstance(price, str) or price is None else price.get("id")


def list_schedules(client: StripeClient) -> List[Any]:
    print("Fetching all subscription schedules...\n")
    schedules = list(client.iter_schedules())
    if not schedules:
        print("No subscription schedules found")
        return []

    print(f"Found {len(schedules)} schedules:\n")
    for index, schedule in enumerate(schedules, start=1):
        phases = schedule.get("phases") or []
        subscription = schedule.get("subscription")
        if subscription is not None and not isinstance(subscription, str):
            subscription = subscription.get("id")
        print(f"{index}. Schedule ID: {schedule['id']}")
        print(f"   Status: {schedule.get('status')}")
        print(f"   Subscription: {subscription}")
        print(f"   Phases: {len(phases)}")
        for phase_index, phase in enumerate(phases, start=1):
            print(f"     Phase {phase_index}: {_iso(phase.get('start_date'))} -> {_iso(phase.get('end_date'))}")
            print(f"     Price: {_phase_price(phase)}")
        print("")
    return schedules


def cancel_schedules(client: StripeClient) -> Dict[str, int]:
    schedules = list_schedules(client)
    counts = {"canceled": 0, "errors": 0, "skipped": 0}
    if not schedules:
        return counts

    print("\nCanceling all active schedules...\n")
    for schedule in schedules:
        if schedule.get("status") in FINISHED_STATUSES:
            print(f"Skipping {schedule['id']} (already {schedule['status']})")
            counts["skipped"] += 1
            continue
        try:
            client.cancel_schedule(schedule["id"])
            print(f"Canceled: {schedule['id']}")
            counts["canceled"] += 1
        except stripe.StripeError as e:
            print(f"Failed to cancel {schedule['id']}: {e}", file=sys.stderr)
            counts["errors"] += 1

    print("\nSummary:")
    print(f"   Canceled: {counts['canceled']}")
    print(f"   Errors: {counts['errors']}")
    print(f"   Skipped: {counts['skipped']}")
    return counts


def main(argv: Optional[List[str]] = None, client: Optional[StripeClient] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print(USAGE)
        return 0

    command = args[0]
    if command not in ("--list", "--cancel"):
        print(f"Unknown command: {command}", file=sys.stderr)
        print("\nValid commands: --list, --cancel")
        return 1

    try:
        client = client or get_stripe_client()
        if command == "--list":
            list_schedules(client)
        else:
            cancel_schedules(client)
    except (stripe.StripeError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
