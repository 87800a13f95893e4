import pytest
import stripe
from datetime import date
from unittest.mock import MagicMock
from fastapi import HTTPException
from app.modules.payouts.service import PayoutService

PERIOD = "2026-09-01"


def usage(user_id, club_id, subscription_type, visit_count):
    return {
        "user_id": user_id, "club_id": club_id, "subscription_period": PERIOD,
        "subscription_type": subscription_type, "visit_count": visit_count, "unique_visit": True,
    }


@pytest.fixture
def supabase(make_supabase):
    return make_supabase({
        "clubs": [
            {"id": "gym-a", "name": "Gym A", "stripe_account_id": "acct_a", "payouts_enabled": True},
            {"id": "gym-b", "name": "Gym B", "stripe_account_id": "acct_b", "payouts_enabled": True},
            {"id": "gym-c", "name": "Gym C", "stripe_account_id": None, "payouts_enabled": False},
        ],
        "subscription_usage": [
            usage("u1", "gym-a", "unlimited", 2),
            usage("u2", "gym-b", "credits", 1),
            usage("u3", "gym-c", "credits", 3),
        ],
    })


def test_resolve_period_uses_month_start():
    assert PayoutService.resolve_period(date(2026, 9, 17)) == PERIOD


def test_generate_monthly_payouts_upserts_pending_rows(supabase):
    service = PayoutService(supabase)
    result = service.generate_monthly_payouts(date(2026, 9, 1))

    assert result.clubs_processed == 3
    assert result.total_amount == 2 * 550 + 90 + 3 * 90
    rows = {p["club_id"]: p for p in supabase.rows("payouts_to_clubs")}
    assert rows["gym-a"]["total_amount"] == 1100
    assert all(p["status"] == "pending" for p in rows.values())

    # Regenerating the same period updates in place
    service.generate_monthly_payouts(date(2026, 9, 1))
    assert len(supabase.rows("payouts_to_clubs")) == 3


def test_generate_can_be_limited_to_clubs(supabase):
    result = PayoutService(supabase).generate_monthly_payouts(date(2026, 9, 1), club_ids=["gym-b"])
    assert [p.club_id for p in result.payouts] == ["gym-b"]


def test_generate_with_no_usage(supabase):
    result = PayoutService(supabase).generate_monthly_payouts(date(2026, 1, 1))
    assert result.clubs_processed == 0
    assert result.message == "No usage data for this period"


def test_send_transfers_pays_skips_and_fails(supabase):
    stripe_client = MagicMock()
    stripe_client.create_transfer.return_value = {"id": "tr_1"}
    service = PayoutService(supabase, stripe_client)
    service.generate_monthly_payouts(date(2026, 9, 1))

    result = service.send_payout_transfers(date(2026, 9, 1))
    by_club = {r.club_id: r for r in result.results}

    assert by_club["gym-a"].status == "success"
    assert by_club["gym-a"].stripe_transfer_id == "tr_1"
    assert by_club["gym-b"].status == "skipped"
    assert by_club["gym-c"].status == "failed"
    assert (result.transfers_succeeded, result.transfers_failed) == (1, 1)

    stripe_client.create_transfer.assert_called_once()
    assert stripe_client.create_transfer.call_args.kwargs["amount_ore"] == 110000
    assert stripe_client.create_transfer.call_args.kwargs["destination"] == "acct_a"

    rows = {p["club_id"]: p for p in supabase.rows("payouts_to_clubs")}
    assert rows["gym-a"]["status"] == "paid"
    assert rows["gym-b"]["status"] == "pending"
    assert rows["gym-c"]["status"] == "pending"
    assert rows["gym-c"]["retry_count"] == 1


def test_payout_fails_permanently_after_max_retries(supabase):
    stripe_client = MagicMock()
    stripe_client.create_transfer.side_effect = stripe.InvalidRequestError("insufficient funds", param=None)
    service = PayoutService(supabase, stripe_client)
    service.generate_monthly_payouts(date(2026, 9, 1), club_ids=["gym-a"])

    for _ in range(3):
        service.send_payout_transfers(date(2026, 9, 1))
    row = supabase.rows("payouts_to_clubs")[0]
    assert row["status"] == "failed"
    assert row["retry_count"] == 3
    assert "insufficient funds" in row["error_message"]


def test_send_transfers_requires_stripe(supabase):
    with pytest.raises(HTTPException) as exc:
        PayoutService(supabase).send_payout_transfers(date(2026, 9, 1))
    assert exc.value.status_code == 500


def test_period_summary(supabase):
    service = PayoutService(supabase)
    service.generate_monthly_payouts(date(2026, 9, 1))
    summary = service.get_period_summary(date(2026, 9, 1))
    assert summary.total_clubs == 3
    assert summary.pending_count == 3
    assert summary.formatted_total == "1460.00 SEK"


def test_regenerating_a_paid_period_does_not_pay_twice(supabase):
    stripe_client = MagicMock()
    stripe_client.create_transfer.return_value = {"id": "tr_1"}
    service = PayoutService(supabase, stripe_client)

    service.generate_monthly_payouts(date(2026, 9, 1), club_ids=["gym-a"])
    service.send_payout_transfers(date(2026, 9, 1))
    regenerated = service.generate_monthly_payouts(date(2026, 9, 1), club_ids=["gym-a"])
    second = service.send_payout_transfers(date(2026, 9, 1))

    assert stripe_client.create_transfer.call_count == 1
    assert second.transfers_attempted == 0
    assert regenerated.payouts[0].status == "paid"
    row = supabase.rows("payouts_to_clubs")[0]
    assert (row["status"], row["stripe_transfer_id"]) == ("paid", "tr_1")


def test_regenerating_keeps_failed_status(supabase):
    stripe_client = MagicMock()
    stripe_client.create_transfer.side_effect = stripe.InvalidRequestError("account closed", param=None)
    service = PayoutService(supabase, stripe_client)
    service.generate_monthly_payouts(date(2026, 9, 1), club_ids=["gym-a"])
    for _ in range(3):
        service.send_payout_transfers(date(2026, 9, 1))

    service.generate_monthly_payouts(date(2026, 9, 1), club_ids=["gym-a"])
    assert supabase.rows("payouts_to_clubs")[0]["status"] == "failed"


def test_transfers_carry_an_idempotency_key_per_attempt(supabase):
    stripe_client = MagicMock()
    stripe_client.create_transfer.side_effect = [
        stripe.APIConnectionError("timeout"),
        {"id": "tr_2"},
    ]
    service = PayoutService(supabase, stripe_client)
    service.generate_monthly_payouts(date(2026, 9, 1), club_ids=["gym-a"])
    payout_id = supabase.rows("payouts_to_clubs")[0]["id"]

    service.send_payout_transfers(date(2026, 9, 1))
    service.send_payout_transfers(date(2026, 9, 1))

    keys = [c.kwargs["idempotency_key"] for c in stripe_client.create_transfer.call_args_list]
    assert keys == [f"payout-{payout_id}-attempt-0", f"payout-{payout_id}-attempt-1"]


@pytest.fixture
def two_paying_clubs(make_supabase):
    return make_supabase({
        "clubs": [
            {"id": "gym-a", "name": "Gym A", "stripe_account_id": "acct_a", "payouts_enabled": True},
            {"id": "gym-b", "name": "Gym B", "stripe_account_id": "acct_b", "payouts_enabled": True},
        ],
        "subscription_usage": [
            usage("u1", "gym-a", "unlimited", 1),
            usage("u2", "gym-b", "unlimited", 1),
        ],
    })


def test_database_error_on_one_payout_does_not_stop_the_batch(two_paying_clubs, monkeypatch):
    stripe_client = MagicMock()
    stripe_client.create_transfer.return_value = {"id": "tr_b"}
    service = PayoutService(two_paying_clubs, stripe_client)
    service.generate_monthly_payouts(date(2026, 9, 1))
    gym_a_id = next(p["id"] for p in two_paying_clubs.rows("payouts_to_clubs") if p["club_id"] == "gym-a")

    original_mark = service._mark

    def mark(payout_id, update_data):
        if payout_id == gym_a_id:
            raise Exception("connection reset")
        original_mark(payout_id, update_data)

    monkeypatch.setattr(service, "_mark", mark)
    result = service.send_payout_transfers(date(2026, 9, 1))

    by_club = {r.club_id: r for r in result.results}
    assert by_club["gym-a"].status == "failed"
    assert "connection reset" in by_club["gym-a"].message
    assert by_club["gym-b"].status == "success"
    assert (result.transfers_succeeded, result.transfers_failed) == (1, 1)


def test_unrecorded_transfer_is_not_sent_again(two_paying_clubs, monkeypatch):
    stripe_client = MagicMock()
    stripe_client.create_transfer.return_value = {"id": "tr_a"}
    service = PayoutService(two_paying_clubs, stripe_client)
    service.generate_monthly_payouts(date(2026, 9, 1), club_ids=["gym-a"])

    original_mark = service._mark

    def mark(payout_id, update_data):
        if update_data.get("status") == "paid":
            raise Exception("write timeout")
        original_mark(payout_id, update_data)

    monkeypatch.setattr(service, "_mark", mark)
    result = service.send_payout_transfers(date(2026, 9, 1))
    assert result.results[0].status == "success"
    assert result.results[0].stripe_transfer_id == "tr_a"

    assert two_paying_clubs.rows("payouts_to_clubs")[0]["status"] == "processing"
    service.send_payout_transfers(date(2026, 9, 1))
    assert stripe_client.create_transfer.call_count == 1
