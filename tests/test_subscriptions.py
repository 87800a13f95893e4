import pytest
import stripe
from unittest.mock import MagicMock
from fastapi import HTTPException
from app.modules.subscriptions.service import SubscriptionService

PERIOD_END = 1790812800  # 2026-10-01


@pytest.fixture
def supabase(make_supabase):
    return make_supabase({
        "membership_plans": [
            {"id": "plan-basic", "title": "Basic", "credits": 10, "stripe_price_id": "price_basic"},
            {"id": "plan-plus", "title": "Plus", "credits": 20, "stripe_price_id": "price_plus"},
        ],
        "profiles": [{"id": "u1", "display_name": "Ada", "stripe_customer_id": None}],
        "memberships": [{
            "id": "m1", "user_id": "u1", "plan_id": "plan-basic", "is_active": True,
            "stripe_subscription_id": "sub_1", "stripe_status": "active",
            "created_at": "2026-09-01T00:00:00+00:00",
        }],
    })


@pytest.fixture
def stripe_client():
    client = MagicMock()
    client.retrieve_subscription.return_value = {
        "id": "sub_1",
        "status": "active",
        "schedule": None,
        "current_period_start": PERIOD_END - 30 * 86400,
        "current_period_end": PERIOD_END,
        "items": {"data": [{"price": {"id": "price_basic"}}]},
    }
    client.retrieve_price.side_effect = lambda price_id: {"id": price_id, "currency": "sek"}
    client.create_schedule_from_subscription.return_value = {
        "id": "sched_1", "phases": [{"start_date": PERIOD_END - 30 * 86400}],
    }
    client.modify_schedule.return_value = {"id": "sched_1"}
    return client


def test_schedule_plan_change_builds_two_phase_schedule(supabase, stripe_client):
    change = SubscriptionService(supabase, stripe_client).schedule_plan_change("u1", "price_plus")

    assert change.status == "confirmed"
    assert change.scheduled_plan_id == "plan-plus"
    assert change.stripe_schedule_id == "sched_1"
    stripe_client.create_schedule_from_subscription.assert_called_once_with("sub_1")
    kwargs = stripe_client.modify_schedule.call_args.kwargs
    assert kwargs["end_behavior"] == "release"
    assert kwargs["proration_behavior"] == "none"
    first, second = kwargs["phases"]
    assert first["items"] == [{"price": "price_basic", "quantity": 1}]
    assert first["end_date"] == PERIOD_END
    assert second["items"] == [{"price": "price_plus", "quantity": 1}]
    assert supabase.rows("memberships")[0]["next_cycle_date"] == "2026-10-01T00:00:00+00:00"


def test_rescheduling_same_price_returns_existing_change(supabase, stripe_client):
    service = SubscriptionService(supabase, stripe_client)
    first = service.schedule_plan_change("u1", "price_plus")
    again = service.schedule_plan_change("u1", "price_plus")
    assert again.id == first.id
    assert stripe_client.create_schedule_from_subscription.call_count == 1


def test_replacing_a_scheduled_change_releases_old_schedule(supabase, stripe_client):
    supabase.tables["membership_plans"].append(
        {"id": "plan-max", "title": "Max", "credits": 30, "stripe_price_id": "price_max"}
    )
    service = SubscriptionService(supabase, stripe_client)
    first = service.schedule_plan_change("u1", "price_plus")
    service.schedule_plan_change("u1", "price_max")

    stripe_client.release_schedule.assert_called_once_with("sched_1")
    statuses = {c["id"]: c["status"] for c in supabase.rows("membership_scheduled_changes")}
    assert statuses[first.id] == "canceled"


def test_schedule_rejects_same_plan_and_currency_mismatch(supabase, stripe_client):
    service = SubscriptionService(supabase, stripe_client)
    with pytest.raises(HTTPException) as exc:
        service.schedule_plan_change("u1", "price_basic")
    assert exc.value.status_code == 400

    stripe_client.retrieve_price.side_effect = lambda price_id: {
        "id": price_id, "currency": "sek" if price_id == "price_basic" else "eur"
    }
    with pytest.raises(HTTPException) as exc:
        service.schedule_plan_change("u1", "price_plus")
    assert exc.value.status_code == 400
    assert "Currency mismatch" in exc.value.detail


def test_schedule_requires_subscription_and_known_price(supabase, stripe_client):
    service = SubscriptionService(supabase, stripe_client)
    with pytest.raises(HTTPException) as exc:
        service.schedule_plan_change("u1", "price_nope")
    assert exc.value.status_code == 400
    with pytest.raises(HTTPException) as exc:
        service.schedule_plan_change("nobody", "price_plus")
    assert exc.value.status_code == 404


def test_stripe_errors_map_to_502(supabase, stripe_client):
    stripe_client.retrieve_subscription.side_effect = stripe.APIConnectionError("network down")
    with pytest.raises(HTTPException) as exc:
        SubscriptionService(supabase, stripe_client).schedule_plan_change("u1", "price_plus")
    assert exc.value.status_code == 502


def test_cancel_scheduled_change(supabase, stripe_client):
    service = SubscriptionService(supabase, stripe_client)
    service.schedule_plan_change("u1", "price_plus")
    cancelled = service.cancel_scheduled_change("u1")

    assert cancelled.status == "canceled"
    stripe_client.release_schedule.assert_called_with("sched_1")
    assert supabase.rows("memberships")[0]["next_cycle_date"] is None
    with pytest.raises(HTTPException) as exc:
        service.cancel_scheduled_change("u1")
    assert exc.value.status_code == 404


def test_get_or_create_customer_persists_new_customer(supabase, stripe_client):
    stripe_client.find_customer_by_email.return_value = None
    stripe_client.create_customer.return_value = {"id": "cus_new"}

    customer_id = SubscriptionService(supabase, stripe_client).get_or_create_customer("u1", "ada@example.com")
    assert customer_id == "cus_new"
    stripe_client.create_customer.assert_called_once_with(email="ada@example.com", name="Ada", user_id="u1")
    assert supabase.rows("profiles")[0]["stripe_customer_id"] == "cus_new"


def test_create_subscription_returns_client_secret(supabase, stripe_client):
    supabase.tables["memberships"] = []
    supabase.tables["profiles"][0]["stripe_customer_id"] = "cus_1"
    stripe_client.create_subscription.return_value = {
        "id": "sub_new", "status": "incomplete",
        "items": {"data": [{"price": {"id": "price_plus"}}]},
        "latest_invoice": {"payment_intent": {"client_secret": "pi_secret"}},
    }

    result = SubscriptionService(supabase, stripe_client).create_subscription("u1", "price_plus")
    assert result.client_secret == "pi_secret"
    assert result.status == "incomplete"
    assert supabase.rows("subscriptions")[0]["stripe_subscription_id"] == "sub_new"


def test_create_subscription_conflicts_with_active_one(supabase, stripe_client):
    with pytest.raises(HTTPException) as exc:
        SubscriptionService(supabase, stripe_client).create_subscription("u1", "price_plus")
    assert exc.value.status_code == 409


def test_payment_method_must_belong_to_user(supabase, stripe_client):
    supabase.tables["profiles"][0]["stripe_customer_id"] = "cus_1"
    stripe_client.retrieve_payment_method.return_value = {"id": "pm_1", "customer": "cus_other"}
    with pytest.raises(HTTPException) as exc:
        SubscriptionService(supabase, stripe_client).detach_payment_method("u1", "pm_1")
    assert exc.value.status_code == 403
    stripe_client.detach_payment_method.assert_not_called()
