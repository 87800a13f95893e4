import json
import pytest
from unittest.mock import MagicMock
from fastapi import HTTPException
from app.modules.webhooks.service import StripeWebhookService, derive_kyc_status, verify_event

START = 1788220800  # 2026-09-01
END = 1790812800    # 2026-10-01


def subscription(sub_id="sub_1", price="price_basic", status="active", user_id="u1", **extra):
    return {
        "id": sub_id,
        "status": status,
        "customer": "cus_1",
        "metadata": {"user_id": user_id} if user_id else {},
        "current_period_start": START,
        "current_period_end": END,
        "items": {"data": [{"price": {"id": price}}]},
        **extra,
    }


@pytest.fixture
def supabase(make_supabase):
    return make_supabase({
        "membership_plans": [
            {"id": "plan-basic", "title": "Basic", "credits": 10, "stripe_price_id": "price_basic"},
            {"id": "plan-plus", "title": "Plus", "credits": 20, "stripe_price_id": "price_plus"},
        ],
        "profiles": [{"id": "u1", "credits": 0, "stripe_customer_id": "cus_1"}],
    })


def test_new_subscription_creates_membership(supabase):
    outcome = StripeWebhookService(supabase).sync_subscription_to_database(subscription())

    assert outcome == "created"
    membership = supabase.rows("memberships")[0]
    assert membership["plan_id"] == "plan-basic"
    assert membership["credits"] == 10
    assert membership["is_active"] is True
    assert membership["stripe_subscription_id"] == "sub_1"
    assert supabase.rows("subscriptions")[0]["status"] == "active"
    assert supabase.rows("profiles")[0]["credits"] == 10


def test_sync_is_idempotent(supabase):
    service = StripeWebhookService(supabase)
    service.sync_subscription_to_database(subscription())
    assert service.sync_subscription_to_database(subscription()) == "unchanged"
    assert len(supabase.rows("memberships")) == 1
    assert len(supabase.rows("subscriptions")) == 1


def test_plan_change_resets_credits_and_applies_scheduled_change(supabase):
    service = StripeWebhookService(supabase)
    service.sync_subscription_to_database(subscription())
    membership = supabase.rows("memberships")[0]
    membership["credits_used"] = 7
    supabase.tables["membership_scheduled_changes"] = [{
        "id": "chg-1", "membership_id": membership["id"], "scheduled_stripe_price_id": "price_plus",
        "status": "confirmed",
    }]

    assert service.sync_subscription_to_database(subscription(price="price_plus")) == "updated"
    membership = supabase.rows("memberships")[0]
    assert membership["plan_id"] == "plan-plus"
    assert membership["credits"] == 20
    assert membership["credits_used"] == 0
    assert supabase.rows("membership_scheduled_changes")[0]["status"] == "applied"
    assert supabase.rows("profiles")[0]["credits"] == 20


def test_user_is_resolved_from_customer_when_metadata_missing(supabase):
    outcome = StripeWebhookService(supabase).sync_subscription_to_database(subscription(user_id=None))
    assert outcome == "created"
    assert supabase.rows("memberships")[0]["user_id"] == "u1"


@pytest.mark.parametrize("sub", [
    subscription(price="price_unknown"),
    subscription(items={"data": []}),
    subscription(status="canceled"),
    subscription(user_id=None, customer="cus_unknown"),
])
def test_unsyncable_subscriptions_are_skipped(supabase, sub):
    assert StripeWebhookService(supabase).sync_subscription_to_database(sub) == "skipped"
    assert supabase.rows("memberships") == []


def test_incomplete_subscription_does_not_rebind_active_membership(supabase):
    service = StripeWebhookService(supabase)
    service.sync_subscription_to_database(subscription())

    assert service.sync_subscription_to_database(subscription("sub_2", "price_plus", "incomplete")) == "skipped"
    assert supabase.rows("memberships")[0]["stripe_subscription_id"] == "sub_1"

    assert service.sync_subscription_to_database(subscription("sub_2", "price_plus", "active")) == "rebound"
    memberships = supabase.rows("memberships")
    assert len(memberships) == 1
    assert memberships[0]["stripe_subscription_id"] == "sub_2"
    assert memberships[0]["plan_id"] == "plan-plus"


def test_missing_period_on_active_subscription_raises(supabase):
    sub = subscription(current_period_start=None, current_period_end=None)
    with pytest.raises(ValueError):
        StripeWebhookService(supabase).sync_subscription_to_database(sub)


def test_thin_event_is_refetched(supabase):
    stripe_client = MagicMock()
    stripe_client.retrieve_subscription.return_value = subscription()
    thin = subscription(current_period_start=None, current_period_end=None)

    StripeWebhookService(supabase, stripe_client).handle_subscription_upsert(thin)
    stripe_client.retrieve_subscription.assert_called_once_with("sub_1")
    assert len(supabase.rows("memberships")) == 1


def test_subscription_deleted_deactivates_membership(supabase):
    service = StripeWebhookService(supabase)
    service.sync_subscription_to_database(subscription())
    service.handle_subscription_deleted({"id": "sub_1"})

    membership = supabase.rows("memberships")[0]
    assert membership["is_active"] is False
    assert membership["stripe_status"] == "canceled"
    assert supabase.rows("subscriptions")[0]["status"] == "canceled"
    assert supabase.rows("profiles")[0]["credits"] == 0


def test_cycle_payment_resets_credits_and_clears_past_due(supabase):
    service = StripeWebhookService(supabase)
    service.sync_subscription_to_database(subscription())
    membership = supabase.rows("memberships")[0]
    membership.update({"credits_used": 6, "stripe_status": "past_due"})

    service.handle_payment_succeeded({
        "id": "in_1", "amount_paid": 29900, "currency": "sek",
        "billing_reason": "subscription_cycle",
        "parent": {"subscription_details": {"subscription": "sub_1"}},
    })
    membership = supabase.rows("memberships")[0]
    assert membership["credits_used"] == 0
    assert membership["stripe_status"] == "active"
    payment = supabase.rows("payments")[0]
    assert payment["amount"] == 299
    assert payment["stripe_subscription_id"] == "sub_1"


def test_failed_payment_marks_past_due_and_notifies(supabase):
    notifications = MagicMock()
    service = StripeWebhookService(supabase, notifications=notifications)
    service.sync_subscription_to_database(subscription())

    service.handle_payment_failed({"id": "in_2", "amount_due": 29900, "subscription": "sub_1"})
    assert supabase.rows("memberships")[0]["stripe_status"] == "past_due"
    assert supabase.rows("subscriptions")[0]["status"] == "past_due"
    assert supabase.rows("payments")[0]["status"] == "failed"
    notifications.notify_user.assert_called_once()
    assert notifications.notify_user.call_args.args[0] == "u1"


def test_handle_event_skips_redelivered_events(supabase):
    service = StripeWebhookService(supabase)
    event = {"id": "evt_1", "type": "customer.subscription.created", "data": {"object": subscription()}}

    assert service.handle_event(event) == {"received": True, "type": event["type"], "duplicate": False}
    assert service.handle_event(event)["duplicate"] is True
    assert len(supabase.rows("memberships")) == 1
    assert supabase.rows("stripe_webhook_events")[0]["status"] == "processed"


def test_handle_event_records_failures_and_reraises(supabase):
    service = StripeWebhookService(supabase)
    bad = subscription(current_period_start=None, current_period_end=None)
    event = {"id": "evt_2", "type": "customer.subscription.updated", "data": {"object": bad}}

    with pytest.raises(ValueError):
        service.handle_event(event)
    recorded = supabase.rows("stripe_webhook_events")[0]
    assert recorded["status"] == "failed"
    assert "Invalid period" in recorded["error_message"]


def test_unknown_event_type_is_acknowledged(supabase):
    result = StripeWebhookService(supabase).handle_event({"id": "evt_3", "type": "charge.refunded", "data": {}})
    assert result["received"] is True
    assert supabase.rows("stripe_webhook_events") == []


def test_schedule_finished_applies_past_changes_and_cancels_future_ones(supabase):
    supabase.tables["membership_scheduled_changes"] = [
        {"id": "c1", "stripe_schedule_id": "sched_1", "status": "confirmed",
         "scheduled_change_date": "2020-01-01T00:00:00+00:00"},
        {"id": "c2", "stripe_schedule_id": "sched_1", "status": "pending",
         "scheduled_change_date": "2999-01-01T00:00:00+00:00"},
    ]
    StripeWebhookService(supabase).handle_schedule_finished({"id": "sched_1"})
    assert [c["status"] for c in supabase.rows("membership_scheduled_changes")] == ["applied", "canceled"]


def test_account_updated_sets_kyc_status(supabase):
    supabase.tables["clubs"] = [{"id": "gym-a", "stripe_account_id": "acct_1"}]
    StripeWebhookService(supabase).handle_event({"id": "evt_4", "type": "account.updated", "data": {"object": {
        "id": "acct_1", "charges_enabled": True, "payouts_enabled": True, "details_submitted": True,
        "requirements": {"currently_due": [], "eventually_due": []},
    }}})
    club = supabase.rows("clubs")[0]
    assert club["kyc_status"] == "verified"
    assert club["payouts_enabled"] is True


def test_derive_kyc_status():
    assert derive_kyc_status({"requirements": {"currently_due": ["external_account"]}}) == "needs_input"
    assert derive_kyc_status({"requirements": {"eventually_due": ["tax_id"]}}) == "pending"
    assert derive_kyc_status({}) == "pending"


def test_verify_event_rejects_bad_input():
    with pytest.raises(HTTPException) as exc:
        verify_event(b"{}", "t=1,v1=abc", None)
    assert exc.value.status_code == 400
    with pytest.raises(HTTPException) as exc:
        verify_event(b"{}", None, "whsec_test")
    assert exc.value.status_code == 400
    with pytest.raises(HTTPException) as exc:
        verify_event(json.dumps({"id": "evt"}).encode(), "t=1,v1=bad", "whsec_test")
    assert exc.value.status_code == 400
