import asyncio
import pytest
import stripe
from unittest.mock import MagicMock
from app.modules.sync.scheduler import BackgroundScheduler, Job
from app.modules.sync.service import SyncService

START = 1788220800
END = 1790812800


def subscription(sub_id, price="price_basic", status="active", user_id="u1"):
    return {
        "id": sub_id, "status": status, "customer": "cus_1",
        "metadata": {"user_id": user_id},
        "current_period_start": START, "current_period_end": END,
        "items": {"data": [{"price": {"id": price}}]},
    }


@pytest.fixture
def supabase(make_supabase):
    return make_supabase({
        "membership_plans": [{"id": "plan-basic", "title": "Basic", "credits": 10, "stripe_price_id": "price_basic"}],
        "profiles": [{"id": "u1"}, {"id": "u2"}],
    })


def test_subscription_sync_counts_outcomes(supabase):
    stripe_client = MagicMock()
    stripe_client.iter_subscriptions.return_value = iter([
        subscription("sub_1"),
        subscription("sub_2", price="price_gone", user_id="u2"),
        subscription("sub_3", status="canceled", user_id="u2"),
    ])
    result = SyncService(supabase, stripe_client).sync_subscriptions_from_stripe()

    assert result.total == 3
    assert result.synced == 1
    assert result.skipped == 2
    assert result.outcomes == {"created": 1, "skipped": 2}
    assert len(supabase.rows("memberships")) == 1


def test_subscription_sync_collects_errors(supabase):
    broken = subscription("sub_bad")
    broken["current_period_start"] = None
    stripe_client = MagicMock()
    stripe_client.iter_subscriptions.return_value = iter([broken, subscription("sub_1")])

    result = SyncService(supabase, stripe_client).sync_subscriptions_from_stripe()
    assert [e.id for e in result.errors] == ["sub_bad"]
    assert result.synced == 1


def test_listing_failure_is_reported(supabase):
    stripe_client = MagicMock()
    stripe_client.iter_subscriptions.side_effect = stripe.APIConnectionError("down")
    result = SyncService(supabase, stripe_client).sync_subscriptions_from_stripe()
    assert [e.id for e in result.errors] == ["list"]


def test_product_sync_upserts_plans_from_metadata(supabase):
    stripe_client = MagicMock()
    stripe_client.iter_active_prices.return_value = iter([
        {"id": "price_basic", "unit_amount": 29900, "currency": "sek",
         "product": {"id": "prod_1", "name": "Basic", "active": True, "metadata": {"credits": "12"}}},
        {"id": "price_daily", "unit_amount": 74900, "currency": "sek",
         "product": {"id": "prod_2", "name": "Daily Access", "active": True,
                     "metadata": {"max_daily_gyms": "3", "credits": "oops"}}},
        {"id": "price_old", "unit_amount": 100, "currency": "sek",
         "product": {"id": "prod_3", "name": "Old", "active": False}},
        {"id": "price_unexpanded", "unit_amount": 100, "currency": "sek", "product": "prod_4"},
    ])
    result = SyncService(supabase, stripe_client).sync_products_from_stripe()

    assert (result.created, result.updated, result.skipped) == (1, 1, 2)
    plans = {p["stripe_price_id"]: p for p in supabase.rows("membership_plans")}
    assert plans["price_basic"]["credits"] == 12
    assert plans["price_basic"]["price"] == 299
    assert plans["price_daily"]["max_daily_gyms"] == 3
    assert plans["price_daily"]["credits"] == 0


def test_incomplete_subscriptions_listing(supabase):
    stripe_client = MagicMock()
    stripe_client.iter_subscriptions.return_value = iter([subscription("sub_9", status="incomplete")])
    rows = SyncService(supabase, stripe_client).list_incomplete_subscriptions()
    assert rows[0].id == "sub_9"
    assert rows[0].price_id == "price_basic"
    stripe_client.iter_subscriptions.assert_called_once_with(status="incomplete")


def test_job_records_result_and_errors():
    ok = Job("ok", lambda: {"done": 1}, 60)
    assert asyncio.run(ok.run_once()) == {"done": 1}
    assert ok.last_error is None
    assert ok.last_run is not None

    def explode():
        raise RuntimeError("boom")

    bad = Job("bad", explode, 60)
    asyncio.run(bad.run_once())
    assert bad.last_error == "boom"


def test_failed_run_does_not_report_previous_result():
    outcomes = iter([{"synced": 4}, RuntimeError("stripe down")])

    def flaky():
        outcome = next(outcomes)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    job = Job("flaky", flaky, 60)
    assert asyncio.run(job.run_once()) == {"synced": 4}
    assert asyncio.run(job.run_once()) is None
    assert job.last_result is None
    assert job.last_error == "stripe down"


def test_scheduler_start_trigger_stop():
    calls = []
    scheduler = BackgroundScheduler({"tick": Job("tick", lambda: calls.append(1) or {"calls": len(calls)}, 60)})

    async def scenario():
        assert scheduler.start() is True
        assert scheduler.start() is False
        await asyncio.sleep(0.05)
        assert scheduler.status().running is True
        result = await scheduler.trigger("tick")
        with pytest.raises(KeyError):
            await scheduler.trigger("missing")
        assert await scheduler.stop() is True
        assert await scheduler.stop() is False
        return result

    result = asyncio.run(scenario())
    assert result["calls"] >= 2
    assert scheduler.status().running is False


class _Listing:
    def __init__(self, items):
        self.items = items

    def auto_paging_iter(self):
        return iter(self.items)


@pytest.fixture
def live_stripe_client(monkeypatch):
    from app.config.settings import settings
    from app.integrations.stripe_client import StripeClient
    monkeypatch.setattr(settings, "stripe_secret_key", "sk_test_fitpass")
    monkeypatch.setattr(stripe, "api_key", None)
    return StripeClient()


def test_subscription_sync_reads_stripe_objects(supabase, live_stripe_client, monkeypatch):
    sub = stripe.StripeObject.construct_from(subscription("sub_1"), "sk_test_fitpass")
    monkeypatch.setattr(stripe.Subscription, "list", lambda **params: _Listing([sub]))

    result = SyncService(supabase, live_stripe_client).sync_subscriptions_from_stripe()
    assert result.errors == []
    assert result.synced == 1
    assert supabase.rows("memberships")[0]["stripe_subscription_id"] == "sub_1"


def test_product_sync_reads_stripe_objects(supabase, live_stripe_client, monkeypatch):
    price = stripe.StripeObject.construct_from({
        "id": "price_gold", "unit_amount": 49900, "currency": "sek",
        "product": {"id": "prod_gold", "name": "Gold", "active": True, "metadata": {"credits": "20"}},
    }, "sk_test_fitpass")
    monkeypatch.setattr(stripe.Price, "list", lambda **params: _Listing([price]))

    result = SyncService(supabase, live_stripe_client).sync_products_from_stripe()
    assert (result.created, result.skipped) == (1, 0)
    gold = next(p for p in supabase.rows("membership_plans") if p["stripe_price_id"] == "price_gold")
    assert gold["credits"] == 20
