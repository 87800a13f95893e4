import pytest
import stripe
from unittest.mock import MagicMock
from fastapi import HTTPException
from app.modules.connect.service import ConnectService


@pytest.fixture
def supabase(make_supabase):
    return make_supabase({"clubs": [
        {"id": "gym-a", "name": "Gym A", "stripe_account_id": None},
        {"id": "gym-b", "name": "Gym B", "stripe_account_id": "acct_b"},
    ]})


@pytest.fixture
def stripe_client():
    client = MagicMock()
    client.create_connect_account.return_value = {"id": "acct_new"}
    client.create_account_link.return_value = {"url": "https://connect.stripe.com/setup/abc"}
    return client


def test_create_onboarding_stores_account_and_returns_link(supabase, stripe_client):
    link = ConnectService(supabase, stripe_client).create_onboarding("gym-a", "club@example.com")

    assert link.account_id == "acct_new"
    assert link.url.startswith("https://connect.stripe.com/")
    club = supabase.rows("clubs")[0]
    assert club["stripe_account_id"] == "acct_new"
    assert club["kyc_status"] == "pending"
    args = stripe_client.create_connect_account.call_args.args
    assert args[1:4] == ("gym-a", "SE", "company")


def test_create_onboarding_rejects_existing_account(supabase, stripe_client):
    with pytest.raises(HTTPException) as exc:
        ConnectService(supabase, stripe_client).create_onboarding("gym-b", None)
    assert exc.value.status_code == 400
    stripe_client.create_connect_account.assert_not_called()


def test_account_is_deleted_when_it_cannot_be_saved(supabase, stripe_client, monkeypatch):
    service = ConnectService(supabase, stripe_client)
    original_table = supabase.table

    def failing_table(name):
        query = original_table(name)
        if name == "clubs":
            query.update = MagicMock(side_effect=RuntimeError("db down"))
        return query

    monkeypatch.setattr(supabase, "table", failing_table)
    with pytest.raises(HTTPException) as exc:
        service.create_onboarding("gym-a", None)
    assert exc.value.status_code == 500
    stripe_client.delete_connect_account.assert_called_once_with("acct_new")


def test_get_status_refreshes_club_row(supabase, stripe_client):
    stripe_client.retrieve_account.return_value = {
        "id": "acct_b", "payouts_enabled": False, "charges_enabled": True, "details_submitted": True,
        "requirements": {"currently_due": ["external_account"]},
    }
    status = ConnectService(supabase, stripe_client).get_status("gym-b")
    assert status.kyc_status == "needs_input"
    assert status.requirements_due == ["external_account"]
    assert supabase.rows("clubs")[1]["kyc_status"] == "needs_input"


def test_status_without_account_and_stripe_errors(supabase, stripe_client):
    service = ConnectService(supabase, stripe_client)
    assert service.get_status("gym-a").account_id is None

    stripe_client.create_account_link.side_effect = stripe.APIConnectionError("down")
    with pytest.raises(HTTPException) as exc:
        service.refresh_onboarding_link("gym-b")
    assert exc.value.status_code == 502
