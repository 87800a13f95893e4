import pytest
from types import SimpleNamespace
from unittest.mock import MagicMock
from fastapi import HTTPException
from app.modules.auth.schemas import LoginRequest, RegisterRequest
from app.modules.auth.service import AuthService, clear_auth_cache


@pytest.fixture(autouse=True)
def _reset_cache():
    clear_auth_cache()
    yield
    clear_auth_cache()


def user(user_id="u1", email="anna@example.com"):
    return SimpleNamespace(
        id=user_id, email=email, user_metadata={"display_name": "Anna"}, app_metadata={},
        created_at="2026-01-01T00:00:00+00:00", updated_at=None,
    )


def service_with_auth(make_supabase, auth):
    supabase = make_supabase()
    supabase.auth = auth
    return AuthService(supabase), supabase


def test_register_creates_profile(make_supabase):
    auth = MagicMock()
    auth.sign_up.return_value = SimpleNamespace(user=user(), session=None)
    service, supabase = service_with_auth(make_supabase, auth)

    response = service.register(RegisterRequest(
        email="anna@example.com", password="hunter22!", display_name="Anna", role="club",
    ))

    assert response.user_id == "u1"
    profile = supabase.rows("profiles")[0]
    assert profile["id"] == "u1"
    assert profile["role"] == "club"
    assert profile["credits"] == 0
    assert auth.sign_up.call_args.args[0]["options"]["data"]["role"] == "club"


def test_register_writes_profile_with_admin_client(make_supabase):
    auth = MagicMock()
    auth.sign_up.return_value = SimpleNamespace(user=user(), session=None)
    anon = make_supabase()
    anon.auth = auth
    admin = make_supabase()

    AuthService(anon, admin).register(RegisterRequest(email="anna@example.com", password="hunter22!", display_name="Anna"))
    assert anon.rows("profiles") == []
    assert admin.rows("profiles")[0]["id"] == "u1"


def test_register_existing_user(make_supabase):
    auth = MagicMock()
    auth.sign_up.side_effect = Exception("User already registered")
    service, _ = service_with_auth(make_supabase, auth)

    with pytest.raises(HTTPException) as exc:
        service.register(RegisterRequest(email="anna@example.com", password="hunter22!", display_name="Anna"))
    assert exc.value.status_code == 400


def test_register_without_user_is_rejected(make_supabase):
    auth = MagicMock()
    auth.sign_up.return_value = SimpleNamespace(user=None, session=None)
    service, _ = service_with_auth(make_supabase, auth)

    with pytest.raises(HTTPException) as exc:
        service.register(RegisterRequest(email="anna@example.com", password="hunter22!", display_name="Anna"))
    assert exc.value.status_code == 400


def test_login_returns_tokens(make_supabase):
    auth = MagicMock()
    auth.sign_in_with_password.return_value = SimpleNamespace(
        user=user(), session=SimpleNamespace(access_token="at", refresh_token="rt"),
    )
    service, _ = service_with_auth(make_supabase, auth)

    token = service.login(LoginRequest(email="anna@example.com", password="hunter22!"))
    assert (token.access_token, token.refresh_token, token.user_id) == ("at", "rt", "u1")


def test_login_bad_credentials(make_supabase):
    auth = MagicMock()
    auth.sign_in_with_password.side_effect = Exception("Invalid login credentials")
    service, _ = service_with_auth(make_supabase, auth)

    with pytest.raises(HTTPException) as exc:
        service.login(LoginRequest(email="anna@example.com", password="wrong-password"))
    assert exc.value.status_code == 401


def test_current_user_is_cached_until_logout(make_supabase):
    auth = MagicMock()
    auth.get_user.return_value = SimpleNamespace(user=user())
    service, _ = service_with_auth(make_supabase, auth)

    assert service.get_current_user("token-1")["id"] == "u1"
    assert service.get_current_user("token-1")["id"] == "u1"
    assert auth.get_user.call_count == 1

    assert service.logout("token-1") is True
    service.get_current_user("token-1")
    assert auth.get_user.call_count == 2


def test_expired_token_is_unauthorized(make_supabase):
    auth = MagicMock()
    auth.get_user.side_effect = Exception("JWT expired")
    service, _ = service_with_auth(make_supabase, auth)

    with pytest.raises(HTTPException) as exc:
        service.get_current_user("stale")
    assert exc.value.status_code == 401
