"""
Core dependencies for route protection and access checking
"""

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.database.supabase_client import get_supabase, get_service_supabase
from app.integrations.stripe_client import StripeClient, get_stripe_client
from app.modules.auth.service import AuthService
from supabase import Client
from typing import List, Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer()


def _get_request_cache(request: Request) -> Dict[str, Any]:
    """Return request-scoped cache for access data (owned club ids)."""
    if not hasattr(request.state, "access_cache"):
        request.state.access_cache = {}
    return request.state.access_cache


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Security(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> dict:
    """Extract current user info from JWT token"""
    token = credentials.credentials
    user_data = auth_service.get_current_user(token)
    return user_data


def get_stripe() -> StripeClient:
    """Configured Stripe client; 503 when no secret key is set."""
    try:
        return get_stripe_client()
    except ValueError as e:
        logger.error(f"Stripe unavailable: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Payments are not configured")


def is_platform_admin(user_data: dict) -> bool:
    """Check if user is a platform admin from app_metadata"""
    # app_metadata is set server-side and cannot be modified by users
    app_metadata = user_data.get("app_metadata") or {}
    return app_metadata.get("type") == "admin"


def require_platform_admin(user_data: dict = Depends(get_current_user_id)) -> dict:
    if not is_platform_admin(user_data):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Platform admin access required"
        )
    return user_data


def get_owned_club_ids(user_id: str, supabase: Client, cache: Optional[Dict[str, Any]] = None) -> List[str]:
    """Return ids of clubs owned by the user. Uses request-scoped cache when provided."""
    if cache is not None and "club_ids" in cache:
        return cache["club_ids"]
    try:
        result = supabase.table("clubs")\
            .select("id")\
            .eq("user_id", user_id)\
            .execute()
        ids = [c["id"] for c in result.data] if result.data else []
        if cache is not None:
            cache["club_ids"] = ids
        return ids
    except Exception as e:
        logger.error(f"Error getting owned club ids: {e}")
        return []


def check_club_admin(
    club_id: str,
    user_data: dict,
    supabase: Client,
    cache: Optional[Dict[str, Any]] = None
) -> dict:
    """Allow if platform admin or owner of the club"""
    if is_platform_admin(user_data):
        return user_data
    if club_id in get_owned_club_ids(user_data["id"], supabase, cache):
        return user_data
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="You must be an admin of this club to perform this action"
    )


def require_club_admin(
    club_id: str,
    request: Request,
    user_data: dict = Depends(get_current_user_id),
    supabase: Client = Depends(get_service_supabase)
) -> dict:
    """Dependency for routes with a {club_id} path parameter"""
    return check_club_admin(club_id, user_data, supabase, _get_request_cache(request))


def get_access_cache(request: Request) -> Dict[str, Any]:
    """Dependency that returns request-scoped access cache."""
    return _get_request_cache(request)
