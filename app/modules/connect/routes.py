from fastapi import APIRouter, Depends
from app.database.supabase_client import get_service_supabase
from app.integrations.stripe_client import StripeClient
from app.modules.connect.schemas import OnboardingRequest, OnboardingLinkResponse, ConnectStatusResponse
from app.modules.connect.service import ConnectService
from app.core.dependencies import get_stripe, require_club_admin
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/connect", tags=["connect"])


def get_connect_service(
    supabase: Client = Depends(get_service_supabase),
    stripe_client: StripeClient = Depends(get_stripe)
) -> ConnectService:
    return ConnectService(supabase, stripe_client)


@router.post("/clubs/{club_id}/onboarding", response_model=OnboardingLinkResponse, status_code=201)
async def create_onboarding(
    club_id: str,
    body: OnboardingRequest,
    user_data: Dict = Depends(require_club_admin),
    service: ConnectService = Depends(get_connect_service)
):
    """Create the club's Stripe Express account and return the onboarding link"""
    return service.create_onboarding(club_id, user_data.get("email"), body.return_url, body.refresh_url)


@router.post("/clubs/{club_id}/onboarding/refresh", response_model=OnboardingLinkResponse)
async def refresh_onboarding_link(
    club_id: str,
    body: OnboardingRequest,
    user_data: Dict = Depends(require_club_admin),
    service: ConnectService = Depends(get_connect_service)
):
    return service.refresh_onboarding_link(club_id, body.return_url, body.refresh_url)


@router.get("/clubs/{club_id}/status", response_model=ConnectStatusResponse)
async def get_status(
    club_id: str,
    user_data: Dict = Depends(require_club_admin),
    service: ConnectService = Depends(get_connect_service)
):
    return service.get_status(club_id)
