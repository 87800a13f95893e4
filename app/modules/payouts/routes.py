from fastapi import APIRouter, Depends
from app.database.supabase_client import get_service_supabase
from app.modules.payouts.schemas import (
    PayoutRunRequest, GeneratePayoutsResponse, SendTransfersResponse,
    PayoutResponse, PeriodSummaryResponse
)
from app.modules.payouts.service import PayoutService
from app.core.dependencies import get_stripe, require_platform_admin, require_club_admin
from app.integrations.stripe_client import StripeClient
from supabase import Client
from datetime import date
from typing import List, Dict, Optional

router = APIRouter(prefix="/payouts", tags=["payouts"])


def get_payout_service(supabase: Client = Depends(get_service_supabase)) -> PayoutService:
    return PayoutService(supabase)


def get_payout_transfer_service(
    supabase: Client = Depends(get_service_supabase),
    stripe_client: StripeClient = Depends(get_stripe)
) -> PayoutService:
    return PayoutService(supabase, stripe_client)


@router.post("/generate", response_model=GeneratePayoutsResponse)
async def generate_monthly_payouts(
    body: PayoutRunRequest,
    user_data: Dict = Depends(require_platform_admin),
    service: PayoutService = Depends(get_payout_service)
):
    """Calculate and store pending payouts for a month (default: last month)"""
    return service.generate_monthly_payouts(body.period, body.club_ids)


@router.post("/send", response_model=SendTransfersResponse)
async def send_payout_transfers(
    body: PayoutRunRequest,
    user_data: Dict = Depends(require_platform_admin),
    service: PayoutService = Depends(get_payout_transfer_service)
):
    """Transfer pending payouts to clubs' Stripe Connect accounts"""
    return service.send_payout_transfers(body.period, body.club_ids)


@router.get("/summary", response_model=PeriodSummaryResponse)
async def get_payout_summary(
    period: Optional[date] = None,
    user_data: Dict = Depends(require_platform_admin),
    service: PayoutService = Depends(get_payout_service)
):
    return service.get_period_summary(period)


@router.get("/clubs/{club_id}", response_model=List[PayoutResponse])
async def get_club_payouts(
    club_id: str,
    limit: int = 12,
    user_data: Dict = Depends(require_club_admin),
    service: PayoutService = Depends(get_payout_service)
):
    """Payout history for a club (club admin)"""
    return service.get_club_payouts(club_id, limit=min(limit, 36))
