from fastapi import APIRouter, Depends
from app.database.supabase_client import get_service_supabase
from app.modules.daily_access.schemas import (
    DailyAccessStatusResponse, SelectedGymsResponse, SelectGymRequest,
    DailyAccessActionResponse, DailyAccessSummaryResponse
)
from app.modules.daily_access.service import DailyAccessService
from app.core.dependencies import get_current_user_id
from supabase import Client
from typing import Dict, Optional

router = APIRouter(prefix="/daily-access", tags=["daily-access"])


def get_daily_access_service(supabase: Client = Depends(get_service_supabase)) -> DailyAccessService:
    return DailyAccessService(supabase)


@router.get("/status", response_model=DailyAccessStatusResponse)
async def get_status(
    user_data: Dict = Depends(get_current_user_id),
    service: DailyAccessService = Depends(get_daily_access_service)
):
    return service.check_status(user_data["id"])


@router.get("/gyms", response_model=SelectedGymsResponse)
async def get_selected_gyms(
    user_data: Dict = Depends(get_current_user_id),
    service: DailyAccessService = Depends(get_daily_access_service)
):
    return service.get_selected_gyms(user_data["id"])


@router.post("/gyms", response_model=DailyAccessActionResponse, status_code=201)
async def add_selected_gym(
    body: SelectGymRequest,
    user_data: Dict = Depends(get_current_user_id),
    service: DailyAccessService = Depends(get_daily_access_service)
):
    return service.add_selected_gym(user_data["id"], body.club_id)


@router.delete("/gyms/{club_id}", response_model=DailyAccessActionResponse)
async def remove_selected_gym(
    club_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: DailyAccessService = Depends(get_daily_access_service)
):
    return service.remove_selected_gym(user_data["id"], club_id)


@router.get("/summary", response_model=Optional[DailyAccessSummaryResponse])
async def get_summary(
    user_data: Dict = Depends(get_current_user_id),
    service: DailyAccessService = Depends(get_daily_access_service)
):
    """Null when the user has no Daily Access membership"""
    return service.summary(user_data["id"])
