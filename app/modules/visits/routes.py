from fastapi import APIRouter, Depends, Query, Request
from app.database.supabase_client import get_service_supabase
from app.modules.visits.schemas import LogVisitRequest, LogVisitResponse, VisitResponse, MonthlyVisitStats
from app.modules.visits.service import VisitService
from app.core.dependencies import get_current_user_id, check_club_admin, get_access_cache
from supabase import Client
from typing import List, Dict

router = APIRouter(prefix="/visits", tags=["visits"])


def get_visit_service(supabase: Client = Depends(get_service_supabase)) -> VisitService:
    return VisitService(supabase)


@router.post("", response_model=LogVisitResponse, status_code=201)
async def log_visit(
    body: LogVisitRequest,
    request: Request,
    user_data: Dict = Depends(get_current_user_id),
    supabase: Client = Depends(get_service_supabase),
    service: VisitService = Depends(get_visit_service)
):
    """Log a member's visit at a club (club admin of that club)"""
    check_club_admin(body.club_id, user_data, supabase, get_access_cache(request))
    return service.log_visit(body.user_id, body.club_id, body.subscription_type, body.visit_date)


@router.get("/me", response_model=List[VisitResponse])
async def list_my_visits(
    user_data: Dict = Depends(get_current_user_id),
    service: VisitService = Depends(get_visit_service)
):
    return service.list_user_visits(user_data["id"])


@router.get("/me/recent", response_model=List[VisitResponse])
async def recent_visits(
    limit: int = Query(5, ge=1, le=50),
    user_data: Dict = Depends(get_current_user_id),
    service: VisitService = Depends(get_visit_service)
):
    return service.recent_visits(user_data["id"], limit)


@router.get("/me/stats", response_model=List[MonthlyVisitStats])
async def monthly_stats(
    months: int = Query(6, ge=1, le=24),
    user_data: Dict = Depends(get_current_user_id),
    service: VisitService = Depends(get_visit_service)
):
    """Visits per month for the profile activity tab"""
    return service.monthly_stats(user_data["id"], months)
