from fastapi import APIRouter, Depends
from app.database.supabase_client import get_service_supabase
from app.modules.memberships.schemas import (
    MembershipPlanResponse, MembershipResponse, MembershipWithPlanResponse, CreateMembershipRequest
)
from app.modules.memberships.service import MembershipService
from app.core.dependencies import get_current_user_id
from supabase import Client
from typing import List, Dict, Optional

router = APIRouter(prefix="/memberships", tags=["memberships"])


def get_membership_service(supabase: Client = Depends(get_service_supabase)) -> MembershipService:
    return MembershipService(supabase)


@router.get("/plans", response_model=List[MembershipPlanResponse])
async def list_plans(
    include_trial: bool = False,
    service: MembershipService = Depends(get_membership_service)
):
    """Public list of membership plans"""
    return service.list_plans(include_trial=include_trial)


@router.get("/me", response_model=Optional[MembershipWithPlanResponse])
async def get_my_membership(
    user_data: Dict = Depends(get_current_user_id),
    service: MembershipService = Depends(get_membership_service)
):
    """Active membership with plan details, or null"""
    return service.get_membership_with_plan(user_data["id"])


@router.post("", response_model=MembershipResponse, status_code=201)
async def create_membership(
    body: CreateMembershipRequest,
    user_data: Dict = Depends(get_current_user_id),
    service: MembershipService = Depends(get_membership_service)
):
    """Activate a free plan. Paid plans go through /subscriptions."""
    return service.create_user_membership(user_data["id"], body.plan_id)


@router.post("/trial", response_model=MembershipResponse, status_code=201)
async def start_trial(
    user_data: Dict = Depends(get_current_user_id),
    service: MembershipService = Depends(get_membership_service)
):
    return service.start_trial(user_data["id"])
