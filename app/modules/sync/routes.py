from fastapi import APIRouter, Depends, HTTPException
from app.database.supabase_client import get_service_supabase
from app.integrations.stripe_client import StripeClient
from app.modules.sync.schemas import (
    SubscriptionSyncResult, ProductSyncResult, IncompleteSubscription, SchedulerStatus
)
from app.modules.sync.scheduler import scheduler
from app.modules.sync.service import SyncService
from app.core.dependencies import get_stripe, require_platform_admin
from supabase import Client
from typing import List, Dict

router = APIRouter(prefix="/sync", tags=["sync"])


def get_sync_service(
    supabase: Client = Depends(get_service_supabase),
    stripe_client: StripeClient = Depends(get_stripe)
) -> SyncService:
    return SyncService(supabase, stripe_client)


@router.post("/subscriptions", response_model=SubscriptionSyncResult)
async def sync_subscriptions(
    user_data: Dict = Depends(require_platform_admin),
    service: SyncService = Depends(get_sync_service)
):
    """Re-sync all Stripe subscriptions into memberships (platform admin)"""
    return service.sync_subscriptions_from_stripe()


@router.post("/products", response_model=ProductSyncResult)
async def sync_products(
    user_data: Dict = Depends(require_platform_admin),
    service: SyncService = Depends(get_sync_service)
):
    return service.sync_products_from_stripe()


@router.get("/incomplete-subscriptions", response_model=List[IncompleteSubscription])
async def list_incomplete_subscriptions(
    user_data: Dict = Depends(require_platform_admin),
    service: SyncService = Depends(get_sync_service)
):
    return service.list_incomplete_subscriptions()


@router.get("/scheduler/status", response_model=SchedulerStatus)
async def scheduler_status(user_data: Dict = Depends(require_platform_admin)):
    return scheduler.status()


@router.post("/scheduler/start", response_model=SchedulerStatus)
async def start_scheduler(user_data: Dict = Depends(require_platform_admin)):
    scheduler.start()
    return scheduler.status()


@router.post("/scheduler/stop", response_model=SchedulerStatus)
async def stop_scheduler(user_data: Dict = Depends(require_platform_admin)):
    await scheduler.stop()
    return scheduler.status()


@router.post("/scheduler/trigger/{job_name}")
async def trigger_job(job_name: str, user_data: Dict = Depends(require_platform_admin)):
    """Run one job now, outside its schedule"""
    try:
        result = await scheduler.trigger(job_name)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown job: {job_name}")
    return {"job": job_name, "result": result}
