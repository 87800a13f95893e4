from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from app.config.settings import settings
from app.core.rate_limit import limiter
from app.database.supabase_client import get_service_supabase
from app.integrations.stripe_client import get_stripe_client
from app.modules.gdpr.schemas import (
    DeleteAccountRequest, DeleteAccountResponse, PrivacySettingsRequest, PrivacySettingsResponse
)
from app.modules.gdpr.service import GdprService
from app.core.dependencies import get_current_user_id
from supabase import Client
from typing import Dict
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/gdpr", tags=["gdpr"])


def get_gdpr_service(supabase: Client = Depends(get_service_supabase)) -> GdprService:
    try:
        stripe_client = get_stripe_client()
    except ValueError:
        logger.warning("Stripe secret key not configured; account deletion will skip Stripe")
        stripe_client = None
    return GdprService(supabase, stripe_client)


@router.post("/delete-account", response_model=DeleteAccountResponse)
@limiter.limit(settings.strict_rate_limit)
async def delete_account(
    request: Request,
    body: DeleteAccountRequest,
    user_data: Dict = Depends(get_current_user_id),
    service: GdprService = Depends(get_gdpr_service)
):
    """Delete the current user's account and personal data"""
    return service.delete_account(user_data["id"], body.confirm_email)


@router.get("/export-data")
@limiter.limit(settings.strict_rate_limit)
async def export_data(
    request: Request,
    user_data: Dict = Depends(get_current_user_id),
    service: GdprService = Depends(get_gdpr_service)
):
    """Download all personal data as a JSON file"""
    data = service.export_data(user_data["id"])
    return JSONResponse(
        content=jsonable_encoder(data),
        headers={"Content-Disposition": f'attachment; filename="fitpass-data-{user_data["id"]}.json"'}
    )


@router.put("/privacy-settings", response_model=PrivacySettingsResponse)
async def update_privacy_settings(
    body: PrivacySettingsRequest,
    user_data: Dict = Depends(get_current_user_id),
    service: GdprService = Depends(get_gdpr_service)
):
    return service.update_privacy_settings(user_data["id"], body)
