from fastapi import APIRouter, Depends
from app.database.supabase_client import get_service_supabase
from app.modules.notifications.schemas import (
    PushTokenRequest, NotificationResponse, NewsletterRequest, BroadcastResponse
)
from app.modules.notifications.service import NotificationService
from app.core.dependencies import get_current_user_id, require_club_admin
from supabase import Client
from typing import List, Dict

router = APIRouter(prefix="/notifications", tags=["notifications"])


def get_notification_service(supabase: Client = Depends(get_service_supabase)) -> NotificationService:
    return NotificationService(supabase)


@router.put("/push-token", status_code=200)
async def register_push_token(
    body: PushTokenRequest,
    user_data: Dict = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service)
):
    """Register the device's Expo push token"""
    service.register_push_token(user_data["id"], body.push_token)
    return {"message": "Push token registered"}


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    limit: int = 50,
    offset: int = 0,
    user_data: Dict = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service)
):
    return service.list_notifications(user_data["id"], limit=min(limit, 100), offset=offset)


@router.post("/read", status_code=200)
async def mark_all_read(
    user_data: Dict = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service)
):
    service.mark_read(user_data["id"])
    return {"message": "Notifications marked as read"}


@router.post("/{notification_id}/read", status_code=200)
async def mark_read(
    notification_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service)
):
    service.mark_read(user_data["id"], notification_id)
    return {"message": "Notification marked as read"}


@router.post("/clubs/{club_id}/newsletter", response_model=BroadcastResponse)
async def send_club_newsletter(
    club_id: str,
    body: NewsletterRequest,
    user_data: Dict = Depends(require_club_admin),
    service: NotificationService = Depends(get_notification_service)
):
    """Push an announcement to members who favourited the club (club admin)"""
    return service.send_club_newsletter(club_id, body.title, body.body, body.data)
