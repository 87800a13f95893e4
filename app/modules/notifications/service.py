from supabase import Client
from app.database.supabase_client import first_row
from app.integrations.expo_push import ExpoPushClient, is_expo_push_token
from app.modules.notifications.schemas import NotificationResponse, BroadcastResponse
from typing import List, Optional, Dict, Any
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, supabase: Client, push_client: Optional[ExpoPushClient] = None):
        self.supabase = supabase
        self.push_client = push_client or ExpoPushClient()

    def register_push_token(self, user_id: str, push_token: str) -> bool:
        if not is_expo_push_token(push_token):
            raise HTTPException(status_code=400, detail="Invalid Expo push token")
        try:
            self.supabase.table("profiles")\
                .update({"push_token": push_token})\
                .eq("id", user_id)\
                .execute()
            return True
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def clear_push_tokens(self, tokens: List[str]) -> None:
        """Drop tokens Expo reported as DeviceNotRegistered"""
        if not tokens:
            return
        try:
            self.supabase.table("profiles")\
                .update({"push_token": None})\
                .in_("push_token", tokens)\
                .execute()
            logger.info(f"Cleared {len(tokens)} unregistered push token(s)")
        except Exception as e:
            logger.error(f"Error clearing push tokens: {e}")

    def _store(self, user_ids: List[str], title: str, body: str,
               data: Optional[Dict[str, Any]], notification_type: str) -> None:
        if not user_ids:
            return
        try:
            self.supabase.table("notifications").insert([
                {"user_id": uid, "title": title, "body": body, "data": data or {}, "type": notification_type}
                for uid in user_ids
            ]).execute()
        except Exception as e:
            logger.error(f"Error storing notifications: {e}")

    def notify_user(self, user_id: str, title: str, body: str,
                    data: Optional[Dict[str, Any]] = None, notification_type: str = "general") -> bool:
        """Store an inbox notification and push it if the user has a device token. Never raises."""
        return self.notify_users([user_id], title, body, data, notification_type).sent > 0

    def notify_users(self, user_ids: List[str], title: str, body: str,
                     data: Optional[Dict[str, Any]] = None, notification_type: str = "general") -> BroadcastResponse:
        user_ids = list(dict.fromkeys(user_ids))
        self._store(user_ids, title, body, data, notification_type)
        try:
            result = self.supabase.table("profiles")\
                .select("id, push_token, pushnotifications")\
                .in_("id", user_ids)\
                .execute()
        except Exception as e:
            logger.error(f"Error loading push tokens: {e}")
            return BroadcastResponse(recipients=len(user_ids), sent=0, errors=0)

        payloads = [
            {"push_token": p["push_token"], "title": title, "body": body, "data": data}
            for p in (result.data or [])
            if p.get("push_token") and p.get("pushnotifications") is not False
        ]
        if not payloads:
            return BroadcastResponse(recipients=len(user_ids), sent=0, errors=0)

        push_result = self.push_client.send_batch_push_notifications(payloads)
        self.clear_push_tokens(push_result["unregistered_tokens"])
        return BroadcastResponse(
            recipients=len(user_ids),
            sent=push_result["sent"],
            errors=push_result["errors"]
        )

    def send_club_newsletter(self, club_id: str, title: str, body: str,
                             data: Optional[Dict[str, Any]] = None) -> BroadcastResponse:
        """Push a club announcement to every member who favourited the club"""
        try:
            club = first_row(self.supabase.table("clubs")
                             .select("id, name")
                             .eq("id", club_id)
                             .limit(1)
                             .execute())
            if not club:
                raise HTTPException(status_code=404, detail="Club not found")
            favorites = self.supabase.table("favorites")\
                .select("user_id")\
                .eq("club_id", club_id)\
                .execute()
            user_ids = [f["user_id"] for f in (favorites.data or [])]
            if not user_ids:
                return BroadcastResponse(recipients=0, sent=0, errors=0)
            payload = {**(data or {}), "club_id": club_id}
            return self.notify_users(user_ids, f"{club['name']}: {title}", body, payload, "newsletter")
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_notifications(self, user_id: str, limit: int = 50, offset: int = 0) -> List[NotificationResponse]:
        try:
            result = self.supabase.table("notifications")\
                .select("*")\
                .eq("user_id", user_id)\
                .order("created_at", desc=True)\
                .limit(limit)\
                .offset(offset)\
                .execute()
            return [NotificationResponse(**n) for n in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def mark_read(self, user_id: str, notification_id: Optional[str] = None) -> bool:
        """Mark one notification, or all of the user's, as read"""
        try:
            query = self.supabase.table("notifications")\
                .update({"read": True})\
                .eq("user_id", user_id)
            if notification_id:
                query = query.eq("id", notification_id)
            query.execute()
            return True
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
