from supabase import Client
from app.core.time_utils import parse_datetime, utcnow_iso
from app.database.supabase_client import first_row
from app.modules.messaging.schemas import MessageResponse, ConversationResponse, ParticipantResponse
from app.modules.notifications.service import NotificationService
from datetime import datetime, timezone
from typing import List, Optional
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000
PUSH_PREVIEW_LENGTH = 100
PROFILE_COLUMNS = "id, display_name, first_name, avatar_url"


def clean_message_text(text: Optional[str]) -> str:
    text = (text or "").strip()
    if not text:
        raise HTTPException(status_code=400, detail="Message cannot be empty")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise HTTPException(status_code=400, detail=f"Message cannot exceed {MAX_MESSAGE_LENGTH} characters")
    return text


class MessagingService:
    def __init__(self, supabase: Client, notifications: Optional[NotificationService] = None):
        self.supabase = supabase
        self.notifications = notifications

    def _require_participant(self, user_id: str, conversation_id: str) -> None:
        result = self.supabase.table("conversation_participants")\
            .select("id")\
            .eq("conversation_id", conversation_id)\
            .eq("user_id", user_id)\
            .limit(1)\
            .execute()
        if not result.data:
            raise HTTPException(status_code=403, detail="You are not part of this conversation")

    def _find_conversation(self, user_id: str, other_user_id: str) -> Optional[str]:
        mine = self.supabase.table("conversation_participants")\
            .select("conversation_id")\
            .eq("user_id", user_id)\
            .execute()
        conversation_ids = [row["conversation_id"] for row in (mine.data or [])]
        if not conversation_ids:
            return None
        shared = self.supabase.table("conversation_participants")\
            .select("conversation_id")\
            .eq("user_id", other_user_id)\
            .in_("conversation_id", conversation_ids)\
            .limit(1)\
            .execute()
        row = first_row(shared)
        return row["conversation_id"] if row else None

    def get_or_create_conversation(self, user_id: str, other_user_id: str) -> str:
        if user_id == other_user_id:
            raise HTTPException(status_code=400, detail="Cannot start a conversation with yourself")
        other = first_row(self.supabase.table("profiles")
                          .select("id")
                          .eq("id", other_user_id)
                          .limit(1)
                          .execute())
        if not other:
            raise HTTPException(status_code=404, detail="User not found")

        try:
            result = self.supabase.rpc("get_or_create_conversation", {
                "user1_id": user_id,
                "user2_id": other_user_id,
            }).execute()
            conversation_id = result.data[0] if isinstance(result.data, list) else result.data
            if conversation_id:
                return conversation_id
        except Exception as e:
            logger.warning(f"get_or_create_conversation RPC failed, using table fallback: {e}")

        try:
            existing = self._find_conversation(user_id, other_user_id)
            if existing:
                return existing
            now = utcnow_iso()
            created = self.supabase.table("conversations")\
                .insert({"created_at": now, "updated_at": now})\
                .execute()
            conversation_id = created.data[0]["id"]
            self.supabase.table("conversation_participants").insert([
                {"conversation_id": conversation_id, "user_id": user_id, "last_read_at": now, "unread_count": 0},
                {"conversation_id": conversation_id, "user_id": other_user_id, "last_read_at": now, "unread_count": 0},
            ]).execute()
            return conversation_id
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_conversations(self, user_id: str) -> List[ConversationResponse]:
        """Conversations with the other participants and my unread count, latest activity first"""
        try:
            result = self.supabase.table("conversation_participants")\
                .select("conversation_id, unread_count, last_read_at, conversations (*)")\
                .eq("user_id", user_id)\
                .execute()
            conversations = []
            for item in result.data or []:
                conversation = item.get("conversations")
                if not conversation:
                    continue
                others = self.supabase.table("conversation_participants")\
                    .select(f"user_id, profile:profiles ({PROFILE_COLUMNS})")\
                    .eq("conversation_id", conversation["id"])\
                    .neq("user_id", user_id)\
                    .execute()
                conversations.append(ConversationResponse(
                    **conversation,
                    participants=[ParticipantResponse(**p) for p in (others.data or [])],
                    unread_count=item.get("unread_count") or 0
                ))
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        epoch = datetime.min.replace(tzinfo=timezone.utc)
        conversations.sort(
            key=lambda c: parse_datetime(c.last_message_at or c.created_at) or epoch,
            reverse=True
        )
        return conversations

    def list_messages(self, user_id: str, conversation_id: str) -> List[MessageResponse]:
        self._require_participant(user_id, conversation_id)
        try:
            result = self.supabase.table("messages")\
                .select("*")\
                .eq("conversation_id", conversation_id)\
                .eq("is_deleted", False)\
                .order("created_at")\
                .execute()
            return [MessageResponse(**m) for m in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def send_message(self, user_id: str, conversation_id: str, text: str) -> MessageResponse:
        text = clean_message_text(text)
        self._require_participant(user_id, conversation_id)
        try:
            now = utcnow_iso()
            result = self.supabase.table("messages").insert({
                "conversation_id": conversation_id,
                "sender_id": user_id,
                "text": text,
                "is_edited": False,
                "is_deleted": False,
                "created_at": now,
            }).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to send message")
            message = result.data[0]

            self.supabase.table("conversations")\
                .update({
                    "last_message_text": text,
                    "last_message_at": now,
                    "last_message_sender_id": user_id,
                    "updated_at": now,
                })\
                .eq("id", conversation_id)\
                .execute()

            others = self.supabase.table("conversation_participants")\
                .select("id, user_id, unread_count, is_muted")\
                .eq("conversation_id", conversation_id)\
                .neq("user_id", user_id)\
                .execute()
            recipients = []
            for participant in others.data or []:
                self.supabase.table("conversation_participants")\
                    .update({"unread_count": (participant.get("unread_count") or 0) + 1})\
                    .eq("id", participant["id"])\
                    .execute()
                if not participant.get("is_muted"):
                    recipients.append(participant["user_id"])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        if recipients and self.notifications is not None:
            self._push_new_message(user_id, conversation_id, text, recipients)
        return MessageResponse(**message)

    def _push_new_message(self, sender_id: str, conversation_id: str, text: str, recipients: List[str]) -> None:
        try:
            sender = first_row(self.supabase.table("profiles")
                               .select("display_name, first_name")
                               .eq("id", sender_id)
                               .limit(1)
                               .execute()) or {}
            title = sender.get("display_name") or sender.get("first_name") or "New message"
            preview = text if len(text) <= PUSH_PREVIEW_LENGTH else text[:PUSH_PREVIEW_LENGTH - 3] + "..."
            self.notifications.notify_users(
                recipients, title, preview,
                {"type": "message", "conversation_id": conversation_id, "sender_id": sender_id},
                notification_type="message"
            )
        except Exception as e:
            logger.error(f"Error sending message notification for conversation {conversation_id}: {e}")

    def mark_read(self, user_id: str, conversation_id: str) -> bool:
        try:
            self.supabase.table("conversation_participants")\
                .update({"last_read_at": utcnow_iso(), "unread_count": 0})\
                .eq("conversation_id", conversation_id)\
                .eq("user_id", user_id)\
                .execute()
            return True
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def edit_message(self, user_id: str, message_id: str, text: str) -> MessageResponse:
        text = clean_message_text(text)
        try:
            result = self.supabase.table("messages")\
                .update({"text": text, "is_edited": True, "updated_at": utcnow_iso()})\
                .eq("id", message_id)\
                .eq("sender_id", user_id)\
                .eq("is_deleted", False)\
                .execute()
            if not result.data:
                raise HTTPException(status_code=404, detail="Message not found")
            return MessageResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def delete_message(self, user_id: str, message_id: str) -> bool:
        """Soft delete: the row stays but is hidden from message lists"""
        try:
            result = self.supabase.table("messages")\
                .update({"is_deleted": True, "deleted_at": utcnow_iso()})\
                .eq("id", message_id)\
                .eq("sender_id", user_id)\
                .execute()
            if not result.data:
                raise HTTPException(status_code=404, detail="Message not found")
            return True
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def delete_conversation(self, user_id: str, conversation_id: str) -> bool:
        """Participants and messages go with it (on delete cascade)"""
        self._require_participant(user_id, conversation_id)
        try:
            self.supabase.table("conversations")\
                .delete()\
                .eq("id", conversation_id)\
                .execute()
            return True
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
