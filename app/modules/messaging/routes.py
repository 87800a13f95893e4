from fastapi import APIRouter, Depends
from app.database.supabase_client import get_service_supabase
from app.modules.messaging.schemas import (
    MessageResponse, ConversationResponse, StartConversationRequest, StartConversationResponse,
    SendMessageRequest, EditMessageRequest
)
from app.modules.messaging.service import MessagingService
from app.modules.notifications.service import NotificationService
from app.core.dependencies import get_current_user_id
from supabase import Client
from typing import List, Dict

router = APIRouter(prefix="/conversations", tags=["messaging"])


def get_messaging_service(supabase: Client = Depends(get_service_supabase)) -> MessagingService:
    return MessagingService(supabase, NotificationService(supabase))


@router.get("", response_model=List[ConversationResponse])
async def list_conversations(
    user_data: Dict = Depends(get_current_user_id),
    service: MessagingService = Depends(get_messaging_service)
):
    return service.list_conversations(user_data["id"])


@router.post("", response_model=StartConversationResponse)
async def start_conversation(
    body: StartConversationRequest,
    user_data: Dict = Depends(get_current_user_id),
    service: MessagingService = Depends(get_messaging_service)
):
    """Open (or reuse) the conversation with another user"""
    conversation_id = service.get_or_create_conversation(user_data["id"], body.user_id)
    return StartConversationResponse(conversation_id=conversation_id)


@router.delete("/{conversation_id}", status_code=204)
async def delete_conversation(
    conversation_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: MessagingService = Depends(get_messaging_service)
):
    service.delete_conversation(user_data["id"], conversation_id)


@router.get("/{conversation_id}/messages", response_model=List[MessageResponse])
async def list_messages(
    conversation_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: MessagingService = Depends(get_messaging_service)
):
    return service.list_messages(user_data["id"], conversation_id)


@router.post("/{conversation_id}/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    conversation_id: str,
    body: SendMessageRequest,
    user_data: Dict = Depends(get_current_user_id),
    service: MessagingService = Depends(get_messaging_service)
):
    return service.send_message(user_data["id"], conversation_id, body.text)


@router.post("/{conversation_id}/read", status_code=200)
async def mark_read(
    conversation_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: MessagingService = Depends(get_messaging_service)
):
    service.mark_read(user_data["id"], conversation_id)
    return {"message": "Conversation marked as read"}


@router.put("/messages/{message_id}", response_model=MessageResponse)
async def edit_message(
    message_id: str,
    body: EditMessageRequest,
    user_data: Dict = Depends(get_current_user_id),
    service: MessagingService = Depends(get_messaging_service)
):
    return service.edit_message(user_data["id"], message_id, body.text)


@router.delete("/messages/{message_id}", status_code=204)
async def delete_message(
    message_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: MessagingService = Depends(get_messaging_service)
):
    service.delete_message(user_data["id"], message_id)
