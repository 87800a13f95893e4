import re
import httpx
from app.config.settings import settings
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

# Expo accepts at most 100 messages per request
PUSH_CHUNK_SIZE = 100

_EXPO_TOKEN_RE = re.compile(r"^Expo(nent)?PushToken\[.+\]$")
_BARE_TOKEN_RE = re.compile(r"^[a-z\d]{8}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{12}$", re.IGNORECASE)


def is_expo_push_token(token: Any) -> bool:
    if not isinstance(token, str):
        return False
    return bool(_EXPO_TOKEN_RE.match(token) or _BARE_TOKEN_RE.match(token))


def build_message(token: str, title: str, body: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    message = {
        "to": token,
        "sound": "default",
        "title": title,
        "body": body,
        "priority": "high",
    }
    if data:
        message["data"] = data
    return message


def chunk_push_messages(messages: List[Dict[str, Any]], size: int = PUSH_CHUNK_SIZE) -> List[List[Dict[str, Any]]]:
    return [messages[i:i + size] for i in range(0, len(messages), size)]


class ExpoPushClient:
    """Sends push notifications through Expo's HTTP API. Never raises on delivery errors."""

    def __init__(self, transport: Optional[httpx.BaseTransport] = None):
        self.url = settings.expo_push_url
        self.timeout = settings.expo_timeout_seconds
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if settings.expo_access_token:
            headers["Authorization"] = f"Bearer {settings.expo_access_token}"
        return headers

    def _post_chunk(self, http_client: httpx.Client, chunk: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        response = http_client.post(self.url, json=chunk, headers=self._headers())
        if response.status_code != 200:
            logger.error(f"Expo push request failed ({response.status_code}): {response.text}")
            return []
        try:
            payload = response.json()
        except ValueError:
            logger.error(f"Expo push response was not JSON: {response.text[:200]}")
            return []
        tickets = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(tickets, list):
            logger.error(f"Unexpected Expo push response: {payload}")
            return []
        return tickets

    def send_messages(self, messages: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Send messages in chunks. Returns {"sent", "errors", "unregistered_tokens"}.
        Messages with malformed tokens are dropped before sending.
        """
        valid = []
        for message in messages:
            if is_expo_push_token(message.get("to")):
                valid.append(message)
            else:
                logger.error(f"Push token {message.get('to')} is not a valid Expo push token")

        result = {"sent": 0, "errors": 0, "unregistered_tokens": []}
        if not valid:
            return result

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as http_client:
                for chunk in chunk_push_messages(valid):
                    tickets = self._post_chunk(http_client, chunk)
                    # Tickets come back in the same order as the chunk
                    for message, ticket in zip(chunk, tickets):
                        if not isinstance(ticket, dict):
                            logger.error(f"Malformed push ticket for {message['to']}: {ticket}")
                            result["errors"] += 1
                            continue
                        if ticket.get("status") == "error":
                            result["errors"] += 1
                            logger.error(f"Error sending push notification: {ticket.get('message')}")
                            details = ticket.get("details") or {}
                            if isinstance(details, dict) and details.get("error") == "DeviceNotRegistered":
                                result["unregistered_tokens"].append(message["to"])
                        else:
                            result["sent"] += 1
        except httpx.HTTPError as e:
            logger.error(f"Error sending push notifications: {e}")
        return result

    def send_push_notification(self, token: str, title: str, body: str,
                               data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self.send_messages([build_message(token, title, body, data)])

    def send_batch_push_notifications(self, notifications: List[Dict[str, Any]]) -> Dict[str, Any]:
        """notifications: [{"push_token", "title", "body", "data"}]"""
        messages = [
            build_message(n.get("push_token"), n["title"], n["body"], n.get("data"))
            for n in notifications
        ]
        result = self.send_messages(messages)
        logger.info(f"Batch push notifications sent: {result['sent']} ok, {result['errors']} failed")
        return result
