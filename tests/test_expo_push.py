import json
import httpx
from app.integrations.expo_push import ExpoPushClient, chunk_push_messages, is_expo_push_token

TOKEN_A = "ExponentPushToken[aaaaaaaaaaaaaaaaaaaaaa]"
TOKEN_B = "ExpoPushToken[bbbbbbbbbbbbbbbbbbbbbb]"


def test_token_validation():
    assert is_expo_push_token(TOKEN_A)
    assert is_expo_push_token(TOKEN_B)
    assert is_expo_push_token("0f1e2d3c-4b5a-6978-8796-a5b4c3d2e1f0")
    assert not is_expo_push_token("not-a-token")
    assert not is_expo_push_token(None)


def test_chunking():
    chunks = chunk_push_messages([{"to": str(i)} for i in range(250)])
    assert [len(c) for c in chunks] == [100, 100, 50]


def test_send_batch_reports_unregistered_devices():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        requests.append(body)
        return httpx.Response(200, json={"data": [
            {"status": "ok", "id": "ticket-1"},
            {"status": "error", "message": "gone", "details": {"error": "DeviceNotRegistered"}},
        ]})

    client = ExpoPushClient(transport=httpx.MockTransport(handler))
    result = client.send_batch_push_notifications([
        {"push_token": TOKEN_A, "title": "Hi", "body": "There", "data": {"type": "message"}},
        {"push_token": TOKEN_B, "title": "Hi", "body": "There"},
        {"push_token": "garbage", "title": "Hi", "body": "There"},
    ])

    assert result == {"sent": 1, "errors": 1, "unregistered_tokens": [TOKEN_B]}
    assert len(requests) == 1
    assert [m["to"] for m in requests[0]] == [TOKEN_A, TOKEN_B]
    assert requests[0][0]["data"] == {"type": "message"}
    assert "data" not in requests[0][1]


def test_http_failure_does_not_raise():
    client = ExpoPushClient(transport=httpx.MockTransport(lambda request: httpx.Response(500, text="boom")))
    result = client.send_push_notification(TOKEN_A, "Title", "Body")
    assert result == {"sent": 0, "errors": 0, "unregistered_tokens": []}


def test_transport_error_is_logged_not_raised():
    def handler(request):
        raise httpx.ConnectError("offline", request=request)

    client = ExpoPushClient(transport=httpx.MockTransport(handler))
    assert client.send_push_notification(TOKEN_A, "Title", "Body")["sent"] == 0


def test_non_json_response_is_logged_not_raised():
    client = ExpoPushClient(transport=httpx.MockTransport(
        lambda request: httpx.Response(200, text="<html>gateway</html>")
    ))
    assert client.send_push_notification(TOKEN_A, "Title", "Body") == {
        "sent": 0, "errors": 0, "unregistered_tokens": [],
    }


def test_unexpected_ticket_shapes_count_as_errors():
    client = ExpoPushClient(transport=httpx.MockTransport(
        lambda request: httpx.Response(200, json={"data": ["oops", {"status": "ok"}]})
    ))
    result = client.send_batch_push_notifications([
        {"push_token": TOKEN_A, "title": "Hi", "body": "There"},
        {"push_token": TOKEN_B, "title": "Hi", "body": "There"},
    ])
    assert result == {"sent": 1, "errors": 1, "unregistered_tokens": []}

    client = ExpoPushClient(transport=httpx.MockTransport(
        lambda request: httpx.Response(200, json=["not", "an", "object"])
    ))
    assert client.send_push_notification(TOKEN_A, "Title", "Body")["sent"] == 0
