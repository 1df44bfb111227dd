import json

import httpx

from app.services.email_service import EmailMessage, EmailSender

API_URL = "https://api.resend.test/emails"

MESSAGE = EmailMessage(
    to="jane@example.com",
    subject="How was your visit?",
    html="<p>Hi</p>",
    text="Hi",
)


def _sender(handler) -> EmailSender:
    return EmailSender(
        api_key="re_test",
        api_url=API_URL,
        sender="Reviews <reviews@example.com>",
        transport=httpx.MockTransport(handler),
    )


async def test_posts_to_provider():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "email_123"})

    result = await _sender(handler).send(MESSAGE)

    assert result.success
    assert result.message_id == "email_123"
    assert seen["auth"] == "Bearer re_test"
    assert seen["body"]["to"] == ["jane@example.com"]
    assert seen["body"]["from"] == "Reviews <reviews@example.com>"


async def test_provider_rejection_is_reported():
    result = await _sender(lambda request: httpx.Response(422, text="bad from")).send(MESSAGE)
    assert not result.success
    assert result.error == "http_422"


async def test_timeout_is_reported():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    result = await _sender(handler).send(MESSAGE)
    assert result.error == "timeout"


async def test_connection_error_is_reported():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    result = await _sender(handler).send(MESSAGE)
    assert result.error == "connection_error"


async def test_mock_mode_without_api_key():
    sender = EmailSender(api_key="", api_url=API_URL, sender="reviews@example.com")
    result = await sender.send(MESSAGE)
    assert sender.mock
    assert result.success
    assert result.message_id == "mock"
