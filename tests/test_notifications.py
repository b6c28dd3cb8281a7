import io

import pytest
import requests

from learnhub.errors import DeliveryFailed, UpstreamError
from learnhub.media import CloudinaryMedia
from learnhub.notifications import EmailNotifier

pytestmark = pytest.mark.anyio


class StubResponse:
    def __init__(self, status_code, text=""):
        self.status_code = status_code
        self.text = text


class StubSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.error:
            raise self.error
        return self.response


def make_notifier(session):
    return EmailNotifier("https://mail.example.net/v3/smtp/email", "key-123", "noreply@learnhub.io",
                         timeout=3, session=session)


async def test_deliver_posts_message():
    session = StubSession(StubResponse(201))
    await make_notifier(session).deliver("a@x.com", "Password Recovery", "code 12345")

    call = session.calls[0]
    assert call["headers"]["api-key"] == "key-123"
    assert call["timeout"] == 3
    assert call["json"]["to"] == [{"email": "a@x.com"}]
    assert call["json"]["subject"] == "Password Recovery"
    assert call["json"]["textContent"] == "code 12345"
    assert call["json"]["sender"]["email"] == "noreply@learnhub.io"


async def test_rejected_message_raises():
    session = StubSession(StubResponse(400, '{"message":"invalid sender"}'))
    with pytest.raises(DeliveryFailed, match="400"):
        await make_notifier(session).deliver("a@x.com", "s", "m")


async def test_timeout_raises():
    session = StubSession(error=requests.Timeout())
    with pytest.raises(DeliveryFailed, match="timeout"):
        await make_notifier(session).deliver("a@x.com", "s", "m")


async def test_connection_error_raises():
    session = StubSession(error=requests.ConnectionError("refused"))
    with pytest.raises(DeliveryFailed, match="refused"):
        await make_notifier(session).deliver("a@x.com", "s", "m")


async def test_unconfigured_notifier_refuses():
    session = StubSession(StubResponse(200))
    notifier = EmailNotifier("", "", "", session=session)
    with pytest.raises(DeliveryFailed, match="not configured"):
        await notifier.deliver("a@x.com", "s", "m")
    assert session.calls == []


async def test_unconfigured_media_refuses():
    media = CloudinaryMedia("", "", "")
    with pytest.raises(UpstreamError, match="not configured"):
        await media.upload(io.BytesIO(b"\x00\x00"))


async def test_media_upload_returns_reference(monkeypatch):
    seen = {}

    def fake_upload(fileobj, **options):
        seen.update(options)
        return {"public_id": "learnhub/abc", "secure_url": "https://res.cloudinary.com/demo/video/upload/abc.mp4"}

    monkeypatch.setattr("cloudinary.uploader.upload", fake_upload)
    media = CloudinaryMedia("demo", "key", "secret", folder="learnhub")
    ref = await media.upload(io.BytesIO(b"\x00\x00"))

    assert ref.public_id == "learnhub/abc"
    assert ref.url.endswith("abc.mp4")
    assert seen["resource_type"] == "video"
    assert seen["folder"] == "learnhub"


async def test_media_upload_failure_raises(monkeypatch):
    from cloudinary.exceptions import Error

    def fake_upload(fileobj, **options):
        raise Error("Invalid api_key")

    monkeypatch.setattr("cloudinary.uploader.upload", fake_upload)
    media = CloudinaryMedia("demo", "key", "secret")
    with pytest.raises(UpstreamError, match="Invalid api_key"):
        await media.upload(io.BytesIO(b"\x00\x00"))
