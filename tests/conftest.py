import asyncio
import re
import uuid
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from learnhub.accounts import AccountService
from learnhub.challenges import ChallengeGenerator
from learnhub.database import get_db
from learnhub.dependencies import get_challenge_generator, get_hasher, get_media, get_notifier, get_session_issuer
from learnhub.errors import DeliveryFailed
from learnhub.main import app
from learnhub.schemas import MediaRef
from learnhub.security import PasswordHasher, SessionIssuer
from learnhub.store import CredentialStore

TEST_SECRET = "test-session-secret"


class Clock:
    def __init__(self, now: Optional[datetime] = None):
        self.now = now or datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FixedCodes(ChallengeGenerator):
    """Hands out the given codes in order, then repeats the last one."""

    def __init__(self, codes: List[str], clock: Clock):
        super().__init__(digits=5, ttl=timedelta(minutes=15), clock=clock)
        self.codes = list(codes)

    def generate(self) -> Tuple[str, datetime]:
        code = self.codes.pop(0) if len(self.codes) > 1 else self.codes[0]
        return code, self.clock() + self.ttl


class FakeNotifier:
    def __init__(self):
        self.sent = []
        self.fail = False

    async def deliver(self, email: str, subject: str, message: str) -> None:
        if self.fail:
            raise DeliveryFailed("SMTP relay unavailable")
        self.sent.append((email, subject, message))

    def last_code(self) -> str:
        return re.search(r"\b(\d{5})\b", self.sent[-1][2]).group(1)


class FakeMedia:
    def __init__(self):
        self.uploads = 0

    async def upload(self, fileobj, resource_type: str = "video") -> MediaRef:
        self.uploads += 1
        fileobj.read()
        return MediaRef(public_id=f"learnhub/video_{self.uploads}",
                        url=f"https://res.cloudinary.com/demo/video/upload/video_{self.uploads}.mp4")


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def db():
    return AsyncMongoMockClient()[f"learnhub_{uuid.uuid4().hex[:12]}"]


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def media():
    return FakeMedia()


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=4)


@pytest.fixture
def sessions():
    return SessionIssuer(TEST_SECRET, timedelta(hours=1))


@pytest.fixture
def store(db):
    return CredentialStore(db)


@pytest.fixture
def codes(clock):
    return FixedCodes(["12345"], clock)


@pytest.fixture
def service(store, hasher, sessions, codes, notifier, clock):
    return AccountService(store, hasher, sessions, codes, notifier, clock=clock)


@pytest.fixture
def client(db, notifier, media, hasher, sessions):
    async def override_db():
        return db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_media] = lambda: media
    app.dependency_overrides[get_hasher] = lambda: hasher
    app.dependency_overrides[get_session_issuer] = lambda: sessions
    app.dependency_overrides[get_challenge_generator] = lambda: ChallengeGenerator()
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(client: TestClient, email: str, password: str = "pass1234", name: str = "Test User") -> dict:
    res = client.post("/api/v1/register", json={"name": name, "email": email, "password": password})
    assert res.status_code == 201, res.text
    return res.json()


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def set_role(db, email: str, role: str) -> None:
    run(db["user"].update_one({"email": email}, {"$set": {"role": role}}))
