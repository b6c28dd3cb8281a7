"""
Password hashing and stateless session tokens.
"""

import logging
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from learnhub.errors import InvalidSession

logger = logging.getLogger(__name__)


class PasswordHasher:
    """bcrypt with a configurable cost factor."""

    def __init__(self, rounds: int = 10):
        self.rounds = rounds

    def hash(self, secret: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(secret.encode("utf-8"), salt).decode("utf-8")

    def verify(self, secret: str, hashed: str) -> bool:
        try:
            return bcrypt.checkpw(secret.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            # malformed stored hash
            return False


class SessionIssuer:
    """
    Issues and verifies signed session tokens.

    Tokens are never stored server-side; expiry is the only lifetime bound.
    """

    def __init__(self, secret: str, expires_in: timedelta, algorithm: str = "HS256"):
        if not secret:
            raise ValueError("session secret must not be empty")
        self.secret = secret
        self.expires_in = expires_in
        self.algorithm = algorithm

    def issue(self, identity: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "id": identity,
            "iat": now,
            "exp": now + self.expires_in,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> str:
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            raise InvalidSession("Session expired, please login again")
        except jwt.InvalidTokenError as exc:
            logger.info("Rejected session token: %s", exc.__class__.__name__)
            raise InvalidSession("Invalid session token")

        identity = payload.get("id")
        if not identity or not isinstance(identity, str):
            raise InvalidSession("Invalid session token")
        return identity
