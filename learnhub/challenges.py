import hashlib
import secrets
from datetime import datetime, timedelta
from typing import Callable, Tuple

from learnhub.database import utcnow


def hash_code(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


class ChallengeGenerator:
    """Fixed-width numeric reset codes from a CSPRNG, with a fixed expiry window."""

    def __init__(self, digits: int = 5, ttl: timedelta = timedelta(minutes=15),
                 clock: Callable[[], datetime] = utcnow):
        if digits < 1:
            raise ValueError("digits must be positive")
        self.digits = digits
        self.ttl = ttl
        self.clock = clock

    def generate(self) -> Tuple[str, datetime]:
        low = 10 ** (self.digits - 1)
        high = 10 ** self.digits
        code = str(low + secrets.randbelow(high - low))
        return code, self.clock() + self.ttl
