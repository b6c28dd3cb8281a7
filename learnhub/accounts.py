"""
Credential lifecycle: registration, login, password reset and password update.

The reset flow is a per-principal state machine held on Principal.challenge:

    NoChallenge --request_reset--> ChallengePending
    ChallengePending --submit_reset--> NoChallenge (secret replaced)
    ChallengePending --delivery failure--> NoChallenge

A pending challenge whose expiry has passed is refused with ChallengeExpired
and stays in place until a new request overwrites it, or until its code is
handed to another principal.

Writes touch only the credential fields (secret hash, challenge), so a
request that waits on delivery never reverts concurrent changes to the
rest of the principal.
"""

import logging
from datetime import datetime
from typing import Callable, Optional, Tuple

from fastapi.concurrency import run_in_threadpool

from learnhub.challenges import ChallengeGenerator, hash_code
from learnhub.database import utcnow
from learnhub.errors import (
    AuthError,
    ChallengeExpired,
    DeliveryFailed,
    Forbidden,
    InvalidChallenge,
    InvalidSession,
    NotFound,
    SecretMismatch,
    UpstreamError,
    ValidationError,
)
from learnhub.schemas import ChallengePending, NoChallenge, Principal, check_secret, validate_principal
from learnhub.security import PasswordHasher, SessionIssuer
from learnhub.store import CredentialStore, normalize_email

logger = logging.getLogger(__name__)

RESET_SUBJECT = "Password Recovery"
RESET_MESSAGE = (
    "Your OTP for password reset is: {code}. Use this OTP to reset your password. "
    "It expires in {minutes} minutes. "
    "If you have not requested this email then please ignore it."
)
CODE_ALLOCATION_ATTEMPTS = 5


class AccountService:
    """
    Sequences credential operations over injected collaborators.

    `notifier` is anything with an awaitable
    ``deliver(email, subject, message)`` that raises DeliveryFailed.
    """

    def __init__(self, store: CredentialStore, hasher: PasswordHasher, sessions: SessionIssuer,
                 challenges: ChallengeGenerator, notifier, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.hasher = hasher
        self.sessions = sessions
        self.challenges = challenges
        self.notifier = notifier
        self.clock = clock

    async def register(self, name: Optional[str], email: Optional[str],
                       password: Optional[str]) -> Tuple[Principal, str]:
        problem = check_secret(password)
        if problem:
            raise problem
        candidate = validate_principal(
            name=(name or "").strip(),
            email=normalize_email(email),
            password_hash="unset",
        )
        if isinstance(candidate, ValidationError):
            raise candidate
        if await self.store.find_by_identity(candidate.email):
            raise ValidationError("Duplicate email entered")

        candidate.password_hash = await run_in_threadpool(self.hasher.hash, password)
        principal = await self.store.create(candidate)
        logger.info("Registered principal id=%s", principal.id)
        return principal, self.sessions.issue(principal.id)

    async def login(self, email: Optional[str], password: Optional[str],
                    required_role: Optional[str] = None) -> Tuple[Principal, str]:
        if not email or not password:
            raise ValidationError("Please enter the Email & Password both")

        principal = await self.store.find_by_identity(email)
        if principal is None or not await run_in_threadpool(self.hasher.verify, password, principal.password_hash):
            raise AuthError("Invalid email or password")
        if required_role and principal.role != required_role:
            raise Forbidden(f"Role: {principal.role} is not allowed to access this resource")
        return principal, self.sessions.issue(principal.id)

    async def authenticate(self, token: Optional[str]) -> Principal:
        if not token:
            raise AuthError("Please Login to access this resource")
        identity = self.sessions.verify(token)
        principal = await self.store.find_by_id(identity)
        if principal is None:
            raise InvalidSession("Session no longer valid, please login again")
        return principal

    async def request_reset(self, email: Optional[str]) -> Principal:
        if not email:
            raise ValidationError("Please enter your email")
        principal = await self.store.find_by_identity(email)
        if principal is None:
            raise NotFound("User not found")

        code, expires_at = await self._allocate_code(principal)
        principal.challenge = ChallengePending(code_hash=hash_code(code), expires_at=expires_at)
        await self.store.save_challenge(principal.id, principal.challenge)

        minutes = int(self.challenges.ttl.total_seconds() // 60)
        message = RESET_MESSAGE.format(code=code, minutes=minutes)
        try:
            await self.notifier.deliver(principal.email, RESET_SUBJECT, message)
        except Exception as exc:
            # a newer request may have replaced this challenge meanwhile
            await self.store.clear_challenge(principal.id, principal.challenge.code_hash)
            principal.challenge = NoChallenge()
            logger.warning("Reset code delivery failed for id=%s, challenge cleared", principal.id)
            if isinstance(exc, DeliveryFailed):
                raise
            raise DeliveryFailed(str(exc) or "Email delivery failed") from exc

        logger.info("Reset code issued for id=%s", principal.id)
        return principal

    async def submit_reset(self, code: Optional[str], password: Optional[str],
                           confirm_password: Optional[str]) -> Tuple[Principal, str]:
        code = (code or "").strip()
        if not code:
            raise InvalidChallenge("Invalid OTP")
        principal = await self.store.find_by_pending_challenge(code)
        if principal is None or not isinstance(principal.challenge, ChallengePending):
            raise InvalidChallenge("Invalid OTP")
        if principal.challenge.is_expired(self.clock()):
            raise ChallengeExpired("OTP expired, please request a new one")

        problem = check_secret(password)
        if problem:
            raise problem
        if password != confirm_password:
            raise SecretMismatch("Passwords do not match")

        principal.password_hash = await run_in_threadpool(self.hasher.hash, password)
        principal.challenge = NoChallenge()
        await self.store.save(principal)
        logger.info("Password reset completed for id=%s", principal.id)
        return principal, self.sessions.issue(principal.id)

    async def update_password(self, principal_id: str, old_password: Optional[str],
                              new_password: Optional[str],
                              confirm_password: Optional[str]) -> Tuple[Principal, str]:
        principal = await self.store.find_by_id(principal_id)
        if principal is None:
            raise NotFound("User not found")
        if not old_password or not await run_in_threadpool(self.hasher.verify, old_password, principal.password_hash):
            raise AuthError("Old password is incorrect")

        problem = check_secret(new_password)
        if problem:
            raise problem
        if new_password != confirm_password:
            raise SecretMismatch("Passwords don't match")

        principal.password_hash = await run_in_threadpool(self.hasher.hash, new_password)
        await self.store.save(principal)
        logger.info("Password updated for id=%s", principal.id)
        return principal, self.sessions.issue(principal.id)

    async def _allocate_code(self, principal: Principal) -> Tuple[str, datetime]:
        # a code pending for someone else would make lookup by code ambiguous
        for _ in range(CODE_ALLOCATION_ATTEMPTS):
            code, expires_at = self.challenges.generate()
            holder = await self.store.find_by_pending_challenge(code)
            if holder is None or holder.id == principal.id:
                return code, expires_at
            if await self.store.release_expired_challenge(code, self.clock()):
                logger.info("Reused expired reset code held by id=%s", holder.id)
                return code, expires_at
        raise UpstreamError("Could not allocate a reset code, please try again")
