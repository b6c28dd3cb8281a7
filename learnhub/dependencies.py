from datetime import timedelta
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub import config
from learnhub.accounts import AccountService
from learnhub.challenges import ChallengeGenerator
from learnhub.database import get_db
from learnhub.errors import Forbidden
from learnhub.media import CloudinaryMedia
from learnhub.notifications import EmailNotifier
from learnhub.schemas import Principal
from learnhub.security import PasswordHasher, SessionIssuer
from learnhub.store import CredentialStore

bearer = HTTPBearer(auto_error=False)


@lru_cache
def get_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=config.BCRYPT_ROUNDS)


@lru_cache
def get_session_issuer() -> SessionIssuer:
    return SessionIssuer(
        config.JWT_SECRET,
        timedelta(minutes=config.JWT_EXPIRE_MINUTES),
        algorithm=config.JWT_ALGORITHM,
    )


@lru_cache
def get_challenge_generator() -> ChallengeGenerator:
    return ChallengeGenerator(
        digits=config.RESET_CODE_DIGITS,
        ttl=timedelta(minutes=config.RESET_CODE_TTL_MINUTES),
    )


@lru_cache
def get_notifier() -> EmailNotifier:
    return EmailNotifier(
        config.MAIL_API_URL,
        config.MAIL_API_KEY,
        config.MAIL_SENDER,
        sender_name=config.MAIL_SENDER_NAME,
        timeout=config.MAIL_TIMEOUT_SECONDS,
    )


@lru_cache
def get_media() -> CloudinaryMedia:
    return CloudinaryMedia(
        config.CLOUDINARY_CLOUD_NAME,
        config.CLOUDINARY_API_KEY,
        config.CLOUDINARY_API_SECRET,
        folder=config.CLOUDINARY_FOLDER,
    )


async def get_store(db: AsyncIOMotorDatabase = Depends(get_db)) -> CredentialStore:
    return CredentialStore(db)


async def get_account_service(
    store: CredentialStore = Depends(get_store),
    hasher: PasswordHasher = Depends(get_hasher),
    sessions: SessionIssuer = Depends(get_session_issuer),
    challenges: ChallengeGenerator = Depends(get_challenge_generator),
    notifier=Depends(get_notifier),
) -> AccountService:
    return AccountService(store, hasher, sessions, challenges, notifier)


async def current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    accounts: AccountService = Depends(get_account_service),
) -> Principal:
    """Resolve the caller from a bearer header, falling back to the `token` cookie."""
    token = credentials.credentials if credentials else request.cookies.get("token")
    return await accounts.authenticate(token)


def authorize_roles(*roles: str):
    async def checker(user: Principal = Depends(current_user)) -> Principal:
        if user.role not in roles:
            raise Forbidden(f"Role: {user.role} is not allowed to access this resource")
        return user
    return checker
