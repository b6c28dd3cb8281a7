"""
Principal persistence on top of the `user` collection.

A principal's reset challenge is held in two nullable fields,
`reset_password_token` (SHA-256 of the code) and `reset_password_expire`;
both are set or both are null.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from learnhub.challenges import hash_code
from learnhub.database import create_document, delete_document, to_object_id, update_document, utcnow
from learnhub.errors import ValidationError
from learnhub.schemas import PLACEHOLDER_AVATAR, ChallengePending, ChallengeState, NoChallenge, Principal

COLLECTION = "user"


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _challenge_fields(challenge: ChallengeState) -> Dict[str, Any]:
    if isinstance(challenge, ChallengePending):
        return {"reset_password_token": challenge.code_hash, "reset_password_expire": challenge.expires_at}
    return {"reset_password_token": None, "reset_password_expire": None}


def _to_doc(principal: Principal) -> Dict[str, Any]:
    return {
        "name": principal.name,
        "email": principal.email,
        "password": principal.password_hash,
        "avatar": principal.avatar.model_dump(),
        "role": principal.role,
        "videos": list(principal.videos),
        **_challenge_fields(principal.challenge),
    }


def _from_doc(doc: Dict[str, Any]) -> Principal:
    challenge = NoChallenge()
    if doc.get("reset_password_token") and doc.get("reset_password_expire"):
        challenge = ChallengePending(
            code_hash=doc["reset_password_token"],
            expires_at=doc["reset_password_expire"],
        )
    return Principal(
        id=str(doc["_id"]),
        name=doc["name"],
        email=doc["email"],
        password_hash=doc["password"],
        role=doc.get("role", "user"),
        avatar=doc.get("avatar") or PLACEHOLDER_AVATAR,
        videos=[str(v) for v in doc.get("videos", [])],
        challenge=challenge,
        created_at=doc.get("created_at"),
    )


class CredentialStore:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db[COLLECTION]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index("email", unique=True)
        await self.collection.create_index("reset_password_token", sparse=True)

    async def find_by_identity(self, email: str) -> Optional[Principal]:
        doc = await self.collection.find_one({"email": normalize_email(email)})
        return _from_doc(doc) if doc else None

    async def find_by_id(self, principal_id: str) -> Optional[Principal]:
        oid = to_object_id(principal_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid})
        return _from_doc(doc) if doc else None

    async def find_by_pending_challenge(self, code: str) -> Optional[Principal]:
        """Match on the code only; expiry is left to the caller."""
        doc = await self.collection.find_one({"reset_password_token": hash_code(code)})
        return _from_doc(doc) if doc else None

    async def create(self, principal: Principal) -> Principal:
        try:
            doc = await create_document(self.db, COLLECTION, _to_doc(principal))
        except DuplicateKeyError:
            raise ValidationError("Duplicate email entered")
        return _from_doc(doc)

    async def save(self, principal: Principal) -> None:
        """Persist the credential fields only: secret hash and reset challenge."""
        changes = {"password": principal.password_hash, **_challenge_fields(principal.challenge)}
        await self._set(principal.id, changes)

    async def save_challenge(self, principal_id: str, challenge: ChallengeState) -> None:
        await self._set(principal_id, _challenge_fields(challenge))

    async def clear_challenge(self, principal_id: str, code_hash: str) -> bool:
        """Clear the challenge only if it is still the one identified by `code_hash`."""
        res = await self.collection.update_one(
            {"_id": to_object_id(principal_id), "reset_password_token": code_hash},
            {"$set": {**_challenge_fields(NoChallenge()), "updated_at": utcnow().isoformat()}},
        )
        return res.modified_count == 1

    async def release_expired_challenge(self, code: str, now: datetime) -> bool:
        """Free `code` if whoever holds it let it expire."""
        res = await self.collection.update_one(
            {"reset_password_token": hash_code(code), "reset_password_expire": {"$lte": now}},
            {"$set": {**_challenge_fields(NoChallenge()), "updated_at": utcnow().isoformat()}},
        )
        return res.modified_count == 1

    async def _set(self, principal_id: str, changes: Dict[str, Any]) -> None:
        await self.collection.update_one(
            {"_id": to_object_id(principal_id)},
            {"$set": {**changes, "updated_at": utcnow().isoformat()}},
        )

    async def list_all(self) -> List[Principal]:
        return [_from_doc(doc) async for doc in self.collection.find({})]

    async def update_profile(self, principal_id: str, name: str) -> Optional[Principal]:
        doc = await update_document(self.db, COLLECTION, principal_id, {"name": name})
        return _from_doc(doc) if doc else None

    async def set_role(self, principal_id: str, role: str) -> Optional[Principal]:
        doc = await update_document(self.db, COLLECTION, principal_id, {"role": role})
        return _from_doc(doc) if doc else None

    async def delete(self, principal_id: str) -> bool:
        return await delete_document(self.db, COLLECTION, principal_id)

    async def add_video(self, principal_id: str, video_id: str) -> None:
        await self.collection.update_one({"_id": to_object_id(principal_id)}, {"$push": {"videos": video_id}})

    async def remove_video(self, principal_id: str, video_id: str) -> None:
        await self.collection.update_one({"_id": to_object_id(principal_id)}, {"$pull": {"videos": video_id}})
