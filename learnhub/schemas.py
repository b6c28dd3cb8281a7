from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional, Literal, Union
from pydantic import BaseModel, ConfigDict, EmailStr, Field, HttpUrl, field_validator
from pydantic import ValidationError as PydanticValidationError

from learnhub.errors import ValidationError

Role = Literal['user', 'tutor', 'admin']

MIN_SECRET_LENGTH = 8
MAX_SECRET_BYTES = 72  # bcrypt input limit


class MediaRef(BaseModel):
    public_id: str
    url: str


PLACEHOLDER_AVATAR = MediaRef(public_id="this is a sample id", url="profilePictureUrl")


# Reset challenge, tagged per principal
class NoChallenge(BaseModel):
    state: Literal['none'] = 'none'


class ChallengePending(BaseModel):
    state: Literal['pending'] = 'pending'
    code_hash: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


ChallengeState = Annotated[Union[NoChallenge, ChallengePending], Field(discriminator='state')]


# Collection: user
class Principal(BaseModel):
    id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=30)
    email: EmailStr
    password_hash: str = Field(..., min_length=1)
    role: Role = 'user'
    avatar: MediaRef = PLACEHOLDER_AVATAR
    videos: List[str] = Field(default_factory=list)
    challenge: ChallengeState = Field(default_factory=NoChallenge)
    created_at: Optional[str] = None

    def public(self) -> Dict[str, Any]:
        """Caller-facing view; never carries the hash or the challenge."""
        return {
            "_id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "avatar": self.avatar.model_dump(),
            "videos": list(self.videos),
            "created_at": self.created_at,
        }


_FIELD_MESSAGES = {
    "name": "Please enter your name (at most 30 characters)",
    "email": "Please enter a valid email",
    "password_hash": "Please enter your password",
    "role": "Role must be one of user, tutor, admin",
}


def validate_principal(**fields: Any) -> Union[Principal, ValidationError]:
    """Build a Principal, or return the first problem as a ValidationError."""
    try:
        return Principal(**fields)
    except PydanticValidationError as exc:
        loc = exc.errors()[0]["loc"]
        field = str(loc[0]) if loc else ""
        return ValidationError(_FIELD_MESSAGES.get(field, f"Invalid value for {field}"))


def check_secret(secret: Optional[str]) -> Optional[ValidationError]:
    if not secret:
        return ValidationError("Please enter your password")
    if len(secret) < MIN_SECRET_LENGTH:
        return ValidationError(f"Password should be at least of {MIN_SECRET_LENGTH} characters")
    if len(secret.encode("utf-8")) > MAX_SECRET_BYTES:
        return ValidationError(f"Password cannot exceed {MAX_SECRET_BYTES} bytes")
    return None


class RequestBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RegisterRequest(RequestBody):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(RequestBody):
    email: Optional[str] = None
    password: Optional[str] = None


class ForgotPasswordRequest(RequestBody):
    email: Optional[str] = None


class ResetPasswordRequest(RequestBody):
    otp: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = Field(None, alias="confirmPassword")

    @field_validator("otp", mode="before")
    @classmethod
    def otp_as_text(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class UpdatePasswordRequest(RequestBody):
    old_password: Optional[str] = Field(None, alias="oldPassword")
    new_password: Optional[str] = Field(None, alias="newPassword")
    confirm_password: Optional[str] = Field(None, alias="confirmPassword")


class UpdateProfileRequest(RequestBody):
    name: str = Field(..., min_length=1, max_length=30)


class RoleUpdateRequest(RequestBody):
    role: Role


# Collection: video
class VideoUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1, max_length=5000)


# Collection: product
class Product(BaseModel):
    title: str = Field(..., min_length=3, max_length=120)
    slug: str = Field(..., min_length=3, max_length=140)
    description: str = Field(..., min_length=20, max_length=5000)
    price: float = Field(..., ge=0)
    category: Literal['course','prompt','video','template','bundle','other'] = 'other'
    level: Optional[Literal['beginner','intermediate','advanced']] = None
    cover_url: Optional[HttpUrl] = None
    contents: Optional[List[str]] = None  # table of contents / modules
    benefits: Optional[List[str]] = None
    tags: Optional[List[str]] = None


class ProductUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=120)
    description: Optional[str] = Field(None, min_length=20, max_length=5000)
    price: Optional[float] = Field(None, ge=0)
    category: Optional[Literal['course','prompt','video','template','bundle','other']] = None
    level: Optional[Literal['beginner','intermediate','advanced']] = None
    cover_url: Optional[HttpUrl] = None
    contents: Optional[List[str]] = None
    benefits: Optional[List[str]] = None
    tags: Optional[List[str]] = None


# Embedded in product.reviews
class ReviewRequest(RequestBody):
    product_id: str = Field(..., alias="productId")
    rating: float = Field(..., ge=0, le=5)
    comment: str = Field(..., min_length=1, max_length=2000)
