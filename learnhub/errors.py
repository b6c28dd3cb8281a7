from typing import Optional


class AppError(Exception):
    """Base error carrying the HTTP status it is answered with."""

    code = "ERR_INTERNAL"
    http_status = 500

    def __init__(self, message: str, code: Optional[str] = None, http_status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if http_status is not None:
            self.http_status = http_status


class ValidationError(AppError):
    code = "ERR_VALIDATION"
    http_status = 400


class NotFound(AppError):
    code = "ERR_NOT_FOUND"
    http_status = 404


class AuthError(AppError):
    code = "ERR_AUTH"
    http_status = 401


class InvalidSession(AuthError):
    code = "ERR_SESSION"


class Forbidden(AppError):
    code = "ERR_FORBIDDEN"
    http_status = 403


class InvalidChallenge(AppError):
    code = "ERR_INVALID_CHALLENGE"
    http_status = 400


class ChallengeExpired(AppError):
    code = "ERR_CHALLENGE_EXPIRED"
    http_status = 400


class SecretMismatch(AppError):
    code = "ERR_SECRET_MISMATCH"
    http_status = 400


class UpstreamError(AppError):
    code = "ERR_UPSTREAM"
    http_status = 500


class DeliveryFailed(UpstreamError):
    code = "ERR_DELIVERY"
