from datetime import timedelta

import jwt
import pytest

from learnhub.errors import InvalidSession
from learnhub.security import PasswordHasher, SessionIssuer


def test_hash_verifies_only_the_hashed_secret(hasher):
    hashed = hasher.hash("pass1234")
    assert hashed != "pass1234"
    assert hasher.verify("pass1234", hashed)
    assert not hasher.verify("pass12345", hashed)
    assert not hasher.verify("", hashed)


def test_hash_is_salted(hasher):
    assert hasher.hash("pass1234") != hasher.hash("pass1234")


def test_rehash_replaces_previous_secret(hasher):
    old = hasher.hash("pass1234")
    new = hasher.hash("newpass1")
    assert hasher.verify("newpass1", new)
    assert not hasher.verify("pass1234", new)
    assert not hasher.verify("newpass1", old)


def test_verify_tolerates_malformed_hash():
    assert PasswordHasher(rounds=4).verify("pass1234", "not-a-bcrypt-hash") is False


def test_session_roundtrip(sessions):
    token = sessions.issue("64b7f0c2a1b2c3d4e5f60718")
    assert sessions.verify(token) == "64b7f0c2a1b2c3d4e5f60718"


def test_expired_session_is_rejected():
    issuer = SessionIssuer("secret", timedelta(seconds=-1))
    token = issuer.issue("abc")
    with pytest.raises(InvalidSession, match="expired"):
        issuer.verify(token)


def test_tampered_session_is_rejected(sessions):
    token = sessions.issue("abc")
    head, payload, sig = token.split(".")
    forged = ".".join([head, payload, sig[::-1]])
    with pytest.raises(InvalidSession):
        sessions.verify(forged)


def test_session_signed_with_other_secret_is_rejected(sessions):
    token = SessionIssuer("another-secret", timedelta(hours=1)).issue("abc")
    with pytest.raises(InvalidSession):
        sessions.verify(token)


def test_session_without_identity_is_rejected(sessions):
    token = jwt.encode({"iat": 1, "exp": 9999999999}, sessions.secret, algorithm="HS256")
    with pytest.raises(InvalidSession):
        sessions.verify(token)


def test_empty_secret_refused():
    with pytest.raises(ValueError):
        SessionIssuer("", timedelta(hours=1))
