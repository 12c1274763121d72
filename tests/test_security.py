import uuid
from datetime import datetime, timedelta, timezone

import jwt

from app.core.security import (
    Principal,
    TokenService,
    TokenStatus,
    hash_password,
    verify_password,
)

PRINCIPAL = Principal(user_id=uuid.uuid4(), username="alice", role="USER")


def test_minted_token_validates_to_username():
    service = TokenService(secret="s3cret")
    result = service.validate(service.mint(PRINCIPAL))

    assert result.ok
    assert result.username == "alice"


def test_token_carries_user_id_and_role():
    service = TokenService(secret="s3cret")
    claims = jwt.decode(service.mint(PRINCIPAL), "s3cret", algorithms=["HS256"])

    assert claims["uid"] == str(PRINCIPAL.user_id)
    assert claims["role"] == "USER"


def test_expired_token_is_rejected():
    service = TokenService(secret="s3cret", expiration_seconds=60)
    token = service.mint(PRINCIPAL, now=datetime.now(timezone.utc) - timedelta(hours=1))

    assert service.validate(token).status is TokenStatus.EXPIRED


def test_token_signed_with_other_secret_is_rejected():
    token = TokenService(secret="other").mint(PRINCIPAL)

    result = TokenService(secret="s3cret").validate(token)

    assert result.status is TokenStatus.BAD_SIGNATURE
    assert result.username is None


def test_garbage_token_is_malformed_not_an_exception():
    service = TokenService(secret="s3cret")

    assert service.validate("not-a-jwt").status is TokenStatus.MALFORMED
    assert service.validate("").status is TokenStatus.MALFORMED


def test_token_without_subject_is_malformed():
    exp = datetime.now(timezone.utc) + timedelta(minutes=5)
    token = jwt.encode({"exp": exp}, "s3cret", algorithm="HS256")

    assert TokenService(secret="s3cret").validate(token).status is TokenStatus.MALFORMED


def test_password_hash_roundtrip():
    password_hash = hash_password("secret123")

    assert password_hash != "secret123"
    assert verify_password("secret123", password_hash)
    assert not verify_password("wrong", password_hash)


def test_verify_against_non_bcrypt_hash_is_false():
    assert not verify_password("secret123", "plaintext")
