"""Tests for password hashing and the access token codec."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import jwt
import pytest

from bookshelf.services.auth import (
    InvalidOrExpiredTokenError,
    create_access_token,
    decode_token,
    hash_password,
    token_issued_at,
    verify_password,
)


class TestPasswordHashing:
    def test_hash_and_verify(self):
        password_hash = hash_password("s3cret!")

        assert password_hash.startswith("$argon2id$")
        assert verify_password("s3cret!", password_hash)
        assert not verify_password("wrong", password_hash)

    def test_hashes_are_salted(self):
        assert hash_password("same") != hash_password("same")

    def test_garbage_hash_does_not_verify(self):
        assert not verify_password("anything", "$argon2id$v=19$m=65536,t=3,p=4$broken")


class TestAccessToken:
    def test_roundtrip(self, test_settings):
        user_id = uuid4()
        token = create_access_token(user_id, config=test_settings)

        payload = decode_token(token, test_settings)

        assert payload["sub"] == str(user_id)
        assert payload["type"] == "access"
        assert len(payload["jti"]) == 32

    def test_tokens_are_unique(self, test_settings):
        user_id = uuid4()

        assert create_access_token(user_id, config=test_settings) != create_access_token(
            user_id, config=test_settings
        )

    def test_issued_at_keeps_sub_second_precision(self, test_settings):
        issued = datetime(2026, 3, 1, 12, 0, 0, 123456, tzinfo=UTC)
        token = create_access_token(uuid4(), issued_at=issued, config=test_settings)
        payload = jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": False, "verify_iat": False},
        )

        assert token_issued_at(payload) == issued

    def test_expired_token_rejected(self, test_settings):
        issued = datetime.now(UTC) - timedelta(days=1)
        token = create_access_token(uuid4(), issued_at=issued, config=test_settings)

        with pytest.raises(InvalidOrExpiredTokenError):
            decode_token(token, test_settings)

    def test_wrong_signature_rejected(self, test_settings):
        other = test_settings.model_copy(update={"jwt_secret_key": "x" * 40})
        token = create_access_token(uuid4(), config=other)

        with pytest.raises(InvalidOrExpiredTokenError):
            decode_token(token, test_settings)

    def test_garbage_rejected(self, test_settings):
        with pytest.raises(InvalidOrExpiredTokenError):
            decode_token("not-a-jwt", test_settings)

    def test_non_access_type_rejected(self, test_settings):
        now = datetime.now(UTC)
        token = jwt.encode(
            {
                "sub": str(uuid4()),
                "iat": now.timestamp(),
                "exp": now + timedelta(minutes=5),
                "type": "refresh",
            },
            test_settings.effective_jwt_secret_key,
            algorithm="HS256",
        )

        with pytest.raises(InvalidOrExpiredTokenError):
            decode_token(token, test_settings)

    def test_non_uuid_subject_rejected(self, test_settings):
        now = datetime.now(UTC)
        token = jwt.encode(
            {
                "sub": "42",
                "iat": now.timestamp(),
                "exp": now + timedelta(minutes=5),
                "type": "access",
            },
            test_settings.effective_jwt_secret_key,
            algorithm="HS256",
        )

        with pytest.raises(InvalidOrExpiredTokenError):
            decode_token(token, test_settings)

    def test_missing_claims_rejected(self, test_settings):
        token = jwt.encode(
            {"sub": str(uuid4()), "type": "access"},
            test_settings.effective_jwt_secret_key,
            algorithm="HS256",
        )

        with pytest.raises(InvalidOrExpiredTokenError):
            decode_token(token, test_settings)
