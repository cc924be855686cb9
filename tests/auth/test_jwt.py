"""JWT access tokens."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from taskkash.auth.jwt import create_access_token, verify_token
from taskkash.config import get_settings


class TestAccessToken:
    def test_create_and_verify(self):
        token = create_access_token(user_id=7, role="admin")
        payload = verify_token(token)
        assert payload["sub"] == "7"
        assert payload["role"] == "admin"
        assert payload["type"] == "access"

    def test_expires_after_a_day(self):
        payload = verify_token(create_access_token(user_id=1))
        assert payload["exp"] - payload["iat"] == 24 * 60 * 60

    def test_wrong_type_rejected(self):
        settings = get_settings()
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "1", "type": "reset", "iat": now, "exp": now + timedelta(minutes=5), "iss": settings.jwt_issuer},
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(jwt.InvalidTokenError, match="Expected token type"):
            verify_token(token)

    def test_expired_token(self):
        settings = get_settings()
        past = datetime.now(timezone.utc) - timedelta(days=2)
        token = jwt.encode(
            {"sub": "1", "type": "access", "iat": past, "exp": past + timedelta(hours=1), "iss": settings.jwt_issuer},
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(jwt.InvalidTokenError, match="Token has expired"):
            verify_token(token)

    def test_foreign_signature_rejected(self):
        token = jwt.encode({"sub": "1", "type": "access"}, "some-other-secret-of-decent-length", algorithm="HS256")
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token)
