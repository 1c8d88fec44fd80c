"""
Tests for bearer token verification.
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from conftest import SECRET

from canteen.jwt_service import (
    InvalidTokenError,
    TokenExpiredError,
    decode_token,
    user_id_from_payload,
)


def _encode(secret=SECRET, **claims):
    now = datetime.now(timezone.utc)
    payload = {"sub": "u1", "type": "access", "iat": now, "exp": now + timedelta(hours=1)}
    payload.update(claims)
    return jwt.encode({k: v for k, v in payload.items() if v is not None}, secret, "HS256")


class TestDecodeToken:
    def test_valid_access_token(self, config):
        assert decode_token(_encode(), verify_type="access")["sub"] == "u1"

    def test_token_without_type_is_accepted(self, config):
        assert decode_token(_encode(type=None), verify_type="access")["sub"] == "u1"

    def test_refresh_token_rejected_as_access(self, config):
        with pytest.raises(InvalidTokenError, match="Expected access"):
            decode_token(_encode(type="refresh"), verify_type="access")

    def test_wrong_secret(self, config):
        with pytest.raises(InvalidTokenError):
            decode_token(_encode(secret="another-secret-entirely"))

    def test_expired(self, config):
        expired = datetime.now(timezone.utc) - timedelta(minutes=5)
        with pytest.raises(TokenExpiredError):
            decode_token(_encode(exp=expired))

    def test_user_id_claim_required(self, config):
        with pytest.raises(InvalidTokenError, match="no user id"):
            decode_token(_encode(sub=None))

    def test_legacy_user_id_claim(self, config):
        payload = decode_token(_encode(sub=None, user_id=42))
        assert user_id_from_payload(payload) == "42"


def test_user_id_from_missing_payload():
    assert user_id_from_payload(None) is None
    assert user_id_from_payload({"sub": ""}) is None
