"""Tests for access-token handling."""

from datetime import timedelta
from pathlib import Path

import jwt
import pytest

from readtrack.auth.jwt import create_access_token, verify_token
from readtrack.config import get_settings
from tests.conftest import _ensure_test_keys


@pytest.fixture(autouse=True)
def _keys():
    _ensure_test_keys()


class TestAccessToken:
    def test_create_and_verify(self):
        payload = verify_token(create_access_token(42))
        assert payload["sub"] == "42"
        assert payload["type"] == "access"
        assert payload["iss"] == "readtrack"

    def test_expired(self):
        token = create_access_token(42, expires_in=timedelta(seconds=-1))
        with pytest.raises(jwt.InvalidTokenError, match="expired"):
            verify_token(token)

    def test_wrong_type_rejected(self):
        settings = get_settings()
        private_key = Path(settings.jwt_private_key_path).read_text()
        token = jwt.encode(
            {"sub": "1", "type": "refresh", "iss": settings.jwt_issuer}, private_key, algorithm="RS256"
        )
        with pytest.raises(jwt.InvalidTokenError, match="Expected token type"):
            verify_token(token)

    def test_non_numeric_subject_rejected(self):
        settings = get_settings()
        private_key = Path(settings.jwt_private_key_path).read_text()
        token = jwt.encode(
            {"sub": "alice", "type": "access", "iss": settings.jwt_issuer}, private_key, algorithm="RS256"
        )
        with pytest.raises(jwt.InvalidTokenError, match="reader id"):
            verify_token(token)

    def test_wrong_issuer_rejected(self):
        settings = get_settings()
        private_key = Path(settings.jwt_private_key_path).read_text()
        token = jwt.encode({"sub": "1", "type": "access", "iss": "someone-else"}, private_key, algorithm="RS256")
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token)
