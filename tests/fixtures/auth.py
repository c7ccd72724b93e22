"""
Authentication Test Fixtures for Hextok.

Provides reusable test data, a controllable clock and helpers for driving
the OAuth flows.
"""
from typing import Dict
from urllib.parse import parse_qs, urlparse

from app.core.security import b64url_decode


class AuthTestData:
    """Test data for authentication tests."""

    STATE_KEY = "test-state-signing-key-0123456789abcdef"

    ALICE = {
        "provider_user_id": "55",
        "login": "alice",
        "code": "code-alice",
    }

    BOB = {
        "provider_user_id": "77",
        "login": "bob",
        "code": "code-bob",
    }

    # not valid base64url
    GARBAGE_TOKENS = [
        "!!!not-base64!!!",
        "abc$def",
        "a b c",
    ]

    APP_REDIRECT_URI = "hextok://oauth/callback"
    CLIENT_STATE = "client-state-xyz"


class FakeClock:
    """Manually advanced time source, in unix seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def query_params(url: str) -> Dict[str, str]:
    """Single-valued query parameters of a URL."""
    return {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}


def decode_bearer(token: str) -> tuple[str, str]:
    """Split a bearer token into its raw text fields."""
    session_id, raw_secret = b64url_decode(token).decode("utf-8").split("|")
    return session_id, raw_secret
