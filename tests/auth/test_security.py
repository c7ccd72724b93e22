"""
Tests for the low-level token helpers.
"""
import base64
import hashlib

import pytest

from app.core.security import (
    b64url_decode,
    b64url_encode,
    constant_time_equals,
    generate_random_token,
    hash_secret,
    sign,
)


class TestBase64URL:
    """Test strict URL-safe base64."""

    def test_unpadded_by_default(self):
        assert b64url_encode(b"ab") == "YWI"

    def test_padded(self):
        assert b64url_encode(b"ab", padded=True) == "YWI="

    @pytest.mark.parametrize("data", ["YWI", "YWI="])
    def test_decode_accepts_both_paddings(self, data):
        assert b64url_decode(data) == b"ab"

    def test_urlsafe_alphabet(self):
        raw = bytes([0xfb, 0xff])

        encoded = b64url_encode(raw)

        assert "+" not in encoded and "/" not in encoded
        assert b64url_decode(encoded) == raw

    @pytest.mark.parametrize("data", ["a+b/", "abc$", "ab cd", "YWI=x"])
    def test_decode_rejects_invalid_characters(self, data):
        with pytest.raises(ValueError):
            b64url_decode(data)


class TestSecrets:
    """Test secret generation and hashing."""

    def test_random_token_length(self):
        token = generate_random_token(32)

        assert len(token) == 43
        assert len(b64url_decode(token)) == 32

    def test_random_tokens_differ(self):
        assert generate_random_token() != generate_random_token()

    def test_hash_secret_is_std_base64_sha256(self):
        expected = base64.b64encode(hashlib.sha256(b"raw").digest()).decode()

        assert hash_secret("raw") == expected

    def test_sign_is_deterministic(self):
        assert sign(b"key", "payload") == sign(b"key", "payload")
        assert sign(b"key", "payload") != sign(b"other", "payload")

    @pytest.mark.parametrize(
        "a, b, expected",
        [
            ("abc", "abc", True),
            ("abc", "abd", False),
            ("abc", "abcd", False),
            (b"abc", b"abc", True),
        ],
    )
    def test_constant_time_equals(self, a, b, expected):
        assert constant_time_equals(a, b) is expected
