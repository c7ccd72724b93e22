"""
Security utilities shared by the state, session and handoff token codecs.
"""
import base64
import binascii
import hashlib
import hmac
import secrets
import string

_URLSAFE_ALPHABET = frozenset(string.ascii_letters + string.digits + "-_")


def generate_random_token(num_bytes: int = 32) -> str:
    """
    Generate a cryptographically random token.

    Args:
        num_bytes: Amount of entropy in bytes

    Returns:
        URL-safe, unpadded base64 encoding of the random bytes
    """
    return b64url_encode(secrets.token_bytes(num_bytes))


def b64url_encode(raw: bytes, padded: bool = False) -> str:
    encoded = base64.urlsafe_b64encode(raw).decode("ascii")
    return encoded if padded else encoded.rstrip("=")


def b64url_decode(data: str) -> bytes:
    """
    Decode URL-safe base64, accepting input with or without padding.

    Raises:
        ValueError: If the input is not valid URL-safe base64
    """
    stripped = data.rstrip("=")
    if not stripped or not _URLSAFE_ALPHABET.issuperset(stripped):
        raise ValueError("invalid base64url input")
    padding = "=" * (-len(stripped) % 4)
    try:
        return base64.b64decode(stripped + padding, altchars=b"-_", validate=True)
    except binascii.Error as e:
        raise ValueError(str(e)) from e


def hash_secret(raw_secret: str) -> str:
    """
    Digest a session secret for storage.

    Returns:
        Standard base64 of SHA-256(raw_secret)
    """
    digest = hashlib.sha256(raw_secret.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def sign(key: bytes, payload: str) -> bytes:
    """HMAC-SHA256 of payload under key."""
    return hmac.new(key, payload.encode("utf-8"), hashlib.sha256).digest()


def constant_time_equals(a: str | bytes, b: str | bytes) -> bool:
    """Compare secret-derived values without early exit."""
    if isinstance(a, str):
        a = a.encode("utf-8")
    if isinstance(b, str):
        b = b.encode("utf-8")
    return hmac.compare_digest(a, b)
