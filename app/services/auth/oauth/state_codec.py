"""
OAuth State Codec

Signs and verifies the CSRF nonce carried through the provider redirect.
The signed value lives in a cookie, so no server-side state storage is needed.

Wire format (before URL-safe unpadded base64)::

    nonce|issued_at|hex(HMAC-SHA256(key, "nonce|issued_at"))
"""
import binascii
import time
from typing import Callable, Optional

import structlog

from app.core.config import Settings
from app.core.exceptions import InvalidStateError
from app.core.logging import redact
from app.core.security import (
    b64url_decode,
    b64url_encode,
    constant_time_equals,
    generate_random_token,
    sign,
)

logger = structlog.get_logger(__name__)

FIELD_SEPARATOR = "|"


class StateTokenCodec:
    """Issues and verifies signed, time-limited OAuth state values."""

    def __init__(self, settings: Settings, clock: Callable[[], float] = time.time):
        self._key = settings.OAUTH_STATE_KEY.encode("utf-8")
        self.ttl_seconds = settings.OAUTH_STATE_TTL_SECONDS
        self._clock = clock

    def generate_nonce(self) -> str:
        """Generate a fresh random nonce."""
        return generate_random_token(32)

    def issue(self, nonce: str) -> str:
        """
        Sign a nonce together with the current time.

        Args:
            nonce: Random nonce that is also sent to the provider as ``state``

        Returns:
            Opaque value for the state cookie
        """
        if not nonce or FIELD_SEPARATOR in nonce:
            raise ValueError("nonce must be non-empty and must not contain '|'")

        payload = f"{nonce}{FIELD_SEPARATOR}{int(self._clock())}"
        signature = sign(self._key, payload).hex()
        return b64url_encode(f"{payload}{FIELD_SEPARATOR}{signature}".encode("utf-8"))

    def verify(self, signed_state: Optional[str], supplied_nonce: Optional[str]) -> None:
        """
        Verify a state cookie against the nonce returned by the provider.

        Every failure raises the same ``InvalidStateError``; the specific
        reason is only logged.

        Args:
            signed_state: Value of the state cookie
            supplied_nonce: ``state`` query parameter from the callback

        Raises:
            InvalidStateError: If the state is missing, forged, expired or mismatched
        """
        reason = self._rejection_reason(signed_state, supplied_nonce)
        if reason is not None:
            logger.warning(
                "oauth_state_rejected",
                reason=reason,
                state=redact(supplied_nonce),
            )
            raise InvalidStateError(f"state rejected: {reason}")

        logger.info("oauth_state_verified", state=redact(supplied_nonce))

    def _rejection_reason(self, signed_state: Optional[str], supplied_nonce: Optional[str]) -> Optional[str]:
        if not signed_state:
            return "missing_cookie"
        if not supplied_nonce:
            return "missing_query_state"

        try:
            raw = b64url_decode(signed_state).decode("utf-8")
        except (ValueError, UnicodeDecodeError):
            return "bad_encoding"

        parts = raw.split(FIELD_SEPARATOR)
        if len(parts) != 3:
            return "bad_field_count"
        nonce, issued_at, signature_hex = parts

        try:
            signature = bytes.fromhex(signature_hex)
        except (ValueError, binascii.Error):
            return "bad_signature_encoding"

        expected = sign(self._key, f"{nonce}{FIELD_SEPARATOR}{issued_at}")
        if not constant_time_equals(expected, signature):
            return "bad_signature"

        try:
            issued_at_seconds = int(issued_at)
        except ValueError:
            return "bad_timestamp"
        if self._clock() - issued_at_seconds > self.ttl_seconds:
            return "expired"

        if not constant_time_equals(nonce, supplied_nonce):
            return "nonce_mismatch"

        return None
