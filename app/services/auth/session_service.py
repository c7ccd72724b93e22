"""
Session Service

Split-secret sessions: the client holds ``(session_id, raw_secret)`` and the
server stores only ``base64(sha256(raw_secret))``. The bearer token is the
URL-safe, unpadded base64 of ``"{session_id}|{raw_secret}"``.
"""
from datetime import datetime, timezone
from typing import Optional, Tuple

import structlog

from app.core.config import Settings
from app.core.exceptions import AuthenticationError, EncodingError, PersistenceError
from app.core.security import (
    b64url_decode,
    b64url_encode,
    constant_time_equals,
    generate_random_token,
    hash_secret,
)
from app.domain.schemas.auth import MAX_ROW_ID, IssuedSession, Principal
from app.repositories.unit_of_work import UnitOfWorkFactory

logger = structlog.get_logger(__name__)

TOKEN_SEPARATOR = "|"


def encode_bearer_token(session_id: int, raw_secret: str) -> str:
    """
    Encode session material as an opaque bearer token.

    Args:
        session_id: Session row ID
        raw_secret: Raw session secret

    Returns:
        URL-safe, unpadded base64 of ``session_id|raw_secret``
    """
    if not raw_secret or TOKEN_SEPARATOR in raw_secret:
        raise ValueError("raw secret must be non-empty and must not contain '|'")
    return b64url_encode(f"{session_id}{TOKEN_SEPARATOR}{raw_secret}".encode("utf-8"))


def decode_bearer_token(token: str) -> Tuple[int, str]:
    """
    Decode a bearer token into ``(session_id, raw_secret)``.

    Raises:
        EncodingError: If the token is not base64, not two fields, or the ID is not an integer
    """
    try:
        decoded = b64url_decode(token).decode("utf-8")
    except (ValueError, UnicodeDecodeError) as e:
        raise EncodingError("bearer token is not base64url") from e

    parts = decoded.split(TOKEN_SEPARATOR)
    if len(parts) != 2 or not parts[1]:
        raise EncodingError("bearer token must have exactly two fields")

    session_id_text, raw_secret = parts
    if not (session_id_text.isascii() and session_id_text.isdigit()):
        raise EncodingError("bearer token session id is not an integer")

    session_id = int(session_id_text)
    if session_id > MAX_ROW_ID:
        raise EncodingError("bearer token session id is out of range")

    return session_id, raw_secret


class SessionIssuer:
    """Mints new sessions."""

    def __init__(self, settings: Settings, uow_factory: UnitOfWorkFactory):
        self.secret_bytes = settings.SESSION_SECRET_BYTES
        self.uow_factory = uow_factory

    async def create_session(self, user_id: int) -> IssuedSession:
        """
        Create a session for a user.

        Args:
            user_id: Owning user

        Returns:
            Issued session carrying the raw secret and its bearer token
        """
        raw_secret = generate_random_token(self.secret_bytes)

        async with self.uow_factory() as uow:
            session = await uow.sessions.create_session(user_id, hash_secret(raw_secret))
            session_id = session.id

        logger.info("session_created", user_id=user_id, session_id=session_id)

        return IssuedSession(
            session_id=session_id,
            user_id=user_id,
            raw_secret=raw_secret,
            bearer_token=encode_bearer_token(session_id, raw_secret),
        )


class SessionVerifier:
    """
    Authenticates bearer tokens.

    Runs ``DECODE -> SPLIT -> LOOKUP -> COMPARE``; every rejection raises the
    same ``AuthenticationError`` and the failing step is only logged.
    """

    def __init__(self, uow_factory: UnitOfWorkFactory, touch_on_verify: bool = True):
        self.uow_factory = uow_factory
        self.touch_on_verify = touch_on_verify

    async def authenticate(self, token: Optional[str]) -> Principal:
        """
        Resolve a bearer token to the principal that owns it.

        Args:
            token: Bearer token from header or cookie

        Returns:
            Authenticated principal

        Raises:
            AuthenticationError: If the token does not authenticate a live session
        """
        if not token:
            raise self._reject("missing_token")

        try:
            session_id, raw_secret = decode_bearer_token(token)
        except EncodingError as e:
            raise self._reject("malformed_token", detail=e.message) from e

        return await self.authenticate_secret(session_id, raw_secret)

    async def authenticate_secret(self, session_id: int, raw_secret: str) -> Principal:
        """
        Authenticate already decoded session material.

        Raises:
            AuthenticationError: If no session matches the ID and secret
        """
        supplied_hash = hash_secret(raw_secret)

        async with self.uow_factory() as uow:
            session = await uow.sessions.get_by_id(session_id)
            if session is None:
                raise self._reject("session_not_found", session_id=session_id)

            if not constant_time_equals(session.secret_hash, supplied_hash):
                raise self._reject("secret_mismatch", session_id=session_id)

            principal = Principal(user_id=session.user_id, session_id=session.id)

        if self.touch_on_verify:
            await self._touch(session_id)

        return principal

    async def _touch(self, session_id: int) -> None:
        try:
            async with self.uow_factory() as uow:
                await uow.sessions.update_last_verified(session_id, datetime.now(timezone.utc))
        except PersistenceError as e:
            # authentication already succeeded
            logger.warning("session_touch_failed", session_id=session_id, error=e.message)

    def _reject(self, reason: str, **context) -> AuthenticationError:
        logger.warning("session_rejected", reason=reason, **context)
        return AuthenticationError(f"session rejected: {reason}")
