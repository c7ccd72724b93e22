"""
Mobile Token Broker

Native clients complete OAuth in an in-app browser that cannot hand cookies
back to the app. Instead the callback redirects to a custom-scheme deep link
carrying a short-lived handoff token, which the app redeems for a bearer
token.

The handoff token is the padded URL-safe base64 of a compact JSON object
``{"expires_at", "raw_token", "session_id", "user_id"}``. It is not signed:
redemption re-authenticates the embedded session secret against the session
store, so a fabricated token grants nothing a stolen bearer token would not.
"""
import json
import time
from typing import Callable, Optional
from urllib.parse import urlencode, urlparse

import structlog
from pydantic import ValidationError

from app.core.config import Settings
from app.core.exceptions import AuthenticationError, ClientInputError, EncodingError
from app.core.errors import ErrorCode
from app.core.logging import redact
from app.core.security import b64url_decode, b64url_encode
from app.domain.schemas.auth import HandoffTokenPayload, IssuedSession, MobileTokenResponse
from app.services.auth.oauth.base import OAuthProviderInterface
from app.services.auth.session_service import SessionVerifier, encode_bearer_token

logger = structlog.get_logger(__name__)


class MobileTokenBroker:
    """Issues and redeems mobile handoff tokens."""

    def __init__(
        self,
        settings: Settings,
        verifier: SessionVerifier,
        clock: Callable[[], float] = time.time,
    ):
        self.redirect_scheme = settings.MOBILE_REDIRECT_SCHEME
        self.callback_uri = settings.MOBILE_CALLBACK_URI
        self.state_prefix = settings.MOBILE_STATE_PREFIX
        self.token_ttl_seconds = settings.MOBILE_TOKEN_TTL_SECONDS
        self.session_max_age = settings.SESSION_COOKIE_MAX_AGE_SECONDS
        self.mobile_callback_url = settings.mobile_callback_url
        self.verifier = verifier
        self._clock = clock

    # -- start -------------------------------------------------------------

    def start_mobile(
        self,
        provider: OAuthProviderInterface,
        redirect_uri: Optional[str],
        client_state: Optional[str],
    ) -> str:
        """
        Build the provider authorization URL for a mobile login.

        The server keeps no state for this flow: the client supplies its own
        CSRF value, which is marked so the unified callback can route it.

        Args:
            provider: OAuth exchange client
            redirect_uri: App deep link; must use the allow-listed scheme
            client_state: Client-generated CSRF value

        Returns:
            Provider authorization URL

        Raises:
            ClientInputError: If the redirect URI or state is missing or invalid
        """
        if not redirect_uri:
            raise ClientInputError("redirect_uri is required", code=ErrorCode.VAL_MISSING_REQUIRED_FIELD, field="redirect_uri")
        if urlparse(redirect_uri).scheme != self.redirect_scheme:
            logger.warning("mobile_oauth_invalid_redirect_uri", redirect_uri=redirect_uri)
            raise ClientInputError("redirect_uri scheme not allowed", code=ErrorCode.VAL_INVALID_REDIRECT_URI, field="redirect_uri")
        if not client_state:
            raise ClientInputError("state is required", code=ErrorCode.VAL_MISSING_REQUIRED_FIELD, field="state")

        url = provider.generate_authorization_url(
            state=self.mark_state(client_state),
            redirect_uri=self.mobile_callback_url,
        )
        logger.info("mobile_oauth_started", redirect_uri=redirect_uri, state=redact(client_state))
        return url

    def mark_state(self, client_state: str) -> str:
        return f"{self.state_prefix}{client_state}"

    def is_mobile_state(self, state: Optional[str]) -> bool:
        return bool(state) and state.startswith(self.state_prefix)

    def client_state(self, state: str) -> str:
        """Strip the mobile marker, recovering the client's own state."""
        return state[len(self.state_prefix):] if self.is_mobile_state(state) else state

    # -- callback ----------------------------------------------------------

    def issue_handoff_token(self, issued: IssuedSession) -> str:
        """Serialize session material into a handoff token valid for the TTL."""
        payload = {
            "user_id": issued.user_id,
            "session_id": issued.session_id,
            "raw_token": issued.raw_secret,
            "expires_at": int(self._clock()) + self.token_ttl_seconds,
        }
        raw = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
        return b64url_encode(raw, padded=True)

    def success_redirect(self, issued: IssuedSession, client_state: str) -> str:
        """Deep link that hands the session to the app."""
        params = {
            "token": self.issue_handoff_token(issued),
            "user_id": issued.user_id,
            "expires_in": self.token_ttl_seconds,
            "state": client_state,
        }
        logger.info(
            "mobile_oauth_handoff_issued",
            user_id=issued.user_id,
            session_id=issued.session_id,
        )
        return f"{self.callback_uri}?{urlencode(params)}"

    def error_redirect(self, error: str, description: str) -> str:
        """Deep link that reports a failed login to the app."""
        return f"{self.callback_uri}?{urlencode({'error': error, 'error_description': description})}"

    # -- exchange ----------------------------------------------------------

    def decode_handoff_token(self, token: Optional[str]) -> HandoffTokenPayload:
        """
        Decode a handoff token without checking expiry.

        Raises:
            ClientInputError: If the token is missing
            EncodingError: If the token is not base64 JSON with the expected fields
        """
        if not token:
            raise ClientInputError("token is required", code=ErrorCode.VAL_MISSING_REQUIRED_FIELD, field="token")
        try:
            data = json.loads(b64url_decode(token))
        except (ValueError, UnicodeDecodeError) as e:
            raise EncodingError("handoff token is not base64 JSON") from e
        if not isinstance(data, dict):
            raise EncodingError("handoff token is not a JSON object")
        try:
            return HandoffTokenPayload.model_validate(data)
        except ValidationError as e:
            raise EncodingError("handoff token fields are invalid") from e

    async def exchange_handoff_token(self, token: Optional[str]) -> MobileTokenResponse:
        """
        Redeem a handoff token for a session bearer token.

        Args:
            token: Handoff token from the deep link

        Returns:
            Bearer token encoded exactly as the session issuer encodes it

        Raises:
            ClientInputError: If the token is missing
            EncodingError: If the token is malformed
            AuthenticationError: If the token expired or its session does not authenticate
        """
        payload = self.decode_handoff_token(token)

        if int(self._clock()) > payload.expires_at:
            logger.warning(
                "mobile_handoff_rejected",
                reason="expired",
                session_id=payload.session_id,
            )
            raise AuthenticationError("handoff token expired", code=ErrorCode.AUTH_INVALID_HANDOFF_TOKEN)

        try:
            principal = await self.verifier.authenticate_secret(payload.session_id, payload.raw_token)
        except AuthenticationError as e:
            raise AuthenticationError("handoff session rejected", code=ErrorCode.AUTH_INVALID_HANDOFF_TOKEN) from e

        if principal.user_id != payload.user_id:
            logger.warning(
                "mobile_handoff_rejected",
                reason="user_mismatch",
                session_id=payload.session_id,
            )
            raise AuthenticationError("handoff user mismatch", code=ErrorCode.AUTH_INVALID_HANDOFF_TOKEN)

        logger.info(
            "mobile_handoff_redeemed",
            user_id=principal.user_id,
            session_id=principal.session_id,
        )
        return MobileTokenResponse(
            token=encode_bearer_token(payload.session_id, payload.raw_token),
            expires_in=self.session_max_age,
            user_id=principal.user_id,
            session_id=principal.session_id,
        )
