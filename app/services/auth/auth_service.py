"""
Authentication Service

Orchestrates the login protocol shared by the web and mobile flows:
provider exchange, identity resolution and session issuance, plus logout.
"""
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional

import structlog

from app.core.exceptions import AuthenticationError, EncodingError, HextokException, PersistenceError
from app.domain.schemas.auth import IssuedSession
from app.services.auth.identity_service import IdentityResolver
from app.services.auth.oauth.base import OAuthProviderInterface
from app.services.auth.oauth.state_codec import StateTokenCodec
from app.services.auth.session_service import (
    SessionIssuer,
    SessionVerifier,
    decode_bearer_token,
)

logger = structlog.get_logger(__name__)


class LoginStep(str, Enum):
    """Login stages, reported to mobile clients as the error kind."""
    TOKEN_EXCHANGE = "token_exchange"
    USER_FETCH = "user_fetch"
    USER_CREATION = "user_creation"
    SESSION_CREATION = "session_creation"


@contextmanager
def login_step(step: LoginStep) -> Iterator[None]:
    """Tag any application error raised inside the block with ``step``."""
    try:
        yield
    except HextokException as e:
        if e.login_step is None:
            e.login_step = step.value
        logger.warning("oauth_login_step_failed", step=step.value, error_code=e.code.value, detail=e.message)
        raise


@dataclass(frozen=True)
class WebLoginStart:
    """Provider redirect plus the signed state to store in a cookie."""
    authorization_url: str
    state_cookie: str


class AuthService:
    """Service for OAuth login and logout."""

    def __init__(
        self,
        provider: OAuthProviderInterface,
        state_codec: StateTokenCodec,
        identity_resolver: IdentityResolver,
        issuer: SessionIssuer,
        verifier: SessionVerifier,
    ):
        self.provider = provider
        self.state_codec = state_codec
        self.identity_resolver = identity_resolver
        self.issuer = issuer
        self.verifier = verifier

    def start_web_login(self) -> WebLoginStart:
        """Create a signed state and the provider URL that carries its nonce."""
        nonce = self.state_codec.generate_nonce()
        return WebLoginStart(
            authorization_url=self.provider.generate_authorization_url(state=nonce),
            state_cookie=self.state_codec.issue(nonce),
        )

    async def complete_login(self, code: str) -> IssuedSession:
        """
        Finish an OAuth login after the state has been checked.

        Args:
            code: Authorization code from the callback

        Returns:
            Newly issued session

        Raises:
            UpstreamProviderError: If the provider exchange or profile call fails
            PersistenceError: If the stores fail
        """
        with login_step(LoginStep.TOKEN_EXCHANGE):
            tokens = await self.provider.exchange_code(code)
        with login_step(LoginStep.USER_FETCH):
            profile = await self.provider.fetch_profile(tokens.access_token)

        with login_step(LoginStep.USER_CREATION):
            user_id = await self.identity_resolver.resolve_user_id(
                provider=self.provider.provider_name,
                profile=profile,
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token,
            )
        with login_step(LoginStep.SESSION_CREATION):
            issued = await self.issuer.create_session(user_id)

        logger.info(
            "oauth_login_success",
            provider=self.provider.provider_name,
            user_id=user_id,
            session_id=issued.session_id,
        )
        return issued

    async def logout(self, token: Optional[str]) -> bool:
        """
        Delete the session a bearer token refers to.

        Idempotent: missing, malformed, unknown or already deleted tokens are
        not errors. A session is only deleted when the presented secret
        authenticates it.

        Returns:
            True if a session row was deleted
        """
        if not token:
            return False
        try:
            session_id, raw_secret = decode_bearer_token(token)
            principal = await self.verifier.authenticate_secret(session_id, raw_secret)
        except (EncodingError, AuthenticationError):
            logger.info("logout_without_valid_session")
            return False
        except PersistenceError as e:
            logger.error("logout_session_lookup_failed", error=e.message)
            return False

        try:
            async with self.issuer.uow_factory() as uow:
                deleted = await uow.sessions.delete(principal.session_id)
        except PersistenceError as e:
            logger.error("session_delete_failed", session_id=principal.session_id, error=e.message)
            return False

        logger.info(
            "session_deleted",
            user_id=principal.user_id,
            session_id=principal.session_id,
            deleted=deleted,
        )
        return deleted
