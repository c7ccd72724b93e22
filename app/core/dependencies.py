"""
Dependency injection for FastAPI.

Long-lived collaborators (settings, unit-of-work factory, HTTP session,
clock) are created by the application lifespan and read from ``app.state``;
request-scoped services are assembled from them here.
"""
import time
from typing import Callable, Optional

import aiohttp
import structlog
from fastapi import Depends, Request

from app.core.config import Settings
from app.domain.schemas.auth import Principal
from app.repositories.unit_of_work import UnitOfWorkFactory
from app.services.auth.auth_service import AuthService
from app.services.auth.identity_service import IdentityResolver
from app.services.auth.mobile_broker import MobileTokenBroker
from app.services.auth.oauth.github import GitHubOAuthProvider
from app.services.auth.oauth.state_codec import StateTokenCodec
from app.services.auth.session_service import SessionIssuer, SessionVerifier

logger = structlog.get_logger(__name__)

BEARER_PREFIX = "Bearer "


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_uow_factory(request: Request) -> UnitOfWorkFactory:
    return request.app.state.uow_factory


def get_clock(request: Request) -> Callable[[], float]:
    return getattr(request.app.state, "clock", time.time)


def get_http_session(request: Request) -> Optional[aiohttp.ClientSession]:
    return getattr(request.app.state, "http_session", None)


def get_oauth_provider(
    settings: Settings = Depends(get_app_settings),
    http_session: Optional[aiohttp.ClientSession] = Depends(get_http_session),
) -> GitHubOAuthProvider:
    return GitHubOAuthProvider(settings, http_session=http_session)


def get_state_codec(
    settings: Settings = Depends(get_app_settings),
    clock: Callable[[], float] = Depends(get_clock),
) -> StateTokenCodec:
    return StateTokenCodec(settings, clock=clock)


def get_session_issuer(
    settings: Settings = Depends(get_app_settings),
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
) -> SessionIssuer:
    return SessionIssuer(settings, uow_factory)


def get_session_verifier(
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
) -> SessionVerifier:
    return SessionVerifier(uow_factory)


def get_auth_service(
    provider: GitHubOAuthProvider = Depends(get_oauth_provider),
    state_codec: StateTokenCodec = Depends(get_state_codec),
    issuer: SessionIssuer = Depends(get_session_issuer),
    verifier: SessionVerifier = Depends(get_session_verifier),
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
) -> AuthService:
    return AuthService(
        provider=provider,
        state_codec=state_codec,
        identity_resolver=IdentityResolver(uow_factory),
        issuer=issuer,
        verifier=verifier,
    )


def get_mobile_broker(
    settings: Settings = Depends(get_app_settings),
    verifier: SessionVerifier = Depends(get_session_verifier),
    clock: Callable[[], float] = Depends(get_clock),
) -> MobileTokenBroker:
    return MobileTokenBroker(settings, verifier, clock=clock)


def extract_bearer_token(request: Request, settings: Settings) -> Optional[str]:
    """
    Find the session token on a request.

    Order: ``Authorization: Bearer <token>``, then a bare ``Authorization``
    value, then the session cookie.
    """
    auth_header = request.headers.get("Authorization")
    if auth_header:
        if auth_header.startswith(BEARER_PREFIX):
            return auth_header[len(BEARER_PREFIX):].strip()
        return auth_header.strip()
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


class AuthMiddleware:
    """
    Gate for protected endpoints.

    Used as a dependency: the returned ``Principal`` is the only way handler
    code learns who is calling, and it lives for the current request only.
    Rejections raise ``AuthenticationError``, rendered as a generic 401.
    """

    async def __call__(
        self,
        request: Request,
        settings: Settings = Depends(get_app_settings),
        verifier: SessionVerifier = Depends(get_session_verifier),
    ) -> Principal:
        token = extract_bearer_token(request, settings)
        principal = await verifier.authenticate(token)
        logger.debug("request_authenticated", user_id=principal.user_id, session_id=principal.session_id)
        return principal


require_principal = AuthMiddleware()
