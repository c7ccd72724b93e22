"""
OAuth authentication endpoints.

Handles the GitHub OAuth2 flow for browsers (cookie sessions) and native
apps (deep-link handoff), logout, and the session owner's own resources.
"""
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse, RedirectResponse, Response

from app.api.errors import error_response
from app.core.config import Settings
from app.core.dependencies import (
    extract_bearer_token,
    get_app_settings,
    get_auth_service,
    get_mobile_broker,
    get_oauth_provider,
    get_state_codec,
    get_uow_factory,
    require_principal,
)
from app.core.errors import ErrorCode
from app.core.exceptions import ClientInputError, HextokException, NotFoundError
from app.core.logging import redact
from app.domain.schemas.auth import (
    IdentityResponse,
    LogoutResponse,
    MobileExchangeRequest,
    MobileTokenResponse,
    Principal,
    SessionResponse,
    UserResponse,
)
from app.repositories.unit_of_work import UnitOfWorkFactory
from app.services.auth.auth_service import AuthService
from app.services.auth.mobile_broker import MobileTokenBroker
from app.services.auth.oauth.github import GitHubOAuthProvider
from app.services.auth.oauth.state_codec import StateTokenCodec

logger = structlog.get_logger(__name__)
router = APIRouter()

PROVIDER_ERROR = "provider_error"
INVALID_REQUEST = "invalid_request"
SERVER_ERROR = "server_error"


def _set_state_cookie(response: Response, settings: Settings, value: str) -> None:
    response.set_cookie(
        key=settings.OAUTH_STATE_COOKIE_NAME,
        value=value,
        max_age=settings.OAUTH_STATE_TTL_SECONDS,
        path=settings.oauth_route_prefix,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )


def _clear_state_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.OAUTH_STATE_COOKIE_NAME,
        path=settings.oauth_route_prefix,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )


def _set_session_cookie(response: Response, settings: Settings, bearer_token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=bearer_token,
        max_age=settings.SESSION_COOKIE_MAX_AGE_SECONDS,
        path="/",
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )


def _clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )


@router.get("/start/github")
async def github_start(
    settings: Settings = Depends(get_app_settings),
    auth_service: AuthService = Depends(get_auth_service),
) -> RedirectResponse:
    """
    Initiate the browser OAuth flow.

    Sets the signed state cookie and redirects to GitHub with the matching
    nonce as the ``state`` parameter.
    """
    start = auth_service.start_web_login()
    response = RedirectResponse(url=start.authorization_url, status_code=status.HTTP_302_FOUND)
    _set_state_cookie(response, settings, start.state_cookie)

    logger.info("github_oauth_initiated", flow="web")
    return response


@router.get("/mobile/start")
async def mobile_start(
    redirect_uri: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    provider: GitHubOAuthProvider = Depends(get_oauth_provider),
    broker: MobileTokenBroker = Depends(get_mobile_broker),
) -> RedirectResponse:
    """
    Initiate the native app OAuth flow.

    Args:
        redirect_uri: App deep link; must use the app's URL scheme
        state: Client-generated CSRF value, echoed back on the deep link
    """
    url = broker.start_mobile(provider, redirect_uri, state)
    return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)


@router.get("/callback/github")
@router.get("/mobile/callback")
async def oauth_callback(
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    error_description: Optional[str] = Query(None),
    settings: Settings = Depends(get_app_settings),
    auth_service: AuthService = Depends(get_auth_service),
    state_codec: StateTokenCodec = Depends(get_state_codec),
    broker: MobileTokenBroker = Depends(get_mobile_broker),
) -> Response:
    """
    Handle the GitHub redirect for both flows.

    A ``state`` carrying the mobile marker is routed to the deep-link
    handoff; anything else is a browser login checked against the state
    cookie.
    """
    if broker.is_mobile_state(state):
        return await _complete_mobile_login(code, state, error, error_description, auth_service, broker)
    return await _complete_web_login(request, code, state, error, settings, auth_service, state_codec)


async def _complete_web_login(
    request: Request,
    code: Optional[str],
    state: Optional[str],
    error: Optional[str],
    settings: Settings,
    auth_service: AuthService,
    state_codec: StateTokenCodec,
) -> Response:
    try:
        if error:
            logger.warning("github_oauth_error", flow="web", error=error)
            raise ClientInputError(f"provider returned error: {error}", code=ErrorCode.AUTH_OAUTH_ERROR)
        if not code or not state:
            raise ClientInputError("missing code or state", code=ErrorCode.VAL_MISSING_REQUIRED_FIELD)

        state_codec.verify(request.cookies.get(settings.OAUTH_STATE_COOKIE_NAME), state)
        issued = await auth_service.complete_login(code)
    except HextokException as e:
        # the state cookie is single use whatever the outcome
        response = error_response(e)
        _clear_state_cookie(response, settings)
        return response

    response = RedirectResponse(url=f"{settings.BASE_URL}/", status_code=status.HTTP_302_FOUND)
    _clear_state_cookie(response, settings)
    _set_session_cookie(response, settings, issued.bearer_token)
    return response


async def _complete_mobile_login(
    code: Optional[str],
    state: str,
    error: Optional[str],
    error_description: Optional[str],
    auth_service: AuthService,
    broker: MobileTokenBroker,
) -> RedirectResponse:
    client_state = broker.client_state(state)

    if error:
        logger.warning("github_oauth_error", flow="mobile", error=error, state=redact(client_state))
        url = broker.error_redirect(PROVIDER_ERROR, error_description or error)
    elif not code:
        url = broker.error_redirect(INVALID_REQUEST, "Missing authorization code")
    else:
        try:
            issued = await auth_service.complete_login(code)
        except HextokException as e:
            url = broker.error_redirect(e.login_step or SERVER_ERROR, e.public_message)
        else:
            url = broker.success_redirect(issued, client_state)

    return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)


@router.post("/mobile/exchange", response_model=MobileTokenResponse)
async def mobile_exchange(
    payload: MobileExchangeRequest,
    settings: Settings = Depends(get_app_settings),
    broker: MobileTokenBroker = Depends(get_mobile_broker),
) -> JSONResponse:
    """
    Redeem a handoff token for a bearer token.

    The response also sets the session cookie so embedded web views share
    the session.
    """
    result = await broker.exchange_handoff_token(payload.token)
    response = JSONResponse(content=result.model_dump())
    _set_session_cookie(response, settings, result.token)
    return response


@router.api_route("/logout", methods=["GET", "POST"], response_model=LogoutResponse)
async def logout(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    auth_service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """
    End the caller's session.

    Always succeeds and always clears the session cookie; the session row is
    deleted only when the presented token authenticates it.
    """
    await auth_service.logout(extract_bearer_token(request, settings))
    response = JSONResponse(content=LogoutResponse().model_dump())
    _clear_session_cookie(response, settings)
    return response


@router.get("/me", response_model=UserResponse)
async def get_me(
    principal: Principal = Depends(require_principal),
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
) -> UserResponse:
    """Return the authenticated user."""
    async with uow_factory() as uow:
        user = await uow.users.get_user_by_id(principal.user_id)

    if not user:
        raise NotFoundError(f"user {principal.user_id} not found")
    return UserResponse.model_validate(user)


@router.get("/sessions", response_model=List[SessionResponse])
async def list_sessions(
    principal: Principal = Depends(require_principal),
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
) -> List[SessionResponse]:
    """List the authenticated user's sessions, marking the current one."""
    async with uow_factory() as uow:
        sessions = await uow.sessions.list_by_user(principal.user_id)

    return [
        SessionResponse(
            id=s.id,
            created_at=s.created_at,
            last_verified_at=s.last_verified_at,
            current=s.id == principal.session_id,
        )
        for s in sessions
    ]


@router.get("/identities", response_model=List[IdentityResponse])
async def list_identities(
    principal: Principal = Depends(require_principal),
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
) -> List[IdentityResponse]:
    """List provider accounts linked to the authenticated user."""
    async with uow_factory() as uow:
        identities = await uow.identities.list_by_user(principal.user_id)

    return [IdentityResponse.model_validate(i) for i in identities]
