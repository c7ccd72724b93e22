"""
GitHub OAuth Provider Implementation

Exchanges authorization codes for access tokens and resolves the GitHub
account behind a token. Calls are bounded by a client timeout and are never
retried; cancelling the calling task aborts the request.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import aiohttp
import structlog

from app.core.config import Settings
from app.domain.schemas.auth import ProviderProfile
from .base import OAuthError, OAuthProviderInterface, OAuthTokens

logger = structlog.get_logger(__name__)

PROVIDER_NAME = "github"


class GitHubOAuthProvider(OAuthProviderInterface):
    """GitHub OAuth exchange client."""

    def __init__(
        self,
        settings: Settings,
        http_session: Optional[aiohttp.ClientSession] = None,
        redirect_uri: Optional[str] = None,
    ):
        super().__init__(
            client_id=settings.GITHUB_CLIENT_ID,
            client_secret=settings.GITHUB_CLIENT_SECRET,
            redirect_uri=redirect_uri or settings.web_callback_url,
        )
        self.provider_name = PROVIDER_NAME
        self._authorize_url = settings.GITHUB_AUTHORIZE_URL
        self._token_url = settings.GITHUB_TOKEN_URL
        self._user_url = settings.GITHUB_USER_URL
        self.timeout = aiohttp.ClientTimeout(total=settings.OAUTH_HTTP_TIMEOUT_SECONDS)
        self._http_session = http_session

    @property
    def authorization_base_url(self) -> str:
        """GitHub OAuth authorization endpoint."""
        return self._authorize_url

    @property
    def token_url(self) -> str:
        """GitHub OAuth token endpoint."""
        return self._token_url

    @property
    def user_info_url(self) -> str:
        """GitHub user endpoint."""
        return self._user_url

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[aiohttp.ClientSession]:
        # the shared session is owned by the application lifespan
        if self._http_session is not None:
            yield self._http_session
            return
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            yield session

    async def exchange_code(self, code: str) -> OAuthTokens:
        """Exchange authorization code for a GitHub access token."""
        token_data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
        }
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/x-www-form-urlencoded",
        }

        try:
            async with self._session() as session:
                async with session.post(
                    self.token_url,
                    data=token_data,
                    headers=headers,
                    timeout=self.timeout,
                ) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        logger.error(
                            "github_token_exchange_failed",
                            status=response.status,
                            error=error_text[:200],
                        )
                        raise OAuthError("token_exchange_failed", f"status {response.status}")

                    token_response = await response.json()
        except aiohttp.ClientError as e:
            logger.error("github_token_request_failed", error=str(e))
            raise OAuthError("network_error", f"Failed to connect to GitHub: {e}") from e
        except asyncio.TimeoutError as e:
            logger.error("github_token_request_timeout", timeout=self.timeout.total)
            raise OAuthError("timeout", "GitHub token endpoint timed out") from e
        except ValueError as e:
            logger.error("github_token_invalid_response", error=str(e))
            raise OAuthError("invalid_response", "Token response is not JSON") from e

        if not isinstance(token_response, dict):
            logger.error("github_token_invalid_response", response_type=type(token_response).__name__)
            raise OAuthError("invalid_response", "Token response is not a JSON object")

        # GitHub reports bad codes with a 200 and an error field
        if "error" in token_response:
            logger.error(
                "github_token_exchange_error",
                error=token_response["error"],
                description=token_response.get("error_description"),
            )
            raise OAuthError(token_response["error"], token_response.get("error_description"))

        access_token = token_response.get("access_token")
        if not access_token:
            logger.error("github_token_exchange_empty_token")
            raise OAuthError("token_exchange_failed", "no access token returned")

        tokens = OAuthTokens(
            access_token=access_token,
            token_type=token_response.get("token_type") or "bearer",
            scope=token_response.get("scope"),
            refresh_token=token_response.get("refresh_token"),
        )
        logger.info("github_tokens_obtained", scope=tokens.scope)
        return tokens

    async def fetch_profile(self, access_token: str) -> ProviderProfile:
        """Fetch the GitHub account for an access token."""
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }

        try:
            async with self._session() as session:
                async with session.get(self.user_info_url, headers=headers, timeout=self.timeout) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        logger.error(
                            "github_userinfo_failed",
                            status=response.status,
                            error=error_text[:200],
                        )
                        raise OAuthError("userinfo_failed", f"status {response.status}")

                    user_data = await response.json()
        except aiohttp.ClientError as e:
            logger.error("github_userinfo_request_failed", error=str(e))
            raise OAuthError("network_error", f"Failed to connect to GitHub: {e}") from e
        except asyncio.TimeoutError as e:
            logger.error("github_userinfo_request_timeout", timeout=self.timeout.total)
            raise OAuthError("timeout", "GitHub user endpoint timed out") from e
        except ValueError as e:
            logger.error("github_userinfo_invalid_response", error=str(e))
            raise OAuthError("invalid_response", "User response is not JSON") from e

        try:
            profile = ProviderProfile(
                provider_user_id=str(user_data["id"]),
                login=user_data["login"],
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.error("github_userinfo_invalid_response", missing_field=str(e))
            raise OAuthError("invalid_response", f"Missing required field: {e}") from e

        logger.info(
            "github_userinfo_obtained",
            provider_user_id=profile.provider_user_id,
            login=profile.login,
        )
        return profile
