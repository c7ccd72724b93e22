"""
OAuth Provider Base Interface

Defines the abstract interface the identity provider client implements.
"""
from abc import ABC, abstractmethod
from typing import Dict, Optional
from urllib.parse import urlencode

import structlog
from pydantic import BaseModel

from app.core.exceptions import UpstreamProviderError
from app.core.logging import redact
from app.domain.schemas.auth import ProviderProfile

logger = structlog.get_logger(__name__)


class OAuthTokens(BaseModel):
    """OAuth token information."""
    access_token: str
    token_type: str = "bearer"
    scope: Optional[str] = None
    refresh_token: Optional[str] = None


class OAuthError(UpstreamProviderError):
    """Provider call failed: network error, non-success status or bad payload."""

    def __init__(self, error: str, description: Optional[str] = None):
        self.error = error
        self.description = description
        super().__init__(error, f"{error}: {description}" if description else error)


class OAuthProviderInterface(ABC):
    """Abstract base class for the OAuth exchange client."""

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.provider_name = self.__class__.__name__.lower().replace("oauthprovider", "")

    @property
    @abstractmethod
    def authorization_base_url(self) -> str:
        """Base URL for OAuth authorization."""
        pass

    @property
    @abstractmethod
    def token_url(self) -> str:
        """URL for token exchange."""
        pass

    @property
    @abstractmethod
    def user_info_url(self) -> str:
        """URL for fetching user information."""
        pass

    def generate_authorization_url(self, state: str, redirect_uri: Optional[str] = None, **kwargs) -> str:
        """
        Generate OAuth authorization URL.

        Args:
            state: CSRF protection state parameter
            redirect_uri: Callback URL, defaults to the provider's configured one
            **kwargs: Additional provider-specific parameters

        Returns:
            Authorization URL
        """
        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri or self.redirect_uri,
            "state": state,
            **kwargs
        }
        params.update(self._get_additional_auth_params())

        url = f"{self.authorization_base_url}?{urlencode(params)}"
        logger.info(
            "oauth_authorization_url_generated",
            provider=self.provider_name,
            state=redact(state),
        )
        return url

    @abstractmethod
    async def exchange_code(self, code: str) -> OAuthTokens:
        """
        Exchange authorization code for an access token.

        Raises:
            OAuthError: If token exchange fails
        """
        pass

    @abstractmethod
    async def fetch_profile(self, access_token: str) -> ProviderProfile:
        """
        Fetch the provider account behind an access token.

        Raises:
            OAuthError: If the profile request fails
        """
        pass

    def _get_additional_auth_params(self) -> Dict[str, str]:
        """
        Get provider-specific authorization parameters.
        Override in subclasses if needed.
        """
        return {}
