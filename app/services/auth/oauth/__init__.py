"""
OAuth integration for Hextok authentication.

This module provides the GitHub OAuth2 exchange client and the signed state
codec that protects the redirect round-trip.
"""

from .base import (
    OAuthError,
    OAuthProviderInterface,
    OAuthTokens,
)
from .github import GitHubOAuthProvider
from .state_codec import StateTokenCodec

__all__ = [
    # Base classes and types
    "OAuthError",
    "OAuthProviderInterface",
    "OAuthTokens",

    # Providers
    "GitHubOAuthProvider",

    # State
    "StateTokenCodec",
]
