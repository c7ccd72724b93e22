"""
Domain schemas for Hextok application.
"""

from .auth import *

__all__ = [
    # Auth schemas
    "Principal",
    "IssuedSession",
    "ProviderProfile",
    "HandoffTokenPayload",
    "MobileExchangeRequest",
    "MobileTokenResponse",
    "UserResponse",
    "SessionResponse",
    "IdentityResponse",
    "LogoutResponse",
]
