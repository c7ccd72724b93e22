"""
Authentication schemas.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# BIGINT upper bound
MAX_ROW_ID = 2**63 - 1


class Principal(BaseModel):
    """Authenticated caller, produced by the auth dependency for one request."""
    model_config = ConfigDict(frozen=True)

    user_id: int
    session_id: int


class IssuedSession(BaseModel):
    """A freshly minted session. ``raw_secret`` is never persisted."""
    model_config = ConfigDict(frozen=True)

    session_id: int
    user_id: int
    raw_secret: str
    bearer_token: str


class ProviderProfile(BaseModel):
    """Identity-provider account resolved from an access token."""
    provider_user_id: str
    login: str


class HandoffTokenPayload(BaseModel):
    """Content of a mobile handoff token."""
    user_id: int = Field(..., ge=0, le=MAX_ROW_ID)
    session_id: int = Field(..., ge=0, le=MAX_ROW_ID)
    raw_token: str = Field(..., min_length=1)
    expires_at: int  # unix seconds


class MobileExchangeRequest(BaseModel):
    """Body of the handoff exchange request."""
    token: str = ""


class MobileTokenResponse(BaseModel):
    """Session-equivalent bearer token returned to native clients."""
    token: str
    expires_in: int
    user_id: int
    session_id: int


class UserResponse(BaseModel):
    """Public user representation."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str


class SessionResponse(BaseModel):
    """Session listing entry; never carries the secret hash."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
    last_verified_at: datetime
    current: bool = False


class IdentityResponse(BaseModel):
    """Linked provider account; never carries provider tokens."""
    model_config = ConfigDict(from_attributes=True)

    provider: str
    provider_user_id: str
    created_at: Optional[datetime] = None


class LogoutResponse(BaseModel):
    status: str = "ok"
