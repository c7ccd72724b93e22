"""
Collaborator interfaces consumed by the authentication services.

Implementations must be safe for concurrent use by independent requests: each
unit of work owns its own connection and transaction.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from app.infrastructure.database.models import ProviderIdentity, Session, User


class IUserRepository(ABC):
    """User store."""

    @abstractmethod
    async def create_user(self, username: str) -> User:
        pass

    @abstractmethod
    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        pass

    @abstractmethod
    async def list_users(self, limit: int = 100) -> List[User]:
        pass


class IProviderIdentityRepository(ABC):
    """Provider-identity store."""

    @abstractmethod
    async def create_identity(
        self,
        user_id: int,
        provider: str,
        provider_user_id: str,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
    ) -> ProviderIdentity:
        """
        Link a provider account to a user.

        Raises:
            IdentityConflictError: If (provider, provider_user_id) already exists
        """

    @abstractmethod
    async def get_by_provider_and_provider_user_id(
        self,
        provider: str,
        provider_user_id: str,
    ) -> Optional[ProviderIdentity]:
        pass

    @abstractmethod
    async def list_by_user(self, user_id: int) -> List[ProviderIdentity]:
        pass


class ISessionRepository(ABC):
    """Session store."""

    @abstractmethod
    async def create_session(self, user_id: int, secret_hash: str) -> Session:
        pass

    @abstractmethod
    async def get_by_id(self, session_id: int) -> Optional[Session]:
        pass

    @abstractmethod
    async def list_by_user(self, user_id: int) -> List[Session]:
        pass

    @abstractmethod
    async def delete(self, session_id: int) -> bool:
        pass

    @abstractmethod
    async def update_last_verified(self, session_id: int, when: datetime) -> None:
        pass


class IUnitOfWork(ABC):
    """
    Transaction boundary over the three stores.

    Leaving the context commits; an exception inside it rolls back.
    """

    users: IUserRepository
    identities: IProviderIdentityRepository
    sessions: ISessionRepository

    @abstractmethod
    async def __aenter__(self) -> "IUnitOfWork":
        pass

    @abstractmethod
    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        pass

    @abstractmethod
    async def commit(self) -> None:
        pass

    @abstractmethod
    async def rollback(self) -> None:
        pass
