"""
Unit of Work pattern implementation for transactional operations.
"""
from typing import Callable

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import IdentityConflictError, PersistenceError
from app.domain.interfaces.stores import IUnitOfWork
from app.repositories.base import is_identity_conflict
from app.repositories.provider_identity import ProviderIdentityRepository
from app.repositories.session import SessionRepository
from app.repositories.user import UserRepository

logger = structlog.get_logger(__name__)

UnitOfWorkFactory = Callable[[], IUnitOfWork]


class UnitOfWork(IUnitOfWork):
    """
    Unit of Work pattern for managing database transactions.

    Ensures all repository operations within a unit are committed together
    or rolled back on failure. Each unit opens its own session, so units are
    safe to use from concurrent requests.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self._session: AsyncSession | None = None

        self._users: UserRepository | None = None
        self._identities: ProviderIdentityRepository | None = None
        self._sessions: SessionRepository | None = None

    async def __aenter__(self) -> "UnitOfWork":
        """Enter the context manager."""
        self._session = self._session_factory()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit the context manager."""
        try:
            if exc_type is not None:
                await self.rollback()
            else:
                await self.commit()
        finally:
            await self._session.close()
            self._session = None

    async def commit(self) -> None:
        """Commit the transaction."""
        if not self._session:
            return
        try:
            await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            if is_identity_conflict(e):
                raise IdentityConflictError() from e
            logger.error("unit_of_work_commit_failed", error=str(e))
            raise PersistenceError("Commit failed", operation="commit") from e
        except SQLAlchemyError as e:
            await self._session.rollback()
            logger.error("unit_of_work_commit_failed", error=str(e))
            raise PersistenceError("Commit failed", operation="commit") from e

    async def rollback(self) -> None:
        """Rollback the transaction."""
        if self._session:
            await self._session.rollback()

    @property
    def session(self) -> AsyncSession:
        """Get the current session."""
        if not self._session:
            raise RuntimeError("UnitOfWork must be used within a context manager")
        return self._session

    @property
    def users(self) -> UserRepository:
        """Get user repository."""
        if not self._users:
            self._users = UserRepository(self.session)
        return self._users

    @property
    def identities(self) -> ProviderIdentityRepository:
        """Get provider identity repository."""
        if not self._identities:
            self._identities = ProviderIdentityRepository(self.session)
        return self._identities

    @property
    def sessions(self) -> SessionRepository:
        """Get session repository."""
        if not self._sessions:
            self._sessions = SessionRepository(self.session)
        return self._sessions


def unit_of_work_factory(session_factory: async_sessionmaker[AsyncSession]) -> UnitOfWorkFactory:
    """Bind a session factory into a zero-argument unit-of-work constructor."""
    return lambda: UnitOfWork(session_factory)
