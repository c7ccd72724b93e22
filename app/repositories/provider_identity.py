"""
Provider identity repository.
"""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import IdentityConflictError
from app.domain.interfaces.stores import IProviderIdentityRepository
from app.infrastructure.database.models import ProviderIdentity
from app.repositories.base import BaseRepository, is_identity_conflict


class ProviderIdentityRepository(BaseRepository[ProviderIdentity], IProviderIdentityRepository):
    """Provider identity repository."""

    def __init__(self, db: AsyncSession):
        super().__init__(ProviderIdentity, db)

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

        Args:
            user_id: Owning user
            provider: Provider name
            provider_user_id: Provider-assigned account ID
            access_token: Provider access token
            refresh_token: Provider refresh token

        Returns:
            Created identity

        Raises:
            IdentityConflictError: If the provider account is already linked
        """
        try:
            return await self.create({
                "user_id": user_id,
                "provider": provider,
                "provider_user_id": provider_user_id,
                "access_token": access_token,
                "refresh_token": refresh_token,
            })
        except IntegrityError as e:
            if is_identity_conflict(e):
                raise IdentityConflictError() from e
            raise self._wrap(e, "create_identity") from e
        except SQLAlchemyError as e:
            raise self._wrap(e, "create_identity") from e

    async def get_by_provider_and_provider_user_id(
        self,
        provider: str,
        provider_user_id: str,
    ) -> Optional[ProviderIdentity]:
        stmt = select(ProviderIdentity).where(
            ProviderIdentity.provider == provider,
            ProviderIdentity.provider_user_id == provider_user_id,
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise self._wrap(e, "get_by_provider_and_provider_user_id") from e
        return result.scalar_one_or_none()

    async def list_by_user(self, user_id: int) -> List[ProviderIdentity]:
        stmt = (
            select(ProviderIdentity)
            .where(ProviderIdentity.user_id == user_id)
            .order_by(ProviderIdentity.id)
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise self._wrap(e, "list_by_user") from e
        return list(result.scalars().all())
