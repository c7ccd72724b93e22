"""
Identity resolution: maps a provider account to a local user, creating both
on first login.
"""
import structlog

from app.core.exceptions import IdentityConflictError, PersistenceError
from app.domain.schemas.auth import ProviderProfile
from app.repositories.unit_of_work import UnitOfWorkFactory

logger = structlog.get_logger(__name__)


class IdentityResolver:
    """Find-or-create users by provider identity."""

    def __init__(self, uow_factory: UnitOfWorkFactory):
        self.uow_factory = uow_factory

    async def resolve_user_id(
        self,
        provider: str,
        profile: ProviderProfile,
        access_token: str,
        refresh_token: str | None = None,
    ) -> int:
        """
        Return the local user linked to a provider account.

        The user and identity rows are inserted in one transaction. When two
        first logins for the same account race, the unique constraint on
        ``(provider, provider_user_id)`` rejects the loser, which rolls back
        and reads the winner's row.

        Args:
            provider: Provider name
            profile: Provider account
            access_token: Provider access token to store on creation
            refresh_token: Provider refresh token to store on creation

        Returns:
            Local user ID

        Raises:
            PersistenceError: If the stores fail
        """
        user_id = await self._find_user_id(provider, profile.provider_user_id)
        if user_id is not None:
            logger.info(
                "provider_identity_found",
                provider=provider,
                provider_user_id=profile.provider_user_id,
                user_id=user_id,
            )
            return user_id

        try:
            async with self.uow_factory() as uow:
                user = await uow.users.create_user(profile.login)
                user_id = user.id
                await uow.identities.create_identity(
                    user_id=user_id,
                    provider=provider,
                    provider_user_id=profile.provider_user_id,
                    access_token=access_token,
                    refresh_token=refresh_token,
                )
        except IdentityConflictError:
            logger.info(
                "provider_identity_conflict",
                provider=provider,
                provider_user_id=profile.provider_user_id,
            )
            user_id = await self._find_user_id(provider, profile.provider_user_id)
            if user_id is None:
                raise PersistenceError(
                    "Identity conflict reported but no identity found",
                    operation="create_identity",
                )
            return user_id

        logger.info(
            "provider_identity_created",
            provider=provider,
            provider_user_id=profile.provider_user_id,
            user_id=user_id,
        )
        return user_id

    async def _find_user_id(self, provider: str, provider_user_id: str) -> int | None:
        async with self.uow_factory() as uow:
            identity = await uow.identities.get_by_provider_and_provider_user_id(provider, provider_user_id)
            return identity.user_id if identity is not None else None
