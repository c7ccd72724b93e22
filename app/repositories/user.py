"""
User repository.
"""
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.interfaces.stores import IUserRepository
from app.infrastructure.database.models import User
from app.repositories.base import BaseRepository


class UserRepository(BaseRepository[User], IUserRepository):
    """User repository."""

    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    async def create_user(self, username: str) -> User:
        try:
            return await self.create({"username": username})
        except SQLAlchemyError as e:
            raise self._wrap(e, "create_user") from e

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        return await self.get(user_id)

    async def list_users(self, limit: int = 100) -> List[User]:
        return await self.get_multi(limit=limit)
