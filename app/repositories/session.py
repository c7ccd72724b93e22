"""
Session repository.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.interfaces.stores import ISessionRepository
from app.infrastructure.database.models import Session
from app.repositories.base import BaseRepository


class SessionRepository(BaseRepository[Session], ISessionRepository):
    """Session repository."""

    def __init__(self, db: AsyncSession):
        super().__init__(Session, db)

    async def create_session(self, user_id: int, secret_hash: str) -> Session:
        try:
            return await self.create({"user_id": user_id, "secret_hash": secret_hash})
        except SQLAlchemyError as e:
            raise self._wrap(e, "create_session") from e

    async def get_by_id(self, session_id: int) -> Optional[Session]:
        return await self.get(session_id)

    async def list_by_user(self, user_id: int) -> List[Session]:
        stmt = select(Session).where(Session.user_id == user_id).order_by(Session.id)
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise self._wrap(e, "list_by_user") from e
        return list(result.scalars().all())

    async def update_last_verified(self, session_id: int, when: datetime) -> None:
        stmt = update(Session).where(Session.id == session_id).values(last_verified_at=when)
        try:
            await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise self._wrap(e, "update_last_verified") from e
