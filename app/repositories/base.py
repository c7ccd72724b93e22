"""
Base repository implementation.

Repositories only flush; the surrounding unit of work owns the transaction.
"""
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import PersistenceError
from app.infrastructure.database.base import Base
from app.infrastructure.database.models import IDENTITY_UNIQUE_CONSTRAINT

logger = structlog.get_logger(__name__)

ModelType = TypeVar("ModelType", bound=Base)

# Postgres names the constraint; SQLite only lists its columns
_IDENTITY_CONFLICT_MARKERS = (
    IDENTITY_UNIQUE_CONSTRAINT,
    "UNIQUE constraint failed: oauth.provider, oauth.provider_user_id",
)


def is_identity_conflict(error: IntegrityError) -> bool:
    """Whether an integrity error is the (provider, provider_user_id) unique violation."""
    detail = str(error.orig)
    return any(marker in detail for marker in _IDENTITY_CONFLICT_MARKERS)


class BaseRepository(Generic[ModelType]):
    """Base repository with common CRUD operations."""

    def __init__(
        self,
        model: Type[ModelType],
        db: AsyncSession,
    ):
        self.model = model
        self.db = db

    async def create(
        self,
        data: Dict[str, Any],
    ) -> ModelType:
        """
        Create a new record.

        Args:
            data: Record data

        Returns:
            Created record, refreshed with server defaults
        """
        db_obj = self.model(**data)
        self.db.add(db_obj)
        await self.db.flush()
        await self.db.refresh(db_obj)
        return db_obj

    async def get(
        self,
        id: int,
    ) -> Optional[ModelType]:
        """
        Get record by ID.

        Args:
            id: Record ID

        Returns:
            Record if found
        """
        stmt = select(self.model).where(self.model.id == id)
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise self._wrap(e, "get") from e
        return result.scalar_one_or_none()

    async def get_multi(
        self,
        *,
        skip: int = 0,
        limit: int = 100,
    ) -> List[ModelType]:
        """
        Get multiple records ordered by ID.

        Args:
            skip: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            List of records
        """
        stmt = select(self.model).order_by(self.model.id).offset(skip).limit(limit)
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise self._wrap(e, "get_multi") from e
        return list(result.scalars().all())

    async def delete(
        self,
        id: int,
    ) -> bool:
        """
        Delete a record.

        Args:
            id: Record ID

        Returns:
            True if deleted, False if not found
        """
        db_obj = await self.get(id)
        if not db_obj:
            return False

        try:
            await self.db.delete(db_obj)
            await self.db.flush()
        except SQLAlchemyError as e:
            raise self._wrap(e, "delete") from e
        return True

    def _wrap(self, error: SQLAlchemyError, operation: str) -> PersistenceError:
        logger.error(
            "repository_operation_failed",
            model=self.model.__name__,
            operation=operation,
            error=str(error),
        )
        return PersistenceError(f"{self.model.__name__}.{operation} failed", operation=operation)
