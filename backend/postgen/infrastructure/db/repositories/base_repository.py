"""
Base Repository for PostGen API

Shared session handling for the table repositories.
"""

from typing import AsyncContextManager, Generic, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel


ModelType = TypeVar("ModelType", bound=SQLModel)


def to_uuid(value) -> Optional[UUID]:
    """Coerce an id to UUID; malformed ids match nothing."""
    if value is None or isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


class BaseRepository(Generic[ModelType]):
    """
    Generic async repository bound to one request-scoped session.

    Args:
        model: The SQLModel class to operate on
        session: Async database session
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self._model = model
        self._session = session

    @property
    def session(self) -> AsyncSession:
        """Get the current session."""
        return self._session

    def savepoint(self) -> AsyncContextManager:
        """
        Nested transaction for work whose failure must not poison the
        request transaction.
        """
        return self._session.begin_nested()

    async def get_by_id(self, id: UUID) -> Optional[ModelType]:
        """Get a single record by its primary key."""
        return await self._session.get(self._model, id)
