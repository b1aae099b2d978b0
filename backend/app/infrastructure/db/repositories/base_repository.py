"""
Base Repository for EventTria

Generic async repository with the create operation the
subscription layer needs, plus dialect-aware upsert support.
"""

from typing import TypeVar, Generic, Type

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel


ModelType = TypeVar("ModelType", bound=SQLModel)
CreateSchemaType = TypeVar("CreateSchemaType", bound=SQLModel)


class BaseRepository(Generic[ModelType, CreateSchemaType]):
    """
    Generic async repository bound to one table and one session.

    Repositories only flush; committing is the caller's decision so a
    service can group several writes into one transaction.

    Args:
        model: The SQLModel class to operate on
        session: Async database session
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self._model = model
        self._session = session

    async def create(self, data: CreateSchemaType) -> ModelType:
        """
        Create a new record.

        Args:
            data: Create schema with field values

        Returns:
            Created model instance (flushed, not committed)
        """
        db_obj = self._model.model_validate(data)
        self._session.add(db_obj)
        await self._session.flush()
        await self._session.refresh(db_obj)
        return db_obj

    def _insert(self):
        return insert_for(self._session, self._model)


def insert_for(session: AsyncSession, model: Type[SQLModel]):
    """
    Build an INSERT that supports ON CONFLICT for the session's dialect.

    Postgres in production, SQLite in tests; both accept
    on_conflict_do_nothing / on_conflict_do_update with index_elements.
    """
    if session.get_bind().dialect.name == "sqlite":
        return sqlite_insert(model)
    return pg_insert(model)
