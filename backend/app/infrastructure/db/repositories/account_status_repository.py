"""
Account Status Repository

Reads and writes the per-user new_account flag that gates the one-time
free trial.
"""

from typing import Optional, Union
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.db.repositories.base_repository import BaseRepository
from app.infrastructure.db.repositories.subscription_repository import to_uuid
from app.infrastructure.db.models.base import utcnow
from app.infrastructure.db.models.subscription import AccountStatusModel


class AccountStatusRepository(BaseRepository[AccountStatusModel, AccountStatusModel]):
    """Repository for the account_status table (one row per user)."""

    def __init__(self, session: AsyncSession):
        super().__init__(AccountStatusModel, session)

    async def get_by_user_id(self, user_id: Union[str, UUID]) -> Optional[AccountStatusModel]:
        stmt = (
            select(AccountStatusModel)
            .where(AccountStatusModel.user_id == to_uuid(user_id))
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def insert_new_account(self, user_id: Union[str, UUID]) -> bool:
        """
        Create the row flagged as new if the user has none.

        An existing row is left untouched, so a consumed trial cannot be
        re-armed.

        Returns:
            True if a row was inserted
        """
        now = utcnow()
        stmt = self._insert().values(
            id=uuid4(),
            user_id=to_uuid(user_id),
            new_account=True,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_nothing(index_elements=["user_id"])
        result = await self._session.execute(stmt)
        await self._session.flush()
        return bool(result.rowcount)

    async def set_new_account(self, user_id: Union[str, UUID], new_account: bool) -> int:
        """
        Update the flag on an existing row.

        Returns:
            Number of rows updated (0 when the user has no status row)
        """
        stmt = (
            update(AccountStatusModel)
            .where(AccountStatusModel.user_id == to_uuid(user_id))
            .values(new_account=new_account, updated_at=utcnow())
        )
        result = await self._session.execute(stmt)
        await self._session.flush()
        return result.rowcount or 0
