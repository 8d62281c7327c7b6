from typing import Sequence
from uuid import UUID

from sqlalchemy import ColumnElement, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from transit_api.core.db.crud.base import BaseDB
from transit_api.core.db.models import Account
from transit_api.core.enums import AccountRole
from transit_api.core.exceptions.types import DatabaseException


class AccountDB(BaseDB[Account]):
    conflict_message = "Email already registered"

    def __init__(self):
        super().__init__(model=Account)

    async def get_by_email(self, session: AsyncSession, email: str) -> Account | None:
        """Look up an account by its (already normalized) email."""
        return await self.get_one_by_conditions(
            session=session,
            conditions=[self.model.email == email],
        )

    async def list_newest_first(self, session: AsyncSession) -> Sequence[Account]:
        return await self.get_all(
            session=session,
            order_by=[self.model.created_at.desc()],
        )

    async def count_admins(self, session: AsyncSession) -> int:
        return await self.count(
            session=session,
            conditions=[self.model.role == AccountRole.ADMIN],
        )

    async def lock_admin_ids(self, session: AsyncSession) -> Sequence[UUID]:
        """
        Lock every admin row for the rest of the transaction and return their ids.

        Concurrent demotions and deletions of admins queue behind this lock on
        backends with row locks. SQLite ignores it and relies on
        ``keeps_an_admin`` being checked inside the write itself.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        try:
            stmt = (
                select(self.model.id)
                .where(self.model.role == AccountRole.ADMIN)
                .with_for_update()
            )
            result = await session.execute(stmt)
            return result.scalars().all()
        except SQLAlchemyError as e:
            raise DatabaseException(f"Error locking admin accounts: {str(e)}") from e

    def keeps_an_admin(self) -> ColumnElement[bool]:
        """
        Condition that holds for any row except the last remaining admin.

        Used as a guard in DELETE and UPDATE statements so the admin count is
        read by the same statement that changes it.
        """
        admins = aliased(self.model)
        admin_count = (
            select(func.count())
            .select_from(admins)
            .where(admins.role == AccountRole.ADMIN)
            .correlate(None)
            .scalar_subquery()
        )
        return or_(self.model.role != AccountRole.ADMIN, admin_count > 1)


__all__ = ["AccountDB"]
