from typing import Any, Generic, Sequence, Type, TypeVar
from uuid import UUID

from sqlalchemy import (
    SQLColumnExpression,
    and_,
    delete as sa_delete,
    func,
    update as sa_update,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.sql import Delete, Select, Update

from transit_api.core.exceptions.types import ConflictException, DatabaseException

T = TypeVar("T")


class BaseDB(Generic[T]):
    """
    Generic async CRUD helper bound to one model.

    Every method turns ``SQLAlchemyError`` into ``DatabaseException`` so that
    callers only deal with application exceptions. Unique-constraint failures
    on insert/update become ``ConflictException`` instead.

    Methods that write take ``commit_self``: True commits the session, False
    only flushes so the caller's transaction decides.
    """

    conflict_message: str = "Resource already exists."

    def __init__(self, model: Type[T]):
        self.model = model

    async def _persist(self, session: AsyncSession, commit_self: bool) -> None:
        if commit_self:
            await session.commit()
        else:
            await session.flush()

    async def get_by_id(
        self,
        session: AsyncSession,
        id: UUID,
        for_update: bool = False,
    ) -> T | None:
        """
        Retrieve an instance of the model by its primary key.

        Args:
            session (AsyncSession): The asynchronous database session.
            id (UUID): Primary key value.
            for_update (bool): Lock the row for the rest of the transaction and
                reload it even if the session already holds it. The lock itself
                is ignored by backends without row locks (SQLite).

        Returns:
            T | None: The instance if found, otherwise None.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        try:
            stmt: Select = select(self.model).where(getattr(self.model, "id") == id)
            if for_update:
                stmt = stmt.with_for_update().execution_options(populate_existing=True)
            result = await session.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error retrieving {self.model.__name__} with ID {id}: {str(e)}"
            ) from e

    async def get_all(
        self,
        session: AsyncSession,
        filters: Sequence[SQLColumnExpression] | None = None,
        order_by: Sequence[Any] | None = None,
        limit: int | None = None,
    ) -> Sequence[T]:
        """
        Retrieve records, optionally filtered, ordered and limited.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        try:
            stmt = select(self.model)
            if filters:
                stmt = stmt.where(and_(*filters))
            if order_by:
                stmt = stmt.order_by(*order_by)
            if limit:
                stmt = stmt.limit(limit)
            result = await session.execute(stmt)
            return result.scalars().all()
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error retrieving all {self.model.__name__} records: {str(e)}"
            ) from e

    async def get_one_by_conditions(
        self,
        session: AsyncSession,
        conditions: Sequence[SQLColumnExpression],
        for_update: bool = False,
    ) -> T | None:
        """
        Retrieve the first record matching every condition.

        Args:
            session (AsyncSession): The asynchronous database session.
            conditions (Sequence[SQLColumnExpression]): Filter expressions, AND-ed.
            for_update (bool): Lock the selected row for the rest of the transaction.

        Returns:
            T | None: The instance if found, otherwise None.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        try:
            stmt = select(self.model).where(and_(*conditions))
            if for_update:
                stmt = stmt.with_for_update().execution_options(populate_existing=True)
            result = await session.execute(stmt)
            return result.scalars().first()
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error retrieving one {self.model.__name__}: {str(e)}"
            ) from e

    async def count(
        self,
        session: AsyncSession,
        conditions: Sequence[SQLColumnExpression] | None = None,
    ) -> int:
        """Count records matching ``conditions`` (all records when omitted)."""
        try:
            stmt = select(func.count()).select_from(self.model)
            if conditions:
                stmt = stmt.where(and_(*conditions))
            result = await session.execute(stmt)
            return int(result.scalar_one())
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error counting {self.model.__name__} records: {str(e)}"
            ) from e

    async def create(
        self,
        session: AsyncSession,
        data: dict,
        commit_self: bool = True,
    ) -> T:
        """
        Create and persist a new instance from ``data``.

        Args:
            session (AsyncSession): The asynchronous database session.
            data (dict): Column values for the new instance.
            commit_self (bool): Commit (True) or only flush (False).

        Returns:
            T: The persisted instance, refreshed from the database.

        Raises:
            ConflictException: If a unique constraint rejects the row.
            DatabaseException: For any other database error.
        """
        try:
            obj = self.model(**data)
            session.add(obj)
            await self._persist(session, commit_self)
            await session.refresh(obj)
            return obj
        except IntegrityError as e:
            raise ConflictException(self.conflict_message) from e
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error creating {self.model.__name__}: {str(e)}"
            ) from e

    async def update(
        self,
        session: AsyncSession,
        obj: T,
        updates: dict,
        commit_self: bool = True,
    ) -> T:
        """
        Apply ``updates`` to a loaded instance and persist it.

        Raises:
            ConflictException: If a unique constraint rejects the change.
            DatabaseException: For any other database error.
        """
        try:
            for field, value in updates.items():
                setattr(obj, field, value)
            session.add(obj)
            await self._persist(session, commit_self)
            await session.refresh(obj)
            return obj
        except IntegrityError as e:
            raise ConflictException(self.conflict_message) from e
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error updating {self.model.__name__}: {str(e)}"
            ) from e

    async def update_by_conditions(
        self,
        session: AsyncSession,
        conditions: Sequence[SQLColumnExpression],
        updates: dict,
        commit_self: bool = True,
    ) -> int:
        """
        Update every record matching ``conditions`` in one statement.

        The conditions are evaluated by the database at write time, so they
        can guard against concurrent changes. Instances already loaded in the
        session are not refreshed.

        Returns:
            int: The number of records updated.

        Raises:
            DatabaseException: If an error occurs while updating the records.
        """
        try:
            stmt: Update = (
                sa_update(self.model)
                .where(and_(*conditions))
                .values(**updates)
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(stmt)
            await self._persist(session, commit_self)
            return result.rowcount  # type: ignore[attr-defined]
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error updating {self.model.__name__} records: {str(e)}"
            ) from e

    async def delete(
        self, session: AsyncSession, id: UUID, commit_self: bool = True
    ) -> bool:
        """
        Delete a record by primary key.

        Returns:
            bool: True if a row was deleted.

        Raises:
            DatabaseException: If an error occurs while deleting the record.
        """
        try:
            stmt: Delete = sa_delete(self.model).where(getattr(self.model, "id") == id)
            result = await session.execute(stmt)
            await self._persist(session, commit_self)
            return result.rowcount > 0  # type: ignore[attr-defined]
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error deleting {self.model.__name__} with ID {id}: {str(e)}"
            ) from e

    async def delete_by_conditions(
        self,
        session: AsyncSession,
        conditions: Sequence[SQLColumnExpression],
        commit_self: bool = True,
    ) -> int:
        """
        Delete every record matching ``conditions``.

        Returns:
            int: The number of records deleted.

        Raises:
            DatabaseException: If an error occurs while deleting the records.
        """
        try:
            stmt: Delete = (
                sa_delete(self.model)
                .where(and_(*conditions))
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(stmt)
            await self._persist(session, commit_self)
            return result.rowcount  # type: ignore[attr-defined]
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error deleting {self.model.__name__} records: {str(e)}"
            ) from e
