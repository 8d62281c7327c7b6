"""
CRUD operations for the OTPChallenge model.

Challenges are hard-deleted: consuming, exhausting or expiring a challenge
removes its row, so "no row" always means "nothing to verify".
"""

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import update as sa_update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Update

from transit_api.core.db.crud.base import BaseDB
from transit_api.core.db.models import OTPChallenge
from transit_api.core.exceptions.types import DatabaseException


class OTPChallengeDB(BaseDB[OTPChallenge]):
    conflict_message = "A verification code was just issued for this email."

    def __init__(self):
        super().__init__(model=OTPChallenge)

    async def get_live_for_email(
        self,
        session: AsyncSession,
        email: str,
        now: datetime | None = None,
        for_update: bool = False,
    ) -> OTPChallenge | None:
        """
        Retrieve the non-expired challenge for ``email``.

        Args:
            session: The async database session.
            email: Normalized email address.
            now: Reference time; defaults to the current UTC time.
            for_update: Lock the row so concurrent verifications serialize.

        Returns:
            The live OTPChallenge, or None when none exists or it has expired.

        Raises:
            DatabaseException: If a database error occurs.
        """
        now = now or datetime.now(timezone.utc)
        return await self.get_one_by_conditions(
            session=session,
            conditions=[
                self.model.email == email,
                self.model.expires_at > now,
            ],
            for_update=for_update,
        )

    async def delete_for_email(
        self,
        session: AsyncSession,
        email: str,
        commit_self: bool = True,
    ) -> int:
        """Delete every challenge (live or expired) for ``email``."""
        return await self.delete_by_conditions(
            session=session,
            conditions=[self.model.email == email],
            commit_self=commit_self,
        )

    async def delete_expired(
        self,
        session: AsyncSession,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> int:
        """
        Garbage-collect challenges whose absolute expiry has passed.

        Returns:
            The number of challenges removed.
        """
        now = now or datetime.now(timezone.utc)
        return await self.delete_by_conditions(
            session=session,
            conditions=[self.model.expires_at <= now],
            commit_self=commit_self,
        )

    async def increment_attempts(
        self,
        session: AsyncSession,
        challenge_id: UUID,
        max_attempts: int,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> int | None:
        """
        Count one verification attempt against a live challenge.

        The increment is a single conditional UPDATE, so concurrent guesses
        can never push the counter past ``max_attempts``.

        Returns:
            The new attempt count, or None when the challenge is gone, has
            expired or is already at ``max_attempts``.

        Raises:
            DatabaseException: If a database error occurs.
        """
        now = now or datetime.now(timezone.utc)
        try:
            stmt: Update = (
                sa_update(self.model)
                .where(
                    self.model.id == challenge_id,
                    self.model.attempts < max_attempts,
                    self.model.expires_at > now,
                )
                .values(attempts=self.model.attempts + 1, updated_at=now)
                .returning(self.model.attempts)
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(stmt)
            attempts = result.scalar_one_or_none()
            await self._persist(session, commit_self)
            return attempts
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error counting attempt on OTPChallenge {challenge_id}: {str(e)}"
            ) from e

    async def delete_exhausted(
        self,
        session: AsyncSession,
        challenge_id: UUID,
        max_attempts: int,
        commit_self: bool = True,
    ) -> bool:
        """Delete the challenge only if its attempts are used up. True if removed."""
        removed = await self.delete_by_conditions(
            session=session,
            conditions=[
                self.model.id == challenge_id,
                self.model.attempts >= max_attempts,
            ],
            commit_self=commit_self,
        )
        return removed > 0


__all__ = ["OTPChallengeDB"]
