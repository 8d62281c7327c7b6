"""
Credential store: account records keyed by institutional email.

All writes go through ``AccountStore`` so that the email, name, password and
role rules are checked in one place for self-registration and for
admin-managed accounts alike.
"""

from typing import Any, Sequence
from uuid import UUID

from pydantic import validate_email
from sqlalchemy.ext.asyncio import AsyncSession

from transit_api.core.config import auth_logger
from transit_api.core.db.crud import account_db
from transit_api.core.db.models import Account
from transit_api.core.enums import AccountRole
from transit_api.core.exceptions.types import (
    AccountAlreadyExistsException,
    AccountNotFoundException,
    ConflictException,
    LastAdminException,
    ValidationException,
)
from transit_api.core.utils import hash_password, normalize_email

UPDATABLE_FIELDS = frozenset({"name", "role", "password"})


class AccountStore:
    """
    Persistent credential records.

    Args:
        email_domain: Institutional suffix every email must end with,
            e.g. ``"@cfd.nu.edu.pk"``.
        min_password_length: Shortest accepted password.
    """

    def __init__(self, email_domain: str = "@cfd.nu.edu.pk", min_password_length: int = 6):
        self.email_domain = email_domain.lower()
        self.min_password_length = min_password_length

    # Validation

    def validate_email(self, email: str | None, complete_username: bool = False) -> str:
        """
        Normalize ``email`` and check its format and institutional domain.

        Args:
            email: Raw address from the request.
            complete_username: Treat a value without ``@`` as a bare username
                and append the institutional domain.

        Returns:
            str: The normalized address.

        Raises:
            ValidationException: Empty, malformed or outside the institution.
        """
        value = normalize_email(
            email or "", self.email_domain if complete_username else None
        )
        if not value:
            raise ValidationException("Email is required")
        try:
            validate_email(value)
        except ValueError as e:
            raise ValidationException("Invalid email format") from e
        if not value.endswith(self.email_domain):
            raise ValidationException(
                f"Please use your university email ({self.email_domain})"
            )
        return value

    @staticmethod
    def validate_name(name: str | None) -> str:
        value = (name or "").strip()
        if not value:
            raise ValidationException("Name is required")
        return value

    def validate_password(self, password: str | None) -> str:
        if not password or len(password) < self.min_password_length:
            raise ValidationException(
                f"Password must be at least {self.min_password_length} characters"
            )
        return password

    @staticmethod
    def validate_role(role: AccountRole | str | None) -> AccountRole:
        try:
            return AccountRole(role)
        except ValueError as e:
            allowed = ", ".join(r.value for r in AccountRole)
            raise ValidationException(f"Role must be one of: {allowed}") from e

    # Reads

    async def find_by_email(self, session: AsyncSession, email: str) -> Account | None:
        """Return the account for ``email`` (normalized before lookup), if any."""
        return await account_db.get_by_email(session, normalize_email(email))

    async def get(self, session: AsyncSession, account_id: UUID) -> Account | None:
        return await account_db.get_by_id(session, account_id)

    async def list(self, session: AsyncSession) -> Sequence[Account]:
        """All accounts, newest first."""
        return await account_db.list_newest_first(session)

    async def count_admins(self, session: AsyncSession) -> int:
        return await account_db.count_admins(session)

    # Writes

    async def create(
        self,
        session: AsyncSession,
        name: str,
        email: str,
        password: str,
        role: AccountRole | str = AccountRole.STUDENT,
        complete_username: bool = False,
        commit_self: bool = True,
    ) -> Account:
        """
        Validate and persist a new account with a bcrypt-hashed password.

        Raises:
            ValidationException: Bad email, empty name, short password or unknown role.
            AccountAlreadyExistsException: The email already belongs to an account,
                including when a concurrent insert wins the unique index.
        """
        email = self.validate_email(email, complete_username=complete_username)
        name = self.validate_name(name)
        self.validate_password(password)
        role = self.validate_role(role)

        if await account_db.get_by_email(session, email) is not None:
            raise AccountAlreadyExistsException()

        try:
            account = await account_db.create(
                session=session,
                data={
                    "name": name,
                    "email": email,
                    "password_hash": hash_password(password),
                    "role": role,
                },
                commit_self=commit_self,
            )
        except ConflictException as e:
            auth_logger.info(f"Concurrent registration lost for {email}")
            raise AccountAlreadyExistsException() from e

        auth_logger.info(f"Account created: {account.id} ({role.value})")
        return account

    async def update_profile(
        self,
        session: AsyncSession,
        account_id: UUID,
        fields: dict[str, Any],
        commit_self: bool = True,
    ) -> Account:
        """
        Change the name, role and/or password of an account.

        The email is the login identity and cannot be changed. ``None`` values
        in ``fields`` are ignored.

        Raises:
            AccountNotFoundException: No account with ``account_id``.
            ValidationException: A field is invalid or not updatable.
            LastAdminException: The change would demote the only admin.
        """
        changes = {k: v for k, v in fields.items() if v is not None}
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationException(
                f"Cannot update field(s): {', '.join(sorted(unknown))}"
            )

        account = await account_db.get_by_id(session, account_id, for_update=True)
        if account is None:
            raise AccountNotFoundException()

        updates: dict[str, Any] = {}
        if "name" in changes:
            updates["name"] = self.validate_name(changes["name"])
        if "password" in changes:
            updates["password_hash"] = hash_password(
                self.validate_password(changes["password"])
            )
        role_changed = False
        if "role" in changes:
            new_role = self.validate_role(changes["role"])
            if account.role == AccountRole.ADMIN and new_role != AccountRole.ADMIN:
                await self._demote_admin(session, account.id, new_role)
                role_changed = True
            else:
                updates["role"] = new_role

        if not updates and not role_changed:
            return account

        # An empty ``updates`` still persists the demotion and reloads the row
        account = await account_db.update(
            session=session, obj=account, updates=updates, commit_self=commit_self
        )
        auth_logger.info(
            f"Account {account.id} updated: {', '.join(sorted(changes))}"
        )
        return account

    async def _demote_admin(
        self, session: AsyncSession, account_id: UUID, new_role: AccountRole
    ) -> None:
        if len(await account_db.lock_admin_ids(session)) <= 1:
            raise LastAdminException("Cannot demote the last admin user")

        demoted = await account_db.update_by_conditions(
            session=session,
            conditions=[account_db.model.id == account_id, account_db.keeps_an_admin()],
            updates={"role": new_role},
            commit_self=False,
        )
        if not demoted:
            raise LastAdminException("Cannot demote the last admin user")

    async def delete(
        self,
        session: AsyncSession,
        account_id: UUID,
        commit_self: bool = True,
    ) -> None:
        """
        Remove an account.

        Raises:
            AccountNotFoundException: No account with ``account_id``.
            LastAdminException: ``account_id`` is the only admin.
        """
        account = await account_db.get_by_id(session, account_id)
        if account is None:
            raise AccountNotFoundException()

        if (
            account.role == AccountRole.ADMIN
            and len(await account_db.lock_admin_ids(session)) <= 1
        ):
            raise LastAdminException("Cannot delete the last admin user")

        removed = await account_db.delete_by_conditions(
            session=session,
            conditions=[account_db.model.id == account.id, account_db.keeps_an_admin()],
            commit_self=commit_self,
        )
        if not removed:
            # Another request got there first
            if await account_db.get_by_id(session, account.id, for_update=True) is None:
                raise AccountNotFoundException()
            raise LastAdminException("Cannot delete the last admin user")
        auth_logger.info(f"Account deleted: {account_id}")


__all__ = ["AccountStore", "UPDATABLE_FIELDS"]
