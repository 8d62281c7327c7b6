from sqlalchemy import Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from transit_api.core.db.models.base import BaseModel
from transit_api.core.enums import AccountRole


class Account(BaseModel):
    """
    A person allowed to use the transport system.

    ``email`` is stored lower-cased and is the login identity. The unique
    index on it is what ultimately decides concurrent registrations for the
    same address.
    """

    __tablename__ = "accounts"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    role: Mapped[AccountRole] = mapped_column(
        Enum(AccountRole, native_enum=False, name="account_role", length=16),
        default=AccountRole.STUDENT,
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Account {self.email} ({self.role.value})>"


__all__ = ["Account"]
