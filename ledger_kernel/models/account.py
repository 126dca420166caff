"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the per-entity chart of GL accounts.
    Defines AccountType and NormalBalance, the two classifications every
    aggregation depends on.
Architecture position: Kernel > Models.  May import from db/ and exceptions only.

Invariants enforced:
    - ASSET and EXPENSE accounts are DEBIT-normal; LIABILITY, EQUITY and
      REVENUE accounts are CREDIT-normal.  Enforced at construction: the
      normal side defaults from the type and a contradicting value raises
      InvalidNormalBalanceError.
    - Account code is unique within an entity.

Failure modes:
    - InvalidNormalBalanceError (VALIDATION) on a type/side mismatch.
    - IntegrityError on a duplicate (entity_id, code).

Audit relevance:
    Signed balances in every statement are computed from normal_balance;
    a wrong side would silently invert a report, hence the hard check.
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base
from ledger_kernel.db.types import ShortCode
from ledger_kernel.exceptions import InvalidNormalBalanceError


class AccountType(str, Enum):
    """Account classification; determines statement placement."""

    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"


class NormalBalance(str, Enum):
    """The side on which an account naturally increases."""

    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


NORMAL_BALANCE_BY_TYPE: dict[AccountType, NormalBalance] = {
    AccountType.ASSET: NormalBalance.DEBIT,
    AccountType.EXPENSE: NormalBalance.DEBIT,
    AccountType.LIABILITY: NormalBalance.CREDIT,
    AccountType.EQUITY: NormalBalance.CREDIT,
    AccountType.REVENUE: NormalBalance.CREDIT,
}


class GLAccount(Base):
    """
    General-ledger account belonging to one entity.

    Guarantees:
        - normal_balance always agrees with account_type.
    """

    __tablename__ = "gl_accounts"

    __table_args__ = (
        UniqueConstraint("entity_id", "code", name="uq_gl_accounts_entity_code"),
        Index("idx_gl_accounts_entity_type", "entity_id", "account_type"),
    )

    entity_id: Mapped[UUID] = mapped_column(ForeignKey("entities.id"), nullable=False)

    code: Mapped[ShortCode] = mapped_column(nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)

    normal_balance: Mapped[NormalBalance] = mapped_column(String(10), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __init__(self, **kwargs):
        account_type = AccountType(kwargs["account_type"])
        expected = NORMAL_BALANCE_BY_TYPE[account_type]
        normal_balance = NormalBalance(kwargs.get("normal_balance") or expected)
        if normal_balance != expected:
            raise InvalidNormalBalanceError(account_type.value, normal_balance.value)
        kwargs["account_type"] = account_type.value
        kwargs["normal_balance"] = normal_balance.value
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        return f"<GLAccount {self.code}: {self.name}>"

    @property
    def is_debit_normal(self) -> bool:
        return self.normal_balance == NormalBalance.DEBIT
