"""
Aggregate row types and signed-balance arithmetic.

Responsibility:
    Typed records returned by the Journal Store read side.  Trial-balance /
    P&L style rows and balance-sheet rows (with fiscal-year-scoped columns)
    are distinct types, so a generator can only read current-year columns
    from a query that computed them.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from ledger_kernel.models.account import AccountType, NormalBalance


def signed_balance(debit: int, credit: int, normal_balance: NormalBalance | str) -> int:
    """
    Balance adjusted for the account's normal side.

    DEBIT-normal (ASSET, EXPENSE): debit - credit
    CREDIT-normal (LIABILITY, EQUITY, REVENUE): credit - debit
    """
    if normal_balance == NormalBalance.DEBIT:
        return debit - credit
    return credit - debit


@dataclass(frozen=True)
class AccountAggregateRow:
    """Per-account debit/credit sums over one date window."""

    gl_account_id: UUID
    entity_id: UUID
    code: str
    name: str
    account_type: AccountType
    normal_balance: NormalBalance
    total_debit: int
    total_credit: int

    @property
    def balance(self) -> int:
        return signed_balance(self.total_debit, self.total_credit, self.normal_balance)


@dataclass(frozen=True)
class BalanceSheetAggregateRow(AccountAggregateRow):
    """
    Cumulative sums plus fiscal-year-scoped sums from the same scan.

    current_year_* are non-zero only for REVENUE/EXPENSE accounts.
    """

    current_year_debit: int
    current_year_credit: int

    @property
    def current_year_balance(self) -> int:
        return signed_balance(
            self.current_year_debit, self.current_year_credit, self.normal_balance,
        )


@dataclass(frozen=True)
class LedgerLineRow:
    """One journal line as seen by the GL drill-down."""

    id: UUID
    date: date
    entry_number: str
    memo: str | None
    debit_amount: int
    credit_amount: int
