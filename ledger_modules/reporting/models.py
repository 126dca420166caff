"""
Financial Reporting Domain Models (``ledger_modules.reporting.models``).

Responsibility
--------------
Frozen dataclass value objects representing report outputs: trial
balance, profit & loss, balance sheet, cash flow, GL drill-down, spending
by category and revenue by client.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Built by
``statements.py``, returned (and cached) by ``ReportingService``, turned
into the wire shape by ``render_report``.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction), so a
  cached report cannot be altered by a caller.
* All monetary fields are ``int`` minor units -- NEVER ``float``.
* Every report carries ``entity_id`` (None when consolidated),
  ``entity_name`` and ``currency``.

Audit relevance
---------------
Reports are derived from posted, non-deleted journal lines only and are
deterministic for a fixed journal state.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from uuid import UUID

from ledger_kernel.domain.periods import DateRange


# =========================================================================
# Enums
# =========================================================================


class ReportType(str, Enum):
    """Report kinds; the value is the cache-key segment."""

    TRIAL_BALANCE = "trial-balance"
    PROFIT_LOSS = "profit-loss"
    BALANCE_SHEET = "balance-sheet"
    CASH_FLOW = "cash-flow"
    GL_LEDGER = "gl-ledger"
    SPENDING = "spending"
    REVENUE = "revenue"


class Severity(str, Enum):
    """Trial balance health.  There is no tolerance: one cent is CRITICAL."""

    OK = "OK"
    CRITICAL = "CRITICAL"


# =========================================================================
# Shared line items
# =========================================================================


@dataclass(frozen=True)
class ReportLineItem:
    """One account line of a statement section."""

    account_id: UUID
    code: str
    name: str
    type: str
    normal_balance: str
    balance: int
    previous_balance: int | None = None
    depth: int = 0
    is_subtotal: bool = False


@dataclass(frozen=True)
class ReportSection:
    """A statement section (e.g. revenue, assets, operating activities)."""

    items: tuple[ReportLineItem, ...]
    total: int
    previous_total: int | None = None


# =========================================================================
# Trial Balance
# =========================================================================


@dataclass(frozen=True)
class TrialBalanceAccount:
    id: UUID
    code: str
    name: str
    debit: int
    credit: int


@dataclass(frozen=True)
class TrialBalance:
    entity_id: UUID | None
    entity_name: str
    currency: str
    as_of_date: date
    accounts: tuple[TrialBalanceAccount, ...]
    total_debits: int
    total_credits: int
    is_balanced: bool
    severity: Severity


# =========================================================================
# Profit & Loss
# =========================================================================


@dataclass(frozen=True)
class ProfitAndLoss:
    """
    Profit & loss over the half-open window ``[start_date, end_date)``.

    net_income = revenue.total - expenses.total; negative for a loss.
    """

    entity_id: UUID | None
    entity_name: str
    currency: str
    start_date: date
    end_date: date
    revenue: ReportSection
    expenses: ReportSection
    net_income: int
    comparison_period: DateRange | None = None
    previous_net_income: int | None = None


# =========================================================================
# Balance Sheet
# =========================================================================


@dataclass(frozen=True)
class RetainedEarnings:
    prior_years: int
    current_year: int
    total: int


@dataclass(frozen=True)
class BalanceSheet:
    """
    Balance sheet as of a date.

    total_liabilities_and_equity = liabilities + equity + current-year
    earnings; is_balanced is an exact comparison with total_assets.
    """

    entity_id: UUID | None
    entity_name: str
    currency: str
    as_of_date: date
    assets: ReportSection
    liabilities: ReportSection
    equity: ReportSection
    retained_earnings: RetainedEarnings
    total_assets: int
    total_liabilities_and_equity: int
    is_balanced: bool
    comparison_date: date | None = None


# =========================================================================
# Cash Flow
# =========================================================================


@dataclass(frozen=True)
class CashFlow:
    """
    Indirect-method cash flow statement over ``[start_date, end_date)``.

    is_reconciled is opening_cash + net_cash_change == closing_cash.  It is
    reported, never enforced.
    """

    entity_id: UUID | None
    entity_name: str
    currency: str
    start_date: date
    end_date: date
    net_income: int
    operating: ReportSection
    investing: ReportSection
    financing: ReportSection
    net_cash_change: int
    opening_cash: int
    closing_cash: int
    is_reconciled: bool


# =========================================================================
# GL drill-down
# =========================================================================


@dataclass(frozen=True)
class GLLedgerEntry:
    id: UUID
    date: date
    entry_number: str
    memo: str | None
    debit_amount: int
    credit_amount: int
    running_balance: int


@dataclass(frozen=True)
class GLLedger:
    entity_id: UUID
    gl_account_id: UUID
    account_code: str
    account_name: str
    entity_name: str
    currency: str
    start_date: date
    end_date: date
    opening_balance: int
    entries: tuple[GLLedgerEntry, ...]
    next_cursor: UUID | None = None


# =========================================================================
# Breakdowns
# =========================================================================


@dataclass(frozen=True)
class SpendingCategory:
    gl_account_id: UUID
    category: str
    amount: int
    percentage: int


@dataclass(frozen=True)
class SpendingByCategory:
    entity_id: UUID | None
    entity_name: str
    currency: str
    start_date: date
    end_date: date
    categories: tuple[SpendingCategory, ...]
    total_spend: int


@dataclass(frozen=True)
class RevenueClient:
    client_id: UUID | None
    client_name: str
    invoice_count: int
    amount: int
    percentage: int


@dataclass(frozen=True)
class RevenueByClient:
    entity_id: UUID | None
    entity_name: str
    currency: str
    start_date: date
    end_date: date
    clients: tuple[RevenueClient, ...]
    total_revenue: int
