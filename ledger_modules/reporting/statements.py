"""
Pure financial statement transformation functions.

These functions transform aggregate rows from the ledger selector into
structured report objects. ZERO I/O. ZERO side effects.

All monetary values are int minor units. All inputs/outputs are frozen
dataclasses.

Functions in this module follow the ledger_kernel/domain/ purity convention:
- No database access
- No clock access
- No file I/O
- Deterministic: same inputs always produce same outputs
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Sequence
from datetime import date
from enum import Enum
from uuid import UUID

from ledger_kernel.domain.balances import (
    AccountAggregateRow,
    BalanceSheetAggregateRow,
    LedgerLineRow,
    signed_balance,
)
from ledger_kernel.domain.money import percentage_of
from ledger_kernel.domain.periods import DateRange
from ledger_kernel.models.account import AccountType, NormalBalance
from ledger_kernel.selectors.entity_selector import EntityScope
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    BalanceSheet,
    CashFlow,
    GLLedger,
    GLLedgerEntry,
    ProfitAndLoss,
    ReportLineItem,
    ReportSection,
    RetainedEarnings,
    RevenueByClient,
    RevenueClient,
    Severity,
    SpendingByCategory,
    SpendingCategory,
    TrialBalance,
    TrialBalanceAccount,
)

# =========================================================================
# Bridge types
# =========================================================================


@dataclasses.dataclass(frozen=True)
class AccountInfo:
    """
    Snapshot of account metadata needed by the GL drill-down.

    The service converts the GLAccount row to AccountInfo before calling
    any function here, which keeps this layer free of ORM objects.
    """

    account_id: UUID
    code: str
    name: str
    account_type: AccountType
    normal_balance: NormalBalance


@dataclasses.dataclass(frozen=True)
class ClientRevenueRow:
    """Invoice totals for one client over a window."""

    client_id: UUID | None
    client_name: str
    invoice_count: int
    amount: int


# =========================================================================
# Helpers
# =========================================================================


def _rows_of_type(rows: Iterable[AccountAggregateRow], *types: AccountType) -> list:
    return [r for r in rows if r.account_type in types]


def _line_item(row: AccountAggregateRow, balance: int, previous: int | None) -> ReportLineItem:
    return ReportLineItem(
        account_id=row.gl_account_id,
        code=row.code,
        name=row.name,
        type=AccountType(row.account_type).value,
        normal_balance=NormalBalance(row.normal_balance).value,
        balance=balance,
        previous_balance=previous,
    )


def _make_section(
    rows: Sequence[AccountAggregateRow],
    config: ReportingConfig,
    previous_rows: Sequence[AccountAggregateRow] | None = None,
) -> ReportSection:
    """
    Build a section from current rows, optionally merged with comparison rows.

    An account that only appears in the comparison window is listed with a
    zero current balance.  Items are ordered by account code.
    """
    current = {r.gl_account_id: r for r in rows}
    previous = {r.gl_account_id: r for r in previous_rows} if previous_rows is not None else None

    ordered: dict[UUID, AccountAggregateRow] = dict(current)
    if previous is not None:
        for account_id, row in previous.items():
            ordered.setdefault(account_id, row)

    items: list[ReportLineItem] = []
    for account_id, row in ordered.items():
        balance = current[account_id].balance if account_id in current else 0
        prior = None
        if previous is not None:
            prior = previous[account_id].balance if account_id in previous else 0
        if not config.show_zero_balances and balance == 0 and not prior:
            continue
        items.append(_line_item(row, balance, prior))

    items.sort(key=lambda item: (item.code, str(item.account_id)))
    total = sum(r.balance for r in rows)
    previous_total = sum(r.balance for r in previous_rows) if previous_rows is not None else None
    return ReportSection(items=tuple(items), total=total, previous_total=previous_total)


def _net_income(rows: Iterable[AccountAggregateRow]) -> int:
    """Sum of REVENUE balances minus sum of EXPENSE balances."""
    total = 0
    for row in rows:
        if row.account_type is AccountType.REVENUE:
            total += row.balance
        elif row.account_type is AccountType.EXPENSE:
            total -= row.balance
    return total


# =========================================================================
# 1. TRIAL BALANCE
# =========================================================================


def build_trial_balance(
    scope: EntityScope,
    as_of_date: date,
    rows: Sequence[AccountAggregateRow],
) -> TrialBalance:
    """
    Build a trial balance.  Balanced iff total debits equal total credits
    exactly; any difference is CRITICAL.
    """
    accounts = tuple(
        TrialBalanceAccount(
            id=row.gl_account_id,
            code=row.code,
            name=row.name,
            debit=row.total_debit,
            credit=row.total_credit,
        )
        for row in sorted(rows, key=lambda r: (r.code, str(r.gl_account_id)))
    )
    total_debits = sum(a.debit for a in accounts)
    total_credits = sum(a.credit for a in accounts)
    is_balanced = total_debits == total_credits

    return TrialBalance(
        entity_id=scope.entity_id,
        entity_name=scope.entity_name,
        currency=scope.currency,
        as_of_date=as_of_date,
        accounts=accounts,
        total_debits=total_debits,
        total_credits=total_credits,
        is_balanced=is_balanced,
        severity=Severity.OK if is_balanced else Severity.CRITICAL,
    )


# =========================================================================
# 2. PROFIT & LOSS
# =========================================================================


def build_profit_loss(
    scope: EntityScope,
    window: DateRange,
    rows: Sequence[AccountAggregateRow],
    config: ReportingConfig,
    comparison: DateRange | None = None,
    comparison_rows: Sequence[AccountAggregateRow] | None = None,
) -> ProfitAndLoss:
    """
    Build a profit & loss statement.

    Net income = revenue total - expense total; zero activity yields zeros.
    """
    revenue_rows = _rows_of_type(rows, AccountType.REVENUE)
    expense_rows = _rows_of_type(rows, AccountType.EXPENSE)

    previous_revenue = previous_expenses = None
    previous_net_income = None
    if comparison_rows is not None:
        previous_revenue = _rows_of_type(comparison_rows, AccountType.REVENUE)
        previous_expenses = _rows_of_type(comparison_rows, AccountType.EXPENSE)
        previous_net_income = _net_income(comparison_rows)

    revenue = _make_section(revenue_rows, config, previous_revenue)
    expenses = _make_section(expense_rows, config, previous_expenses)

    return ProfitAndLoss(
        entity_id=scope.entity_id,
        entity_name=scope.entity_name,
        currency=scope.currency,
        start_date=window.start,
        end_date=window.end,
        revenue=revenue,
        expenses=expenses,
        net_income=revenue.total - expenses.total,
        comparison_period=comparison if comparison_rows is not None else None,
        previous_net_income=previous_net_income,
    )


# =========================================================================
# 3. BALANCE SHEET
# =========================================================================


def retained_earnings_split(
    rows: Sequence[BalanceSheetAggregateRow],
    config: ReportingConfig,
) -> RetainedEarnings:
    """
    Prior years = balance of the reserved retained-earnings account(s).
    Current year = fiscal-year-scoped REVENUE - EXPENSE from the same rows.
    """
    prior_years = sum(
        r.balance
        for r in rows
        if r.account_type is AccountType.EQUITY and r.code == config.retained_earnings_code
    )
    current_year = 0
    for row in rows:
        if row.account_type is AccountType.REVENUE:
            current_year += row.current_year_balance
        elif row.account_type is AccountType.EXPENSE:
            current_year -= row.current_year_balance
    return RetainedEarnings(
        prior_years=prior_years,
        current_year=current_year,
        total=prior_years + current_year,
    )


def unclosed_prior_year_income(rows: Sequence[BalanceSheetAggregateRow]) -> int:
    """
    Income from before the current fiscal year that still sits in
    REVENUE/EXPENSE accounts.  Non-zero means no closing entry moved it
    into retained earnings.
    """
    cumulative = _net_income(rows)
    current_year = 0
    for row in rows:
        if row.account_type is AccountType.REVENUE:
            current_year += row.current_year_balance
        elif row.account_type is AccountType.EXPENSE:
            current_year -= row.current_year_balance
    return cumulative - current_year


def build_balance_sheet(
    scope: EntityScope,
    as_of_date: date,
    rows: Sequence[BalanceSheetAggregateRow],
    config: ReportingConfig,
    comparison_date: date | None = None,
    comparison_rows: Sequence[BalanceSheetAggregateRow] | None = None,
) -> BalanceSheet:
    """
    Build a balance sheet.

    total_liabilities_and_equity = L + E + current-year earnings, and
    is_balanced compares it with total assets exactly.
    """

    def _previous(account_type: AccountType):
        if comparison_rows is None:
            return None
        return _rows_of_type(comparison_rows, account_type)

    assets = _make_section(
        _rows_of_type(rows, AccountType.ASSET), config, _previous(AccountType.ASSET),
    )
    liabilities = _make_section(
        _rows_of_type(rows, AccountType.LIABILITY), config, _previous(AccountType.LIABILITY),
    )
    equity = _make_section(
        _rows_of_type(rows, AccountType.EQUITY), config, _previous(AccountType.EQUITY),
    )
    retained = retained_earnings_split(rows, config)

    total_assets = assets.total
    total_liabilities_and_equity = liabilities.total + equity.total + retained.current_year

    return BalanceSheet(
        entity_id=scope.entity_id,
        entity_name=scope.entity_name,
        currency=scope.currency,
        as_of_date=as_of_date,
        assets=assets,
        liabilities=liabilities,
        equity=equity,
        retained_earnings=retained,
        total_assets=total_assets,
        total_liabilities_and_equity=total_liabilities_and_equity,
        is_balanced=total_assets == total_liabilities_and_equity,
        comparison_date=comparison_date if comparison_rows is not None else None,
    )


# =========================================================================
# 4. CASH FLOW (indirect method)
# =========================================================================


def _cash_balance(rows: Iterable[AccountAggregateRow], config: ReportingConfig) -> int:
    """Sum balances of cash accounts."""
    clf = config.classification
    return sum(
        r.balance for r in rows if r.account_type is AccountType.ASSET and clf.is_cash(r.code)
    )


def classify_cash_flow_row(row: AccountAggregateRow, config: ReportingConfig) -> str | None:
    """
    Section name ("operating", "investing", "financing") for a non-cash
    balance-sheet account, or None when the account is cash or unclassified.
    """
    clf = config.classification
    code = row.code
    if row.account_type is AccountType.ASSET:
        if clf.is_cash(code):
            return None
        if clf.matches(code, clf.operating_assets):
            return "operating"
        if clf.matches(code, clf.investing_assets):
            return "investing"
    elif row.account_type is AccountType.LIABILITY:
        if clf.matches(code, clf.operating_liabilities):
            return "operating"
        if clf.matches(code, clf.financing_liabilities):
            return "financing"
    elif row.account_type is AccountType.EQUITY:
        if clf.matches(code, clf.financing_equity):
            return "financing"
    return None


def build_cash_flow(
    scope: EntityScope,
    window: DateRange,
    net_income: int,
    activity_rows: Sequence[AccountAggregateRow],
    opening_rows: Sequence[AccountAggregateRow],
    closing_rows: Sequence[AccountAggregateRow],
    config: ReportingConfig,
) -> CashFlow:
    """
    Build a cash flow statement.

    ``activity_rows`` are balance-sheet account sums over the window, so a
    row's signed balance is its change in the period.  Cash impact is
    ``-change`` for ASSET accounts and ``+change`` for LIABILITY/EQUITY.

    opening_cash / closing_cash are cash-account balances before the start
    and before the end of the window.
    """
    buckets: dict[str, list[ReportLineItem]] = {"operating": [], "investing": [], "financing": []}
    for row in sorted(activity_rows, key=lambda r: (r.code, str(r.gl_account_id))):
        section = classify_cash_flow_row(row, config)
        change = row.balance
        if section is None or change == 0:
            continue
        impact = -change if row.account_type is AccountType.ASSET else change
        buckets[section].append(_line_item(row, impact, None))

    def _section(name: str, base: int = 0) -> ReportSection:
        items = tuple(buckets[name])
        return ReportSection(items=items, total=base + sum(i.balance for i in items))

    operating = _section("operating", base=net_income)
    investing = _section("investing")
    financing = _section("financing")

    net_cash_change = operating.total + investing.total + financing.total
    opening_cash = _cash_balance(opening_rows, config)
    closing_cash = _cash_balance(closing_rows, config)

    return CashFlow(
        entity_id=scope.entity_id,
        entity_name=scope.entity_name,
        currency=scope.currency,
        start_date=window.start,
        end_date=window.end,
        net_income=net_income,
        operating=operating,
        investing=investing,
        financing=financing,
        net_cash_change=net_cash_change,
        opening_cash=opening_cash,
        closing_cash=closing_cash,
        is_reconciled=opening_cash + net_cash_change == closing_cash,
    )


# =========================================================================
# 5. GL DRILL-DOWN
# =========================================================================


def build_gl_ledger(
    scope: EntityScope,
    account: AccountInfo,
    window: DateRange,
    opening_balance: int,
    seed_balance: int,
    rows: Sequence[LedgerLineRow],
    limit: int,
) -> GLLedger:
    """
    Build one page of an account's ledger.

    ``seed_balance`` is the opening balance plus every window row up to
    and including the cursor, so a later page continues the running
    balance where the previous one stopped.
    """
    running = seed_balance
    entries: list[GLLedgerEntry] = []
    for row in rows:
        running += signed_balance(row.debit_amount, row.credit_amount, account.normal_balance)
        entries.append(
            GLLedgerEntry(
                id=row.id,
                date=row.date,
                entry_number=row.entry_number,
                memo=row.memo,
                debit_amount=row.debit_amount,
                credit_amount=row.credit_amount,
                running_balance=running,
            )
        )

    return GLLedger(
        entity_id=scope.entity_id,
        gl_account_id=account.account_id,
        account_code=account.code,
        account_name=account.name,
        entity_name=scope.entity_name,
        currency=scope.currency,
        start_date=window.start,
        end_date=window.end,
        opening_balance=opening_balance,
        entries=tuple(entries),
        next_cursor=entries[-1].id if entries and len(entries) == limit else None,
    )


# =========================================================================
# 6. BREAKDOWNS
# =========================================================================


def build_spending_by_category(
    scope: EntityScope,
    window: DateRange,
    rows: Sequence[AccountAggregateRow],
) -> SpendingByCategory:
    """Expense-account balances over the window, largest first."""
    expense_rows = [
        r for r in _rows_of_type(rows, AccountType.EXPENSE) if r.balance != 0
    ]
    total_spend = sum(r.balance for r in expense_rows)
    categories = tuple(
        SpendingCategory(
            gl_account_id=r.gl_account_id,
            category=r.name,
            amount=r.balance,
            percentage=percentage_of(r.balance, total_spend),
        )
        for r in sorted(expense_rows, key=lambda r: (-r.balance, r.code, str(r.gl_account_id)))
    )
    return SpendingByCategory(
        entity_id=scope.entity_id,
        entity_name=scope.entity_name,
        currency=scope.currency,
        start_date=window.start,
        end_date=window.end,
        categories=categories,
        total_spend=total_spend,
    )


def build_revenue_by_client(
    scope: EntityScope,
    window: DateRange,
    rows: Sequence[ClientRevenueRow],
) -> RevenueByClient:
    """Invoiced amounts per client over the window, largest first."""
    total_revenue = sum(r.amount for r in rows)
    clients = tuple(
        RevenueClient(
            client_id=r.client_id,
            client_name=r.client_name,
            invoice_count=r.invoice_count,
            amount=r.amount,
            percentage=percentage_of(r.amount, total_revenue),
        )
        for r in sorted(rows, key=lambda r: (-r.amount, r.client_name, str(r.client_id)))
    )
    return RevenueByClient(
        entity_id=scope.entity_id,
        entity_name=scope.entity_name,
        currency=scope.currency,
        start_date=window.start,
        end_date=window.end,
        clients=clients,
        total_revenue=total_revenue,
    )


# =========================================================================
# 7. RENDERER (dict/JSON output)
# =========================================================================


def camel_case(name: str) -> str:
    """snake_case -> camelCase."""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def render_report(obj: object) -> dict | list | str | int | bool | None:
    """
    Convert any report dataclass to a plain dict for JSON serialization.

    Handles:
    - UUID -> str
    - date -> ISO-8601 string
    - Enum -> .value
    - Nested frozen dataclasses -> nested dicts with camelCase keys
    - Tuples -> lists
    - int amounts and None preserved
    """
    if obj is None:
        return None
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, (list, tuple)):
        return [render_report(item) for item in obj]
    if isinstance(obj, dict):
        return {camel_case(str(k)): render_report(v) for k, v in obj.items()}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            camel_case(f.name): render_report(getattr(obj, f.name))
            for f in dataclasses.fields(obj)
        }
    if isinstance(obj, (str, int, bool)):
        return obj
    return str(obj)
