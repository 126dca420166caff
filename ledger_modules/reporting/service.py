"""
Reporting Module Service (``ledger_modules.reporting.service``).

Responsibility
--------------
Orchestrates statement generation -- trial balance, profit & loss,
balance sheet, cash flow, GL drill-down, spending by category and revenue
by client -- by bridging the tenant-scoped selectors (``EntitySelector``,
``LedgerSelector``) to the pure builders in ``statements.py``, and
memoising results in the injected ``ReportCache``.

Architecture position
---------------------
**Modules layer** -- thin glue.  Constructor: ``session`` + ``context`` +
``cache`` + ``clock`` + ``config``.  Read-only: nothing is flushed.

Invariants enforced
-------------------
* Entity ownership is validated before anything else, including a cache
  lookup.  A cross-tenant entity is indistinguishable from an absent one.
* Consolidated reports cover every entity of the tenant and require a
  single functional currency.
* Every aggregate is narrowed to a safe integer exactly once (in the
  selector); arithmetic after that is plain ``int``.

Failure modes
-------------
* ``EntityNotFoundError`` / ``AccountNotFoundError`` (NOT_FOUND).
* ``NoEntitiesFoundError`` when consolidating over no entities.
* ``ConsolidationCurrencyMismatchError`` for mixed currencies.
* ``AmountOverflowError`` when an aggregate leaves the safe range.
* ``InvalidDateRangeError`` / ``InvalidCursorError`` for bad parameters.

Audit relevance
---------------
Structured log events are emitted for every report generation, carrying
report type, window and headline totals.  An unreconciled cash flow and a
balance sheet with unclosed prior-year income are logged at WARNING.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import date
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from ledger_kernel.domain.balances import signed_balance
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.context import TenantContext
from ledger_kernel.domain.money import narrow_to_safe_int
from ledger_kernel.domain.periods import AsOf, Before, DateRange
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import AccountType, NormalBalance
from ledger_kernel.models.party import Party
from ledger_kernel.selectors.entity_selector import EntityScope, EntitySelector
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.report_cache import ReportCache, report_cache_key
from ledger_modules.invoicing.models import DocumentStatus
from ledger_modules.invoicing.orm import InvoiceModel
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    BalanceSheet,
    CashFlow,
    GLLedger,
    ProfitAndLoss,
    ReportType,
    RevenueByClient,
    SpendingByCategory,
    TrialBalance,
)
from ledger_modules.reporting.statements import (
    AccountInfo,
    ClientRevenueRow,
    build_balance_sheet,
    build_cash_flow,
    build_gl_ledger,
    build_profit_loss,
    build_revenue_by_client,
    build_spending_by_category,
    build_trial_balance,
    render_report,
    unclosed_prior_year_income,
)

logger = get_logger("modules.reporting.service")

R = TypeVar("R")

BALANCE_SHEET_TYPES = (AccountType.ASSET, AccountType.LIABILITY, AccountType.EQUITY)
INCOME_STATEMENT_TYPES = (AccountType.REVENUE, AccountType.EXPENSE)

# Invoices that count as revenue: issued and not withdrawn
_REVENUE_STATUSES = (
    DocumentStatus.SENT.value,
    DocumentStatus.PARTIALLY_PAID.value,
    DocumentStatus.PAID.value,
)


class ReportingService(BaseService):
    """
    Financial statement generation service.

    Contract:
        * Every public ``generate_*`` method returns a frozen report object.
        * Results are cached per tenant under
          ``report:{entity_id|all}:{kind}:{params}``; a hit returns the
          stored object unchanged.

    Guarantees:
        * Report arithmetic lives in ``statements.py``; this class only
          loads rows and wires them through.
        * Deterministic for a fixed journal state.

    Non-goals:
        * Does NOT post journal entries.
        * Does NOT format exports (CSV/PDF).
    """

    def __init__(
        self,
        session: Session,
        context: TenantContext,
        cache: ReportCache | None = None,
        clock: Clock | None = None,
        config: ReportingConfig | None = None,
    ):
        super().__init__(session, context, clock)
        self._cache = cache
        self._config = config or ReportingConfig.with_defaults()
        self._entities = EntitySelector(self.scope)
        self._ledger = LedgerSelector(self.scope)

    @property
    def config(self) -> ReportingConfig:
        return self._config

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _resolve(self, entity_id: UUID | None) -> EntityScope:
        return self._entities.resolve_scope(entity_id, self._config.consolidated_label)

    def _cached(
        self,
        scope: EntityScope,
        kind: ReportType,
        params: Mapping[str, Any],
        build: Callable[[], R],
    ) -> R:
        key = report_cache_key(scope.entity_id, kind.value, params)
        if self._cache is not None:
            hit = self._cache.get(self.tenant_id, key)
            if hit is not None:
                logger.debug("report_cache_hit", extra={"key": key})
                return hit

        report = build()
        if self._cache is not None:
            self._cache.set(self.tenant_id, key, report)
        return report

    def _fiscal_years(self, scope: EntityScope, as_of: date):
        return {
            entity_id: self._entities.fiscal_year(entity_id, month, as_of)
            for entity_id, month in scope.fiscal_year_start_months.items()
        }

    # =========================================================================
    # Trial balance
    # =========================================================================

    def generate_trial_balance(self, entity_id: UUID, as_of_date: date) -> TrialBalance:
        """
        Trial balance of one entity: debit and credit totals per account
        for every posted line dated on or before ``as_of_date``.
        """
        with LogContext.bind(report_type=ReportType.TRIAL_BALANCE.value, entity_id=entity_id):
            scope = self._resolve(entity_id)
            return self._cached(
                scope,
                ReportType.TRIAL_BALANCE,
                {"asOf": as_of_date},
                lambda: self._build_trial_balance(scope, as_of_date),
            )

    def _build_trial_balance(self, scope: EntityScope, as_of_date: date) -> TrialBalance:
        rows = self._ledger.aggregate(scope.entity_ids, AsOf(as_of_date))
        report = build_trial_balance(scope, as_of_date, rows)
        log = logger.info if report.is_balanced else logger.error
        log(
            "trial_balance_generated",
            extra={
                "as_of_date": as_of_date.isoformat(),
                "account_count": len(report.accounts),
                "total_debits": report.total_debits,
                "total_credits": report.total_credits,
                "severity": report.severity.value,
            },
        )
        return report

    # =========================================================================
    # Profit & loss
    # =========================================================================

    def generate_profit_loss(
        self,
        start_date: date,
        end_date: date,
        entity_id: UUID | None = None,
        comparison: DateRange | None = None,
    ) -> ProfitAndLoss:
        """
        Profit & loss over ``[start_date, end_date)``.

        Args:
            start_date: First day of the window (inclusive).
            end_date: End of the window (exclusive).
            entity_id: One entity, or None to consolidate the tenant.
            comparison: Optional earlier window; fills previous_balance
                per line and previous_total per section.
        """
        window = DateRange(start_date, end_date)
        with LogContext.bind(report_type=ReportType.PROFIT_LOSS.value, entity_id=entity_id):
            scope = self._resolve(entity_id)
            params = {
                "start": start_date,
                "end": end_date,
                "cmpStart": comparison.start if comparison else None,
                "cmpEnd": comparison.end if comparison else None,
            }
            return self._cached(
                scope,
                ReportType.PROFIT_LOSS,
                params,
                lambda: self._build_profit_loss(scope, window, comparison),
            )

    def _build_profit_loss(
        self, scope: EntityScope, window: DateRange, comparison: DateRange | None,
    ) -> ProfitAndLoss:
        rows = self._ledger.aggregate(scope.entity_ids, window, INCOME_STATEMENT_TYPES)
        comparison_rows = None
        if comparison is not None:
            comparison_rows = self._ledger.aggregate(
                scope.entity_ids, comparison, INCOME_STATEMENT_TYPES,
            )
        report = build_profit_loss(
            scope, window, rows, self._config, comparison, comparison_rows,
        )
        logger.info(
            "profit_loss_generated",
            extra={
                "window": window.describe(),
                "revenue_total": report.revenue.total,
                "expense_total": report.expenses.total,
                "net_income": report.net_income,
            },
        )
        return report

    # =========================================================================
    # Balance sheet
    # =========================================================================

    def generate_balance_sheet(
        self,
        as_of_date: date,
        entity_id: UUID | None = None,
        comparison_date: date | None = None,
    ) -> BalanceSheet:
        """
        Balance sheet as of ``as_of_date`` (inclusive).

        Current-year earnings come from the same aggregation as the
        cumulative balances, scoped to each entity's fiscal year.
        """
        with LogContext.bind(report_type=ReportType.BALANCE_SHEET.value, entity_id=entity_id):
            scope = self._resolve(entity_id)
            params = {"asOf": as_of_date, "cmp": comparison_date}
            return self._cached(
                scope,
                ReportType.BALANCE_SHEET,
                params,
                lambda: self._build_balance_sheet(scope, as_of_date, comparison_date),
            )

    def _balance_sheet_rows(self, scope: EntityScope, as_of: date):
        return self._ledger.aggregate_with_current_year(
            scope.entity_ids, as_of, self._fiscal_years(scope, as_of),
        )

    def _build_balance_sheet(
        self, scope: EntityScope, as_of_date: date, comparison_date: date | None,
    ) -> BalanceSheet:
        rows = self._balance_sheet_rows(scope, as_of_date)
        comparison_rows = None
        if comparison_date is not None:
            comparison_rows = self._balance_sheet_rows(scope, comparison_date)

        has_reserved_account = any(
            r.account_type is AccountType.EQUITY
            and r.code == self._config.retained_earnings_code
            for r in rows
        )
        unclosed = unclosed_prior_year_income(rows)
        if unclosed and not has_reserved_account:
            logger.warning(
                "retained_earnings_not_closed",
                extra={
                    "as_of_date": as_of_date.isoformat(),
                    "unclosed_income": unclosed,
                    "retained_earnings_code": self._config.retained_earnings_code,
                },
            )

        report = build_balance_sheet(
            scope, as_of_date, rows, self._config, comparison_date, comparison_rows,
        )
        log = logger.info if report.is_balanced else logger.warning
        log(
            "balance_sheet_generated",
            extra={
                "as_of_date": as_of_date.isoformat(),
                "total_assets": report.total_assets,
                "total_l_and_e": report.total_liabilities_and_equity,
                "is_balanced": report.is_balanced,
            },
        )
        return report

    # =========================================================================
    # Cash flow
    # =========================================================================

    def generate_cash_flow(
        self,
        start_date: date,
        end_date: date,
        entity_id: UUID | None = None,
    ) -> CashFlow:
        """
        Indirect-method cash flow over ``[start_date, end_date)``.

        Net income comes from the profit & loss generator; balance-sheet
        activity in the window is bucketed by account code range.
        """
        window = DateRange(start_date, end_date)
        with LogContext.bind(report_type=ReportType.CASH_FLOW.value, entity_id=entity_id):
            scope = self._resolve(entity_id)
            return self._cached(
                scope,
                ReportType.CASH_FLOW,
                {"start": start_date, "end": end_date},
                lambda: self._build_cash_flow(scope, window, entity_id),
            )

    def _build_cash_flow(
        self, scope: EntityScope, window: DateRange, entity_id: UUID | None,
    ) -> CashFlow:
        net_income = self.generate_profit_loss(window.start, window.end, entity_id).net_income
        activity_rows = self._ledger.aggregate(scope.entity_ids, window, BALANCE_SHEET_TYPES)
        opening_rows = self._ledger.aggregate(
            scope.entity_ids, Before(window.start), (AccountType.ASSET,),
        )
        closing_rows = self._ledger.aggregate(
            scope.entity_ids, Before(window.end), (AccountType.ASSET,),
        )
        report = build_cash_flow(
            scope, window, net_income, activity_rows, opening_rows, closing_rows, self._config,
        )
        if not report.is_reconciled:
            logger.warning(
                "cash_flow_not_reconciled",
                extra={
                    "window": window.describe(),
                    "opening_cash": report.opening_cash,
                    "net_cash_change": report.net_cash_change,
                    "closing_cash": report.closing_cash,
                    "difference": report.closing_cash - report.opening_cash - report.net_cash_change,
                },
            )
        logger.info(
            "cash_flow_generated",
            extra={
                "window": window.describe(),
                "net_income": report.net_income,
                "net_cash_change": report.net_cash_change,
                "is_reconciled": report.is_reconciled,
            },
        )
        return report

    # =========================================================================
    # GL drill-down
    # =========================================================================

    def generate_gl_ledger(
        self,
        entity_id: UUID,
        gl_account_id: UUID,
        start_date: date,
        end_date: date,
        cursor: UUID | None = None,
        limit: int | None = None,
    ) -> GLLedger:
        """
        One page of an account's posted lines with a running balance.

        Rows are ordered by (date, line id).  ``cursor`` is the id of the
        last line of the previous page; ``limit`` is clamped to
        ``[1, config.max_page_size]``.

        Raises:
            EntityNotFoundError: entity not in the tenant.
            AccountNotFoundError: account not in the entity.
            InvalidCursorError: cursor is not a line of this listing.
        """
        window = DateRange(start_date, end_date)
        limit = self._config.clamp_page_size(limit)
        with LogContext.bind(report_type=ReportType.GL_LEDGER.value, entity_id=entity_id):
            scope = self._resolve(entity_id)
            account = self._entities.get_account(entity_id, gl_account_id)
            info = AccountInfo(
                account_id=account.id,
                code=account.code,
                name=account.name,
                account_type=AccountType(account.account_type),
                normal_balance=NormalBalance(account.normal_balance),
            )
            params = {
                "account": gl_account_id,
                "start": start_date,
                "end": end_date,
                "cursor": cursor,
                "limit": limit,
            }
            return self._cached(
                scope,
                ReportType.GL_LEDGER,
                params,
                lambda: self._build_gl_ledger(scope, info, window, cursor, limit),
            )

    def _build_gl_ledger(
        self,
        scope: EntityScope,
        account: AccountInfo,
        window: DateRange,
        cursor: UUID | None,
        limit: int,
    ) -> GLLedger:
        debit, credit = self._ledger.account_totals(account.account_id, Before(window.start))
        opening_balance = signed_balance(debit, credit, account.normal_balance)

        seed_balance = opening_balance
        position = None
        if cursor is not None:
            position = self._ledger.cursor_position(account.account_id, window, cursor)
            debit, credit = self._ledger.window_totals_through(account.account_id, window, position)
            seed_balance += signed_balance(debit, credit, account.normal_balance)

        rows = self._ledger.windowed_lines(account.account_id, window, position, limit)
        report = build_gl_ledger(
            scope, account, window, opening_balance, seed_balance, rows, limit,
        )
        logger.info(
            "gl_ledger_generated",
            extra={
                "gl_account_id": str(account.account_id),
                "window": window.describe(),
                "row_count": len(report.entries),
                "has_more": report.next_cursor is not None,
            },
        )
        return report

    # =========================================================================
    # Breakdowns
    # =========================================================================

    def generate_spending_by_category(
        self,
        start_date: date,
        end_date: date,
        entity_id: UUID | None = None,
    ) -> SpendingByCategory:
        """Expense-account balances over ``[start_date, end_date)``."""
        window = DateRange(start_date, end_date)
        with LogContext.bind(report_type=ReportType.SPENDING.value, entity_id=entity_id):
            scope = self._resolve(entity_id)
            return self._cached(
                scope,
                ReportType.SPENDING,
                {"start": start_date, "end": end_date},
                lambda: build_spending_by_category(
                    scope,
                    window,
                    self._ledger.aggregate(scope.entity_ids, window, (AccountType.EXPENSE,)),
                ),
            )

    def generate_revenue_by_client(
        self,
        start_date: date,
        end_date: date,
        entity_id: UUID | None = None,
    ) -> RevenueByClient:
        """Issued invoice totals per client, by issue date in the window."""
        window = DateRange(start_date, end_date)
        with LogContext.bind(report_type=ReportType.REVENUE.value, entity_id=entity_id):
            scope = self._resolve(entity_id)
            return self._cached(
                scope,
                ReportType.REVENUE,
                {"start": start_date, "end": end_date},
                lambda: build_revenue_by_client(
                    scope, window, self._client_revenue_rows(scope, window),
                ),
            )

    def _client_revenue_rows(self, scope: EntityScope, window: DateRange) -> list[ClientRevenueRow]:
        query = (
            self.scope.query(
                InvoiceModel.client_id,
                Party.name,
                func.count(InvoiceModel.id).label("invoice_count"),
                func.coalesce(func.sum(InvoiceModel.total), 0).label("amount"),
                entity_column=InvoiceModel.entity_id,
            )
            .join_from(InvoiceModel, Party, InvoiceModel.client_id == Party.id)
            .where(
                InvoiceModel.entity_id.in_(scope.entity_ids),
                InvoiceModel.deleted_at.is_(None),
                InvoiceModel.status.in_(_REVENUE_STATUSES),
                window.clause(InvoiceModel.issue_date),
            )
            .group_by(InvoiceModel.client_id, Party.name)
        )
        return [
            ClientRevenueRow(
                client_id=r.client_id,
                client_name=r.name,
                invoice_count=r.invoice_count,
                amount=narrow_to_safe_int(r.amount, field="invoice_total"),
            )
            for r in self.scope.execute(query)
        ]

    # =========================================================================
    # Output
    # =========================================================================

    def to_dict(self, report: object) -> dict:
        """Render a report to its camelCase, JSON-ready shape."""
        return render_report(report)
