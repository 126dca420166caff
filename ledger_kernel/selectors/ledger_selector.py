"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Read side of the Journal Store.  Aggregates POSTED,
    non-deleted journal lines into per-account debit/credit sums, and serves
    the windowed line listing behind the GL drill-down.
Architecture position: Kernel > Selectors.  Reads only through TenantScope.

Invariants enforced:
    - Only POSTED entries with deleted_at NULL and lines with deleted_at NULL
      are aggregated.
    - Sums are produced by the database at arbitrary precision and narrowed
      exactly once per value via narrow_to_safe_int (OVERFLOW on failure).
    - The balance-sheet path computes cumulative and fiscal-year-scoped
      REVENUE/EXPENSE sums in one statement (no second scan).
    - Windowed lines are ordered by (entry date, line id).

Failure modes:
    - AmountOverflowError if any aggregate leaves the safe-integer range.
    - InvalidCursorError if a cursor does not name a line of the listing.

Audit relevance:
    There are no stored balances.  Every report number is derived from
    journal lines at query time.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date
from uuid import UUID

from sqlalchemy import and_, case, false, func, or_

from ledger_kernel.domain.balances import (
    AccountAggregateRow,
    BalanceSheetAggregateRow,
    LedgerLineRow,
)
from ledger_kernel.domain.money import narrow_to_safe_int
from ledger_kernel.domain.periods import DateRange, DateWindow, FiscalYear
from ledger_kernel.exceptions import InvalidCursorError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import AccountType, GLAccount, NormalBalance
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine
from ledger_kernel.selectors.base import BaseSelector
from ledger_kernel.selectors.tenant_scope import ScopedQuery

logger = get_logger("selectors.ledger")

_ACCOUNT_COLUMNS = (
    GLAccount.id,
    GLAccount.entity_id,
    GLAccount.code,
    GLAccount.name,
    GLAccount.account_type,
    GLAccount.normal_balance,
)


def _sum(column):
    return func.coalesce(func.sum(column), 0)


class LedgerSelector(BaseSelector):
    """
    Aggregation queries over posted journal lines.

    All methods are read-only and tenant-scoped.
    """

    def _posted_lines(self, *columns) -> ScopedQuery:
        return (
            self.scope.query(*columns, entity_column=JournalEntry.entity_id)
            .join_from(JournalLine, JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .join_from(JournalLine, GLAccount, JournalLine.gl_account_id == GLAccount.id)
            .where(
                JournalEntry.status == JournalEntryStatus.POSTED.value,
                JournalEntry.deleted_at.is_(None),
                JournalLine.deleted_at.is_(None),
            )
        )

    # =========================================================================
    # Aggregation
    # =========================================================================

    def aggregate(
        self,
        entity_ids: Iterable[UUID],
        window: DateWindow,
        account_types: Iterable[AccountType] | None = None,
        account_codes: Iterable[str] | None = None,
    ) -> list[AccountAggregateRow]:
        """
        Per-account debit/credit sums over ``window``.

        Args:
            entity_ids: Entities to aggregate (already ownership-checked).
            window: AsOf, Before or DateRange filter on the entry date.
            account_types: Optional account-type filter.
            account_codes: Optional account-code filter.

        Returns:
            One AccountAggregateRow per account with at least one line,
            ordered by (code, account id).
        """
        entity_ids = tuple(entity_ids)
        query = self._posted_lines(
            *_ACCOUNT_COLUMNS,
            _sum(JournalLine.debit_amount).label("total_debit"),
            _sum(JournalLine.credit_amount).label("total_credit"),
        ).where(
            JournalEntry.entity_id.in_(entity_ids),
            window.clause(JournalEntry.date),
        )
        if account_types is not None:
            query = query.where(
                GLAccount.account_type.in_([AccountType(t).value for t in account_types])
            )
        if account_codes is not None:
            query = query.where(GLAccount.code.in_(tuple(account_codes)))
        query = query.group_by(*_ACCOUNT_COLUMNS).order_by(GLAccount.code, GLAccount.id)

        rows = [
            AccountAggregateRow(
                gl_account_id=r.id,
                entity_id=r.entity_id,
                code=r.code,
                name=r.name,
                account_type=AccountType(r.account_type),
                normal_balance=NormalBalance(r.normal_balance),
                total_debit=narrow_to_safe_int(r.total_debit, field=f"{r.code}.total_debit"),
                total_credit=narrow_to_safe_int(r.total_credit, field=f"{r.code}.total_credit"),
            )
            for r in self.scope.execute(query)
        ]
        logger.debug(
            "ledger_aggregated",
            extra={
                "entity_count": len(entity_ids),
                "window": window.describe(),
                "row_count": len(rows),
            },
        )
        return rows

    def aggregate_with_current_year(
        self,
        entity_ids: Iterable[UUID],
        as_of: date,
        fiscal_years: Mapping[UUID, FiscalYear],
    ) -> list[BalanceSheetAggregateRow]:
        """
        Cumulative sums as of ``as_of`` plus fiscal-year-scoped sums.

        The current-year columns only count REVENUE/EXPENSE lines dated on
        or after the owning entity's fiscal-year start.  Both come from a
        single GROUP BY over the same rows.
        """
        entity_ids = tuple(entity_ids)
        in_current_year = or_(
            false(),
            *(
                and_(JournalEntry.entity_id == entity_id, JournalEntry.date >= fy.start)
                for entity_id, fy in fiscal_years.items()
            ),
        )
        is_income_statement = GLAccount.account_type.in_(
            [AccountType.REVENUE.value, AccountType.EXPENSE.value]
        )
        current_year = and_(is_income_statement, in_current_year)

        query = (
            self._posted_lines(
                *_ACCOUNT_COLUMNS,
                _sum(JournalLine.debit_amount).label("total_debit"),
                _sum(JournalLine.credit_amount).label("total_credit"),
                _sum(case((current_year, JournalLine.debit_amount), else_=0)).label("cy_debit"),
                _sum(case((current_year, JournalLine.credit_amount), else_=0)).label("cy_credit"),
            )
            .where(
                JournalEntry.entity_id.in_(entity_ids),
                JournalEntry.date <= as_of,
            )
            .group_by(*_ACCOUNT_COLUMNS)
            .order_by(GLAccount.code, GLAccount.id)
        )

        rows = [
            BalanceSheetAggregateRow(
                gl_account_id=r.id,
                entity_id=r.entity_id,
                code=r.code,
                name=r.name,
                account_type=AccountType(r.account_type),
                normal_balance=NormalBalance(r.normal_balance),
                total_debit=narrow_to_safe_int(r.total_debit, field=f"{r.code}.total_debit"),
                total_credit=narrow_to_safe_int(r.total_credit, field=f"{r.code}.total_credit"),
                current_year_debit=narrow_to_safe_int(r.cy_debit, field=f"{r.code}.current_year_debit"),
                current_year_credit=narrow_to_safe_int(r.cy_credit, field=f"{r.code}.current_year_credit"),
            )
            for r in self.scope.execute(query)
        ]
        logger.debug(
            "ledger_aggregated_with_current_year",
            extra={
                "entity_count": len(entity_ids),
                "as_of": as_of.isoformat(),
                "row_count": len(rows),
            },
        )
        return rows

    # =========================================================================
    # GL drill-down
    # =========================================================================

    def account_totals(self, gl_account_id: UUID, window: DateWindow) -> tuple[int, int]:
        """(debit, credit) totals for one account over ``window``."""
        query = self._posted_lines(
            _sum(JournalLine.debit_amount).label("total_debit"),
            _sum(JournalLine.credit_amount).label("total_credit"),
        ).where(
            JournalLine.gl_account_id == gl_account_id,
            window.clause(JournalEntry.date),
        )
        row = self.scope.execute(query).one()
        return (
            narrow_to_safe_int(row.total_debit, field="total_debit"),
            narrow_to_safe_int(row.total_credit, field="total_credit"),
        )

    def _after(self, position: tuple[date, UUID]):
        line_date, line_id = position
        return or_(
            JournalEntry.date > line_date,
            and_(JournalEntry.date == line_date, JournalLine.id > line_id),
        )

    def cursor_position(
        self, gl_account_id: UUID, window: DateRange, cursor: UUID,
    ) -> tuple[date, UUID]:
        """(date, line id) of the cursor line, which must belong to the listing."""
        query = self._posted_lines(JournalEntry.date, JournalLine.id).where(
            JournalLine.gl_account_id == gl_account_id,
            JournalLine.id == cursor,
            window.clause(JournalEntry.date),
        )
        row = self.scope.execute(query).first()
        if row is None:
            raise InvalidCursorError(cursor)
        return row[0], row[1]

    def window_totals_through(
        self,
        gl_account_id: UUID,
        window: DateRange,
        position: tuple[date, UUID],
    ) -> tuple[int, int]:
        """(debit, credit) of window lines ordered at or before ``position``."""
        query = self._posted_lines(
            _sum(JournalLine.debit_amount).label("total_debit"),
            _sum(JournalLine.credit_amount).label("total_credit"),
        ).where(
            JournalLine.gl_account_id == gl_account_id,
            window.clause(JournalEntry.date),
            ~self._after(position),
        )
        row = self.scope.execute(query).one()
        return (
            narrow_to_safe_int(row.total_debit, field="total_debit"),
            narrow_to_safe_int(row.total_credit, field="total_credit"),
        )

    def windowed_lines(
        self,
        gl_account_id: UUID,
        window: DateRange,
        after: tuple[date, UUID] | None,
        limit: int,
    ) -> list[LedgerLineRow]:
        """
        Up to ``limit`` lines of one account in ``window``, ordered by
        (date, line id), strictly after ``after`` when given.
        """
        query = self._posted_lines(
            JournalLine.id,
            JournalEntry.date,
            JournalEntry.entry_number,
            func.coalesce(JournalLine.memo, JournalEntry.memo).label("memo"),
            JournalLine.debit_amount,
            JournalLine.credit_amount,
        ).where(
            JournalLine.gl_account_id == gl_account_id,
            window.clause(JournalEntry.date),
        )
        if after is not None:
            query = query.where(self._after(after))
        query = query.order_by(JournalEntry.date, JournalLine.id).limit(limit)

        return [
            LedgerLineRow(
                id=r.id,
                date=r.date,
                entry_number=r.entry_number,
                memo=r.memo,
                debit_amount=r.debit_amount,
                credit_amount=r.credit_amount,
            )
            for r in self.scope.execute(query)
        ]
