"""
Date windows and fiscal-year resolution.

Responsibility:
    Names the three date filters the aggregation engine understands and
    resolves the fiscal year an as-of date falls in.

Architecture position:
    Kernel > Domain -- pure values.  ``clause()`` builds a SQLAlchemy
    expression over a date column but performs no I/O.

Invariants enforced:
    - Period windows are half-open: ``DateRange(start, end)`` covers
      ``start <= d < end``.
    - A resolved FiscalYear is half-open as well; its ``start`` is the
      lower bound of current-year REVENUE/EXPENSE activity.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy import and_
from sqlalchemy.sql.elements import ColumnElement

from ledger_kernel.exceptions import InvalidDateRangeError


@dataclass(frozen=True)
class AsOf:
    """Everything dated on or before ``as_of``."""

    as_of: date

    def clause(self, column) -> ColumnElement[bool]:
        return column <= self.as_of

    def describe(self) -> str:
        return f"asof={self.as_of.isoformat()}"


@dataclass(frozen=True)
class Before:
    """Everything dated strictly before ``before``."""

    before: date

    def clause(self, column) -> ColumnElement[bool]:
        return column < self.before

    def describe(self) -> str:
        return f"before={self.before.isoformat()}"


@dataclass(frozen=True)
class DateRange:
    """Half-open window ``[start, end)``."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise InvalidDateRangeError(self.start, self.end)

    def clause(self, column) -> ColumnElement[bool]:
        return and_(column >= self.start, column < self.end)

    def contains(self, d: date) -> bool:
        return self.start <= d < self.end

    def describe(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


DateWindow = AsOf | Before | DateRange


@dataclass(frozen=True)
class FiscalYear:
    """Fiscal year as a half-open ``[start, end)`` window."""

    start: date
    end: date

    def contains(self, d: date) -> bool:
        return self.start <= d < self.end


def _add_years(d: date, years: int) -> date:
    return d.replace(year=d.year + years)


def resolve_fiscal_year(
    as_of: date,
    fiscal_year_start_month: int | None,
    calendar: tuple[date, date] | None = None,
) -> FiscalYear:
    """
    Resolve the fiscal year containing ``as_of``.

    Args:
        as_of: Reporting date.
        fiscal_year_start_month: Entity's fiscal-year-start month (1-12);
            None falls back to January.
        calendar: Explicit (start_date, end_date_inclusive) record for the
            entity and ``as_of.year``, when one exists.  It wins outright.

    Returns:
        FiscalYear whose start is day 1 of the start month, rolled back a
        year when ``as_of`` precedes that day in its own calendar year.
    """
    if calendar is not None:
        start, last_day = calendar
        return FiscalYear(start=start, end=last_day + timedelta(days=1))

    month = fiscal_year_start_month or 1
    start = date(as_of.year, month, 1)
    if as_of < start:
        start = _add_years(start, -1)
    return FiscalYear(start=start, end=_add_years(start, 1))
