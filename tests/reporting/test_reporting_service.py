"""
Integration tests for ReportingService against a real session.

Verifies:
- Entity ownership is checked before anything else (cross-tenant = NOT_FOUND)
- Consolidation over the whole tenant and its currency precondition
- Cache hits return the stored object; mutations invalidate
- GL drill-down pages continue the running balance
- Cash flow reconciles on a realistic quarter
- Revenue by client counts issued invoices only
"""

from datetime import date
from uuid import uuid4

import pytest

from ledger_kernel.domain.context import TenantContext
from ledger_kernel.domain.periods import DateRange
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    ConsolidationCurrencyMismatchError,
    EntityNotFoundError,
    InvalidCursorError,
    InvalidDateRangeError,
    NoEntitiesFoundError,
)
from ledger_kernel.models.account import GLAccount
from ledger_kernel.models.tenant import Tenant
from ledger_kernel.services.reversal_service import ReversalService
from ledger_modules.invoicing.models import DocumentInput, DocumentLineInput, DocumentStatus
from ledger_modules.invoicing.service import InvoiceService
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import Severity
from ledger_modules.reporting.service import ReportingService

Q1_START = date(2026, 1, 1)
Q2_START = date(2026, 4, 1)


@pytest.fixture
def reporting(session, context, cache, clock) -> ReportingService:
    return ReportingService(session, context, cache=cache, clock=clock)


@pytest.fixture
def second_entity(session, entity_factory):
    """A second USD entity of the same tenant with cash and revenue accounts."""
    entity = entity_factory("Acme UK")
    chart = {
        "1000": GLAccount(entity_id=entity.id, code="1000", name="Cash", account_type="ASSET"),
        "4000": GLAccount(entity_id=entity.id, code="4000", name="Service Revenue", account_type="REVENUE"),
    }
    session.add_all(chart.values())
    session.flush()
    return entity, chart


# =============================================================================
# Trial balance
# =============================================================================


class TestTrialBalance:

    def test_balanced_ledger(self, reporting, entity, post):
        post(Q1_START, [("1000", 100_000, 0), ("2000", 0, 60_000), ("3000", 0, 40_000)])

        tb = reporting.generate_trial_balance(entity.id, date(2026, 3, 31))

        assert [a.code for a in tb.accounts] == ["1000", "2000", "3000"]
        assert tb.total_debits == tb.total_credits == 100_000
        assert tb.is_balanced
        assert tb.severity is Severity.OK
        assert tb.entity_name == "Acme US"
        assert tb.currency == "USD"

    def test_as_of_is_inclusive(self, reporting, entity, post):
        post(date(2026, 3, 31), [("1000", 500, 0), ("3000", 0, 500)])
        post(date(2026, 4, 1), [("1000", 700, 0), ("3000", 0, 700)])

        tb = reporting.generate_trial_balance(entity.id, date(2026, 3, 31))

        assert tb.total_debits == 500

    def test_unknown_entity(self, reporting):
        with pytest.raises(EntityNotFoundError):
            reporting.generate_trial_balance(uuid4(), date(2026, 3, 31))

    def test_other_tenants_entity_is_not_found(self, reporting, other_tenant):
        with pytest.raises(EntityNotFoundError) as exc_info:
            reporting.generate_trial_balance(other_tenant["entity"].id, date(2026, 3, 31))
        assert exc_info.value.message == "Entity not found"


# =============================================================================
# Consolidation
# =============================================================================


class TestConsolidation:

    def test_profit_loss_sums_all_entities(self, reporting, entity, post, second_entity):
        other, chart = second_entity
        post(date(2026, 2, 1), [("1000", 30_000, 0), ("4000", 0, 30_000)])
        post(
            date(2026, 2, 2),
            [("1000", 20_000, 0), ("4000", 0, 20_000)],
            entity_id=other.id,
            chart=chart,
        )

        consolidated = reporting.generate_profit_loss(Q1_START, Q2_START)
        single = reporting.generate_profit_loss(Q1_START, Q2_START, entity_id=entity.id)

        assert consolidated.entity_id is None
        assert consolidated.entity_name == ReportingConfig().consolidated_label
        assert consolidated.revenue.total == 50_000
        assert len(consolidated.revenue.items) == 2
        assert single.revenue.total == 30_000

    def test_mixed_currencies_rejected(self, reporting, entity, entity_factory):
        entity_factory("Acme DE", currency="EUR")

        with pytest.raises(ConsolidationCurrencyMismatchError) as exc_info:
            reporting.generate_profit_loss(Q1_START, Q2_START)

        assert exc_info.value.currencies == ["EUR", "USD"]
        assert exc_info.value.code == "CONSOLIDATION_CURRENCY_MISMATCH"

    def test_single_entity_unaffected_by_currency_mix(self, reporting, entity, entity_factory):
        entity_factory("Acme DE", currency="EUR")
        pl = reporting.generate_profit_loss(Q1_START, Q2_START, entity_id=entity.id)
        assert pl.net_income == 0

    def test_tenant_without_entities(self, session, cache, clock):
        empty = Tenant(name="Empty Co")
        session.add(empty)
        session.flush()
        service = ReportingService(
            session, TenantContext(tenant_id=empty.id, user_id=uuid4()), cache=cache, clock=clock,
        )

        with pytest.raises(NoEntitiesFoundError):
            service.generate_balance_sheet(date(2026, 3, 31))


# =============================================================================
# Profit & loss and balance sheet
# =============================================================================


class TestProfitLoss:

    def test_window_is_half_open(self, reporting, entity, post):
        post(Q1_START, [("1000", 100, 0), ("4000", 0, 100)])
        post(Q2_START, [("1000", 900, 0), ("4000", 0, 900)])

        pl = reporting.generate_profit_loss(Q1_START, Q2_START, entity_id=entity.id)

        assert pl.revenue.total == 100

    def test_net_loss(self, reporting, entity, post):
        post(date(2026, 1, 10), [("1000", 10_000, 0), ("4000", 0, 10_000)])
        post(date(2026, 1, 20), [("5000", 25_000, 0), ("1000", 0, 25_000)])

        pl = reporting.generate_profit_loss(Q1_START, Q2_START, entity_id=entity.id)

        assert pl.net_income == -15_000

    def test_comparison_period(self, reporting, entity, post):
        post(date(2025, 11, 1), [("1000", 8_000, 0), ("4000", 0, 8_000)])
        post(date(2026, 2, 1), [("1000", 12_000, 0), ("4000", 0, 12_000)])
        previous = DateRange(date(2025, 10, 1), Q1_START)

        pl = reporting.generate_profit_loss(
            Q1_START, Q2_START, entity_id=entity.id, comparison=previous,
        )

        assert pl.net_income == 12_000
        assert pl.previous_net_income == 8_000
        assert pl.comparison_period == previous

    def test_end_before_start_rejected(self, reporting, entity):
        with pytest.raises(InvalidDateRangeError):
            reporting.generate_profit_loss(Q2_START, Q1_START, entity_id=entity.id)


class TestBalanceSheet:

    def test_current_year_income_balances(self, reporting, entity, post):
        post(Q1_START, [("1000", 1_000_000, 0), ("2000", 0, 400_000), ("3000", 0, 600_000)])
        post(date(2026, 2, 1), [("1100", 150_000, 0), ("4000", 0, 150_000)])
        post(date(2026, 2, 15), [("5000", 30_000, 0), ("1000", 0, 30_000)])

        bs = reporting.generate_balance_sheet(date(2026, 3, 31), entity_id=entity.id)

        assert bs.total_assets == 1_120_000
        assert bs.retained_earnings.current_year == 120_000
        assert bs.total_liabilities_and_equity == 1_120_000
        assert bs.is_balanced

    def test_unclosed_prior_year_warns(self, reporting, entity, post, captured_logs):
        post(date(2025, 6, 1), [("1000", 10_000, 0), ("4000", 0, 10_000)])

        bs = reporting.generate_balance_sheet(date(2026, 3, 31), entity_id=entity.id)

        assert bs.retained_earnings.current_year == 0
        assert not bs.is_balanced
        warnings = [r for r in captured_logs() if r["message"] == "retained_earnings_not_closed"]
        assert len(warnings) == 1
        assert warnings[0]["level"] == "WARNING"

    def test_closed_prior_year_balances(self, reporting, entity, post, captured_logs):
        post(date(2025, 6, 1), [("1000", 10_000, 0), ("4000", 0, 10_000)])
        post(date(2025, 12, 31), [("4000", 10_000, 0), ("3100", 0, 10_000)], memo="Year-end close")

        bs = reporting.generate_balance_sheet(date(2026, 3, 31), entity_id=entity.id)

        assert bs.retained_earnings.prior_years == 10_000
        assert bs.is_balanced
        assert not any(
            r["message"] == "retained_earnings_not_closed" for r in captured_logs()
        )


# =============================================================================
# Cash flow
# =============================================================================


class TestCashFlow:

    def test_quarter_reconciles(self, reporting, entity, post):
        post(date(2025, 12, 1), [("1000", 200_000, 0), ("3000", 0, 200_000)])
        # Q1 activity
        post(date(2026, 1, 5), [("1100", 100_000, 0), ("4000", 0, 100_000)])
        post(date(2026, 1, 20), [("1000", 60_000, 0), ("1100", 0, 60_000)])
        post(date(2026, 2, 1), [("1500", 30_000, 0), ("1000", 0, 30_000)])
        post(date(2026, 2, 10), [("1000", 50_000, 0), ("2500", 0, 50_000)])
        post(date(2026, 3, 1), [("5000", 20_000, 0), ("1000", 0, 20_000)])

        cf = reporting.generate_cash_flow(Q1_START, Q2_START, entity_id=entity.id)

        assert cf.net_income == 80_000
        assert cf.operating.total == 40_000
        assert cf.investing.total == -30_000
        assert cf.financing.total == 50_000
        assert cf.opening_cash == 200_000
        assert cf.closing_cash == 260_000
        assert cf.net_cash_change == 60_000
        assert cf.is_reconciled

    def test_empty_window(self, reporting, entity):
        cf = reporting.generate_cash_flow(Q1_START, Q2_START, entity_id=entity.id)
        assert cf.net_cash_change == 0
        assert cf.is_reconciled


# =============================================================================
# GL drill-down
# =============================================================================


class TestGLLedger:

    @pytest.fixture
    def cash_activity(self, post):
        post(date(2025, 12, 31), [("1000", 1_000, 0), ("3000", 0, 1_000)])
        for day, amount in ((2, 100), (3, 200), (4, 300), (10, 400), (20, 500)):
            post(date(2026, 1, day), [("1000", amount, 0), ("4000", 0, amount)])

    def test_single_page(self, reporting, entity, accounts, cash_activity):
        ledger = reporting.generate_gl_ledger(
            entity.id, accounts["1000"].id, Q1_START, Q2_START,
        )

        assert ledger.opening_balance == 1_000
        assert [e.running_balance for e in ledger.entries] == [1_100, 1_300, 1_600, 2_000, 2_500]
        assert ledger.next_cursor is None
        assert ledger.account_code == "1000"

    def test_pages_continue_running_balance(self, reporting, entity, accounts, cash_activity):
        cash = accounts["1000"].id
        full = reporting.generate_gl_ledger(entity.id, cash, Q1_START, Q2_START)

        paged, cursor = [], None
        while True:
            page = reporting.generate_gl_ledger(
                entity.id, cash, Q1_START, Q2_START, cursor=cursor, limit=2,
            )
            paged.extend(page.entries)
            cursor = page.next_cursor
            if cursor is None:
                break

        assert [e.id for e in paged] == [e.id for e in full.entries]
        assert [e.running_balance for e in paged] == [e.running_balance for e in full.entries]

    def test_unknown_cursor(self, reporting, entity, accounts, cash_activity):
        with pytest.raises(InvalidCursorError):
            reporting.generate_gl_ledger(
                entity.id, accounts["1000"].id, Q1_START, Q2_START, cursor=uuid4(),
            )

    def test_account_of_other_tenant(self, reporting, entity, other_tenant):
        with pytest.raises(AccountNotFoundError):
            reporting.generate_gl_ledger(
                entity.id, other_tenant["accounts"]["1000"].id, Q1_START, Q2_START,
            )


# =============================================================================
# Breakdowns
# =============================================================================


class TestBreakdowns:

    def test_spending_by_category(self, reporting, entity, post):
        post(date(2026, 1, 5), [("5000", 30_000, 0), ("1000", 0, 30_000)])
        post(date(2026, 1, 6), [("5100", 10_000, 0), ("1000", 0, 10_000)])

        report = reporting.generate_spending_by_category(Q1_START, Q2_START, entity_id=entity.id)

        assert [(c.category, c.percentage) for c in report.categories] == [
            ("Rent Expense", 75),
            ("Supplies Expense", 25),
        ]
        assert report.total_spend == 40_000

    def test_revenue_by_client_counts_issued_invoices(
        self, session, context, clock, reporting, entity, client, accounts,
    ):
        invoices = InvoiceService(session, context, clock)

        def invoice(number, total, status):
            return invoices.create(
                DocumentInput(
                    entity_id=entity.id,
                    party_id=client.id,
                    number=number,
                    issue_date=date(2026, 2, 1),
                    due_date=date(2026, 3, 1),
                    subtotal=total,
                    tax_amount=0,
                    total=total,
                    lines=(DocumentLineInput("Consulting", total, gl_account_id=accounts["4000"].id),),
                    status=status,
                )
            )

        invoice("INV-001", 40_000, DocumentStatus.SENT)
        invoice("INV-002", 60_000, DocumentStatus.SENT)
        invoice("INV-003", 99_000, DocumentStatus.DRAFT)

        report = reporting.generate_revenue_by_client(Q1_START, Q2_START, entity_id=entity.id)

        assert len(report.clients) == 1
        row = report.clients[0]
        assert (row.client_name, row.invoice_count, row.amount, row.percentage) == (
            "Globex", 2, 100_000, 100,
        )
        assert report.total_revenue == 100_000


# =============================================================================
# Caching
# =============================================================================


class TestCaching:

    def test_hit_returns_stored_report(self, reporting, entity, post, cache, captured_logs):
        post(Q1_START, [("1000", 100, 0), ("3000", 0, 100)])

        first = reporting.generate_trial_balance(entity.id, date(2026, 3, 31))
        second = reporting.generate_trial_balance(entity.id, date(2026, 3, 31))

        assert second is first
        assert len(cache) == 1
        assert any(r["message"] == "report_cache_hit" for r in captured_logs())

    def test_ownership_checked_before_cache(self, session, cache, clock, other_tenant, entity, reporting):
        reporting.generate_trial_balance(entity.id, date(2026, 3, 31))
        intruder = ReportingService(session, other_tenant["context"], cache=cache, clock=clock)

        with pytest.raises(EntityNotFoundError):
            intruder.generate_trial_balance(entity.id, date(2026, 3, 31))

    def test_posting_invalidates(self, reporting, entity, post):
        def cash_debit(tb):
            return {a.code: a.debit for a in tb.accounts}.get("1000", 0)

        before = reporting.generate_trial_balance(entity.id, date(2026, 3, 31))
        post(Q1_START, [("1000", 50_000, 0), ("4000", 0, 50_000)])
        after = reporting.generate_trial_balance(entity.id, date(2026, 3, 31))

        assert cash_debit(before) == 0
        assert cash_debit(after) == 50_000
        assert after.total_debits == 50_000

    def test_void_invalidates(self, session, context, clock, cache, reporting, entity, post):
        entry = post(Q1_START, [("1000", 100, 0), ("3000", 0, 100)])
        first = reporting.generate_trial_balance(entity.id, date(2026, 3, 31))

        ReversalService(session, context, clock, cache).void_entry(entry.id, "duplicate")
        second = reporting.generate_trial_balance(entity.id, date(2026, 3, 31))

        assert second is not first
        assert second.is_balanced


# =============================================================================
# Output
# =============================================================================


class TestToDict:

    def test_camel_case_json_shape(self, reporting, entity, post):
        post(Q1_START, [("1000", 1_000, 0), ("3000", 0, 1_000)])
        bs = reporting.generate_balance_sheet(date(2026, 3, 31), entity_id=entity.id)

        rendered = reporting.to_dict(bs)

        assert rendered["entityId"] == str(entity.id)
        assert rendered["totalLiabilitiesAndEquity"] == 1_000
        assert rendered["retainedEarnings"] == {"priorYears": 0, "currentYear": 0, "total": 0}
        assert rendered["comparisonDate"] is None
        assert rendered["assets"]["items"][0]["normalBalance"] == "DEBIT"
