"""Unit tests for signed balances and aggregate row types."""

from uuid import uuid4

from ledger_kernel.domain.balances import (
    AccountAggregateRow,
    BalanceSheetAggregateRow,
    signed_balance,
)
from ledger_kernel.models.account import AccountType, NormalBalance


class TestSignedBalance:

    def test_debit_normal(self):
        assert signed_balance(500, 200, NormalBalance.DEBIT) == 300

    def test_credit_normal(self):
        assert signed_balance(500, 200, NormalBalance.CREDIT) == -300

    def test_accepts_string_side(self):
        assert signed_balance(0, 100, "CREDIT") == 100


class TestAggregateRows:

    def test_balance_uses_normal_side(self):
        row = AccountAggregateRow(
            gl_account_id=uuid4(),
            entity_id=uuid4(),
            code="4000",
            name="Revenue",
            account_type=AccountType.REVENUE,
            normal_balance=NormalBalance.CREDIT,
            total_debit=10_000,
            total_credit=110_000,
        )
        assert row.balance == 100_000

    def test_current_year_balance(self):
        row = BalanceSheetAggregateRow(
            gl_account_id=uuid4(),
            entity_id=uuid4(),
            code="5000",
            name="Rent",
            account_type=AccountType.EXPENSE,
            normal_balance=NormalBalance.DEBIT,
            total_debit=90_000,
            total_credit=0,
            current_year_debit=30_000,
            current_year_credit=0,
        )
        assert row.balance == 90_000
        assert row.current_year_balance == 30_000
