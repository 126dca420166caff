"""
Tests for the invoice/bill state machines and payment arithmetic.

Pure functions; no database.
"""

from uuid import uuid4

import pytest
from hypothesis import given
from hypothesis import strategies as st

from ledger_kernel.exceptions import (
    IllegalTransitionError,
    InvalidAmountError,
    OutstandingBalanceExceededError,
    PaidAmountUnderflowError,
)
from ledger_modules.invoicing.models import DocumentKind, DocumentStatus
from ledger_modules.invoicing.workflows import (
    BILL_WORKFLOW,
    INVOICE_WORKFLOW,
    WORKFLOWS,
    DocumentState,
    apply_payment,
    reverse_payment,
    transition,
)

S = DocumentStatus


def state(status=S.SENT, total=113_000, paid=0) -> DocumentState:
    return DocumentState(status=status, total=total, paid_amount=paid, document_id=uuid4())


class TestWorkflowDefinitions:

    def test_registry(self):
        assert WORKFLOWS[DocumentKind.INVOICE] is INVOICE_WORKFLOW
        assert WORKFLOWS[DocumentKind.BILL] is BILL_WORKFLOW

    def test_issue_actions_differ(self):
        assert "send" in INVOICE_WORKFLOW.actions_from(S.DRAFT)
        assert "approve" in BILL_WORKFLOW.actions_from(S.DRAFT)
        assert "send" not in BILL_WORKFLOW.actions_from(S.DRAFT)

    @pytest.mark.parametrize("terminal", [S.CANCELLED])
    def test_terminal_states_have_no_exits(self, terminal):
        assert INVOICE_WORKFLOW.actions_from(terminal) == ()

    def test_voided_only_unwinds_payments(self):
        assert INVOICE_WORKFLOW.actions_from(S.VOIDED) == ("reverse_payment",)

    def test_void_reverses_entries(self):
        for from_state in (S.SENT, S.PARTIALLY_PAID, S.PAID):
            assert INVOICE_WORKFLOW.find(from_state, "void").reverses_entries


class TestTransition:

    @pytest.mark.parametrize(
        ("from_state", "action", "to_state"),
        [
            (S.DRAFT, "send", S.SENT),
            (S.DRAFT, "cancel", S.CANCELLED),
            (S.SENT, "cancel", S.CANCELLED),
            (S.SENT, "void", S.VOIDED),
            (S.PAID, "void", S.VOIDED),
        ],
    )
    def test_legal(self, from_state, action, to_state):
        assert transition(INVOICE_WORKFLOW, state(from_state), action).status is to_state

    @pytest.mark.parametrize(
        ("from_state", "action"),
        [
            (S.DRAFT, "void"),
            (S.PAID, "cancel"),
            (S.PARTIALLY_PAID, "cancel"),
            (S.VOIDED, "void"),
            (S.CANCELLED, "send"),
            (S.SENT, "send"),
        ],
    )
    def test_illegal(self, from_state, action):
        with pytest.raises(IllegalTransitionError) as exc_info:
            transition(INVOICE_WORKFLOW, state(from_state), action)
        assert exc_info.value.from_status == from_state.value
        assert exc_info.value.action == action


class TestApplyPayment:

    def test_partial_then_full(self):
        partly = apply_payment(INVOICE_WORKFLOW, state(), 50_000)
        assert (partly.status, partly.paid_amount) == (S.PARTIALLY_PAID, 50_000)

        paid = apply_payment(INVOICE_WORKFLOW, partly, 63_000)
        assert (paid.status, paid.paid_amount) == (S.PAID, 113_000)

    def test_exact_total_in_one_go(self):
        assert apply_payment(INVOICE_WORKFLOW, state(), 113_000).status is S.PAID

    def test_over_outstanding(self):
        with pytest.raises(OutstandingBalanceExceededError) as exc_info:
            apply_payment(INVOICE_WORKFLOW, state(paid=100_000, status=S.PARTIALLY_PAID), 13_001)
        assert exc_info.value.outstanding == 13_000

    @pytest.mark.parametrize("status", [S.DRAFT, S.PAID, S.VOIDED, S.CANCELLED])
    def test_wrong_status(self, status):
        with pytest.raises(IllegalTransitionError):
            apply_payment(INVOICE_WORKFLOW, state(status), 1)

    @pytest.mark.parametrize("amount", [0, -5, 1.5, True])
    def test_invalid_amount(self, amount):
        with pytest.raises(InvalidAmountError):
            apply_payment(INVOICE_WORKFLOW, state(), amount)


class TestReversePayment:

    def test_back_to_sent_when_nothing_paid(self):
        result = reverse_payment(INVOICE_WORKFLOW, state(S.PAID, paid=113_000), 113_000)
        assert (result.status, result.paid_amount) == (S.SENT, 0)

    def test_partial_reversal(self):
        result = reverse_payment(INVOICE_WORKFLOW, state(S.PAID, paid=113_000), 13_000)
        assert (result.status, result.paid_amount) == (S.PARTIALLY_PAID, 100_000)

    def test_voided_document_keeps_status(self):
        result = reverse_payment(INVOICE_WORKFLOW, state(S.VOIDED, paid=40_000), 40_000)
        assert (result.status, result.paid_amount) == (S.VOIDED, 0)

    def test_underflow(self):
        with pytest.raises(PaidAmountUnderflowError):
            reverse_payment(BILL_WORKFLOW, state(S.PARTIALLY_PAID, paid=10), 11)

    def test_nothing_paid_status(self):
        with pytest.raises(IllegalTransitionError):
            reverse_payment(INVOICE_WORKFLOW, state(S.SENT), 1)


class TestPaymentProperties:

    @given(
        total=st.integers(min_value=1, max_value=10**12),
        data=st.data(),
    )
    def test_apply_then_reverse_restores_state(self, total, data):
        amount = data.draw(st.integers(min_value=1, max_value=total))
        before = state(S.SENT, total=total)

        after = reverse_payment(INVOICE_WORKFLOW, apply_payment(INVOICE_WORKFLOW, before, amount), amount)

        assert after == before

    @given(
        total=st.integers(min_value=1, max_value=10**9),
        parts=st.lists(st.integers(min_value=1, max_value=10**9), max_size=8),
    )
    def test_paid_never_exceeds_total(self, total, parts):
        current = state(S.SENT, total=total)
        for amount in parts:
            try:
                current = apply_payment(INVOICE_WORKFLOW, current, amount)
            except (OutstandingBalanceExceededError, IllegalTransitionError):
                pass
            assert 0 <= current.paid_amount <= current.total
            assert (current.status is S.PAID) == (current.paid_amount == total)
