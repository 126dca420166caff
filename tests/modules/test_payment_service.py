"""
Integration tests for PaymentService.

Verifies:
- A payment never allocates more than its amount
- A rejected allocation leaves no allocation row and no document change
- Direction: client payments go to invoices, vendor payments to bills
- Deallocation and deletion unwind document paid_amount
"""

from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import insert, update

from ledger_kernel.exceptions import (
    AllocationNotFoundError,
    AllocationTargetError,
    DocumentNotFoundError,
    InvalidAmountError,
    OutstandingBalanceExceededError,
    PartyNotFoundError,
    PaymentNotFoundError,
    PaymentPartyError,
    UnallocatedBalanceExceededError,
)
from ledger_kernel.models.audit import AuditLog
from ledger_modules.invoicing.models import DocumentInput, DocumentLineInput, DocumentStatus
from ledger_modules.invoicing.orm import InvoiceModel
from ledger_modules.invoicing.service import BillService, InvoiceService
from ledger_modules.payments.models import (
    AllocationInput,
    PaymentDirection,
    PaymentInput,
    PaymentMethod,
)
from ledger_modules.payments.orm import PaymentAllocationModel
from ledger_modules.payments.service import PaymentService


@pytest.fixture
def payments(session, context, clock, cache) -> PaymentService:
    return PaymentService(session, context, clock, cache)


@pytest.fixture
def invoices(session, context, clock, cache) -> InvoiceService:
    return InvoiceService(session, context, clock, cache)


@pytest.fixture
def issue_invoice(invoices, entity, client):
    def _issue(number: str, total: int):
        return invoices.create(
            DocumentInput(
                entity_id=entity.id,
                party_id=client.id,
                number=number,
                issue_date=date(2026, 1, 10),
                due_date=date(2026, 2, 10),
                subtotal=total,
                tax_amount=0,
                total=total,
                lines=(DocumentLineInput("Services", total),),
                status=DocumentStatus.SENT,
            )
        )

    return _issue


@pytest.fixture
def bill(session, context, clock, entity, vendor):
    return BillService(session, context, clock).create(
        DocumentInput(
            entity_id=entity.id,
            party_id=vendor.id,
            number="BILL-1",
            issue_date=date(2026, 1, 12),
            due_date=date(2026, 2, 12),
            subtotal=20_000,
            tax_amount=0,
            total=20_000,
            lines=(DocumentLineInput("Paper", 20_000),),
            status=DocumentStatus.SENT,
        )
    )


def allocation_count(session) -> int:
    return session.query(PaymentAllocationModel).count()


# =============================================================================
# Create
# =============================================================================


class TestCreatePayment:

    def test_client_payment(self, payments, client, entity):
        payment = payments.create_payment(
            PaymentInput(payment_date=date(2026, 1, 20), amount=50_000, client_id=client.id)
        )

        assert payment.entity_id == entity.id
        assert payment.direction is PaymentDirection.RECEIVABLE
        assert payment.currency == "USD"
        assert payment.payment_method == PaymentMethod.TRANSFER.value
        assert payment.unallocated_amount == 50_000

    def test_inline_allocations(self, payments, client, issue_invoice):
        first = issue_invoice("INV-1", 30_000)
        second = issue_invoice("INV-2", 40_000)

        payment = payments.create_payment(
            PaymentInput(
                payment_date=date(2026, 1, 20),
                amount=50_000,
                client_id=client.id,
                allocations=(
                    AllocationInput(30_000, invoice_id=first.id),
                    AllocationInput(15_000, invoice_id=second.id),
                ),
            )
        )

        assert payment.unallocated_amount == 5_000
        assert first.status == DocumentStatus.PAID.value
        assert second.status == DocumentStatus.PARTIALLY_PAID.value

    @pytest.mark.parametrize("both", [True, False])
    def test_exactly_one_party(self, payments, client, vendor, both):
        with pytest.raises(PaymentPartyError) as exc_info:
            payments.create_payment(
                PaymentInput(
                    payment_date=date(2026, 1, 20),
                    amount=100,
                    client_id=client.id if both else None,
                    vendor_id=vendor.id if both else None,
                )
            )
        assert exc_info.value.code == "INVALID_PAYMENT_PARTY"

    def test_other_tenants_client(self, payments, other_tenant):
        with pytest.raises(PartyNotFoundError):
            payments.create_payment(
                PaymentInput(
                    payment_date=date(2026, 1, 20),
                    amount=100,
                    client_id=other_tenant["client"].id,
                )
            )

    @pytest.mark.parametrize("amount", [0, -100, 10.5])
    def test_amount_must_be_positive_int(self, payments, client, amount):
        with pytest.raises(InvalidAmountError):
            payments.create_payment(
                PaymentInput(payment_date=date(2026, 1, 20), amount=amount, client_id=client.id)
            )

    def test_failed_inline_allocation_rolls_back_everything(
        self, session, payments, client, issue_invoice,
    ):
        invoice = issue_invoice("INV-1", 10_000)

        with pytest.raises(OutstandingBalanceExceededError):
            payments.create_payment(
                PaymentInput(
                    payment_date=date(2026, 1, 20),
                    amount=50_000,
                    client_id=client.id,
                    allocations=(AllocationInput(20_000, invoice_id=invoice.id),),
                )
            )

        assert payments.list_payments().items == ()
        assert allocation_count(session) == 0
        assert invoice.paid_amount == 0


# =============================================================================
# Allocate
# =============================================================================


class TestAllocate:

    @pytest.fixture
    def payment(self, payments, client):
        return payments.create_payment(
            PaymentInput(payment_date=date(2026, 1, 20), amount=50_000, client_id=client.id)
        )

    def test_over_allocation_rejected_without_side_effects(
        self, session, payments, payment, issue_invoice,
    ):
        invoice = issue_invoice("INV-1", 100_000)
        payments.allocate(payment.id, 40_000, invoice_id=invoice.id)

        with pytest.raises(UnallocatedBalanceExceededError) as exc_info:
            payments.allocate(payment.id, 20_000, invoice_id=invoice.id)

        assert exc_info.value.unallocated == 10_000
        assert exc_info.value.code == "EXCEEDS_UNALLOCATED_BALANCE"
        assert allocation_count(session) == 1
        assert invoice.paid_amount == 40_000
        assert payment.unallocated_amount == 10_000

    def test_document_outstanding_ceiling(self, session, payments, payment, issue_invoice):
        invoice = issue_invoice("INV-1", 10_000)

        with pytest.raises(OutstandingBalanceExceededError):
            payments.allocate(payment.id, 10_001, invoice_id=invoice.id)

        assert allocation_count(session) == 0
        assert invoice.status == DocumentStatus.SENT.value

    def test_client_payment_cannot_pay_bill(self, payments, payment, bill):
        with pytest.raises(AllocationTargetError) as exc_info:
            payments.allocate(payment.id, 1_000, bill_id=bill.id)
        assert exc_info.value.code == "INVALID_ALLOCATION_TARGET"

    def test_vendor_payment_cannot_pay_invoice(self, payments, vendor, issue_invoice):
        invoice = issue_invoice("INV-1", 1_000)
        payment = payments.create_payment(
            PaymentInput(payment_date=date(2026, 1, 20), amount=1_000, vendor_id=vendor.id)
        )
        with pytest.raises(AllocationTargetError):
            payments.allocate(payment.id, 1_000, invoice_id=invoice.id)

    def test_vendor_payment_pays_bill(self, payments, vendor, bill):
        payment = payments.create_payment(
            PaymentInput(payment_date=date(2026, 1, 20), amount=20_000, vendor_id=vendor.id)
        )
        payments.allocate(payment.id, 20_000, bill_id=bill.id)

        assert bill.status == DocumentStatus.PAID.value
        assert payment.direction is PaymentDirection.PAYABLE

    @pytest.mark.parametrize(
        "targets",
        [{}, {"invoice_id": uuid4(), "bill_id": uuid4()}],
        ids=["none", "both"],
    )
    def test_exactly_one_target(self, payments, payment, targets):
        with pytest.raises(AllocationTargetError):
            payments.allocate(payment.id, 100, **targets)

    def test_unknown_invoice(self, payments, payment):
        with pytest.raises(DocumentNotFoundError):
            payments.allocate(payment.id, 100, invoice_id=uuid4())

    def test_unknown_payment(self, payments):
        with pytest.raises(PaymentNotFoundError):
            payments.allocate(uuid4(), 100, invoice_id=uuid4())

    def test_allocate_many_is_atomic(self, session, payments, payment, issue_invoice):
        first = issue_invoice("INV-1", 10_000)
        second = issue_invoice("INV-2", 10_000)

        with pytest.raises(OutstandingBalanceExceededError):
            payments.allocate_many(
                payment.id,
                [
                    AllocationInput(10_000, invoice_id=first.id),
                    AllocationInput(15_000, invoice_id=second.id),
                ],
            )

        assert allocation_count(session) == 0
        assert first.paid_amount == 0

    def test_locked_invoice_is_reread_before_the_outstanding_check(
        self, session, payments, payment, issue_invoice,
    ):
        invoice = issue_invoice("INV-1", 113_000)
        # Another transaction records 100000 behind this session's back.
        session.connection().execute(
            update(InvoiceModel.__table__)
            .where(InvoiceModel.__table__.c.id == invoice.id)
            .values(paid_amount=100_000, status=DocumentStatus.PARTIALLY_PAID.value)
        )

        with pytest.raises(OutstandingBalanceExceededError):
            payments.allocate(payment.id, 50_000, invoice_id=invoice.id)

        assert allocation_count(session) == 0
        assert invoice.paid_amount == 100_000

    def test_locked_payment_is_reread_before_the_unallocated_check(
        self, session, context, payments, payment, issue_invoice,
    ):
        first = issue_invoice("INV-1", 100_000)
        second = issue_invoice("INV-2", 100_000)
        assert payment.unallocated_amount == 50_000
        session.connection().execute(
            insert(PaymentAllocationModel.__table__).values(
                payment_id=payment.id,
                invoice_id=first.id,
                amount=40_000,
                created_by_id=context.user_id,
            )
        )

        with pytest.raises(UnallocatedBalanceExceededError) as exc_info:
            payments.allocate(payment.id, 20_000, invoice_id=second.id)

        assert exc_info.value.unallocated == 10_000
        assert second.paid_amount == 0

    def test_other_tenant_cannot_allocate(self, session, clock, payment, other_tenant):
        intruder = PaymentService(session, other_tenant["context"], clock)
        with pytest.raises(PaymentNotFoundError):
            intruder.allocate(payment.id, 100, invoice_id=uuid4())


# =============================================================================
# Deallocate and delete
# =============================================================================


class TestDeallocateAndDelete:

    @pytest.fixture
    def allocated(self, payments, client, issue_invoice):
        invoice = issue_invoice("INV-1", 113_000)
        payment = payments.create_payment(
            PaymentInput(payment_date=date(2026, 1, 20), amount=113_000, client_id=client.id)
        )
        allocation = payments.allocate(payment.id, 113_000, invoice_id=invoice.id)
        return payment, allocation, invoice

    def test_deallocate(self, session, payments, allocated):
        payment, allocation, invoice = allocated

        payments.deallocate(payment.id, allocation.id)

        assert invoice.status == DocumentStatus.SENT.value
        assert invoice.paid_amount == 0
        assert payment.unallocated_amount == 113_000
        assert allocation_count(session) == 0

    def test_deallocate_unknown(self, payments, allocated):
        payment, _, _ = allocated
        with pytest.raises(AllocationNotFoundError):
            payments.deallocate(payment.id, uuid4())

    def test_delete_reverses_allocations(self, session, payments, allocated):
        payment, _, invoice = allocated

        payments.delete_payment(payment.id)

        assert invoice.paid_amount == 0
        assert invoice.status == DocumentStatus.SENT.value
        assert allocation_count(session) == 0
        with pytest.raises(PaymentNotFoundError):
            payments.get_payment(payment.id)
        audit = session.query(AuditLog).filter(AuditLog.record_id == payment.id).one()
        assert audit.before == {"amount": 113_000, "allocated": 113_000}

    def test_delete_after_invoice_voided(self, payments, invoices, allocated):
        payment, _, invoice = allocated
        invoices.void(invoice.id)

        payments.delete_payment(payment.id)

        assert invoice.status == DocumentStatus.VOIDED.value
        assert invoice.paid_amount == 0


# =============================================================================
# List
# =============================================================================


class TestListPayments:

    def test_ordered_and_paged(self, payments, client, vendor):
        for day in (9, 3, 6):
            payments.create_payment(
                PaymentInput(payment_date=date(2026, 1, day), amount=day * 100, client_id=client.id)
            )
        payments.create_payment(
            PaymentInput(payment_date=date(2026, 1, 1), amount=50, vendor_id=vendor.id)
        )

        first = payments.list_payments(client_id=client.id, limit=2)
        second = payments.list_payments(client_id=client.id, cursor=first.next_cursor, limit=2)

        assert [p.amount for p in first.items + second.items] == [300, 600, 900]
        assert second.next_cursor is None

    def test_date_filter_is_inclusive(self, payments, client):
        for day in (1, 15, 31):
            payments.create_payment(
                PaymentInput(payment_date=date(2026, 1, day), amount=day, client_id=client.id)
            )

        page = payments.list_payments(date_from=date(2026, 1, 15), date_to=date(2026, 1, 31))

        assert [p.amount for p in page.items] == [15, 31]
