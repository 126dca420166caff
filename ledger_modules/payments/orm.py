"""
Payments ORM Models (``ledger_modules.payments.orm``).

Responsibility
--------------
SQLAlchemy persistence models for payments and payment allocations.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``ledger_kernel.db`` and
references the invoicing tables by foreign key.

Invariants enforced
-------------------
* A payment has exactly one of client_id / vendor_id.
* An allocation targets exactly one of invoice_id / bill_id.
* Amounts are positive.  The ceiling ``sum(allocations) <= amount`` is
  enforced by ``PaymentService`` under a row lock on the payment.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase
from ledger_kernel.db.types import Currency, LongText, MinorUnits
from ledger_modules.payments.models import PaymentDirection


class PaymentModel(TrackedBase):
    """
    ORM model for a payment.

    Guarantees:
        - client_id XOR vendor_id (ck_payments_one_party).
        - amount > 0.
    """

    __tablename__ = "payments"

    __table_args__ = (
        CheckConstraint(
            "(client_id IS NULL) <> (vendor_id IS NULL)",
            name="ck_payments_one_party",
        ),
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        Index("idx_payments_entity_date", "entity_id", "payment_date"),
    )

    entity_id: Mapped[UUID] = mapped_column(ForeignKey("entities.id"), nullable=False)
    client_id: Mapped[UUID | None] = mapped_column(ForeignKey("parties.id"), nullable=True)
    vendor_id: Mapped[UUID | None] = mapped_column(ForeignKey("parties.id"), nullable=True)
    payment_date: Mapped[date] = mapped_column(nullable=False)
    amount: Mapped[MinorUnits] = mapped_column(nullable=False)
    currency: Mapped[Currency] = mapped_column(nullable=False)
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[LongText | None] = mapped_column(nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    allocations: Mapped[list[PaymentAllocationModel]] = relationship(
        back_populates="payment",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="PaymentAllocationModel.created_at",
    )

    @property
    def direction(self) -> PaymentDirection:
        return PaymentDirection.RECEIVABLE if self.client_id is not None else PaymentDirection.PAYABLE

    @property
    def allocated_amount(self) -> int:
        return sum(a.amount for a in self.allocations)

    @property
    def unallocated_amount(self) -> int:
        return self.amount - self.allocated_amount

    def __repr__(self) -> str:
        return f"<PaymentModel {self.direction.value} {self.amount} ({self.allocated_amount} allocated)>"


class PaymentAllocationModel(TrackedBase):
    """
    ORM model for one slice of a payment applied to an invoice or bill.

    Allocation rows are deleted physically on deallocation; the document's
    paid_amount is reversed first.
    """

    __tablename__ = "payment_allocations"

    __table_args__ = (
        CheckConstraint(
            "(invoice_id IS NULL) <> (bill_id IS NULL)",
            name="ck_payment_allocations_one_target",
        ),
        CheckConstraint("amount > 0", name="ck_payment_allocations_amount_positive"),
        Index("idx_payment_allocations_payment_id", "payment_id"),
        Index("idx_payment_allocations_invoice_id", "invoice_id"),
        Index("idx_payment_allocations_bill_id", "bill_id"),
    )

    payment_id: Mapped[UUID] = mapped_column(ForeignKey("payments.id"), nullable=False)
    invoice_id: Mapped[UUID | None] = mapped_column(ForeignKey("invoices.id"), nullable=True)
    bill_id: Mapped[UUID | None] = mapped_column(ForeignKey("bills.id"), nullable=True)
    amount: Mapped[MinorUnits] = mapped_column(nullable=False)

    payment: Mapped[PaymentModel] = relationship(back_populates="allocations")

    def __repr__(self) -> str:
        target = f"invoice {self.invoice_id}" if self.invoice_id else f"bill {self.bill_id}"
        return f"<PaymentAllocationModel {self.amount} -> {target}>"
