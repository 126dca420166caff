"""
Invoicing ORM Models (``ledger_modules.invoicing.orm``).

Responsibility
--------------
SQLAlchemy persistence models for invoices, bills and their lines.  Both
document tables share one column layout (``_DocumentColumns``); they differ
only in the counterparty column (client vs vendor) and their line table.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``ledger_kernel.db`` and
sibling ``models.py``.  MUST NOT be imported by ``ledger_kernel``.

Invariants enforced
-------------------
* ``0 <= paid_amount <= total`` and ``total = subtotal + tax_amount``
  (database CHECK constraints backing the service-level validation).
* Soft deletion only: ``deleted_at`` is set, rows are never removed.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase
from ledger_kernel.db.types import Currency, LongText, MinorUnits, Rate, ShortCode
from ledger_modules.invoicing.models import DocumentKind, DocumentStatus


def _document_constraints(table: str) -> tuple:
    return (
        CheckConstraint("paid_amount >= 0", name=f"ck_{table}_paid_non_negative"),
        CheckConstraint("paid_amount <= total", name=f"ck_{table}_paid_le_total"),
        CheckConstraint("total = subtotal + tax_amount", name=f"ck_{table}_total"),
        Index(f"idx_{table}_entity_status", "entity_id", "status"),
        Index(f"idx_{table}_entity_issue_date", "entity_id", "issue_date"),
    )


class _DocumentColumns(TrackedBase):
    """Columns shared by invoices and bills."""

    __abstract__ = True

    kind: ClassVar[DocumentKind]

    entity_id: Mapped[UUID] = mapped_column(ForeignKey("entities.id"), nullable=False)
    number: Mapped[ShortCode] = mapped_column(nullable=False)
    issue_date: Mapped[date] = mapped_column(nullable=False)
    due_date: Mapped[date] = mapped_column(nullable=False)
    currency: Mapped[Currency] = mapped_column(nullable=False)
    subtotal: Mapped[MinorUnits] = mapped_column(nullable=False)
    tax_amount: Mapped[MinorUnits] = mapped_column(nullable=False, default=0)
    total: Mapped[MinorUnits] = mapped_column(nullable=False)
    paid_amount: Mapped[MinorUnits] = mapped_column(nullable=False, default=0)
    status: Mapped[DocumentStatus] = mapped_column(
        String(20), nullable=False, default=DocumentStatus.DRAFT.value,
    )
    notes: Mapped[LongText | None] = mapped_column(nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    @property
    def outstanding(self) -> int:
        return self.total - self.paid_amount

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.number} {self.status} {self.paid_amount}/{self.total}>"


class _DocumentLineColumns(TrackedBase):
    """Columns shared by invoice and bill lines."""

    __abstract__ = True

    line_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[LongText] = mapped_column(nullable=False)
    quantity: Mapped[Rate] = mapped_column(nullable=False, default=Decimal("1"))
    unit_price: Mapped[MinorUnits] = mapped_column(nullable=False)
    amount: Mapped[MinorUnits] = mapped_column(nullable=False)
    tax_amount: Mapped[MinorUnits] = mapped_column(nullable=False, default=0)
    gl_account_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("gl_accounts.id"), nullable=True,
    )


# ---------------------------------------------------------------------------
# Invoices (AR)
# ---------------------------------------------------------------------------


class InvoiceModel(_DocumentColumns):
    """A receivable document issued to a CLIENT party."""

    __tablename__ = "invoices"
    __table_args__ = _document_constraints("invoices") + (
        Index("idx_invoices_client_id", "client_id"),
    )

    kind = DocumentKind.INVOICE

    client_id: Mapped[UUID] = mapped_column(ForeignKey("parties.id"), nullable=False)

    lines: Mapped[list[InvoiceLineModel]] = relationship(
        back_populates="invoice",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="InvoiceLineModel.line_seq",
    )

    @property
    def party_id(self) -> UUID:
        return self.client_id

    @party_id.setter
    def party_id(self, value: UUID) -> None:
        self.client_id = value


class InvoiceLineModel(_DocumentLineColumns):
    __tablename__ = "invoice_lines"
    __table_args__ = (Index("idx_invoice_lines_invoice_id", "invoice_id"),)

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)

    invoice: Mapped[InvoiceModel] = relationship(back_populates="lines")


# ---------------------------------------------------------------------------
# Bills (AP)
# ---------------------------------------------------------------------------


class BillModel(_DocumentColumns):
    """A payable document received from a VENDOR party."""

    __tablename__ = "bills"
    __table_args__ = _document_constraints("bills") + (
        Index("idx_bills_vendor_id", "vendor_id"),
    )

    kind = DocumentKind.BILL

    vendor_id: Mapped[UUID] = mapped_column(ForeignKey("parties.id"), nullable=False)

    lines: Mapped[list[BillLineModel]] = relationship(
        back_populates="bill",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="BillLineModel.line_seq",
    )

    @property
    def party_id(self) -> UUID:
        return self.vendor_id

    @party_id.setter
    def party_id(self, value: UUID) -> None:
        self.vendor_id = value


class BillLineModel(_DocumentLineColumns):
    __tablename__ = "bill_lines"
    __table_args__ = (Index("idx_bill_lines_bill_id", "bill_id"),)

    bill_id: Mapped[UUID] = mapped_column(ForeignKey("bills.id"), nullable=False)

    bill: Mapped[BillModel] = relationship(back_populates="lines")


DocumentModel = InvoiceModel | BillModel

DOCUMENT_MODELS: dict[DocumentKind, type] = {
    DocumentKind.INVOICE: InvoiceModel,
    DocumentKind.BILL: BillModel,
}

LINE_MODELS: dict[DocumentKind, type] = {
    DocumentKind.INVOICE: InvoiceLineModel,
    DocumentKind.BILL: BillLineModel,
}
