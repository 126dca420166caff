"""
Invoicing Domain Models (``ledger_modules.invoicing.models``).

Responsibility
--------------
Frozen dataclass value objects and enums for the revenue/payable document
lifecycle: document kinds and statuses, creation and update inputs, list
pages, and the aging summary.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Consumed by
``DocumentService`` and returned to callers.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields are ``int`` minor units -- NEVER ``float``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.models.journal import JournalSourceType
from ledger_kernel.models.party import PartyType


class DocumentStatus(str, Enum):
    """Invoice/bill lifecycle states."""

    DRAFT = "DRAFT"
    SENT = "SENT"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    VOIDED = "VOIDED"
    CANCELLED = "CANCELLED"


OPEN_STATUSES = (DocumentStatus.SENT, DocumentStatus.PARTIALLY_PAID)


class DocumentKind(str, Enum):
    """Invoices are receivable (AR), bills are payable (AP)."""

    INVOICE = "INVOICE"
    BILL = "BILL"

    @property
    def party_type(self) -> PartyType:
        return PartyType.CLIENT if self is DocumentKind.INVOICE else PartyType.VENDOR

    @property
    def source_type(self) -> JournalSourceType:
        return JournalSourceType.INVOICE if self is DocumentKind.INVOICE else JournalSourceType.BILL

    @property
    def label(self) -> str:
        return "Invoice" if self is DocumentKind.INVOICE else "Bill"


@dataclass(frozen=True)
class DocumentLineInput:
    """One line of an invoice or bill."""

    description: str
    amount: int
    quantity: Decimal = Decimal("1")
    unit_price: int | None = None  # defaults to amount
    tax_amount: int = 0
    gl_account_id: UUID | None = None


@dataclass(frozen=True)
class DocumentInput:
    """Everything needed to create an invoice or bill."""

    entity_id: UUID
    party_id: UUID
    number: str
    issue_date: date
    due_date: date
    subtotal: int
    tax_amount: int
    total: int
    lines: tuple[DocumentLineInput, ...]
    currency: str | None = None  # defaults to the entity's functional currency
    notes: str | None = None
    status: DocumentStatus = DocumentStatus.DRAFT


# Fields that may change outside DRAFT
METADATA_FIELDS = frozenset({"number", "notes", "due_date"})


@dataclass(frozen=True)
class DocumentUpdate:
    """
    Partial update.  ``None`` means "leave unchanged".

    Only number, notes and due_date are editable once a document has
    left DRAFT.
    """

    number: str | None = None
    notes: str | None = None
    due_date: date | None = None
    issue_date: date | None = None
    party_id: UUID | None = None
    currency: str | None = None
    subtotal: int | None = None
    tax_amount: int | None = None
    total: int | None = None
    lines: tuple[DocumentLineInput, ...] | None = None

    def changed_fields(self) -> list[str]:
        return [
            name for name in self.__dataclass_fields__
            if getattr(self, name) is not None
        ]

    def financial_fields(self) -> list[str]:
        return [name for name in self.changed_fields() if name not in METADATA_FIELDS]


@dataclass(frozen=True)
class DocumentPage:
    """One page of a document listing."""

    items: tuple = ()
    next_cursor: UUID | None = None


@dataclass(frozen=True)
class AgingBucket:
    label: str
    amount: int
    percentage: int


@dataclass(frozen=True)
class AgingSummary:
    """Outstanding receivables (invoices) or payables (bills) by days overdue."""

    kind: DocumentKind
    as_of: date
    outstanding: int
    overdue: int
    buckets: tuple[AgingBucket, ...] = field(default_factory=tuple)

    def bucket(self, label: str) -> AgingBucket:
        return next(b for b in self.buckets if b.label == label)
