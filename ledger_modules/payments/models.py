"""
Payments Domain Models (``ledger_modules.payments.models``).

Responsibility
--------------
Frozen dataclass inputs for recording payments and allocating them to
invoices (AR) or bills (AP).

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* Amounts are ``int`` minor units.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from uuid import UUID


class PaymentMethod(str, Enum):
    CASH = "CASH"
    CHECK = "CHECK"
    CARD = "CARD"
    TRANSFER = "TRANSFER"
    WIRE = "WIRE"
    OTHER = "OTHER"


class PaymentDirection(str, Enum):
    """AR payments come from clients, AP payments go to vendors."""

    RECEIVABLE = "AR"
    PAYABLE = "AP"


@dataclass(frozen=True)
class AllocationInput:
    """Apply ``amount`` of a payment to exactly one invoice or bill."""

    amount: int
    invoice_id: UUID | None = None
    bill_id: UUID | None = None


@dataclass(frozen=True)
class PaymentInput:
    """A payment received from a client or made to a vendor (never both)."""

    payment_date: date
    amount: int
    payment_method: PaymentMethod = PaymentMethod.TRANSFER
    client_id: UUID | None = None
    vendor_id: UUID | None = None
    currency: str | None = None  # defaults to the entity's functional currency
    reference: str | None = None
    notes: str | None = None
    allocations: tuple[AllocationInput, ...] = ()


@dataclass(frozen=True)
class PaymentPage:
    items: tuple = ()
    next_cursor: UUID | None = None
