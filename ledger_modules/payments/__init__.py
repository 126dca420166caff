"""
Payments Module.

Records payments received from clients (AR) and made to vendors (AP), and
allocates them across invoices or bills.  Document paid amounts and
statuses are driven through the invoicing module.
"""

from ledger_modules.payments.models import (
    AllocationInput,
    PaymentDirection,
    PaymentInput,
    PaymentMethod,
    PaymentPage,
)
from ledger_modules.payments.service import PaymentService

__all__ = [
    "AllocationInput",
    "PaymentDirection",
    "PaymentInput",
    "PaymentMethod",
    "PaymentPage",
    "PaymentService",
]
