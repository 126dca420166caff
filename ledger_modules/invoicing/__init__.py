"""
Invoicing Module.

Handles invoices (receivables) and bills (payables): creation with totals
validation, draft-only financial edits, send/approve/cancel, payment
application and reversal, void, and aging.
"""

from ledger_modules.invoicing.models import (
    AgingSummary,
    DocumentInput,
    DocumentKind,
    DocumentLineInput,
    DocumentPage,
    DocumentStatus,
    DocumentUpdate,
)
from ledger_modules.invoicing.service import (
    BillService,
    DocumentService,
    InvoiceService,
    document_service_for,
)
from ledger_modules.invoicing.workflows import BILL_WORKFLOW, INVOICE_WORKFLOW

__all__ = [
    "AgingSummary",
    "BILL_WORKFLOW",
    "BillService",
    "DocumentInput",
    "DocumentKind",
    "DocumentLineInput",
    "DocumentPage",
    "DocumentService",
    "DocumentStatus",
    "DocumentUpdate",
    "INVOICE_WORKFLOW",
    "InvoiceService",
    "document_service_for",
]
