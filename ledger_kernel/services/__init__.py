"""Services for the ledger kernel (write side)."""

from ledger_kernel.services.auditor_service import AuditorService
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.journal_writer import JournalWriter, LineSpec
from ledger_kernel.services.report_cache import (
    InMemoryReportCache,
    ReportCache,
    invalidate_entity_reports,
    report_cache_key,
)
from ledger_kernel.services.reversal_service import ReversalResult, ReversalService

__all__ = [
    "AuditorService",
    "BaseService",
    "InMemoryReportCache",
    "JournalWriter",
    "LineSpec",
    "ReportCache",
    "ReversalResult",
    "ReversalService",
    "invalidate_entity_reports",
    "report_cache_key",
]
