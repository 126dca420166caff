"""Domain models for the ledger kernel."""

from ledger_kernel.models.account import (
    NORMAL_BALANCE_BY_TYPE,
    AccountType,
    GLAccount,
    NormalBalance,
)
from ledger_kernel.models.audit import AuditAction, AuditLog
from ledger_kernel.models.journal import (
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
    JournalSourceType,
)
from ledger_kernel.models.party import Party, PartyType
from ledger_kernel.models.tenant import Entity, FiscalCalendar, Tenant

__all__ = [
    "Tenant",
    "Entity",
    "FiscalCalendar",
    "GLAccount",
    "AccountType",
    "NormalBalance",
    "NORMAL_BALANCE_BY_TYPE",
    "JournalEntry",
    "JournalLine",
    "JournalEntryStatus",
    "JournalSourceType",
    "Party",
    "PartyType",
    "AuditLog",
    "AuditAction",
]
