"""Read-only, tenant-scoped query layer of the ledger kernel."""

from ledger_kernel.selectors.base import BaseSelector
from ledger_kernel.selectors.entity_selector import EntityScope, EntitySelector
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.selectors.tenant_scope import ScopedQuery, TenantScope

__all__ = [
    "BaseSelector",
    "EntityScope",
    "EntitySelector",
    "LedgerSelector",
    "ScopedQuery",
    "TenantScope",
]
