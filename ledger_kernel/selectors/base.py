"""
Module: ledger_kernel.selectors.base
Responsibility: Abstract base class for all read-only selectors.
Architecture position: Kernel > Selectors.  May import from db/, models/,
    domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only: selectors never add, delete, flush or commit.
    - Tenant-scoped: every selector reads through a TenantScope, never
      through the raw session.
    - Selectors return frozen dataclasses or ORM rows owned by the caller's
      session; the caller owns the transaction.
"""

from abc import ABC

from ledger_kernel.selectors.tenant_scope import TenantScope


class BaseSelector(ABC):
    """Base for selectors; holds the TenantScope all queries go through."""

    def __init__(self, scope: TenantScope):
        self.scope = scope

    @property
    def tenant_id(self):
        return self.scope.tenant_id
