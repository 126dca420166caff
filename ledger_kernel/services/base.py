"""
BaseService -- abstract base for all write services.

Responsibility:
    Provides the common constructor shared by every service in the kernel
    and module layers: the caller's ``Session``, the per-call
    ``TenantContext``, an injected ``Clock``, and the ``TenantScope`` all
    reads go through.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or rollback the outer transaction.
      Multi-step mutations open a SAVEPOINT (``session.begin_nested()``)
      so they are all-or-nothing even when the caller keeps going.
    - Tenant scoping: lookups of owned records go through ``self.scope``.

Failure modes:
    - A subclass calling ``session.commit()`` breaks the atomicity of the
      caller's unit of work.
"""

from __future__ import annotations

from abc import ABC

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.context import TenantContext
from ledger_kernel.selectors.tenant_scope import TenantScope


class BaseService(ABC):
    """
    Abstract base class for services.

    Contract:
        Accepts a SQLAlchemy ``Session`` and a ``TenantContext`` from the
        caller and uses ``session.flush()`` to persist changes within the
        active transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide report queries; those belong in selectors.
    """

    def __init__(
        self,
        session: Session,
        context: TenantContext,
        clock: Clock | None = None,
    ):
        self.session = session
        self.context = context
        self.clock = clock or SystemClock()
        self.scope = TenantScope(session, context.tenant_id)

    @property
    def tenant_id(self):
        return self.context.tenant_id

    @property
    def user_id(self):
        return self.context.user_id
