"""
Module: ledger_kernel.selectors.tenant_scope
Responsibility: Structural tenant isolation for every Journal Store read and
    every owned-record lookup.  A ScopedQuery can only be built by a
    TenantScope, and building one always conjuncts
    ``<entity reference> IN (SELECT id FROM entities WHERE tenant_id = :t)``.
    TenantScope only executes ScopedQuery objects built for its own tenant.
Architecture position: Kernel > Selectors.  May import from db/, models/,
    exceptions and logging_config.

Invariants enforced:
    - A statement that was not built through TenantScope is rejected before
      any SQL is sent (TenantScopeViolationError).
    - The anchor column passed to ``query()`` must structurally reference
      entities.id (the column itself, or a foreign key to it); anything
      else is rejected at build time.
    - Chaining (where/join/group_by/order_by/limit/with_for_update) only
      narrows a ScopedQuery; no method removes the tenant predicate.
    - with_for_update also sets populate_existing, so a locked row is
      re-read even when the session already holds a stale copy.

Failure modes:
    - TenantScopeViolationError (kind INTERNAL): programming error.

Audit relevance:
    Replaces a convention ("remember to filter by tenant") with a type: the
    only executable query objects carry the predicate by construction.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.engine import Result, ScalarResult
from sqlalchemy.orm import Session

from ledger_kernel.exceptions import TenantScopeViolationError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.tenant import Entity

logger = get_logger("selectors.tenant_scope")

_BUILD_TOKEN = object()


def _is_entity_reference(column: Any) -> bool:
    expr = getattr(column, "expression", column)
    table = getattr(expr, "table", None)
    if table is None:
        return False
    if table.name == Entity.__tablename__ and expr.name == "id":
        return True
    return any(
        fk.target_fullname == f"{Entity.__tablename__}.id"
        for fk in getattr(expr, "foreign_keys", ())
    )


class ScopedQuery:
    """
    An immutable SELECT that is known to be restricted to one tenant.

    Not constructible outside TenantScope.  Every chaining method returns a
    new ScopedQuery wrapping the narrowed statement.
    """

    __slots__ = ("_tenant_id", "_statement")

    def __init__(self, tenant_id: UUID, statement: Select, _token: object = None):
        if _token is not _BUILD_TOKEN:
            raise TenantScopeViolationError("ScopedQuery must be built by TenantScope")
        self._tenant_id = tenant_id
        self._statement = statement

    @property
    def tenant_id(self) -> UUID:
        return self._tenant_id

    @property
    def statement(self) -> Select:
        return self._statement

    def _derive(self, statement: Select) -> ScopedQuery:
        return ScopedQuery(self._tenant_id, statement, _BUILD_TOKEN)

    def where(self, *clauses) -> ScopedQuery:
        return self._derive(self._statement.where(*clauses))

    def select_from(self, *froms) -> ScopedQuery:
        return self._derive(self._statement.select_from(*froms))

    def join(self, target, onclause=None, **kwargs) -> ScopedQuery:
        return self._derive(self._statement.join(target, onclause, **kwargs))

    def join_from(self, from_, target, onclause=None, **kwargs) -> ScopedQuery:
        return self._derive(self._statement.join_from(from_, target, onclause, **kwargs))

    def outerjoin(self, target, onclause=None, **kwargs) -> ScopedQuery:
        return self._derive(self._statement.outerjoin(target, onclause, **kwargs))

    def group_by(self, *clauses) -> ScopedQuery:
        return self._derive(self._statement.group_by(*clauses))

    def order_by(self, *clauses) -> ScopedQuery:
        return self._derive(self._statement.order_by(*clauses))

    def limit(self, limit: int) -> ScopedQuery:
        return self._derive(self._statement.limit(limit))

    def with_for_update(self) -> ScopedQuery:
        # Locked re-fetches must overwrite whatever the identity map holds.
        return self._derive(
            self._statement.with_for_update().execution_options(populate_existing=True)
        )


class TenantScope:
    """
    Query builder and executor bound to one session and one tenant.

    Usage:
        scope = TenantScope(session, context.tenant_id)
        q = scope.query(GLAccount, entity_column=GLAccount.entity_id)
        accounts = scope.scalars(q.where(GLAccount.code == "1000")).all()
    """

    def __init__(self, session: Session, tenant_id: UUID):
        self.session = session
        self._tenant_id = tenant_id

    @property
    def tenant_id(self) -> UUID:
        return self._tenant_id

    def _tenant_entity_ids(self) -> Select:
        return select(Entity.id).where(Entity.tenant_id == self._tenant_id)

    def query(self, *columns, entity_column) -> ScopedQuery:
        """
        Start a tenant-scoped SELECT.

        Args:
            *columns: Entities/columns to select.
            entity_column: Column referencing entities.id through which the
                selected rows belong to an entity (e.g. GLAccount.entity_id,
                JournalEntry.entity_id, or Entity.id itself).
        """
        if not _is_entity_reference(entity_column):
            raise TenantScopeViolationError(
                f"{entity_column!r} does not reference {Entity.__tablename__}.id"
            )
        statement = select(*columns).where(
            entity_column.in_(self._tenant_entity_ids())
        )
        return ScopedQuery(self._tenant_id, statement, _BUILD_TOKEN)

    def _check(self, query: object) -> Select:
        if not isinstance(query, ScopedQuery):
            logger.error(
                "tenant_scope_violation",
                extra={"tenant_id": str(self._tenant_id), "query_type": type(query).__name__},
            )
            raise TenantScopeViolationError("statement was not built by TenantScope")
        if query.tenant_id != self._tenant_id:
            logger.error(
                "tenant_scope_violation",
                extra={"tenant_id": str(self._tenant_id), "query_tenant_id": str(query.tenant_id)},
            )
            raise TenantScopeViolationError("statement is scoped to a different tenant")
        return query.statement

    def execute(self, query: ScopedQuery) -> Result:
        return self.session.execute(self._check(query))

    def scalars(self, query: ScopedQuery) -> ScalarResult:
        return self.session.scalars(self._check(query))

    def scalar(self, query: ScopedQuery) -> Any:
        return self.session.scalar(self._check(query))
