"""
AuditorService -- append-only audit trail for history-changing mutations.

Responsibility:
    Records who changed what, when and why for voids, reversals, document
    voids and payment deletions.  Rows are written in the caller's
    transaction so the audit record commits or rolls back together with
    the change it describes.

Architecture position:
    Kernel > Services -- imperative shell, called by ReversalService and
    the invoicing/payments module services.

Invariants enforced:
    - Append-only: nothing updates or deletes AuditLog rows.
    - created_at comes from the injected Clock, user_id from the context.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.audit import AuditAction, AuditLog
from ledger_kernel.services.base import BaseService

logger = get_logger("services.auditor")


class AuditorService(BaseService):
    """
    Creates AuditLog rows.

    Non-goals:
        - Does NOT call session.commit().
        - Does NOT interpret audit rows (that is forensic tooling).
    """

    def record(
        self,
        model: str,
        record_id: UUID,
        action: AuditAction,
        *,
        entity_id: UUID | None = None,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
        reason: str | None = None,
    ) -> AuditLog:
        """Append one audit row and flush it."""
        log = AuditLog(
            tenant_id=self.tenant_id,
            user_id=self.user_id,
            entity_id=entity_id,
            model=model,
            record_id=record_id,
            action=AuditAction(action).value,
            before=before,
            after=after,
            reason=reason,
            created_at=self.clock.now(),
        )
        self.session.add(log)
        self.session.flush()

        logger.info(
            "audit_recorded",
            extra={
                "model": model,
                "record_id": str(record_id),
                "action": log.action,
                "audit_id": str(log.id),
            },
        )
        return log

    def trail(self, model: str, record_id: UUID) -> list[AuditLog]:
        """Audit rows of one record for the calling tenant, oldest first."""
        return list(
            self.session.scalars(
                select(AuditLog)
                .where(
                    AuditLog.tenant_id == self.tenant_id,
                    AuditLog.model == model,
                    AuditLog.record_id == record_id,
                )
                .order_by(AuditLog.created_at, AuditLog.id)
            ).all()
        )
