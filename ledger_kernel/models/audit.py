"""
Module: ledger_kernel.models.audit
Responsibility: ORM persistence for the audit trail written by mutations that
    change financial history (voids, reversals, payment deletions).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Audit rows are append-only; nothing in the kernel updates or deletes them.
    - Each row records who (user_id), when (created_at), what (model,
      record_id, action, before/after) and why (reason).
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, UUIDString
from ledger_kernel.db.types import LongText


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class AuditLog(Base):
    """One audited change to one record."""

    __tablename__ = "audit_logs"

    __table_args__ = (
        Index("idx_audit_logs_record", "model", "record_id"),
        Index("idx_audit_logs_tenant", "tenant_id", "created_at"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    entity_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    model: Mapped[str] = mapped_column(String(50), nullable=False)
    record_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    action: Mapped[AuditAction] = mapped_column(String(10), nullable=False)
    before: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    after: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    reason: Mapped[LongText | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<AuditLog {self.action} {self.model}:{self.record_id}>"
