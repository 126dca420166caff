"""
ReversalService -- journal void/reversal protocol.

Responsibility:
    Voids a POSTED journal entry by appending a reversing entry (every line
    with debit and credit swapped), flipping the original's status to
    VOIDED and recording who did it and why.

Architecture position:
    Kernel > Services -- imperative shell.  Consumes JournalWriter and
    AuditorService; called directly and by the document void workflow.

Invariants enforced:
    - Existing lines are never edited; the reversal is a new POSTED entry.
    - linked_entry_id on the reversal is the canonical link back to the
      original.  An entry that is VOIDED, or that any entry links to, is
      never reversed twice.
    - The double-void check runs on a row locked with SELECT ... FOR UPDATE
      inside the write transaction.
    - Base-currency equivalents, currency and exchange rate carry over
      (swapped with their sides).
    - All steps run in one SAVEPOINT: a failure leaves neither a VOIDED
      original without a reversal nor a reversal without a VOIDED original.

Failure modes:
    - JournalEntryNotFoundError: entry absent, deleted, or in another tenant.
    - AlreadyVoidedError: entry is VOIDED or already has a reversal.

Audit relevance:
    Two AuditLog rows per void: UPDATE on the original (status
    POSTED -> VOIDED) and CREATE on the reversing entry, both carrying the
    reason.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.context import TenantContext
from ledger_kernel.exceptions import AlreadyVoidedError, JournalEntryNotFoundError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.audit import AuditAction
from ledger_kernel.models.journal import (
    JournalEntry,
    JournalEntryStatus,
    JournalSourceType,
)
from ledger_kernel.services.auditor_service import AuditorService
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.journal_writer import JournalWriter, LineSpec
from ledger_kernel.services.report_cache import ReportCache, invalidate_entity_reports

logger = get_logger("services.reversal")

REVERSAL_MEMO_PREFIX = "REVERSAL: "


@dataclass(frozen=True)
class ReversalResult:
    """Immutable result of a successful void."""

    original_entry_id: UUID
    reversal_entry_id: UUID
    reversal_entry_number: str
    entity_id: UUID
    voided_at: datetime


class ReversalService(BaseService):
    """
    Voids journal entries.

    Contract:
        ``void_entry`` either completes every step (reversal posted,
        original VOIDED, two audit rows) or none of them.

    Non-goals:
        - Does NOT call session.commit(); the SAVEPOINT is released into
          the caller's transaction.
        - Does NOT handle partial (line-level) reversals.
    """

    def __init__(
        self,
        session: Session,
        context: TenantContext,
        clock: Clock | None = None,
        cache: ReportCache | None = None,
        journal_writer: JournalWriter | None = None,
        auditor: AuditorService | None = None,
    ):
        super().__init__(session, context, clock)
        self._cache = cache
        self._writer = journal_writer or JournalWriter(session, context, self.clock, cache)
        self._auditor = auditor or AuditorService(session, context, self.clock)

    def _load_for_update(self, entry_id: UUID) -> JournalEntry:
        original = self.scope.scalars(
            self.scope.query(JournalEntry, entity_column=JournalEntry.entity_id)
            .where(JournalEntry.id == entry_id, JournalEntry.deleted_at.is_(None))
            .with_for_update()
        ).first()
        if original is None:
            logger.warning("void_entry_not_found", extra={"entry_id": str(entry_id)})
            raise JournalEntryNotFoundError(entry_id)

        reversal_count = self.scope.scalar(
            self.scope.query(
                func.count(JournalEntry.id), entity_column=JournalEntry.entity_id,
            ).where(JournalEntry.linked_entry_id == original.id)
        )
        if original.is_voided or reversal_count:
            logger.warning(
                "void_rejected_already_voided",
                extra={"entry_id": str(entry_id), "status": original.status},
            )
            raise AlreadyVoidedError(original.id)
        return original

    def void_entry(self, entry_id: UUID, reason: str) -> ReversalResult:
        """
        Void one POSTED entry.

        Steps (one SAVEPOINT):
            1. Re-fetch the entry under FOR UPDATE; refuse a second void.
            2. Post the reversing entry (same entity and date, sides swapped,
               memo "REVERSAL: <memo>", source ADJUSTMENT, linked back).
            3. Mark the original VOIDED with voided_at.
            4. Audit both records.

        Afterwards the entity's cached reports are invalidated.
        """
        with LogContext.bind(entry_id=str(entry_id)):
            logger.info("void_entry_started", extra={"reason": reason})

            with self.session.begin_nested():
                original = self._load_for_update(entry_id)
                now = self.clock.now()

                reversal = self._writer.create_entry(
                    entity_id=original.entity_id,
                    entry_date=original.date,
                    lines=[
                        LineSpec(
                            gl_account_id=line.gl_account_id,
                            debit_amount=line.credit_amount,
                            credit_amount=line.debit_amount,
                            memo=line.memo,
                            currency=line.currency,
                            exchange_rate=line.exchange_rate,
                            base_currency_debit=line.base_currency_credit,
                            base_currency_credit=line.base_currency_debit,
                        )
                        for line in original.lines
                        if line.deleted_at is None
                    ],
                    memo=f"{REVERSAL_MEMO_PREFIX}{original.memo or original.entry_number}",
                    source_type=JournalSourceType.ADJUSTMENT,
                    source_id=original.source_id,
                    linked_entry_id=original.id,
                )

                original.status = JournalEntryStatus.VOIDED.value
                original.voided_at = now
                original.updated_by_id = self.user_id
                self.session.flush()

                self._auditor.record(
                    "JournalEntry",
                    original.id,
                    AuditAction.UPDATE,
                    entity_id=original.entity_id,
                    before={"status": JournalEntryStatus.POSTED.value},
                    after={
                        "status": JournalEntryStatus.VOIDED.value,
                        "reversal_entry_id": str(reversal.id),
                    },
                    reason=reason,
                )
                self._auditor.record(
                    "JournalEntry",
                    reversal.id,
                    AuditAction.CREATE,
                    entity_id=original.entity_id,
                    after={
                        "entry_number": reversal.entry_number,
                        "linked_entry_id": str(original.id),
                    },
                    reason=reason,
                )

            if self._cache is not None:
                invalidate_entity_reports(self._cache, self.tenant_id, original.entity_id)

            logger.info(
                "entry_voided",
                extra={
                    "entity_id": str(original.entity_id),
                    "reversal_entry_id": str(reversal.id),
                    "reversal_entry_number": reversal.entry_number,
                },
            )
            return ReversalResult(
                original_entry_id=original.id,
                reversal_entry_id=reversal.id,
                reversal_entry_number=reversal.entry_number,
                entity_id=original.entity_id,
                voided_at=now,
            )

    def find_posted_entries(
        self, source_type: JournalSourceType, source_id: UUID,
    ) -> list[JournalEntry]:
        """POSTED, non-deleted entries produced by one source document."""
        return list(
            self.scope.scalars(
                self.scope.query(JournalEntry, entity_column=JournalEntry.entity_id)
                .where(
                    JournalEntry.source_type == JournalSourceType(source_type).value,
                    JournalEntry.source_id == source_id,
                    JournalEntry.status == JournalEntryStatus.POSTED.value,
                    JournalEntry.deleted_at.is_(None),
                )
                .order_by(JournalEntry.date, JournalEntry.entry_number)
            ).all()
        )
