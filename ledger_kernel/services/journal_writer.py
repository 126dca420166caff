"""
JournalWriter -- the write path of the Journal Store.

Responsibility:
    Validates and persists balanced journal entries for one entity, and
    assigns the per-entity entry number ("JE-001", "JE-002", ...).

Architecture position:
    Kernel > Services -- imperative shell.  Called by the reversal service
    and by document-posting collaborators.

Invariants enforced:
    - Double entry: sum(debit_amount) == sum(credit_amount) per entry.
    - Each line carries a positive amount on exactly one side, in integer
      minor units.
    - Every referenced GL account belongs to the entry's entity.
    - The entity is owned by the calling tenant (NOT_FOUND otherwise).

Failure modes:
    - UnbalancedEntryError: debits != credits, or no lines at all.
    - InvalidJournalLineError: both sides set, no side set, or a negative,
      fractional or non-int amount.
    - AccountNotFoundError: account absent, inactive, or in another entity.
    - EntityNotFoundError: entity absent or owned by another tenant.

Cache:
    When constructed with a ReportCache, every posted entry invalidates the
    entity's cached reports (and the consolidated ones) after the flush.

Audit relevance:
    Posted lines are never edited afterwards.  The only later change to an
    entry is the status flip performed by ReversalService.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.context import TenantContext
from ledger_kernel.domain.money import is_minor_units
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    InvalidJournalLineError,
    UnbalancedEntryError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import GLAccount
from ledger_kernel.models.journal import (
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
    JournalSourceType,
)
from ledger_kernel.selectors.entity_selector import EntitySelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.report_cache import ReportCache, invalidate_entity_reports

logger = get_logger("services.journal_writer")

ENTRY_NUMBER_FORMAT = "JE-{:03d}"


@dataclass(frozen=True)
class LineSpec:
    """
    One line to be written.

    base_currency_debit/credit default to debit_amount/credit_amount
    (exchange rate 1, functional currency).
    """

    gl_account_id: UUID
    debit_amount: int = 0
    credit_amount: int = 0
    memo: str | None = None
    currency: str | None = None
    exchange_rate: Decimal = Decimal("1")
    base_currency_debit: int | None = None
    base_currency_credit: int | None = None


def _validate_line(seq: int, spec: LineSpec) -> None:
    for field_name in ("debit_amount", "credit_amount"):
        value = getattr(spec, field_name)
        if not is_minor_units(value):
            raise InvalidJournalLineError(seq, f"{field_name} must be an int, got {value!r}")
        if value < 0:
            raise InvalidJournalLineError(seq, f"{field_name} is negative")
    if spec.debit_amount > 0 and spec.credit_amount > 0:
        raise InvalidJournalLineError(seq, "line has both a debit and a credit")
    if spec.debit_amount == 0 and spec.credit_amount == 0:
        raise InvalidJournalLineError(seq, "line has neither a debit nor a credit")


class JournalWriter(BaseService):
    """
    Writes POSTED journal entries.

    Non-goals:
        - Does NOT call session.commit().
    """

    def __init__(
        self,
        session: Session,
        context: TenantContext,
        clock: Clock | None = None,
        cache: ReportCache | None = None,
    ):
        super().__init__(session, context, clock)
        self._cache = cache

    def next_entry_number(self, entity_id: UUID) -> str:
        count = self.scope.scalar(
            self.scope.query(
                func.count(JournalEntry.id), entity_column=JournalEntry.entity_id,
            ).where(JournalEntry.entity_id == entity_id)
        )
        return ENTRY_NUMBER_FORMAT.format((count or 0) + 1)

    def _require_accounts(self, entity_id: UUID, account_ids: set[UUID]) -> None:
        found = set(
            self.scope.scalars(
                self.scope.query(GLAccount.id, entity_column=GLAccount.entity_id).where(
                    GLAccount.entity_id == entity_id,
                    GLAccount.id.in_(account_ids),
                    GLAccount.is_active.is_(True),
                )
            ).all()
        )
        missing = account_ids - found
        if missing:
            missing_id = sorted(missing, key=str)[0]
            logger.warning(
                "journal_account_rejected",
                extra={"entity_id": str(entity_id), "gl_account_id": str(missing_id)},
            )
            raise AccountNotFoundError(missing_id)

    def create_entry(
        self,
        entity_id: UUID,
        entry_date: date,
        lines: list[LineSpec],
        memo: str | None = None,
        source_type: JournalSourceType = JournalSourceType.MANUAL,
        source_id: UUID | None = None,
        linked_entry_id: UUID | None = None,
    ) -> JournalEntry:
        """
        Validate and persist one balanced, POSTED journal entry.

        Args:
            entity_id: Owning entity (must belong to the calling tenant).
            entry_date: Accounting date of the entry.
            lines: At least one LineSpec; debits must equal credits.
            memo: Entry-level memo.
            source_type: What produced the entry.
            source_id: Id of the producing document or payment.
            linked_entry_id: Set only on reversing entries.

        Returns:
            The flushed JournalEntry with its lines.
        """
        entity = EntitySelector(self.scope).get_entity(entity_id)

        for seq, spec in enumerate(lines, start=1):
            _validate_line(seq, spec)
        debits = sum(spec.debit_amount for spec in lines)
        credits = sum(spec.credit_amount for spec in lines)
        if not lines or debits != credits:
            logger.warning(
                "journal_entry_unbalanced",
                extra={"entity_id": str(entity_id), "debits": debits, "credits": credits},
            )
            raise UnbalancedEntryError(debits, credits)

        self._require_accounts(entity.id, {spec.gl_account_id for spec in lines})

        entry = JournalEntry(
            entity_id=entity.id,
            entry_number=self.next_entry_number(entity.id),
            date=entry_date,
            memo=memo,
            source_type=JournalSourceType(source_type).value,
            source_id=source_id,
            status=JournalEntryStatus.POSTED.value,
            linked_entry_id=linked_entry_id,
            created_by_id=self.user_id,
        )
        for seq, spec in enumerate(lines, start=1):
            entry.lines.append(
                JournalLine(
                    gl_account_id=spec.gl_account_id,
                    line_seq=seq,
                    debit_amount=spec.debit_amount,
                    credit_amount=spec.credit_amount,
                    currency=spec.currency or entity.functional_currency,
                    exchange_rate=spec.exchange_rate,
                    base_currency_debit=(
                        spec.debit_amount if spec.base_currency_debit is None
                        else spec.base_currency_debit
                    ),
                    base_currency_credit=(
                        spec.credit_amount if spec.base_currency_credit is None
                        else spec.base_currency_credit
                    ),
                    memo=spec.memo,
                    created_by_id=self.user_id,
                )
            )
        self.session.add(entry)
        self.session.flush()
        if self._cache is not None:
            invalidate_entity_reports(self._cache, self.tenant_id, entity.id)

        logger.info(
            "journal_entry_posted",
            extra={
                "entity_id": str(entity.id),
                "entry_id": str(entry.id),
                "entry_number": entry.entry_number,
                "line_count": len(lines),
                "total": debits,
                "source_type": entry.source_type,
            },
        )
        return entry
