"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for journal entries and their lines -- the
    Journal Store that every statement aggregates.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Status is POSTED or VOIDED.  Only POSTED entries with non-deleted
      lines participate in aggregation.
    - Existing lines are never edited.  A void flips the entry status and
      appends a reversing entry whose linked_entry_id points at the original.
    - Each line carries integer minor units on exactly one side
      (enforced by JournalWriter before insert).

Failure modes:
    - IntegrityError on a duplicate (entity_id, entry_number).

Audit relevance:
    linked_entry_id is the canonical reversal link; its presence is what
    the void protocol checks to refuse a second void.  source_type/source_id
    tie an entry to the invoice, bill or payment that produced it.
"""

import datetime as dt
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.db.types import Currency, LongText, MinorUnits, Rate, ShortCode


class JournalEntryStatus(str, Enum):
    POSTED = "POSTED"
    VOIDED = "VOIDED"


class JournalSourceType(str, Enum):
    """What produced a journal entry."""

    INVOICE = "INVOICE"
    BILL = "BILL"
    PAYMENT = "PAYMENT"
    MANUAL = "MANUAL"
    ADJUSTMENT = "ADJUSTMENT"


class JournalEntry(TrackedBase):
    """
    A balanced set of journal lines posted for one entity.

    Guarantees:
        - entry_number is unique per entity ("JE-001", "JE-002", ...).
        - linked_entry_id is set only on reversing entries.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        UniqueConstraint("entity_id", "entry_number", name="uq_journal_entries_number"),
        Index("idx_journal_entries_entity_date", "entity_id", "date"),
        Index("idx_journal_entries_source", "source_type", "source_id"),
        Index("idx_journal_entries_linked", "linked_entry_id"),
    )

    entity_id: Mapped[UUID] = mapped_column(ForeignKey("entities.id"), nullable=False)

    entry_number: Mapped[ShortCode] = mapped_column(nullable=False)

    date: Mapped[dt.date] = mapped_column(nullable=False)

    memo: Mapped[LongText | None] = mapped_column(nullable=True)

    source_type: Mapped[str | None] = mapped_column(String(20), nullable=True)

    source_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    status: Mapped[JournalEntryStatus] = mapped_column(
        String(10),
        default=JournalEntryStatus.POSTED.value,
        nullable=False,
    )

    # Reversing entries point at the entry they reverse
    linked_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    voided_at: Mapped[datetime | None] = mapped_column(nullable=True)

    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="JournalLine.line_seq",
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.entry_number} {self.status}>"

    @property
    def is_posted(self) -> bool:
        return self.status == JournalEntryStatus.POSTED

    @property
    def is_voided(self) -> bool:
        return self.status == JournalEntryStatus.VOIDED

    @property
    def total_debits(self) -> int:
        return sum(line.debit_amount for line in self.lines)

    @property
    def total_credits(self) -> int:
        return sum(line.credit_amount for line in self.lines)


class JournalLine(TrackedBase):
    """
    One debit or credit against a GL account.

    debit_amount/credit_amount are in the transaction currency;
    base_currency_debit/base_currency_credit are the entity's functional
    currency equivalents at exchange_rate.
    """

    __tablename__ = "journal_lines"

    __table_args__ = (
        Index("idx_journal_lines_entry", "journal_entry_id"),
        Index("idx_journal_lines_account", "gl_account_id"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        ForeignKey("journal_entries.id"), nullable=False
    )

    gl_account_id: Mapped[UUID] = mapped_column(
        ForeignKey("gl_accounts.id"), nullable=False
    )

    line_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    debit_amount: Mapped[MinorUnits] = mapped_column(nullable=False, default=0)

    credit_amount: Mapped[MinorUnits] = mapped_column(nullable=False, default=0)

    currency: Mapped[Currency] = mapped_column(nullable=False, default="USD")

    exchange_rate: Mapped[Rate] = mapped_column(nullable=False, default=Decimal("1"))

    base_currency_debit: Mapped[MinorUnits] = mapped_column(nullable=False, default=0)

    base_currency_credit: Mapped[MinorUnits] = mapped_column(nullable=False, default=0)

    memo: Mapped[LongText | None] = mapped_column(nullable=True)

    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    entry: Mapped[JournalEntry] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        return f"<JournalLine {self.line_seq} Dr {self.debit_amount} Cr {self.credit_amount}>"
