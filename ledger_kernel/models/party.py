"""
Module: ledger_kernel.models.party
Responsibility: ORM persistence for the counterparties an entity transacts
    with: clients (invoiced, AR) and vendors (billed, AP).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Each Party belongs to one entity and has exactly one PartyType.
    - Invoices and AR payments reference CLIENT parties; bills and AP
      payments reference VENDOR parties (checked by the module services).

Audit relevance:
    Party is the counterparty identity for every document and payment.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase


class PartyType(str, Enum):
    """Which side of the ledger a counterparty sits on."""

    CLIENT = "CLIENT"
    VENDOR = "VENDOR"


class Party(TrackedBase):
    """A client or vendor of one entity."""

    __tablename__ = "parties"

    __table_args__ = (
        Index("idx_parties_entity_type", "entity_id", "party_type"),
    )

    entity_id: Mapped[UUID] = mapped_column(ForeignKey("entities.id"), nullable=False)
    party_type: Mapped[PartyType] = mapped_column(String(10), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<Party {self.party_type} {self.name}>"
