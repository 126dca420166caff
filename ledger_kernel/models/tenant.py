"""
Module: ledger_kernel.models.tenant
Responsibility: ORM persistence for the isolation root (Tenant), the business
    entities that post journals (Entity), and optional explicit fiscal-year
    records (FiscalCalendar).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Every Entity belongs to exactly one Tenant; every tenant-owned row in
      the system reaches its tenant through Entity.tenant_id.
    - fiscal_year_start is a calendar month (1-12).
    - At most one FiscalCalendar per (entity, year).

Audit relevance:
    Entity.functional_currency is the currency of every report; consolidation
    refuses to mix functional currencies.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import Base
from ledger_kernel.db.types import Currency


class Tenant(Base):
    """Root of isolation.  Owns one or more entities."""

    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    entities: Mapped[list["Entity"]] = relationship(back_populates="tenant")

    def __repr__(self) -> str:
        return f"<Tenant {self.name}>"


class Entity(Base):
    """
    A business entity with its own chart of accounts and journal.

    Guarantees:
        - functional_currency is an ISO 4217 code.
        - fiscal_year_start defaults to January.
    """

    __tablename__ = "entities"

    __table_args__ = (
        CheckConstraint(
            "fiscal_year_start BETWEEN 1 AND 12",
            name="ck_entities_fiscal_year_start",
        ),
        Index("idx_entities_tenant_id", "tenant_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(ForeignKey("tenants.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    functional_currency: Mapped[Currency] = mapped_column(nullable=False, default="USD")
    fiscal_year_start: Mapped[int] = mapped_column(nullable=False, default=1)

    tenant: Mapped[Tenant] = relationship(back_populates="entities")

    def __repr__(self) -> str:
        return f"<Entity {self.name} ({self.functional_currency})>"


class FiscalCalendar(Base):
    """
    Explicit fiscal-year boundaries for one entity and calendar year.

    end_date is the last day of the fiscal year (inclusive).
    """

    __tablename__ = "fiscal_calendars"

    __table_args__ = (
        UniqueConstraint("entity_id", "year", name="uq_fiscal_calendars_entity_year"),
    )

    entity_id: Mapped[UUID] = mapped_column(ForeignKey("entities.id"), nullable=False)
    year: Mapped[int] = mapped_column(nullable=False)
    start_date: Mapped[date] = mapped_column(nullable=False)
    end_date: Mapped[date] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<FiscalCalendar {self.year}: {self.start_date}..{self.end_date}>"
