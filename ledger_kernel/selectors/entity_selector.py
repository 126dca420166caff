"""
Module: ledger_kernel.selectors.entity_selector
Responsibility: Resolves the entity scope of a report or mutation: ownership
    checks for a single entity, tenant-wide consolidation with the
    functional-currency check, and fiscal-year resolution per entity.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - An entity id that is absent or owned by another tenant raises the same
      EntityNotFoundError.
    - Consolidation over zero entities raises NoEntitiesFoundError; over
      entities with different functional currencies raises
      ConsolidationCurrencyMismatchError.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from ledger_kernel.domain.periods import FiscalYear, resolve_fiscal_year
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    ConsolidationCurrencyMismatchError,
    EntityNotFoundError,
    NoEntitiesFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import GLAccount
from ledger_kernel.models.tenant import Entity, FiscalCalendar
from ledger_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.entity")


@dataclass(frozen=True)
class EntityScope:
    """The resolved set of entities a report aggregates over."""

    entity_ids: tuple[UUID, ...]
    entity_id: UUID | None
    entity_name: str
    currency: str
    fiscal_year_start_months: dict[UUID, int]

    @property
    def is_consolidated(self) -> bool:
        return self.entity_id is None


class EntitySelector(BaseSelector):
    """Entity ownership and consolidation lookups."""

    def get_entity(self, entity_id: UUID) -> Entity:
        """Return the tenant's entity or raise EntityNotFoundError."""
        entity = self.scope.scalars(
            self.scope.query(Entity, entity_column=Entity.id).where(Entity.id == entity_id)
        ).first()
        if entity is None:
            logger.warning("entity_not_found", extra={"entity_id": str(entity_id)})
            raise EntityNotFoundError(entity_id)
        return entity

    def list_entities(self) -> list[Entity]:
        return list(
            self.scope.scalars(
                self.scope.query(Entity, entity_column=Entity.id).order_by(Entity.name, Entity.id)
            ).all()
        )

    def get_account(self, entity_id: UUID, gl_account_id: UUID) -> GLAccount:
        """Return a GL account belonging to ``entity_id`` in this tenant."""
        account = self.scope.scalars(
            self.scope.query(GLAccount, entity_column=GLAccount.entity_id).where(
                GLAccount.id == gl_account_id,
                GLAccount.entity_id == entity_id,
            )
        ).first()
        if account is None:
            raise AccountNotFoundError(gl_account_id)
        return account

    def resolve_scope(self, entity_id: UUID | None, consolidated_label: str) -> EntityScope:
        """
        Resolve a single entity, or every entity of the tenant.

        Raises:
            EntityNotFoundError: entity_id given but not owned by the tenant.
            NoEntitiesFoundError: consolidation over a tenant with no entities.
            ConsolidationCurrencyMismatchError: mixed functional currencies.
        """
        if entity_id is not None:
            entity = self.get_entity(entity_id)
            return EntityScope(
                entity_ids=(entity.id,),
                entity_id=entity.id,
                entity_name=entity.name,
                currency=entity.functional_currency,
                fiscal_year_start_months={entity.id: entity.fiscal_year_start},
            )

        entities = self.list_entities()
        if not entities:
            logger.warning("consolidation_no_entities", extra={"tenant_id": str(self.tenant_id)})
            raise NoEntitiesFoundError(self.tenant_id)

        currencies = {e.functional_currency for e in entities}
        if len(currencies) > 1:
            logger.warning(
                "consolidation_currency_mismatch",
                extra={"currencies": sorted(currencies)},
            )
            raise ConsolidationCurrencyMismatchError(list(currencies))

        return EntityScope(
            entity_ids=tuple(e.id for e in entities),
            entity_id=None,
            entity_name=consolidated_label,
            currency=entities[0].functional_currency,
            fiscal_year_start_months={e.id: e.fiscal_year_start for e in entities},
        )

    def fiscal_year(self, entity_id: UUID, fiscal_year_start_month: int, as_of: date) -> FiscalYear:
        """Fiscal year containing ``as_of``; an explicit calendar record wins."""
        record = self.scope.scalars(
            self.scope.query(FiscalCalendar, entity_column=FiscalCalendar.entity_id).where(
                FiscalCalendar.entity_id == entity_id,
                FiscalCalendar.year == as_of.year,
            )
        ).first()
        calendar = (record.start_date, record.end_date) if record is not None else None
        return resolve_fiscal_year(as_of, fiscal_year_start_month, calendar)
