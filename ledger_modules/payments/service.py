"""
Payments Module Service - payment recording and allocation.

Thin glue layer that:
1. Records AR (client) and AP (vendor) payments
2. Splits a payment across invoices or bills, enforcing direction and the
   unallocated-balance ceiling
3. Delegates paid_amount/status changes to the invoicing DocumentService
4. Reverses allocations on deallocation and payment deletion

Each multi-step operation runs in one SAVEPOINT: a rejected allocation
leaves neither a document change nor an allocation row behind.

Usage:
    payments = PaymentService(session, context, clock, cache)
    payment = payments.create_payment(PaymentInput(
        payment_date=date(2026, 1, 20), amount=50_000, client_id=client_id,
    ))
    payments.allocate(payment.id, 40_000, invoice_id=invoice_id)
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.context import TenantContext
from ledger_kernel.domain.money import require_positive_amount
from ledger_kernel.exceptions import (
    AllocationNotFoundError,
    AllocationTargetError,
    DocumentNotFoundError,
    InvalidCursorError,
    PartyNotFoundError,
    PaymentNotFoundError,
    PaymentPartyError,
    UnallocatedBalanceExceededError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.audit import AuditAction
from ledger_kernel.models.party import Party, PartyType
from ledger_kernel.selectors.entity_selector import EntitySelector
from ledger_kernel.services.auditor_service import AuditorService
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.report_cache import ReportCache, invalidate_entity_reports
from ledger_modules.invoicing.service import BillService, DocumentService, InvoiceService
from ledger_modules.payments.models import (
    AllocationInput,
    PaymentInput,
    PaymentMethod,
    PaymentPage,
)
from ledger_modules.payments.orm import PaymentAllocationModel, PaymentModel

logger = get_logger("modules.payments.service")

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


class PaymentService(BaseService):
    """
    Orchestrates payments and their allocations.

    Contract:
        - sum(allocation.amount) <= payment.amount after every operation.
        - An AR payment only allocates to invoices, an AP payment only to
          bills.
        - Payments, documents and allocations of other tenants are
          reported exactly like absent ones.

    Non-goals:
        - Does NOT post cash journal entries (document posting is a
          separate collaborator).
        - Does NOT call session.commit().
    """

    def __init__(
        self,
        session: Session,
        context: TenantContext,
        clock: Clock | None = None,
        cache: ReportCache | None = None,
        invoices: InvoiceService | None = None,
        bills: BillService | None = None,
    ):
        super().__init__(session, context, clock)
        self._cache = cache
        self._invoices = invoices or InvoiceService(session, context, self.clock, cache)
        self._bills = bills or BillService(session, context, self.clock, cache)
        self._auditor = AuditorService(session, context, self.clock)

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _get(self, payment_id: UUID, for_update: bool = False) -> PaymentModel:
        query = self.scope.query(PaymentModel, entity_column=PaymentModel.entity_id).where(
            PaymentModel.id == payment_id, PaymentModel.deleted_at.is_(None),
        )
        if for_update:
            query = query.with_for_update()
        payment = self.scope.scalars(query).first()
        if payment is None:
            logger.warning("payment_not_found", extra={"payment_id": str(payment_id)})
            raise PaymentNotFoundError(payment_id)
        return payment

    def _require_party(self, party_id: UUID, party_type: PartyType) -> Party:
        party = self.scope.scalars(
            self.scope.query(Party, entity_column=Party.entity_id).where(
                Party.id == party_id,
                Party.party_type == party_type.value,
                Party.deleted_at.is_(None),
            )
        ).first()
        if party is None:
            logger.warning("payment_party_not_found", extra={"party_id": str(party_id)})
            raise PartyNotFoundError(party_id, resource=party_type.value.capitalize())
        return party

    def _documents_for(self, payment: PaymentModel, invoice_id, bill_id) -> tuple[DocumentService, UUID]:
        if (invoice_id is None) == (bill_id is None):
            raise AllocationTargetError("Allocation must target exactly one of invoice or bill")
        if payment.client_id is not None and bill_id is not None:
            raise AllocationTargetError("AR payment (client) cannot be allocated to a bill")
        if payment.vendor_id is not None and invoice_id is not None:
            raise AllocationTargetError("AP payment (vendor) cannot be allocated to an invoice")
        if invoice_id is not None:
            return self._invoices, invoice_id
        return self._bills, bill_id

    def _service_for(self, allocation: PaymentAllocationModel) -> tuple[DocumentService, UUID]:
        if allocation.invoice_id is not None:
            return self._invoices, allocation.invoice_id
        return self._bills, allocation.bill_id

    def _allocate(
        self,
        payment: PaymentModel,
        amount: int,
        invoice_id: UUID | None,
        bill_id: UUID | None,
    ) -> PaymentAllocationModel:
        documents, document_id = self._documents_for(payment, invoice_id, bill_id)
        require_positive_amount(amount, field="amount")

        unallocated = payment.unallocated_amount
        if amount > unallocated:
            logger.warning(
                "allocation_exceeds_unallocated",
                extra={
                    "payment_id": str(payment.id),
                    "amount": amount,
                    "unallocated": unallocated,
                },
            )
            raise UnallocatedBalanceExceededError(payment.id, amount, unallocated)

        document = documents.get(document_id)
        if document.entity_id != payment.entity_id:
            raise DocumentNotFoundError(document_id, resource=documents.kind.label)
        documents.apply_payment(document_id, amount)

        allocation = PaymentAllocationModel(
            invoice_id=invoice_id,
            bill_id=bill_id,
            amount=amount,
            created_by_id=self.user_id,
        )
        payment.allocations.append(allocation)
        self.session.flush()

        logger.info(
            "payment_allocated",
            extra={
                "payment_id": str(payment.id),
                "allocation_id": str(allocation.id),
                "document_id": str(document_id),
                "amount": amount,
                "unallocated": payment.unallocated_amount,
            },
        )
        return allocation

    def _reverse(self, allocation: PaymentAllocationModel) -> None:
        documents, document_id = self._service_for(allocation)
        documents.reverse_payment(document_id, allocation.amount)

    def _invalidate(self, entity_id: UUID) -> None:
        if self._cache is not None:
            invalidate_entity_reports(self._cache, self.tenant_id, entity_id)

    # =========================================================================
    # Operations
    # =========================================================================

    def create_payment(self, data: PaymentInput) -> PaymentModel:
        """
        Record a payment and process any inline allocations.

        Raises:
            PaymentPartyError: not exactly one of client_id / vendor_id.
            PartyNotFoundError: party absent or in another tenant.
            InvalidAmountError: amount not a positive int.
            (plus every allocate() error for inline allocations)
        """
        if (data.client_id is None) == (data.vendor_id is None):
            raise PaymentPartyError()
        require_positive_amount(data.amount, field="amount")

        if data.client_id is not None:
            party = self._require_party(data.client_id, PartyType.CLIENT)
        else:
            party = self._require_party(data.vendor_id, PartyType.VENDOR)
        entity = EntitySelector(self.scope).get_entity(party.entity_id)

        logger.info(
            "payment_create_started",
            extra={
                "entity_id": str(entity.id),
                "amount": data.amount,
                "allocation_count": len(data.allocations),
            },
        )
        with self.session.begin_nested():
            payment = PaymentModel(
                entity_id=entity.id,
                client_id=data.client_id,
                vendor_id=data.vendor_id,
                payment_date=data.payment_date,
                amount=data.amount,
                currency=data.currency or entity.functional_currency,
                payment_method=PaymentMethod(data.payment_method).value,
                reference=data.reference,
                notes=data.notes,
                created_by_id=self.user_id,
            )
            self.session.add(payment)
            self.session.flush()
            for allocation in data.allocations:
                self._allocate(payment, allocation.amount, allocation.invoice_id, allocation.bill_id)

        self._invalidate(entity.id)
        logger.info(
            "payment_created",
            extra={"payment_id": str(payment.id), "direction": payment.direction.value},
        )
        return payment

    def allocate(
        self,
        payment_id: UUID,
        amount: int,
        invoice_id: UUID | None = None,
        bill_id: UUID | None = None,
    ) -> PaymentAllocationModel:
        """
        Apply part of a payment to one invoice or bill.

        Raises:
            AllocationTargetError: no target, both targets, or wrong direction.
            UnallocatedBalanceExceededError: amount > unallocated balance.
            OutstandingBalanceExceededError: amount > document outstanding.
            PaymentNotFoundError / DocumentNotFoundError.
        """
        with self.session.begin_nested():
            payment = self._get(payment_id, for_update=True)
            allocation = self._allocate(payment, amount, invoice_id, bill_id)
        self._invalidate(payment.entity_id)
        return allocation

    def allocate_many(self, payment_id: UUID, allocations: list[AllocationInput]) -> list[PaymentAllocationModel]:
        """Apply several allocations atomically."""
        with self.session.begin_nested():
            payment = self._get(payment_id, for_update=True)
            created = [
                self._allocate(payment, a.amount, a.invoice_id, a.bill_id) for a in allocations
            ]
        self._invalidate(payment.entity_id)
        return created

    def deallocate(self, payment_id: UUID, allocation_id: UUID) -> None:
        """
        Reverse one allocation on its document and delete the allocation row.

        Raises:
            AllocationNotFoundError: allocation absent or on another payment.
        """
        with self.session.begin_nested():
            payment = self._get(payment_id, for_update=True)
            allocation = next((a for a in payment.allocations if a.id == allocation_id), None)
            if allocation is None:
                logger.warning(
                    "allocation_not_found",
                    extra={"payment_id": str(payment_id), "allocation_id": str(allocation_id)},
                )
                raise AllocationNotFoundError(allocation_id)
            self._reverse(allocation)
            payment.allocations.remove(allocation)
            self.session.flush()

        self._invalidate(payment.entity_id)
        logger.info(
            "payment_deallocated",
            extra={
                "payment_id": str(payment.id),
                "allocation_id": str(allocation_id),
                "amount": allocation.amount,
            },
        )

    def delete_payment(self, payment_id: UUID) -> None:
        """Reverse every allocation, drop the allocation rows, soft-delete."""
        with self.session.begin_nested():
            payment = self._get(payment_id, for_update=True)
            reversed_total = 0
            for allocation in list(payment.allocations):
                self._reverse(allocation)
                reversed_total += allocation.amount
            payment.allocations.clear()
            payment.deleted_at = self.clock.now()
            payment.updated_by_id = self.user_id
            self.session.flush()
            self._auditor.record(
                "Payment",
                payment.id,
                AuditAction.DELETE,
                entity_id=payment.entity_id,
                before={"amount": payment.amount, "allocated": reversed_total},
            )

        self._invalidate(payment.entity_id)
        logger.info(
            "payment_deleted",
            extra={"payment_id": str(payment.id), "reversed_total": reversed_total},
        )

    def get_payment(self, payment_id: UUID) -> PaymentModel:
        return self._get(payment_id)

    def list_payments(
        self,
        entity_id: UUID | None = None,
        client_id: UUID | None = None,
        vendor_id: UUID | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        cursor: UUID | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> PaymentPage:
        """Page through non-deleted payments ordered by (payment_date, id)."""
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        query = self.scope.query(PaymentModel, entity_column=PaymentModel.entity_id).where(
            PaymentModel.deleted_at.is_(None),
        )
        if entity_id is not None:
            query = query.where(PaymentModel.entity_id == entity_id)
        if client_id is not None:
            query = query.where(PaymentModel.client_id == client_id)
        if vendor_id is not None:
            query = query.where(PaymentModel.vendor_id == vendor_id)
        if date_from is not None:
            query = query.where(PaymentModel.payment_date >= date_from)
        if date_to is not None:
            query = query.where(PaymentModel.payment_date <= date_to)

        if cursor is not None:
            anchor = self.scope.execute(
                self.scope.query(
                    PaymentModel.payment_date, PaymentModel.id,
                    entity_column=PaymentModel.entity_id,
                ).where(PaymentModel.id == cursor)
            ).first()
            if anchor is None:
                raise InvalidCursorError(cursor)
            query = query.where(
                (PaymentModel.payment_date > anchor.payment_date)
                | ((PaymentModel.payment_date == anchor.payment_date) & (PaymentModel.id > anchor.id))
            )

        items = tuple(
            self.scope.scalars(
                query.order_by(PaymentModel.payment_date, PaymentModel.id).limit(limit)
            ).all()
        )
        return PaymentPage(
            items=items,
            next_cursor=items[-1].id if len(items) == limit else None,
        )
