"""
Invoicing Module Service - document lifecycle for invoices and bills.

Thin glue layer that:
1. Validates creation and edits (totals, counterparty, draft-only finance)
2. Drives status through the workflows in ``workflows.py``
3. Calls ReversalService to void the journal entries behind a document
4. Invalidates the entity's cached reports after every mutation

All state-machine arithmetic lives in ``workflows.py``.  All journal writes
live in the kernel.  This service flushes; the caller owns the commit.

Usage:
    invoices = InvoiceService(session, context, clock, cache)
    invoice = invoices.create(DocumentInput(...))
    invoices.send(invoice.id)
    invoices.apply_payment(invoice.id, 50_000)
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.context import TenantContext
from ledger_kernel.domain.money import (
    is_minor_units,
    narrow_to_safe_int,
    percentage_of,
    require_positive_amount,
)
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    DocumentNotEditableError,
    DocumentNotFoundError,
    DocumentTotalsError,
    IllegalTransitionError,
    InvalidAmountError,
    InvalidCursorError,
    PartyNotFoundError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import GLAccount
from ledger_kernel.models.audit import AuditAction
from ledger_kernel.models.party import Party
from ledger_kernel.selectors.entity_selector import EntitySelector
from ledger_kernel.services.auditor_service import AuditorService
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.report_cache import ReportCache, invalidate_entity_reports
from ledger_kernel.services.reversal_service import ReversalService
from ledger_modules.invoicing.models import (
    OPEN_STATUSES,
    AgingBucket,
    AgingSummary,
    DocumentInput,
    DocumentKind,
    DocumentLineInput,
    DocumentPage,
    DocumentStatus,
    DocumentUpdate,
)
from ledger_modules.invoicing.orm import DOCUMENT_MODELS, LINE_MODELS
from ledger_modules.invoicing.workflows import (
    WORKFLOWS,
    DocumentState,
    apply_payment,
    reverse_payment,
    transition,
)

logger = get_logger("modules.invoicing.service")

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200

AGING_BUCKETS = ("current", "1-30", "31-60", "60+")

_DELETABLE = (DocumentStatus.DRAFT, DocumentStatus.CANCELLED)


def _aging_bucket(days_overdue: int) -> str:
    if days_overdue <= 0:
        return "current"
    if days_overdue <= 30:
        return "1-30"
    if days_overdue <= 60:
        return "31-60"
    return "60+"


def _require_non_negative(value: object, field: str) -> int:
    if not is_minor_units(value) or value < 0:
        raise InvalidAmountError(field, value)
    return value


def _check_totals(
    kind: DocumentKind,
    subtotal: int,
    tax_amount: int,
    total: int,
    line_amounts: list[int],
    line_taxes: list[int],
) -> None:
    """subtotal == sum(lines); total == subtotal + tax; bills: tax == sum(line tax)."""
    _require_non_negative(subtotal, "subtotal")
    _require_non_negative(tax_amount, "tax_amount")
    require_positive_amount(total, field="total")
    for amount in line_amounts:
        _require_non_negative(amount, "line.amount")
    for tax in line_taxes:
        _require_non_negative(tax, "line.tax_amount")

    if subtotal != sum(line_amounts):
        raise DocumentTotalsError("subtotal", sum(line_amounts), subtotal)
    if total != subtotal + tax_amount:
        raise DocumentTotalsError("total", subtotal + tax_amount, total)
    if kind is DocumentKind.BILL and tax_amount != sum(line_taxes):
        raise DocumentTotalsError("tax_amount", sum(line_taxes), tax_amount)


class DocumentService(BaseService):
    """
    Lifecycle of one document kind.  Use InvoiceService or BillService.

    Contract:
        Every lookup is tenant-scoped; a document, party or account of
        another tenant is reported exactly like an absent one.

    Non-goals:
        - Does NOT post journal entries for new documents (document posting
          is a separate collaborator); it only reverses them on void.
        - Does NOT call session.commit().
    """

    kind: DocumentKind

    def __init__(
        self,
        session: Session,
        context: TenantContext,
        clock: Clock | None = None,
        cache: ReportCache | None = None,
        reversal: ReversalService | None = None,
    ):
        super().__init__(session, context, clock)
        self._cache = cache
        self._model = DOCUMENT_MODELS[self.kind]
        self._line_model = LINE_MODELS[self.kind]
        self._workflow = WORKFLOWS[self.kind]
        self._reversal = reversal or ReversalService(session, context, self.clock, cache)
        self._auditor = AuditorService(session, context, self.clock)
        self._prefix = self.kind.value.lower()

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _query(self, *columns):
        return self.scope.query(*(columns or (self._model,)), entity_column=self._model.entity_id)

    def _get(self, document_id: UUID, for_update: bool = False):
        query = self._query().where(
            self._model.id == document_id, self._model.deleted_at.is_(None),
        )
        if for_update:
            query = query.with_for_update()
        document = self.scope.scalars(query).first()
        if document is None:
            logger.warning(
                f"{self._prefix}_not_found", extra={"document_id": str(document_id)},
            )
            raise DocumentNotFoundError(document_id, resource=self.kind.label)
        return document

    def _require_party(self, entity_id: UUID, party_id: UUID) -> Party:
        party_type = self.kind.party_type
        party = self.scope.scalars(
            self.scope.query(Party, entity_column=Party.entity_id).where(
                Party.id == party_id,
                Party.entity_id == entity_id,
                Party.party_type == party_type.value,
                Party.deleted_at.is_(None),
            )
        ).first()
        if party is None:
            logger.warning(
                f"{self._prefix}_party_not_found", extra={"party_id": str(party_id)},
            )
            raise PartyNotFoundError(party_id, resource=party_type.value.capitalize())
        return party

    def _require_line_accounts(self, entity_id: UUID, lines) -> None:
        account_ids = {line.gl_account_id for line in lines if line.gl_account_id is not None}
        if not account_ids:
            return
        found = set(
            self.scope.scalars(
                self.scope.query(GLAccount.id, entity_column=GLAccount.entity_id).where(
                    GLAccount.entity_id == entity_id, GLAccount.id.in_(account_ids),
                )
            ).all()
        )
        missing = sorted(account_ids - found, key=str)
        if missing:
            raise AccountNotFoundError(missing[0])

    def _build_lines(self, lines: tuple[DocumentLineInput, ...]) -> list:
        return [
            self._line_model(
                line_seq=seq,
                description=line.description,
                quantity=line.quantity,
                unit_price=line.amount if line.unit_price is None else line.unit_price,
                amount=line.amount,
                tax_amount=line.tax_amount,
                gl_account_id=line.gl_account_id,
                created_by_id=self.user_id,
            )
            for seq, line in enumerate(lines, start=1)
        ]

    def _state(self, document) -> DocumentState:
        return DocumentState(
            status=DocumentStatus(document.status),
            total=document.total,
            paid_amount=document.paid_amount,
            document_id=document.id,
        )

    def _store(self, document, state: DocumentState) -> None:
        document.status = state.status.value
        document.paid_amount = state.paid_amount
        document.updated_by_id = self.user_id
        self.session.flush()

    def _invalidate(self, entity_id: UUID) -> None:
        if self._cache is not None:
            invalidate_entity_reports(self._cache, self.tenant_id, entity_id)

    # =========================================================================
    # Create / read
    # =========================================================================

    def create(self, data: DocumentInput):
        """
        Create a DRAFT (or directly SENT) document.

        Raises:
            EntityNotFoundError / PartyNotFoundError / AccountNotFoundError:
                reference absent or outside the tenant.
            DocumentTotalsError: totals disagree.
            InvalidAmountError: negative or non-int amounts.
            IllegalTransitionError: initial status other than DRAFT or SENT.
        """
        logger.info(
            f"{self._prefix}_create_started",
            extra={"entity_id": str(data.entity_id), "number": data.number},
        )
        entity = EntitySelector(self.scope).get_entity(data.entity_id)
        self._require_party(entity.id, data.party_id)

        status = DocumentStatus(data.status)
        if status not in (DocumentStatus.DRAFT, DocumentStatus.SENT):
            raise IllegalTransitionError(None, status.value, "create")

        _check_totals(
            self.kind,
            data.subtotal,
            data.tax_amount,
            data.total,
            [line.amount for line in data.lines],
            [line.tax_amount for line in data.lines],
        )
        self._require_line_accounts(entity.id, data.lines)

        document = self._model(
            entity_id=entity.id,
            number=data.number,
            issue_date=data.issue_date,
            due_date=data.due_date,
            currency=data.currency or entity.functional_currency,
            subtotal=data.subtotal,
            tax_amount=data.tax_amount,
            total=data.total,
            paid_amount=0,
            status=status.value,
            notes=data.notes,
            created_by_id=self.user_id,
        )
        document.party_id = data.party_id
        document.lines.extend(self._build_lines(data.lines))
        self.session.add(document)
        self.session.flush()
        self._invalidate(entity.id)

        logger.info(
            f"{self._prefix}_created",
            extra={
                "document_id": str(document.id),
                "entity_id": str(entity.id),
                "total": document.total,
                "status": document.status,
            },
        )
        return document

    def get(self, document_id: UUID):
        """Return a non-deleted document of this tenant, else DocumentNotFoundError."""
        return self._get(document_id)

    def list_documents(
        self,
        entity_id: UUID | None = None,
        status: DocumentStatus | None = None,
        party_id: UUID | None = None,
        cursor: UUID | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> DocumentPage:
        """
        Page through non-deleted documents ordered by (issue_date, id).

        ``next_cursor`` is the last id of a full page, else None.
        """
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        model = self._model
        query = self._query().where(model.deleted_at.is_(None))
        if entity_id is not None:
            query = query.where(model.entity_id == entity_id)
        if status is not None:
            query = query.where(model.status == DocumentStatus(status).value)
        if party_id is not None:
            party_column = model.client_id if self.kind is DocumentKind.INVOICE else model.vendor_id
            query = query.where(party_column == party_id)

        if cursor is not None:
            anchor = self.scope.execute(
                self._query(model.issue_date, model.id).where(model.id == cursor)
            ).first()
            if anchor is None:
                raise InvalidCursorError(cursor)
            query = query.where(
                (model.issue_date > anchor.issue_date)
                | ((model.issue_date == anchor.issue_date) & (model.id > anchor.id))
            )

        items = tuple(
            self.scope.scalars(query.order_by(model.issue_date, model.id).limit(limit)).all()
        )
        next_cursor = items[-1].id if len(items) == limit else None
        return DocumentPage(items=items, next_cursor=next_cursor)

    # =========================================================================
    # Edits and status transitions
    # =========================================================================

    def update(self, document_id: UUID, changes: DocumentUpdate):
        """
        Edit a document.  Financial fields only while DRAFT.

        Raises:
            DocumentNotEditableError: financial fields on a non-DRAFT document.
            DocumentTotalsError: resulting totals disagree.
        """
        document = self._get(document_id, for_update=True)
        financial = changes.financial_fields()
        if financial and DocumentStatus(document.status) is not DocumentStatus.DRAFT:
            logger.warning(
                f"{self._prefix}_edit_rejected",
                extra={
                    "document_id": str(document_id),
                    "status": document.status,
                    "fields": financial,
                },
            )
            raise DocumentNotEditableError(document.id, document.status, financial)

        if changes.party_id is not None:
            self._require_party(document.entity_id, changes.party_id)
        if changes.lines is not None:
            self._require_line_accounts(document.entity_id, changes.lines)
        if financial:
            lines = changes.lines if changes.lines is not None else document.lines
            _check_totals(
                self.kind,
                document.subtotal if changes.subtotal is None else changes.subtotal,
                document.tax_amount if changes.tax_amount is None else changes.tax_amount,
                document.total if changes.total is None else changes.total,
                [line.amount for line in lines],
                [line.tax_amount for line in lines],
            )

        with self.session.begin_nested():
            if changes.party_id is not None:
                document.party_id = changes.party_id
            for name in ("number", "notes", "due_date", "issue_date", "currency",
                         "subtotal", "tax_amount", "total"):
                value = getattr(changes, name)
                if value is not None:
                    setattr(document, name, value)
            if changes.lines is not None:
                document.lines.clear()
                self.session.flush()
                document.lines.extend(self._build_lines(changes.lines))
            document.updated_by_id = self.user_id
            self.session.flush()

        self._invalidate(document.entity_id)
        logger.info(
            f"{self._prefix}_updated",
            extra={"document_id": str(document.id), "fields": changes.changed_fields()},
        )
        return document

    def _transition(self, document_id: UUID, action: str):
        document = self._get(document_id, for_update=True)
        state = transition(self._workflow, self._state(document), action)
        self._store(document, state)
        self._invalidate(document.entity_id)
        logger.info(
            f"{self._prefix}_{action}",
            extra={"document_id": str(document.id), "status": document.status},
        )
        return document

    def cancel(self, document_id: UUID):
        """DRAFT/SENT -> CANCELLED."""
        return self._transition(document_id, "cancel")

    def apply_payment(self, document_id: UUID, amount: int):
        """
        Apply part of a payment: paid_amount += amount.

        Raises:
            InvalidAmountError: amount not a positive int.
            OutstandingBalanceExceededError: amount > outstanding.
            IllegalTransitionError: document not SENT/PARTIALLY_PAID.
        """
        document = self._get(document_id, for_update=True)
        state = apply_payment(self._workflow, self._state(document), amount)
        self._store(document, state)
        logger.info(
            f"{self._prefix}_payment_applied",
            extra={
                "document_id": str(document.id),
                "amount": amount,
                "paid_amount": document.paid_amount,
                "status": document.status,
            },
        )
        return document

    def reverse_payment(self, document_id: UUID, amount: int):
        """Undo part of a payment: paid_amount -= amount."""
        document = self._get(document_id, for_update=True)
        state = reverse_payment(self._workflow, self._state(document), amount)
        self._store(document, state)
        logger.info(
            f"{self._prefix}_payment_reversed",
            extra={
                "document_id": str(document.id),
                "amount": amount,
                "paid_amount": document.paid_amount,
                "status": document.status,
            },
        )
        return document

    def void(self, document_id: UUID, reason: str = "Document voided"):
        """
        Void a SENT, PARTIALLY_PAID or PAID document.

        Every POSTED journal entry sourced from the document is reversed
        and the document becomes VOIDED, all in one SAVEPOINT.  paid_amount
        is kept as history.
        """
        logger.info(f"{self._prefix}_void_started", extra={"document_id": str(document_id)})
        with self.session.begin_nested():
            document = self._get(document_id, for_update=True)
            before = self._state(document)
            state = transition(self._workflow, before, "void")

            with LogContext.bind(entity_id=document.entity_id):
                entries = self._reversal.find_posted_entries(self.kind.source_type, document.id)
                reversed_ids = [
                    str(self._reversal.void_entry(entry.id, reason).reversal_entry_id)
                    for entry in entries
                ]

            self._store(document, state)
            self._auditor.record(
                self.kind.label,
                document.id,
                AuditAction.UPDATE,
                entity_id=document.entity_id,
                before={"status": before.status.value},
                after={"status": state.status.value, "reversal_entry_ids": reversed_ids},
                reason=reason,
            )

        self._invalidate(document.entity_id)
        logger.info(
            f"{self._prefix}_voided",
            extra={
                "document_id": str(document.id),
                "reversed_entries": len(reversed_ids),
                "paid_amount": document.paid_amount,
            },
        )
        return document

    def soft_delete(self, document_id: UUID) -> None:
        """Mark a DRAFT or CANCELLED document deleted."""
        document = self._get(document_id, for_update=True)
        status = DocumentStatus(document.status)
        if status not in _DELETABLE:
            raise IllegalTransitionError(document.id, status.value, "delete")
        document.deleted_at = self.clock.now()
        document.updated_by_id = self.user_id
        self.session.flush()
        self._auditor.record(
            self.kind.label,
            document.id,
            AuditAction.DELETE,
            entity_id=document.entity_id,
            before={"status": status.value},
        )
        self._invalidate(document.entity_id)
        logger.info(f"{self._prefix}_deleted", extra={"document_id": str(document.id)})

    # =========================================================================
    # Aging
    # =========================================================================

    def aging_summary(self, as_of: date | None = None, entity_id: UUID | None = None) -> AgingSummary:
        """
        Outstanding balance of open documents bucketed by days past due.

        Buckets: current (due on or after as_of), 1-30, 31-60 and 60+ days
        overdue.  Percentages are integer shares of total outstanding.
        """
        as_of = as_of or self.clock.today()
        model = self._model
        query = self._query(model.total, model.paid_amount, model.due_date).where(
            model.deleted_at.is_(None),
            model.status.in_([s.value for s in OPEN_STATUSES]),
        )
        if entity_id is not None:
            query = query.where(model.entity_id == entity_id)

        amounts = dict.fromkeys(AGING_BUCKETS, 0)
        for row in self.scope.execute(query):
            amounts[_aging_bucket((as_of - row.due_date).days)] += row.total - row.paid_amount

        outstanding = narrow_to_safe_int(sum(amounts.values()), field="outstanding")
        summary = AgingSummary(
            kind=self.kind,
            as_of=as_of,
            outstanding=outstanding,
            overdue=outstanding - amounts["current"],
            buckets=tuple(
                AgingBucket(
                    label=label,
                    amount=amounts[label],
                    percentage=percentage_of(amounts[label], outstanding),
                )
                for label in AGING_BUCKETS
            ),
        )
        logger.info(
            f"{self._prefix}_aging_completed",
            extra={"as_of": as_of.isoformat(), "outstanding": outstanding},
        )
        return summary


class InvoiceService(DocumentService):
    """Receivables: invoices issued to clients."""

    kind = DocumentKind.INVOICE

    def send(self, document_id: UUID):
        """DRAFT -> SENT."""
        return self._transition(document_id, "send")


class BillService(DocumentService):
    """Payables: bills received from vendors."""

    kind = DocumentKind.BILL

    def approve(self, document_id: UUID):
        """DRAFT -> SENT."""
        return self._transition(document_id, "approve")


def document_service_for(
    kind: DocumentKind,
    session: Session,
    context: TenantContext,
    clock: Clock | None = None,
    cache: ReportCache | None = None,
) -> DocumentService:
    service_class = InvoiceService if DocumentKind(kind) is DocumentKind.INVOICE else BillService
    return service_class(session, context, clock, cache)
