"""
Invoicing Workflows.

State machines for invoices and bills, plus the pure payment-application
arithmetic that drives them.  Nothing here touches the database:
``DocumentService`` loads a row, calls into this module and writes the
resulting state back.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from uuid import UUID

from ledger_kernel.domain.money import require_positive_amount
from ledger_kernel.exceptions import (
    IllegalTransitionError,
    OutstandingBalanceExceededError,
    PaidAmountUnderflowError,
)
from ledger_kernel.logging_config import get_logger
from ledger_modules.invoicing.models import DocumentKind, DocumentStatus

logger = get_logger("modules.invoicing.workflows")


@dataclass(frozen=True)
class Guard:
    """A condition for a transition."""
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""
    from_state: DocumentStatus
    to_state: DocumentStatus
    action: str
    guard: Guard | None = None
    reverses_entries: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""
    name: str
    description: str
    initial_state: DocumentStatus
    states: tuple[DocumentStatus, ...]
    transitions: tuple[Transition, ...]

    def find(
        self,
        from_state: DocumentStatus | str,
        action: str,
        to_state: DocumentStatus | None = None,
    ) -> Transition | None:
        from_state = DocumentStatus(from_state)
        for t in self.transitions:
            if t.from_state is from_state and t.action == action:
                if to_state is None or t.to_state is to_state:
                    return t
        return None

    def actions_from(self, from_state: DocumentStatus | str) -> tuple[str, ...]:
        from_state = DocumentStatus(from_state)
        return tuple(sorted({t.action for t in self.transitions if t.from_state is from_state}))


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

BALANCE_ZERO = Guard(
    name="balance_zero",
    description="paid_amount equals total",
)

NOTHING_PAID = Guard(
    name="nothing_paid",
    description="paid_amount is zero after the reversal",
)


# -----------------------------------------------------------------------------
# Document workflows
# -----------------------------------------------------------------------------

D = DocumentStatus


def _lifecycle(issue_action: str) -> tuple[Transition, ...]:
    return (
        Transition(D.DRAFT, D.SENT, action=issue_action),
        Transition(D.DRAFT, D.CANCELLED, action="cancel"),
        Transition(D.SENT, D.CANCELLED, action="cancel"),
        Transition(D.SENT, D.PARTIALLY_PAID, action="apply_payment"),
        Transition(D.SENT, D.PAID, action="apply_payment", guard=BALANCE_ZERO),
        Transition(D.PARTIALLY_PAID, D.PARTIALLY_PAID, action="apply_payment"),
        Transition(D.PARTIALLY_PAID, D.PAID, action="apply_payment", guard=BALANCE_ZERO),
        Transition(D.PAID, D.PARTIALLY_PAID, action="reverse_payment"),
        Transition(D.PAID, D.SENT, action="reverse_payment", guard=NOTHING_PAID),
        Transition(D.PARTIALLY_PAID, D.PARTIALLY_PAID, action="reverse_payment"),
        Transition(D.PARTIALLY_PAID, D.SENT, action="reverse_payment", guard=NOTHING_PAID),
        # paid_amount stays as history on a voided document; a later payment
        # deletion still has to unwind it
        Transition(D.VOIDED, D.VOIDED, action="reverse_payment"),
        Transition(D.SENT, D.VOIDED, action="void", reverses_entries=True),
        Transition(D.PARTIALLY_PAID, D.VOIDED, action="void", reverses_entries=True),
        Transition(D.PAID, D.VOIDED, action="void", reverses_entries=True),
    )


INVOICE_WORKFLOW = Workflow(
    name="invoice",
    description="Customer invoice lifecycle",
    initial_state=D.DRAFT,
    states=tuple(DocumentStatus),
    transitions=_lifecycle("send"),
)

BILL_WORKFLOW = Workflow(
    name="bill",
    description="Vendor bill lifecycle",
    initial_state=D.DRAFT,
    states=tuple(DocumentStatus),
    transitions=_lifecycle("approve"),
)

WORKFLOWS: dict[DocumentKind, Workflow] = {
    DocumentKind.INVOICE: INVOICE_WORKFLOW,
    DocumentKind.BILL: BILL_WORKFLOW,
}

logger.info(
    "invoicing_workflows_registered",
    extra={
        "workflows": [w.name for w in WORKFLOWS.values()],
        "transition_count": len(INVOICE_WORKFLOW.transitions),
    },
)


# -----------------------------------------------------------------------------
# Pure state transitions
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class DocumentState:
    """The part of a document the payment state machine reads and writes."""

    status: DocumentStatus
    total: int
    paid_amount: int
    document_id: UUID | None = None

    @property
    def outstanding(self) -> int:
        return self.total - self.paid_amount


def require_transition(
    workflow: Workflow,
    state: DocumentState,
    action: str,
    to_state: DocumentStatus | None = None,
) -> Transition:
    """Return the matching transition or raise IllegalTransitionError."""
    transition = workflow.find(state.status, action, to_state)
    if transition is None:
        logger.warning(
            "illegal_transition",
            extra={
                "workflow": workflow.name,
                "from_state": DocumentStatus(state.status).value,
                "action": action,
                "document_id": str(state.document_id),
            },
        )
        raise IllegalTransitionError(
            state.document_id, DocumentStatus(state.status).value, action,
        )
    return transition


def transition(workflow: Workflow, state: DocumentState, action: str) -> DocumentState:
    """Apply a single-target action (send, approve, cancel, void)."""
    t = require_transition(workflow, state, action)
    return replace(state, status=t.to_state)


def apply_payment(workflow: Workflow, state: DocumentState, amount: int) -> DocumentState:
    """
    Apply ``amount`` of a payment to a document.

    Raises:
        InvalidAmountError: amount is not a positive int.
        IllegalTransitionError: document is not SENT or PARTIALLY_PAID.
        OutstandingBalanceExceededError: amount > total - paid_amount.
    """
    require_positive_amount(amount, field="amount")
    require_transition(workflow, state, "apply_payment")
    if amount > state.outstanding:
        logger.warning(
            "payment_exceeds_outstanding",
            extra={
                "document_id": str(state.document_id),
                "amount": amount,
                "outstanding": state.outstanding,
            },
        )
        raise OutstandingBalanceExceededError(state.document_id, amount, state.outstanding)

    paid = state.paid_amount + amount
    to_state = D.PAID if paid == state.total else D.PARTIALLY_PAID
    require_transition(workflow, state, "apply_payment", to_state)
    return replace(state, paid_amount=paid, status=to_state)


def reverse_payment(workflow: Workflow, state: DocumentState, amount: int) -> DocumentState:
    """
    Undo ``amount`` of previously applied payment.

    A VOIDED document keeps its status; others fall back to SENT when
    nothing remains paid, else PARTIALLY_PAID.

    Raises:
        InvalidAmountError: amount is not a positive int.
        IllegalTransitionError: nothing can have been paid in this status.
        PaidAmountUnderflowError: amount > paid_amount.
    """
    require_positive_amount(amount, field="amount")
    require_transition(workflow, state, "reverse_payment")
    if amount > state.paid_amount:
        raise PaidAmountUnderflowError(state.document_id, amount, state.paid_amount)

    paid = state.paid_amount - amount
    if state.status is D.VOIDED:
        to_state = D.VOIDED
    elif paid == 0:
        to_state = D.SENT
    else:
        to_state = D.PARTIALLY_PAID
    require_transition(workflow, state, "reverse_payment", to_state)
    return replace(state, paid_amount=paid, status=to_state)
