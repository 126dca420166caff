"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the transport layer, job handlers) must react to a failure by its
type and machine code, never by parsing a message:

    try:
        payments.allocate(payment_id, amount=20_000, invoice_id=invoice_id)
    except UnallocatedBalanceExceededError as e:
        return {"error": e.code, "unallocated": e.unallocated}

Every exception carries:
  1. ``code`` -- a specific, API-safe machine code (class attribute)
  2. ``kind`` -- one of the five-plus-one ``ErrorKind`` categories that
     callers map to a response class (404 / 400 / 500)
  3. structured attributes, exposed together as ``details``

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerError (base)
    |
    +-- NotFoundError                      kind NOT_FOUND
    |   +-- EntityNotFoundError
    |   +-- AccountNotFoundError
    |   +-- PartyNotFoundError
    |   +-- DocumentNotFoundError
    |   +-- PaymentNotFoundError
    |   +-- AllocationNotFoundError
    |   +-- JournalEntryNotFoundError
    |   +-- NoEntitiesFoundError
    |
    +-- ValidationError                    kind VALIDATION
    |   +-- InvalidAmountError
    |   +-- DocumentTotalsError
    |   +-- UnbalancedEntryError
    |   +-- InvalidJournalLineError
    |   +-- InvalidNormalBalanceError
    |   +-- AllocationTargetError
    |   +-- PaymentPartyError
    |   +-- InvalidCursorError
    |   +-- InvalidDateRangeError
    |
    +-- ConflictError                      kind CONFLICT
    |   +-- OutstandingBalanceExceededError
    |   +-- UnallocatedBalanceExceededError
    |   +-- PaidAmountUnderflowError
    |   +-- IllegalTransitionError
    |   +-- DocumentNotEditableError
    |   +-- AlreadyVoidedError
    |
    +-- AmountOverflowError                kind OVERFLOW
    +-- ConsolidationCurrencyMismatchError kind CONSOLIDATION_CURRENCY_MISMATCH
    +-- TenantScopeViolationError          kind INTERNAL

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Cross-tenant references raise exactly the same ``NotFoundError`` (same
   message, same details) as absent ones, so existence never leaks across
   tenants.

2. None of these errors are transient. Nothing in the kernel retries.

3. ``TenantScopeViolationError`` is a programming error: a query reached
   execution without going through ``TenantScope``. It is raised before any
   SQL is sent.

===============================================================================
"""

from __future__ import annotations

from enum import Enum
from typing import Any
from uuid import UUID


class ErrorKind(str, Enum):
    """Error taxonomy exposed to callers."""

    NOT_FOUND = "NOT_FOUND"
    VALIDATION = "VALIDATION"
    CONFLICT = "CONFLICT"
    OVERFLOW = "OVERFLOW"
    CONSOLIDATION_CURRENCY_MISMATCH = "CONSOLIDATION_CURRENCY_MISMATCH"
    INTERNAL = "INTERNAL"


_HTTP_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 400,
    ErrorKind.OVERFLOW: 500,
    ErrorKind.CONSOLIDATION_CURRENCY_MISMATCH: 400,
    ErrorKind.INTERNAL: 500,
}


class LedgerError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses define ``code`` and ``kind`` class attributes.
    """

    code: str = "LEDGER_ERROR"
    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    @property
    def details(self) -> dict[str, Any]:
        """Structured attributes of this error (everything but the message)."""
        result: dict[str, Any] = {}
        for key, value in vars(self).items():
            if key.startswith("_") or key == "message":
                continue
            result[key] = str(value) if isinstance(value, UUID) else value
        return result

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS_BY_KIND[self.kind]

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "kind": self.kind.value,
            "code": self.code,
            "message": self.message,
        }
        details = self.details
        if details:
            payload["details"] = details
        return payload


# =============================================================================
# NOT_FOUND
# =============================================================================


class NotFoundError(LedgerError):
    """A referenced record is absent or belongs to another tenant."""

    code: str = "NOT_FOUND"
    kind: ErrorKind = ErrorKind.NOT_FOUND
    resource: str = "Record"

    def __init__(self, resource_id: UUID | str | None = None):
        self.resource_id = resource_id
        super().__init__(f"{self.resource} not found")


class EntityNotFoundError(NotFoundError):
    code: str = "ENTITY_NOT_FOUND"
    resource = "Entity"


class AccountNotFoundError(NotFoundError):
    code: str = "ACCOUNT_NOT_FOUND"
    resource = "GL account"


class PartyNotFoundError(NotFoundError):
    code: str = "PARTY_NOT_FOUND"
    resource = "Party"

    def __init__(self, resource_id: UUID | str | None = None, resource: str | None = None):
        if resource is not None:
            self.resource = resource
        super().__init__(resource_id)


class DocumentNotFoundError(NotFoundError):
    code: str = "DOCUMENT_NOT_FOUND"
    resource = "Document"

    def __init__(self, resource_id: UUID | str | None = None, resource: str | None = None):
        if resource is not None:
            self.resource = resource
        super().__init__(resource_id)


class PaymentNotFoundError(NotFoundError):
    code: str = "PAYMENT_NOT_FOUND"
    resource = "Payment"


class AllocationNotFoundError(NotFoundError):
    code: str = "ALLOCATION_NOT_FOUND"
    resource = "Payment allocation"


class JournalEntryNotFoundError(NotFoundError):
    code: str = "JOURNAL_ENTRY_NOT_FOUND"
    resource = "Journal entry"


class NoEntitiesFoundError(NotFoundError):
    """Consolidation was requested for a tenant that owns no entities."""

    code: str = "NO_ENTITIES_FOUND"

    def __init__(self, tenant_id: UUID | str):
        self.tenant_id = tenant_id
        LedgerError.__init__(self, "No entities found for tenant")


# =============================================================================
# VALIDATION
# =============================================================================


class ValidationError(LedgerError):
    """Malformed input: bad amounts, totals, or target kind."""

    code: str = "VALIDATION"
    kind: ErrorKind = ErrorKind.VALIDATION


class InvalidAmountError(ValidationError):
    """Amount is not a positive integer number of minor units."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = value
        super().__init__(f"{field} must be a positive integer, got {value!r}")


class DocumentTotalsError(ValidationError):
    """Document header totals disagree with each other or with its lines."""

    code: str = "DOCUMENT_TOTALS_MISMATCH"

    def __init__(self, field: str, expected: int, actual: int):
        self.field = field
        self.expected = expected
        self.actual = actual
        super().__init__(f"{field} ({actual}) does not equal {expected}")


class UnbalancedEntryError(ValidationError):
    """Journal entry debits do not equal credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, debits: int, credits: int):
        self.debits = debits
        self.credits = credits
        super().__init__(
            f"Entry is unbalanced: debits {debits} != credits {credits}"
        )


class InvalidJournalLineError(ValidationError):
    """A journal line must carry exactly one non-negative side."""

    code: str = "INVALID_JOURNAL_LINE"

    def __init__(self, line_seq: int, reason: str):
        self.line_seq = line_seq
        self.reason = reason
        super().__init__(f"Journal line {line_seq} is invalid: {reason}")


class InvalidNormalBalanceError(ValidationError):
    """Account normal balance disagrees with its account type."""

    code: str = "INVALID_NORMAL_BALANCE"

    def __init__(self, account_type: str, normal_balance: str):
        self.account_type = account_type
        self.normal_balance = normal_balance
        super().__init__(
            f"{account_type} accounts cannot have a {normal_balance} normal balance"
        )


class AllocationTargetError(ValidationError):
    """Allocation target is missing, ambiguous, or of the wrong kind."""

    code: str = "INVALID_ALLOCATION_TARGET"


class PaymentPartyError(ValidationError):
    """A payment must target exactly one of client or vendor."""

    code: str = "INVALID_PAYMENT_PARTY"

    def __init__(self) -> None:
        super().__init__("Payment must reference exactly one of client or vendor")


class InvalidCursorError(ValidationError):
    """Pagination cursor does not identify a row of this listing."""

    code: str = "INVALID_CURSOR"

    def __init__(self, cursor: Any):
        self.cursor = str(cursor)
        super().__init__("Invalid pagination cursor")


class InvalidDateRangeError(ValidationError):
    code: str = "INVALID_DATE_RANGE"

    def __init__(self, start: Any, end: Any):
        self.start = str(start)
        self.end = str(end)
        super().__init__(f"Start date {start} must be before end date {end}")


# =============================================================================
# CONFLICT
# =============================================================================


class ConflictError(LedgerError):
    """The request is well-formed but conflicts with current state."""

    code: str = "CONFLICT"
    kind: ErrorKind = ErrorKind.CONFLICT


class OutstandingBalanceExceededError(ConflictError):
    """Payment application exceeds the document's outstanding balance."""

    code: str = "EXCEEDS_OUTSTANDING_BALANCE"

    def __init__(self, document_id: UUID, amount: int, outstanding: int):
        self.document_id = document_id
        self.amount = amount
        self.outstanding = outstanding
        super().__init__(
            f"Payment of {amount} exceeds outstanding balance of {outstanding}"
        )


class UnallocatedBalanceExceededError(ConflictError):
    """Allocation exceeds what is left unallocated on the payment."""

    code: str = "EXCEEDS_UNALLOCATED_BALANCE"

    def __init__(self, payment_id: UUID, amount: int, unallocated: int):
        self.payment_id = payment_id
        self.amount = amount
        self.unallocated = unallocated
        super().__init__(
            f"Allocation of {amount} exceeds unallocated balance of {unallocated}"
        )


class PaidAmountUnderflowError(ConflictError):
    """Reversal would drive the paid amount below zero."""

    code: str = "EXCEEDS_PAID_AMOUNT"

    def __init__(self, document_id: UUID, amount: int, paid_amount: int):
        self.document_id = document_id
        self.amount = amount
        self.paid_amount = paid_amount
        super().__init__(
            f"Reversal of {amount} exceeds paid amount of {paid_amount}"
        )


class IllegalTransitionError(ConflictError):
    """Status transition not permitted by the document workflow."""

    code: str = "ILLEGAL_TRANSITION"

    def __init__(self, document_id: UUID | None, from_status: str, action: str):
        self.document_id = document_id
        self.from_status = from_status
        self.action = action
        super().__init__(f"Cannot {action} a document in status {from_status}")


class DocumentNotEditableError(ConflictError):
    """Financial fields can only change while the document is a draft."""

    code: str = "DOCUMENT_NOT_EDITABLE"

    def __init__(self, document_id: UUID, status: str, fields: list[str]):
        self.document_id = document_id
        self.status = status
        self.fields = fields
        super().__init__(
            f"Cannot edit {', '.join(fields)} on a document in status {status}"
        )


class AlreadyVoidedError(ConflictError):
    """Journal entry is voided or already has a reversal linked to it."""

    code: str = "ALREADY_VOIDED"

    def __init__(self, entry_id: UUID):
        self.entry_id = entry_id
        super().__init__(f"Journal entry {entry_id} is already voided")


# =============================================================================
# OVERFLOW / CONSOLIDATION / INTERNAL
# =============================================================================


class AmountOverflowError(LedgerError):
    """
    Aggregate left the safe-integer range when narrowed.

    This is a data-integrity alarm, not a user error.
    """

    code: str = "OVERFLOW"
    kind: ErrorKind = ErrorKind.OVERFLOW

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = str(value)
        super().__init__(f"Amount exceeds safe integer range: {field}")


class ConsolidationCurrencyMismatchError(LedgerError):
    """Consolidated entities do not share one functional currency."""

    code: str = "CONSOLIDATION_CURRENCY_MISMATCH"
    kind: ErrorKind = ErrorKind.CONSOLIDATION_CURRENCY_MISMATCH

    def __init__(self, currencies: list[str]):
        self.currencies = sorted(currencies)
        super().__init__(
            "Multi-entity consolidation requires all entities to use the same "
            f"functional currency. Found: {', '.join(self.currencies)}"
        )


class TenantScopeViolationError(LedgerError):
    """A statement was submitted for execution without a tenant scope."""

    code: str = "TENANT_SCOPE_VIOLATION"
    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Query rejected, not tenant scoped: {reason}")
