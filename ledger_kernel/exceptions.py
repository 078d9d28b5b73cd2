"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the command facade, module services, tests) must be able to tell a
malformed request from a status conflict from a missing record without
parsing message strings. Every exception therefore has:

  1. A TYPED class (catch by type, not message)
  2. A ``code`` class attribute (machine-readable, API-safe)
  3. A ``kind`` class attribute shared by its category (what the facade
     reports to collaborators)
  4. Structured attributes, including ``record_id`` when a specific record
     is involved

Example:
    try:
        refunds.process_refund(refund_id, actor_id)
    except StateConflictError as e:
        api_response(kind=e.kind, code=e.code, record_id=e.record_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerError (base)
    |
    +-- ValidationError                      kind = validation_error
    |   +-- InvalidLineError
    |   +-- UnbalancedEntryError
    |   +-- BankAccountRequiredError
    |   +-- AmountExceedsRemainingError
    |
    +-- StateConflictError                   kind = state_conflict
    |   +-- EntryNotDraftError
    |   +-- EntryNotPostedError
    |   +-- EntryAlreadyReversedError
    |   +-- EntryOwnedBySourceError
    |   +-- InvalidTransitionError
    |   +-- GuardFailedError
    |   +-- AccountReferencedError
    |
    +-- NotFoundError                        kind = not_found
    |   +-- AccountNotFoundError
    |   +-- EntryNotFoundError
    |   +-- LiquidAccountNotFoundError
    |   +-- RecordNotFoundError
    |
    +-- InsufficientBalanceError             kind = insufficient_balance
    |
    +-- DependencyFailure                    kind = dependency_failure
    |
    +-- ConcurrencyError                     kind = concurrency_conflict
    |   +-- OptimisticLockError
    |
    +-- OperationTimeoutError                kind = timeout
    |
    +-- ConfigError                          kind = configuration_error

===============================================================================
PROPAGATION
===============================================================================

Fatal errors abort the handler; the owning service rolls the session back
and re-raises.  Best-effort failures are caught after the fatal core has
committed, logged, and carried on the result as ``DependencyFailure``
values (see ``DependencyFailure.as_warning``).  ``ConcurrencyError`` is the
only category the facade retries automatically.
"""


class LedgerError(Exception):
    """
    Base exception for all ledger errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.  ``record_id`` is None unless a specific record is
    involved.
    """

    code: str = "LEDGER_ERROR"
    kind: str = "ledger_error"
    record_id: str | None = None


# Validation errors


class ValidationError(LedgerError):
    """Malformed input: missing field, negative amount, unbalanced entry."""

    code: str = "VALIDATION_ERROR"
    kind: str = "validation_error"

    def __init__(self, message: str, field: str | None = None, record_id: str | None = None):
        self.field = field
        self.record_id = record_id
        super().__init__(message)


class InvalidLineError(ValidationError):
    """A journal line breaks the one-sided, non-negative amount rule."""

    code: str = "INVALID_LINE"

    def __init__(self, line_number: int, reason: str):
        self.line_number = line_number
        self.reason = reason
        super().__init__(f"Line {line_number}: {reason}", field="lines")


class UnbalancedEntryError(ValidationError):
    """Journal entry debits do not equal credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, debits: str, credits: str, record_id: str | None = None):
        self.debits = debits
        self.credits = credits
        super().__init__(
            f"Unbalanced entry: debits={debits}, credits={credits}",
            field="lines",
            record_id=record_id,
        )


class BankAccountRequiredError(ValidationError):
    """A non-cash payment method was used without a liquid account id."""

    code: str = "BANK_ACCOUNT_REQUIRED"

    def __init__(self, method: str, record_id: str | None = None):
        self.method = method
        super().__init__(
            f"Bank account required for payment method '{method}'",
            field="liquid_account_id",
            record_id=record_id,
        )


class AmountExceedsRemainingError(ValidationError):
    """Requested amount is larger than what is left to pay or refund."""

    code: str = "AMOUNT_EXCEEDS_REMAINING"

    def __init__(self, amount: str, remaining: str, record_id: str | None = None):
        self.amount = amount
        self.remaining = remaining
        super().__init__(
            f"Amount {amount} exceeds remaining {remaining}",
            field="amount",
            record_id=record_id,
        )


# State conflicts


class StateConflictError(LedgerError):
    """Action attempted from a status that forbids it."""

    code: str = "STATE_CONFLICT"
    kind: str = "state_conflict"


class EntryNotDraftError(StateConflictError):
    """A posted journal entry cannot be edited, deleted, or posted again."""

    code: str = "ENTRY_NOT_DRAFT"

    def __init__(self, entry_id: str, status: str):
        self.entry_id = entry_id
        self.record_id = entry_id
        self.status = status
        super().__init__(
            f"Cannot modify posted entry {entry_id} (status: {status})"
        )


class EntryNotPostedError(StateConflictError):
    """Cannot reverse an entry that is not posted."""

    code: str = "ENTRY_NOT_POSTED"

    def __init__(self, entry_id: str, status: str):
        self.entry_id = entry_id
        self.record_id = entry_id
        self.status = status
        super().__init__(
            f"Cannot reverse entry {entry_id}: status is {status}, must be posted"
        )


class EntryAlreadyReversedError(StateConflictError):
    """Entry already has a reversal."""

    code: str = "ENTRY_ALREADY_REVERSED"

    def __init__(self, entry_id: str, reversal_id: str):
        self.entry_id = entry_id
        self.record_id = entry_id
        self.reversal_id = reversal_id
        super().__init__(
            f"Entry {entry_id} has already been reversed by {reversal_id}"
        )


class EntryOwnedBySourceError(StateConflictError):
    """A settlement's entry is reversed through its payment or refund, not directly."""

    code: str = "ENTRY_OWNED_BY_SOURCE"

    def __init__(self, entry_id: str, source_type: str, source_id: str):
        self.entry_id = entry_id
        self.record_id = entry_id
        self.source_type = source_type
        self.source_id = source_id
        super().__init__(
            f"Entry {entry_id} is owned by {source_type} {source_id}; "
            f"reverse it through that record"
        )


class InvalidTransitionError(StateConflictError):
    """No workflow transition exists for the action from the current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, entity_type: str, entity_id: str, current_status: str, action: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.record_id = entity_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} {entity_type} {entity_id}: status is '{current_status}'"
        )


class GuardFailedError(StateConflictError):
    """A workflow transition exists but its guard condition does not hold."""

    code: str = "GUARD_FAILED"

    def __init__(self, entity_type: str, entity_id: str, guard: str, description: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.record_id = entity_id
        self.guard = guard
        super().__init__(f"Cannot transition {entity_type} {entity_id}: {description}")


class AccountReferencedError(StateConflictError):
    """Account classification cannot change once posted lines reference it."""

    code: str = "ACCOUNT_REFERENCED"

    def __init__(self, account_id: str):
        self.account_id = account_id
        self.record_id = account_id
        super().__init__(
            f"Account {account_id} is referenced by posted lines and cannot be reclassified"
        )


# Missing records


class NotFoundError(LedgerError):
    """Referenced record does not exist."""

    code: str = "NOT_FOUND"
    kind: str = "not_found"


class AccountNotFoundError(NotFoundError):
    """Chart account was not found (or is inactive)."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_ref: str):
        self.account_ref = account_ref
        self.record_id = account_ref
        super().__init__(f"Account not found: {account_ref}")


class EntryNotFoundError(NotFoundError):
    """Journal entry was not found."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        self.record_id = entry_id
        super().__init__(f"Journal entry not found: {entry_id}")


class LiquidAccountNotFoundError(NotFoundError):
    """Liquid account does not exist or is not active."""

    code: str = "LIQUID_ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = account_id
        self.record_id = account_id
        super().__init__(f"Account not found: {account_id}")


class RecordNotFoundError(NotFoundError):
    """A business record (payment, refund, bill, invoice, order) was not found."""

    code: str = "RECORD_NOT_FOUND"

    def __init__(self, entity_type: str, record_id: str):
        self.entity_type = entity_type
        self.record_id = record_id
        super().__init__(f"{entity_type} not found: {record_id}")


# Balance


class InsufficientBalanceError(LedgerError):
    """Outgoing mutation would overdraw an account that disallows overdraft."""

    code: str = "INSUFFICIENT_BALANCE"
    kind: str = "insufficient_balance"

    def __init__(self, account_id: str, balance: str, requested: str):
        self.account_id = account_id
        self.record_id = account_id
        self.balance = balance
        self.requested = requested
        super().__init__(
            f"Insufficient balance in account {account_id}: "
            f"balance={balance}, requested={requested}"
        )


# Best-effort steps


class DependencyFailure(LedgerError):
    """A best-effort downstream write failed after the fatal core committed."""

    code: str = "DEPENDENCY_FAILURE"
    kind: str = "dependency_failure"

    def __init__(self, step: str, entity_type: str, record_id: str, reason: str):
        self.step = step
        self.entity_type = entity_type
        self.record_id = record_id
        self.reason = reason
        super().__init__(f"{step} failed for {entity_type} {record_id}: {reason}")

    def as_warning(self) -> dict[str, str]:
        return {
            "kind": self.kind,
            "step": self.step,
            "entity_type": self.entity_type,
            "record_id": self.record_id,
            "message": str(self),
        }


# Concurrency-related exceptions


class ConcurrencyError(LedgerError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"
    kind: str = "concurrency_conflict"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.record_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


class OperationTimeoutError(LedgerError):
    """A database call exceeded its lock or statement timeout."""

    code: str = "OPERATION_TIMEOUT"
    kind: str = "timeout"

    def __init__(self, operation: str, record_id: str | None = None):
        self.operation = operation
        self.record_id = record_id
        super().__init__(f"Operation '{operation}' timed out waiting for the database")


# Configuration


class ConfigError(LedgerError):
    """Configuration file is malformed or carries unknown keys."""

    code: str = "CONFIG_ERROR"
    kind: str = "configuration_error"
