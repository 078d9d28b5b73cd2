"""
ledger_services.settlement -- Money movement for business events.

Responsibility:
    Shared fatal core of every payment and refund handler: resolve which
    liquid account the money moves through, apply the signed balance
    mutation, and post the matching two-leg system journal entry.  Also
    undoes a settlement (reversal entry plus opposite mutation).

Architecture position:
    Services layer.  Composes kernel LiquidAccountService and
    JournalService on the caller's session.  Does NOT commit: the module
    service that owns the triggering record commits the settlement together
    with the record's status change.

Invariants enforced:
    - The mutation row and the journal entry reference each other (the
      entry id is allocated before the mutation is written).
    - A cash settlement without an explicit account uses the active cash
      drawer.  Any other method without an account is rejected.

Failure modes:
    - BankAccountRequiredError: non-cash method with no liquid account id.
    - LiquidAccountNotFoundError: no such (or inactive) account, or no cash
      drawer configured.
    - InsufficientBalanceError, OptimisticLockError from the balance store.
    - UnbalancedEntryError / AccountNotFoundError from the journal engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import (
    BankAccountRequiredError,
    LiquidAccountNotFoundError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.liquid_account import LiquidAccount, LiquidTransactionType
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.liquid_account_service import (
    LiquidAccountService,
    MutationRecord,
)

logger = get_logger("services.settlement")

_ZERO = Decimal("0")


class PaymentMethod(str, Enum):
    """How money leaves or enters the business for a payment or refund."""

    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    UPI = "upi"
    CHEQUE = "cheque"
    ORIGINAL_PAYMENT = "original_payment"


_DRAWER_METHODS = frozenset({PaymentMethod.CASH, PaymentMethod.ORIGINAL_PAYMENT})


@dataclass(frozen=True)
class SettlementResult:
    """Linkage ids written by one settlement or its reversal."""

    liquid_account_id: UUID
    transaction_id: UUID
    journal_entry_id: UUID
    amount: Decimal
    balance_after: Decimal


class SettlementService:
    """
    Resolve, mutate, post.

    Contract:
        ``settle_outflow`` moves ``amount`` out of the resolved liquid
        account and posts Dr ``debit_code`` / Cr the account's GL code.
        ``reverse`` undoes an earlier settlement exactly.

    Non-goals:
        - Does NOT validate the triggering record's status (the workflow
          executor does, before calling in).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        journal: JournalService | None = None,
        liquid: LiquidAccountService | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._journal = journal or JournalService(session, self._clock)
        self._liquid = liquid or LiquidAccountService(session, self._clock)

    @property
    def journal(self) -> JournalService:
        return self._journal

    @property
    def liquid(self) -> LiquidAccountService:
        return self._liquid

    def resolve_account(
        self,
        method: PaymentMethod | str,
        liquid_account_id: UUID | None,
        record_id: UUID | None = None,
    ) -> LiquidAccount:
        """
        Pick the liquid account for ``method``.

        cash and original_payment fall back to the cash drawer; every other
        method needs an explicit account.
        """
        try:
            method = PaymentMethod(method)
        except ValueError as exc:
            raise ValidationError(
                f"Unknown payment method: {method}",
                field="method",
                record_id=str(record_id) if record_id else None,
            ) from exc

        if liquid_account_id is not None:
            account = self._liquid.get_account(liquid_account_id)
            if not account.is_active:
                raise LiquidAccountNotFoundError(str(liquid_account_id))
            return account

        if method not in _DRAWER_METHODS:
            raise BankAccountRequiredError(
                method.value, record_id=str(record_id) if record_id else None
            )

        drawer = self._liquid.default_cash_account()
        if drawer is None:
            raise LiquidAccountNotFoundError("default cash drawer")
        return drawer

    def _gl_code(self, account: LiquidAccount) -> str:
        return self._session.get(Account, account.gl_account_id).code

    def settle_outflow(
        self,
        account: LiquidAccount,
        amount: Decimal,
        debit_code: str,
        transaction_type: LiquidTransactionType,
        description: str,
        actor_id: UUID,
        source_type: str,
        source_id: UUID,
        settlement_date: date | None = None,
        reference: str | None = None,
    ) -> SettlementResult:
        """Pay ``amount`` out of ``account``: negative mutation + Dr debit_code / Cr cash GL."""
        if amount <= _ZERO:
            raise ValidationError(
                "Settlement amount must be positive", field="amount", record_id=str(source_id)
            )
        on = settlement_date or self._clock.today()
        entry_id = uuid4()

        txn = self._liquid.apply_mutation(
            account.id,
            -amount,
            MutationRecord(
                transaction_type=transaction_type,
                description=description,
                transaction_date=on,
                reference=reference,
                source_type=source_type,
                source_id=source_id,
                journal_entry_id=entry_id,
            ),
            actor_id,
        )
        entry = self._journal.post_system_entry(
            lines=JournalService.two_leg(debit_code, self._gl_code(account), amount),
            entry_date=on,
            description=description,
            actor_id=actor_id,
            source_type=source_type,
            source_id=source_id,
            reference=reference,
            entry_id=entry_id,
        )

        logger.info(
            "settlement_applied",
            extra={
                "source_type": source_type,
                "source_id": str(source_id),
                "liquid_account_id": str(account.id),
                "transaction_id": str(txn.id),
                "journal_entry_id": str(entry.id),
                "amount": str(amount),
            },
        )
        return SettlementResult(
            liquid_account_id=account.id,
            transaction_id=txn.id,
            journal_entry_id=entry.id,
            amount=amount,
            balance_after=txn.balance_after,
        )

    def reverse(
        self,
        journal_entry_id: UUID,
        transaction_id: UUID,
        transaction_type: LiquidTransactionType,
        description: str,
        actor_id: UUID,
        source_type: str,
        source_id: UUID,
        reversal_date: date | None = None,
    ) -> SettlementResult:
        """Post the reversal of ``journal_entry_id`` and apply the opposite mutation."""
        on = reversal_date or self._clock.today()
        reversal_entry_id = uuid4()

        txn = self._liquid.reverse_mutation(
            transaction_id,
            MutationRecord(
                transaction_type=transaction_type,
                description=description,
                transaction_date=on,
                source_type=source_type,
                source_id=source_id,
                journal_entry_id=reversal_entry_id,
            ),
            actor_id,
        )
        reversal = self._journal.reverse_entry(
            journal_entry_id,
            actor_id,
            reversal_date=on,
            description=description,
            reversal_entry_id=reversal_entry_id,
            allow_system=True,
        )

        logger.info(
            "settlement_reversed",
            extra={
                "source_type": source_type,
                "source_id": str(source_id),
                "liquid_account_id": str(txn.liquid_account_id),
                "transaction_id": str(txn.id),
                "journal_entry_id": str(reversal.id),
                "amount": str(txn.amount),
            },
        )
        return SettlementResult(
            liquid_account_id=txn.liquid_account_id,
            transaction_id=txn.id,
            journal_entry_id=reversal.id,
            amount=txn.amount,
            balance_after=txn.balance_after,
        )
