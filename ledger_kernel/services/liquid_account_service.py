"""
LiquidAccountService -- the Cash/Bank Balance Store.

Responsibility:
    Sole writer of ``liquid_accounts.current_balance`` and of
    ``liquid_transactions``.  Every balance change goes through
    ``apply_mutation``, which updates the running balance and appends the
    matching transaction row in the caller's database transaction.

Architecture position:
    Kernel > Services.  Does NOT commit.  The orchestrator calls
    apply_mutation and JournalService inside one transaction so the balance
    change and its journal entry commit or roll back together.

Invariants enforced:
    - current_balance == sum(transaction amounts) for every account.  The
      opening balance is written as an OPENING_BALANCE transaction.
    - Read-modify-write of a balance is serialized: the account row is read
      with ``SELECT ... FOR UPDATE`` and written with the ``version`` column
      in the WHERE clause.  A lost race raises OptimisticLockError; the
      command facade retries the whole unit of work.
    - Outgoing mutations never drive a CASH/UPI account, or a BANK account
      without an overdraft facility, below zero.
    - History is append-only.  A reversal is a new opposite-signed row.

Failure modes:
    - LiquidAccountNotFoundError: missing or inactive account.
    - InsufficientBalanceError: overdraw of a no-overdraft account.
    - ValidationError: zero amount, same-account transfer.
    - OptimisticLockError: concurrent update detected at flush.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    InsufficientBalanceError,
    InvalidTransitionError,
    LiquidAccountNotFoundError,
    OptimisticLockError,
    RecordNotFoundError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.liquid_account import (
    LiquidAccount,
    LiquidAccountType,
    LiquidTransaction,
    LiquidTransactionType,
    TransactionDirection,
)
from ledger_kernel.services.journal_service import JournalService

logger = get_logger("services.liquid_account")

_ZERO = Decimal("0")


@dataclass(frozen=True)
class MutationRecord:
    """What caused a balance mutation; becomes the transaction row."""
    transaction_type: LiquidTransactionType
    description: str
    transaction_date: date
    reference: str | None = None
    source_type: str | None = None
    source_id: UUID | None = None
    journal_entry_id: UUID | None = None


@dataclass(frozen=True)
class TransferResult:
    transfer_id: UUID
    outflow: LiquidTransaction
    inflow: LiquidTransaction
    journal_entry_id: UUID | None


@dataclass(frozen=True)
class BalanceVerification:
    """Stored running balance compared with the sum of its history."""
    account_id: UUID
    stored_balance: Decimal
    computed_balance: Decimal
    transaction_count: int

    @property
    def discrepancy(self) -> Decimal:
        return self.stored_balance - self.computed_balance

    @property
    def is_consistent(self) -> bool:
        return self.discrepancy == _ZERO


class LiquidAccountService:
    """
    The Cash/Bank Balance Store.

    Contract:
        ``apply_mutation`` is the single authoritative balance operation.
        Both writes (account row, transaction row) are flushed together in
        the caller's transaction; nothing here commits.

    Non-goals:
        - Does NOT decide which account a business event uses (the
          settlement service resolves that).
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    # =========================================================================
    # Reads
    # =========================================================================

    def get_account(self, account_id: UUID) -> LiquidAccount:
        account = self._session.get(LiquidAccount, account_id)
        if account is None:
            raise LiquidAccountNotFoundError(str(account_id))
        return account

    def get_transaction(self, transaction_id: UUID) -> LiquidTransaction:
        txn = self._session.get(LiquidTransaction, transaction_id)
        if txn is None:
            raise RecordNotFoundError("liquid_transaction", str(transaction_id))
        return txn

    def default_cash_account(self) -> LiquidAccount | None:
        """The active cash drawer (oldest active CASH account)."""
        return self._session.execute(
            select(LiquidAccount)
            .where(LiquidAccount.account_type == LiquidAccountType.CASH.value)
            .where(LiquidAccount.is_active.is_(True))
            .order_by(LiquidAccount.created_at, LiquidAccount.name)
            .limit(1)
        ).scalar_one_or_none()

    def _lock_account(self, account_id: UUID) -> LiquidAccount:
        account = self._session.execute(
            select(LiquidAccount)
            .where(LiquidAccount.id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if account is None or not account.is_active:
            raise LiquidAccountNotFoundError(str(account_id))
        return account

    def verify_balance(self, account_id: UUID) -> BalanceVerification:
        """Compare the running balance with the sum of all its transactions."""
        account = self.get_account(account_id)
        total, count = self._session.execute(
            select(
                func.coalesce(func.sum(LiquidTransaction.amount), _ZERO),
                func.count(LiquidTransaction.id),
            ).where(LiquidTransaction.liquid_account_id == account_id)
        ).one()
        result = BalanceVerification(
            account_id=account.id,
            stored_balance=account.current_balance,
            computed_balance=Decimal(total),
            transaction_count=count,
        )
        if not result.is_consistent:
            logger.error(
                "liquid_balance_discrepancy",
                extra={
                    "account_id": str(account_id),
                    "stored_balance": str(result.stored_balance),
                    "computed_balance": str(result.computed_balance),
                },
            )
        return result

    # =========================================================================
    # Accounts
    # =========================================================================

    def open_account(
        self,
        name: str,
        account_type: LiquidAccountType | str,
        gl_account_code: str,
        actor_id: UUID,
        opening_balance: Decimal = _ZERO,
        allow_overdraft: bool = False,
        bank_name: str | None = None,
        account_number: str | None = None,
        opening_date: date | None = None,
        journal: JournalService | None = None,
        opening_counter_code: str | None = None,
    ) -> LiquidAccount:
        """
        Create a liquid account.

        A non-zero opening balance becomes an OPENING_BALANCE transaction.
        When ``journal`` and ``opening_counter_code`` are given the opening
        balance is also posted: Dr the account's GL code / Cr the counter code.
        """
        try:
            account_type = LiquidAccountType(account_type)
        except ValueError as exc:
            raise ValidationError(
                f"Unknown liquid account type: {account_type}", field="account_type"
            ) from exc
        gl_account = self._session.execute(
            select(Account).where(Account.code == gl_account_code)
        ).scalar_one_or_none()
        if gl_account is None:
            raise AccountNotFoundError(gl_account_code)

        account = LiquidAccount(
            name=name,
            account_type=account_type.value,
            gl_account_id=gl_account.id,
            current_balance=_ZERO,
            is_active=True,
            allow_overdraft=allow_overdraft,
            bank_name=bank_name,
            account_number=account_number,
            created_by_id=actor_id,
        )
        self._session.add(account)
        self._session.flush()

        logger.info(
            "liquid_account_opened",
            extra={
                "account_id": str(account.id),
                "account_type": account_type.value,
                "opening_balance": str(opening_balance),
            },
        )

        if opening_balance != _ZERO:
            on = opening_date or self._clock.today()
            entry_id = None
            if journal is not None and opening_counter_code is not None:
                entry_id = uuid4()
            self.apply_mutation(
                account.id,
                opening_balance,
                MutationRecord(
                    transaction_type=LiquidTransactionType.OPENING_BALANCE,
                    description=f"Opening balance for {name}",
                    transaction_date=on,
                    source_type="liquid_account",
                    source_id=account.id,
                    journal_entry_id=entry_id,
                ),
                actor_id,
            )
            if entry_id is not None:
                debit, credit = gl_account_code, opening_counter_code
                if opening_balance < _ZERO:
                    debit, credit = credit, debit
                journal.post_system_entry(
                    lines=JournalService.two_leg(debit, credit, abs(opening_balance)),
                    entry_date=on,
                    description=f"Opening balance for {name}",
                    actor_id=actor_id,
                    source_type="liquid_account",
                    source_id=account.id,
                    entry_id=entry_id,
                )
        return account

    def set_active(self, account_id: UUID, is_active: bool, actor_id: UUID) -> LiquidAccount:
        account = self.get_account(account_id)
        account.is_active = is_active
        account.updated_by_id = actor_id
        self._flush(account)
        logger.info(
            "liquid_account_status_changed",
            extra={"account_id": str(account_id), "is_active": is_active},
        )
        return account

    # =========================================================================
    # Mutations
    # =========================================================================

    def _flush(self, account: LiquidAccount) -> None:
        try:
            self._session.flush()
        except StaleDataError as exc:
            logger.warning(
                "liquid_account_version_conflict",
                extra={"account_id": str(account.id)},
            )
            raise OptimisticLockError("liquid_account", str(account.id)) from exc

    def apply_mutation(
        self,
        account_id: UUID,
        signed_amount: Decimal,
        record: MutationRecord,
        actor_id: UUID,
        reversal_of_id: UUID | None = None,
    ) -> LiquidTransaction:
        """
        Add ``signed_amount`` to the account's balance and append the
        transaction row.  Negative amounts are outflows.
        """
        if signed_amount == _ZERO:
            raise ValidationError("Mutation amount cannot be zero", field="amount")

        account = self._lock_account(account_id)
        current = account.current_balance
        new_balance = current + signed_amount

        if signed_amount < _ZERO and new_balance < _ZERO and not account.overdraft_permitted:
            logger.warning(
                "liquid_mutation_insufficient_balance",
                extra={
                    "account_id": str(account_id),
                    "balance": str(current),
                    "requested": str(-signed_amount),
                },
            )
            raise InsufficientBalanceError(str(account_id), str(current), str(-signed_amount))

        account.current_balance = new_balance
        account.updated_by_id = actor_id

        txn = LiquidTransaction(
            liquid_account_id=account.id,
            amount=signed_amount,
            direction=(
                TransactionDirection.INFLOW.value
                if signed_amount > _ZERO
                else TransactionDirection.OUTFLOW.value
            ),
            transaction_type=LiquidTransactionType(record.transaction_type).value,
            description=record.description,
            reference=record.reference,
            source_type=record.source_type,
            source_id=record.source_id,
            journal_entry_id=record.journal_entry_id,
            reversal_of_id=reversal_of_id,
            balance_after=new_balance,
            transaction_date=record.transaction_date,
            created_by_id=actor_id,
        )
        self._session.add(txn)
        self._flush(account)

        logger.info(
            "liquid_mutation_applied",
            extra={
                "account_id": str(account_id),
                "transaction_id": str(txn.id),
                "transaction_type": txn.transaction_type,
                "amount": str(signed_amount),
                "balance_before": str(current),
                "balance_after": str(new_balance),
            },
        )
        return txn

    def reverse_mutation(
        self,
        transaction_id: UUID,
        record: MutationRecord,
        actor_id: UUID,
    ) -> LiquidTransaction:
        """Apply the exact opposite of an earlier mutation, once."""
        original = self.get_transaction(transaction_id)
        already = self._session.execute(
            select(LiquidTransaction.id).where(LiquidTransaction.reversal_of_id == transaction_id)
        ).scalar_one_or_none()
        if already is not None:
            raise InvalidTransitionError(
                "liquid_transaction", str(transaction_id), "reversed", "reverse"
            )
        return self.apply_mutation(
            original.liquid_account_id,
            -original.amount,
            record,
            actor_id,
            reversal_of_id=original.id,
        )

    def transfer(
        self,
        from_account_id: UUID,
        to_account_id: UUID,
        amount: Decimal,
        actor_id: UUID,
        transfer_date: date | None = None,
        description: str | None = None,
        journal: JournalService | None = None,
    ) -> TransferResult:
        """
        Move funds between two liquid accounts.

        Writes a TRANSFER_OUT and a TRANSFER_IN row.  When the accounts post
        to different GL accounts and ``journal`` is given, also posts
        Dr destination GL / Cr source GL.
        """
        if from_account_id == to_account_id:
            raise ValidationError(
                "Source and destination accounts must be different",
                field="to_account_id",
            )
        if amount <= _ZERO:
            raise ValidationError("Transfer amount must be positive", field="amount")

        # Lock in a fixed order so two opposite transfers cannot deadlock
        for account_id in sorted((from_account_id, to_account_id), key=str):
            self._lock_account(account_id)
        source = self.get_account(from_account_id)
        destination = self.get_account(to_account_id)

        transfer_id = uuid4()
        on = transfer_date or self._clock.today()
        text = description or f"Transfer from {source.name} to {destination.name}"

        entry_id = None
        if journal is not None and source.gl_account_id != destination.gl_account_id:
            entry_id = uuid4()

        outflow = self.apply_mutation(
            source.id,
            -amount,
            MutationRecord(
                transaction_type=LiquidTransactionType.TRANSFER_OUT,
                description=text,
                transaction_date=on,
                source_type="fund_transfer",
                source_id=transfer_id,
                journal_entry_id=entry_id,
            ),
            actor_id,
        )
        inflow = self.apply_mutation(
            destination.id,
            amount,
            MutationRecord(
                transaction_type=LiquidTransactionType.TRANSFER_IN,
                description=text,
                transaction_date=on,
                source_type="fund_transfer",
                source_id=transfer_id,
                journal_entry_id=entry_id,
            ),
            actor_id,
        )

        if entry_id is not None:
            journal.post_system_entry(
                lines=(
                    JournalService.two_leg(
                        self._session.get(Account, destination.gl_account_id).code,
                        self._session.get(Account, source.gl_account_id).code,
                        amount,
                    )
                ),
                entry_date=on,
                description=text,
                actor_id=actor_id,
                source_type="fund_transfer",
                source_id=transfer_id,
                entry_id=entry_id,
            )

        logger.info(
            "fund_transfer_completed",
            extra={
                "transfer_id": str(transfer_id),
                "from_account_id": str(from_account_id),
                "to_account_id": str(to_account_id),
                "amount": str(amount),
            },
        )
        return TransferResult(
            transfer_id=transfer_id,
            outflow=outflow,
            inflow=inflow,
            journal_entry_id=entry_id,
        )
