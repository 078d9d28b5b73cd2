"""
Accounts Payable Module Service (``ledger_modules.ap.service``).

Responsibility
--------------
Vendor bills and vendor payments: record a bill, request / approve /
process / reverse / cancel a payment against it.  Processing moves money
out of a liquid account and posts Dr Accounts Payable / Cr the account's
cash GL code; reversing puts it back.

Architecture position
---------------------
**Modules layer** -- thin ERP glue.  ``VendorPaymentService`` is the sole
public entry point for AP operations.  Status checks go through the
``WorkflowExecutor``; money movement through ``SettlementService``.

Invariants enforced
-------------------
* Each public method owns the transaction boundary (``commit`` on success,
  ``rollback`` and re-raise on failure).
* The payment row is locked before its status is checked, so a second
  ``process_payment`` on the same payment sees ``processed`` and fails
  with a StateConflictError instead of paying twice.
* The money movement, its journal entry, and the status flip commit
  together.  The bill's ``paid_amount`` / ``status`` aggregate is refreshed
  afterwards as a best-effort step.

Failure modes
-------------
* ValidationError / AmountExceedsRemainingError on bad input.
* InvalidTransitionError / GuardFailedError from the workflow executor.
* InsufficientBalanceError, BankAccountRequiredError from settlement.
* A failed bill refresh is returned as a DependencyFailure warning.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_config.schema import AccountCodes
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import (
    AmountExceedsRemainingError,
    RecordNotFoundError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.liquid_account import LiquidTransactionType
from ledger_modules.ap.models import (
    VendorBill,
    VendorBillStatus,
    VendorPayment,
    VendorPaymentStatus,
    bill_status_for,
)
from ledger_modules.ap.orm import VendorBillModel, VendorPaymentModel
from ledger_modules.ap.workflows import VENDOR_PAYMENT_WORKFLOW
from ledger_services.outcomes import ProcessOutcome, run_best_effort
from ledger_services.settlement import PaymentMethod, SettlementService
from ledger_services.workflow_executor import WorkflowExecutor

logger = get_logger("modules.ap.service")

_ZERO = Decimal("0")
_ENTITY = "vendor_payment"


class VendorPaymentService:
    """
    Vendor payment handler.

    Contract:
        Every public method commits its own work.  ``process_payment`` and
        ``reverse_payment`` return a ProcessOutcome whose ``warnings`` carry
        best-effort failures.

    Non-goals:
        - Bill approval and three-way matching.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        workflow_executor: WorkflowExecutor | None = None,
        account_codes: AccountCodes | None = None,
        settlement: SettlementService | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._workflow = workflow_executor or WorkflowExecutor()
        self._codes = account_codes or AccountCodes()
        self._settlement = settlement or SettlementService(session, self._clock)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_bill(self, bill_id: UUID) -> VendorBill:
        return self._bill(bill_id).to_dto()

    def get_payment(self, payment_id: UUID) -> VendorPayment:
        payment = self._session.get(VendorPaymentModel, payment_id)
        if payment is None:
            raise RecordNotFoundError(_ENTITY, str(payment_id))
        return payment.to_dto()

    def bill_remaining(self, bill_id: UUID, exclude_payment_id: UUID | None = None) -> Decimal:
        """Bill total minus processed payments, recomputed from payment rows."""
        bill = self._bill(bill_id)
        return bill.total_amount - self._processed_total(bill_id, exclude_payment_id)

    def _bill(self, bill_id: UUID, lock: bool = False) -> VendorBillModel:
        query = select(VendorBillModel).where(VendorBillModel.id == bill_id)
        if lock:
            query = query.with_for_update().execution_options(populate_existing=True)
        bill = self._session.execute(query).scalar_one_or_none()
        if bill is None:
            raise RecordNotFoundError("vendor_bill", str(bill_id))
        return bill

    def _lock_payment(self, payment_id: UUID) -> VendorPaymentModel:
        payment = self._session.execute(
            select(VendorPaymentModel)
            .where(VendorPaymentModel.id == payment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if payment is None:
            raise RecordNotFoundError(_ENTITY, str(payment_id))
        return payment

    def _processed_total(self, bill_id: UUID, exclude_payment_id: UUID | None = None) -> Decimal:
        query = select(func.coalesce(func.sum(VendorPaymentModel.amount), _ZERO)).where(
            VendorPaymentModel.bill_id == bill_id,
            VendorPaymentModel.status == VendorPaymentStatus.PROCESSED.value,
        )
        if exclude_payment_id is not None:
            query = query.where(VendorPaymentModel.id != exclude_payment_id)
        return Decimal(self._session.execute(query).scalar_one())

    # =========================================================================
    # Bills
    # =========================================================================

    def create_bill(
        self,
        bill_number: str,
        vendor_name: str,
        total_amount: Decimal,
        actor_id: UUID,
        bill_date: date | None = None,
    ) -> VendorBill:
        if total_amount <= _ZERO:
            raise ValidationError("Bill total must be positive", field="total_amount")
        try:
            bill = VendorBillModel(
                bill_number=bill_number,
                vendor_name=vendor_name,
                bill_date=bill_date or self._clock.today(),
                total_amount=total_amount,
                paid_amount=_ZERO,
                status=VendorBillStatus.UNPAID.value,
                created_by_id=actor_id,
            )
            self._session.add(bill)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info(
            "vendor_bill_created",
            extra={"bill_id": str(bill.id), "bill_number": bill_number, "total_amount": str(total_amount)},
        )
        return bill.to_dto()

    def refresh_bill(self, bill_id: UUID, actor_id: UUID) -> VendorBill:
        """Recompute paid_amount and status from processed payments.  Does not commit."""
        bill = self._bill(bill_id, lock=True)
        paid = self._processed_total(bill_id)
        bill.paid_amount = paid
        bill.status = bill_status_for(bill.total_amount, paid).value
        bill.updated_by_id = actor_id
        self._session.flush()
        logger.info(
            "vendor_bill_refreshed",
            extra={"bill_id": str(bill_id), "paid_amount": str(paid), "status": bill.status},
        )
        return bill.to_dto()

    # =========================================================================
    # Payments
    # =========================================================================

    def create_payment(
        self,
        bill_id: UUID,
        amount: Decimal,
        method: PaymentMethod | str,
        actor_id: UUID,
        liquid_account_id: UUID | None = None,
        payment_date: date | None = None,
        reference: str | None = None,
        notes: str | None = None,
    ) -> VendorPayment:
        """Record a PENDING payment.  Nothing moves until ``process_payment``."""
        try:
            payment = self._stage_payment(
                bill_id, amount, method, actor_id, liquid_account_id, payment_date, reference, notes
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "vendor_payment_created",
            extra={
                "payment_id": str(payment.id),
                "bill_id": str(bill_id),
                "amount": str(amount),
                "method": payment.method,
            },
        )
        return payment.to_dto()

    @staticmethod
    def _vendor_method(method: PaymentMethod | str) -> PaymentMethod:
        try:
            method = PaymentMethod(method)
        except ValueError as exc:
            raise ValidationError(f"Unknown payment method: {method}", field="method") from exc
        if method == PaymentMethod.ORIGINAL_PAYMENT:
            raise ValidationError("original_payment is only valid for refunds", field="method")
        return method

    def _stage_payment(
        self,
        bill_id: UUID,
        amount: Decimal,
        method: PaymentMethod | str,
        actor_id: UUID,
        liquid_account_id: UUID | None,
        payment_date: date | None,
        reference: str | None,
        notes: str | None,
    ) -> VendorPaymentModel:
        """Validate and flush a PENDING payment row.  Does not commit."""
        if amount <= _ZERO:
            raise ValidationError("Payment amount must be positive", field="amount")
        method = self._vendor_method(method)
        remaining = self.bill_remaining(bill_id)
        if amount > remaining:
            raise AmountExceedsRemainingError(str(amount), str(remaining), record_id=str(bill_id))

        payment = VendorPaymentModel(
            bill_id=bill_id,
            amount=amount,
            payment_date=payment_date or self._clock.today(),
            method=method.value,
            liquid_account_id=liquid_account_id,
            status=VENDOR_PAYMENT_WORKFLOW.initial_state,
            reference=reference,
            notes=notes,
            created_by_id=actor_id,
        )
        self._session.add(payment)
        self._session.flush()
        return payment

    def pay_bill(
        self,
        bill_id: UUID,
        amount: Decimal,
        method: PaymentMethod | str,
        actor_id: UUID,
        liquid_account_id: UUID | None = None,
        payment_date: date | None = None,
        reference: str | None = None,
        notes: str | None = None,
    ) -> ProcessOutcome:
        """
        Create and process a payment in one transaction.

        The new row commits only with its settlement; a fatal failure rolls
        both back, so a retried request never leaves pending payments behind.
        """
        try:
            payment = self._stage_payment(
                bill_id, amount, method, actor_id, liquid_account_id, payment_date, reference, notes
            )
        except Exception:
            self._session.rollback()
            raise
        return self.process_payment(payment.id, actor_id)

    def _simple_transition(self, payment_id: UUID, action: str, actor_id: UUID) -> VendorPayment:
        try:
            payment = self._lock_payment(payment_id)
            result = self._workflow.execute_transition(
                VENDOR_PAYMENT_WORKFLOW, _ENTITY, payment.id, payment.status, action
            )
            payment.status = result.to_state
            payment.updated_by_id = actor_id
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info(
            f"vendor_payment_{result.to_state}",
            extra={"payment_id": str(payment_id), "from_state": result.from_state},
        )
        return payment.to_dto()

    def approve_payment(self, payment_id: UUID, actor_id: UUID) -> VendorPayment:
        return self._simple_transition(payment_id, "approve", actor_id)

    def cancel_payment(self, payment_id: UUID, actor_id: UUID) -> VendorPayment:
        return self._simple_transition(payment_id, "cancel", actor_id)

    def process_payment(
        self,
        payment_id: UUID,
        actor_id: UUID,
        method: PaymentMethod | str | None = None,
        liquid_account_id: UUID | None = None,
        payment_date: date | None = None,
    ) -> ProcessOutcome:
        """
        Pay the vendor.

        Fatal core (one transaction): lock the payment and its bill, check the
        transition and the bill balance, resolve the liquid account, take
        the money out, post Dr AP / Cr cash GL, mark processed.
        """
        logger.info("vendor_payment_process_started", extra={"payment_id": str(payment_id)})
        try:
            payment = self._lock_payment(payment_id)
            # Sibling payments on one bill serialize on the bill row
            bill = self._bill(payment.bill_id, lock=True)
            remaining = self.bill_remaining(payment.bill_id, exclude_payment_id=payment.id)
            result = self._workflow.execute_transition(
                VENDOR_PAYMENT_WORKFLOW,
                _ENTITY,
                payment.id,
                payment.status,
                "process",
                context={"amount": payment.amount, "remaining": remaining},
            )

            if method is not None:
                payment.method = self._vendor_method(method).value
            if liquid_account_id is not None:
                payment.liquid_account_id = liquid_account_id
            if payment_date is not None:
                payment.payment_date = payment_date

            account = self._settlement.resolve_account(
                payment.method, payment.liquid_account_id, record_id=payment.id
            )
            settled = self._settlement.settle_outflow(
                account=account,
                amount=payment.amount,
                debit_code=self._codes.accounts_payable,
                transaction_type=LiquidTransactionType.VENDOR_PAYMENT,
                description=f"Payment to {bill.vendor_name} for bill {bill.bill_number}",
                actor_id=actor_id,
                source_type=_ENTITY,
                source_id=payment.id,
                settlement_date=payment.payment_date,
                reference=payment.reference or bill.bill_number,
            )

            payment.status = result.to_state
            payment.liquid_account_id = account.id
            payment.journal_entry_id = settled.journal_entry_id
            payment.transaction_id = settled.transaction_id
            payment.processed_at = self._clock.now()
            payment.updated_by_id = actor_id
            self._session.commit()
        except Exception:
            self._session.rollback()
            logger.warning(
                "vendor_payment_process_failed", extra={"payment_id": str(payment_id)}, exc_info=True
            )
            raise

        logger.info(
            "vendor_payment_processed",
            extra={
                "payment_id": str(payment_id),
                "amount": str(payment.amount),
                "liquid_account_id": str(account.id),
                "journal_entry_id": str(settled.journal_entry_id),
            },
        )

        bill_id = payment.bill_id
        failure = run_best_effort(
            self._session,
            "refresh_bill_paid_amount",
            "vendor_bill",
            bill_id,
            lambda: self.refresh_bill(bill_id, actor_id),
        )
        return ProcessOutcome(
            record_id=payment_id,
            status=result.to_state,
            settlement=settled,
            warnings=(failure,) if failure else (),
        )

    def reverse_payment(
        self,
        payment_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
        reversal_date: date | None = None,
    ) -> ProcessOutcome:
        """
        Undo a processed payment: reversal entry plus an equal inflow to the
        same liquid account.  The original rows are left as they are.
        """
        logger.info("vendor_payment_reverse_started", extra={"payment_id": str(payment_id)})
        try:
            payment = self._lock_payment(payment_id)
            result = self._workflow.execute_transition(
                VENDOR_PAYMENT_WORKFLOW, _ENTITY, payment.id, payment.status, "reverse"
            )
            reversed_ = self._settlement.reverse(
                journal_entry_id=payment.journal_entry_id,
                transaction_id=payment.transaction_id,
                transaction_type=LiquidTransactionType.VENDOR_PAYMENT_REVERSAL,
                description=reason or f"Reversal of vendor payment {payment.id}",
                actor_id=actor_id,
                source_type=_ENTITY,
                source_id=payment.id,
                reversal_date=reversal_date,
            )
            payment.status = result.to_state
            payment.reversal_journal_entry_id = reversed_.journal_entry_id
            payment.reversal_transaction_id = reversed_.transaction_id
            payment.reversed_at = self._clock.now()
            if reason:
                payment.notes = f"{payment.notes}\n{reason}" if payment.notes else reason
            payment.updated_by_id = actor_id
            self._session.commit()
        except Exception:
            self._session.rollback()
            logger.warning(
                "vendor_payment_reverse_failed", extra={"payment_id": str(payment_id)}, exc_info=True
            )
            raise

        logger.info(
            "vendor_payment_reversed",
            extra={
                "payment_id": str(payment_id),
                "reversal_journal_entry_id": str(reversed_.journal_entry_id),
            },
        )

        bill_id = payment.bill_id
        failure = run_best_effort(
            self._session,
            "refresh_bill_paid_amount",
            "vendor_bill",
            bill_id,
            lambda: self.refresh_bill(bill_id, actor_id),
        )
        return ProcessOutcome(
            record_id=payment_id,
            status=result.to_state,
            settlement=reversed_,
            warnings=(failure,) if failure else (),
        )
